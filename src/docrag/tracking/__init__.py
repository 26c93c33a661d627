"""
Tracking — document status state machine and progress streaming.
"""

from docrag.tracking.stream import StatusSubscription, snapshot_event, to_sse
from docrag.tracking.tracker import DocumentStatusTracker, percent

__all__ = [
    "DocumentStatusTracker",
    "StatusSubscription",
    "percent",
    "snapshot_event",
    "to_sse",
]
