"""docrag — document ingestion, embedding, and semantic search over SQLite."""

__version__ = "0.1.0"
