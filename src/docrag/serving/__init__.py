"""
Serving — FastAPI application exposing document status, deletion, and
search over HTTP, including the server-sent progress stream.
"""
