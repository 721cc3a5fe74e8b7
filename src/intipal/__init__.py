"""Document-grounded chat core: PDF ingestion and gated chat sessions."""

__version__ = "0.1.0"
