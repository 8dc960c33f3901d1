"""GitVerse repository ingestion and analysis backend."""

__version__ = "1.0.0"
