"""repolens — GitHub repository ingestion and commit sync into a vector knowledge base."""

__version__ = "0.1.0"
