"""Ingest pipeline — quota estimation, content loading, summaries, embeddings."""

from repolens.ingest.loader import RepoLoader
from repolens.ingest.pipeline import EmbeddingPipeline, IndexReport, sanitize
from repolens.ingest.quota import count_files, estimate_file_count
from repolens.ingest.summarizer import SummaryClient

__all__ = [
    "EmbeddingPipeline",
    "IndexReport",
    "RepoLoader",
    "SummaryClient",
    "count_files",
    "estimate_file_count",
    "sanitize",
]
