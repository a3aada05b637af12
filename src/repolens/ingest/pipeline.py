"""Embedding pipeline — summarize + embed source documents in bounded batches.

For each document:
1. Summarize the file (``SummaryClient.summarize_code``).
2. Embed the summary, if non-empty.
3. Strip NUL bytes from summary and source text (the text columns reject them).
4. Store the row, then attach the vector to it by id.

Documents are processed ``batch_size`` at a time; batch N is fully persisted
before batch N+1 issues its first provider call. A document that fails any
step contributes no row and never fails its batch.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable
from dataclasses import dataclass

from repolens.db.models import EmbeddingRecord, SourceDocument
from repolens.db.repository import Repository
from repolens.ingest.summarizer import SummaryClient
from repolens.outcome import settle

logger = logging.getLogger(__name__)

BATCH_SIZE = 5


def sanitize(text: str) -> str:
    """Remove NUL characters, which text columns do not accept."""
    return text.replace("\x00", "")


@dataclass
class IndexReport:
    """Counts from one pipeline run."""

    documents: int = 0
    batches: int = 0
    written: int = 0
    skipped: int = 0


@dataclass
class _Embedded:
    path: str
    source_code: str
    summary: str
    embedding: list[float]


class EmbeddingPipeline:
    """Persist one EmbeddingRecord per document that summarizes and embeds cleanly.

    Args:
        repo:        Open Repository instance.
        summarizer:  SummaryClient used for both summaries and embeddings.
        vec_table:   sqlite-vec table receiving the vectors (see ensure_vec_table).
        dimensions:  Expected vector length; vectors of any other length are dropped.
        batch_size:  Documents in flight at once.
    """

    def __init__(
        self,
        repo: Repository,
        summarizer: SummaryClient,
        vec_table: str,
        dimensions: int,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._repo = repo
        self._summarizer = summarizer
        self._vec_table = vec_table
        self._dimensions = dimensions
        self._batch_size = batch_size

    async def run(
        self,
        project_id: str,
        documents: Iterable[SourceDocument] | AsyncIterable[SourceDocument],
        on_batch: Callable[[IndexReport], None] | None = None,
    ) -> IndexReport:
        """Process *documents* batch by batch and return the run's counts.

        *on_batch* (optional) is called with the running report after each
        batch has been persisted.
        """
        report = IndexReport()
        async for batch in _batched(documents, self._batch_size):
            report.batches += 1
            report.documents += len(batch)
            logger.info(
                "Project %s: batch %d (%d files)", project_id, report.batches, len(batch)
            )

            outcomes = await settle(self._process(doc) for doc in batch)

            for doc, outcome in zip(batch, outcomes):
                if not outcome.ok:
                    logger.warning("Skipping %s: %s", doc.path, outcome.error)
                    report.skipped += 1
                elif self._persist(project_id, outcome.value):
                    report.written += 1
                else:
                    report.skipped += 1

            if on_batch is not None:
                on_batch(report)

        logger.info(
            "Project %s: %d of %d files embedded (%d skipped)",
            project_id,
            report.written,
            report.documents,
            report.skipped,
        )
        return report

    async def _process(self, doc: SourceDocument) -> _Embedded:
        """Summarize and embed one document; raise to mark it as skipped."""
        summary = sanitize(await self._summarizer.summarize_code(doc.path, doc.raw_content))
        if not summary.strip():
            raise ValueError("empty summary")

        embedding = await self._summarizer.embed(summary)
        if not embedding:
            raise ValueError("empty embedding")
        if len(embedding) != self._dimensions:
            raise ValueError(
                f"embedding has {len(embedding)} dimensions, expected {self._dimensions}"
            )
        return _Embedded(
            path=doc.path,
            source_code=sanitize(doc.raw_content),
            summary=summary,
            embedding=embedding,
        )

    def _persist(self, project_id: str, item: _Embedded) -> bool:
        record = EmbeddingRecord(
            project_id=project_id,
            file_name=item.path,
            source_code=item.source_code,
            summary=item.summary,
            summary_embedding=item.embedding,
        )
        try:
            self._repo.add_embedding_record(record, self._vec_table)
        except sqlite3.Error as exc:
            logger.warning("Could not store %s: %s", item.path, exc)
            return False
        return True


async def _batched(
    items: Iterable[SourceDocument] | AsyncIterable[SourceDocument], size: int
) -> AsyncIterator[list[SourceDocument]]:
    """Group a sync or async iterable into lists of at most *size* items."""
    batch: list[SourceDocument] = []
    if isinstance(items, AsyncIterable):
        async for item in items:
            batch.append(item)
            if len(batch) == size:
                yield batch
                batch = []
    else:
        for item in items:
            batch.append(item)
            if len(batch) == size:
                yield batch
                batch = []
    if batch:
        yield batch
