"""Tagged per-item results and a settle-all join.

Per-item work (summarize one file, summarize one commit) is wrapped so that it
returns an Outcome instead of raising; a batch is then a plain fan-out/fan-in
over those wrapped coroutines. One failing item never cancels its siblings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Success-with-value or failure-with-reason."""

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, reason: str) -> "Outcome[T]":
        return cls(error=reason)


async def capture(awaitable: Awaitable[T]) -> Outcome[T]:
    """Await *awaitable* and convert any Exception into a failed Outcome."""
    try:
        return Outcome.success(await awaitable)
    except Exception as exc:
        return Outcome.failure(f"{type(exc).__name__}: {exc}")


async def settle(awaitables: Iterable[Awaitable[T]]) -> list[Outcome[T]]:
    """Run *awaitables* concurrently; return one Outcome per input, in input order."""
    return list(await asyncio.gather(*(capture(a) for a in awaitables)))
