"""Tests for tagged outcomes and the settle-all join."""

from __future__ import annotations

import asyncio

import pytest

from repolens.outcome import Outcome, capture, settle


async def _ok(value, delay=0.0):
    await asyncio.sleep(delay)
    return value


async def _boom(message="nope"):
    await asyncio.sleep(0)
    raise RuntimeError(message)


def test_outcome_tags():
    assert Outcome.success(3).ok
    failed = Outcome.failure("bad")
    assert not failed.ok
    assert failed.value is None


def test_success_with_none_value_is_ok():
    assert Outcome.success(None).ok


@pytest.mark.asyncio
async def test_capture_converts_exception():
    outcome = await capture(_boom("provider down"))
    assert not outcome.ok
    assert outcome.error == "RuntimeError: provider down"


@pytest.mark.asyncio
async def test_settle_keeps_input_order_and_isolates_failures():
    outcomes = await settle([_ok("a", 0.02), _boom(), _ok("c", 0.0)])
    assert [o.ok for o in outcomes] == [True, False, True]
    assert [o.value for o in outcomes] == ["a", None, "c"]


@pytest.mark.asyncio
async def test_settle_runs_concurrently():
    started = []

    async def item(i):
        started.append(i)
        await asyncio.sleep(0.01)
        return len(started)

    outcomes = await settle(item(i) for i in range(4))
    # every item had started before any finished
    assert [o.value for o in outcomes] == [4, 4, 4, 4]


@pytest.mark.asyncio
async def test_settle_empty():
    assert await settle([]) == []
