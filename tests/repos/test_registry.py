from __future__ import annotations

import asyncio
from dataclasses import replace

from academy.repos.registry import in_memory_repositories, run_after_commit


def test_in_memory_bundle_sends_inline() -> None:
    assert in_memory_repositories().after_commit is None


def test_after_commit_hooks_run_in_order_and_survive_failures() -> None:
    calls: list[str] = []

    async def first() -> None:
        calls.append("first")

    async def broken() -> None:
        raise RuntimeError("endpoint down")

    async def last() -> None:
        calls.append("last")

    repos = replace(in_memory_repositories(), after_commit=[first, broken, last])

    asyncio.run(run_after_commit(repos))

    assert calls == ["first", "last"]
    assert repos.after_commit == []


def test_run_after_commit_without_hooks_is_a_no_op() -> None:
    asyncio.run(run_after_commit(in_memory_repositories()))
