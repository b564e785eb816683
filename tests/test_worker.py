from __future__ import annotations

import asyncio
import logging

import pytest

from academy import worker


def test_builtin_jobs_registered() -> None:
    assert list(worker.JOBS) == ["drain", "sweep"]


def test_run_cycle_runs_every_job() -> None:
    results = asyncio.run(worker.run_cycle())
    assert results == {
        "drain": {"processed": 0, "failed": 0},
        "sweep": {"cleaned": 0},
    }


def test_failing_job_does_not_stop_the_cycle(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    async def broken(dispatcher):
        raise RuntimeError("boom")

    jobs = {"broken": broken, **worker.JOBS}
    monkeypatch.setattr(worker, "JOBS", jobs)

    with caplog.at_level(logging.ERROR, logger="worker"):
        results = asyncio.run(worker.run_cycle())

    assert "broken" not in results
    assert results["sweep"] == {"cleaned": 0}
    assert "Job [broken] failed" in caplog.text


def test_run_worker_stops_after_max_cycles(monkeypatch: pytest.MonkeyPatch) -> None:
    cycles = []

    async def fake_cycle():
        cycles.append(1)
        return {}

    async def no_sleep(seconds: float) -> None:
        cycles.append(0)

    monkeypatch.setattr(worker, "run_cycle", fake_cycle)
    monkeypatch.setattr(worker.asyncio, "sleep", no_sleep)

    asyncio.run(worker.run_worker(max_cycles=2))
    assert cycles == [1, 0, 1]
