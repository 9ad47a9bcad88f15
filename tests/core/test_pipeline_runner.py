"""Tests for the staged pipeline runner."""

from dataclasses import dataclass, field
from typing import List

import pytest

from src.core.pipeline import Pipeline, PipelineStatus


@dataclass
class _State:
    status: str = "idle"
    seen: List[str] = field(default_factory=list)
    errors: list = field(default_factory=list)


@pytest.mark.asyncio
async def test_stages_run_in_order_with_status_updates():
    state = _State()

    def load(s):
        s.seen.append(("load", s.status))

    async def process(s):
        s.seen.append(("process", s.status))

    pipeline = Pipeline("demo", [
        (PipelineStatus.LOADING, load),
        (PipelineStatus.PROCESSING, process),
    ])
    result = await pipeline.run(state)

    assert result is state
    assert state.seen == [("load", "loading"), ("process", "processing")]
    assert state.status == "done"
    assert pipeline.stage_names == ["loading", "processing"]


@pytest.mark.asyncio
async def test_failing_stage_is_recorded_and_later_stages_run():
    state = _State()

    def broken(s):
        raise RuntimeError("disk full")

    def after(s):
        s.seen.append("after")

    await Pipeline("demo", [("first", broken), ("second", after)]).run(state)

    assert state.seen == ["after"]
    assert len(state.errors) == 1
    assert state.errors[0].stage == "first"
    assert state.errors[0].error == "disk full"
    assert state.status == "done"


@pytest.mark.asyncio
async def test_empty_pipeline_finishes_immediately():
    state = _State()
    await Pipeline("empty", []).run(state)
    assert state.status == "done"
    assert state.errors == []
