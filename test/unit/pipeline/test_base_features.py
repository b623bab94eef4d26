from __future__ import annotations

import asyncio
import logging
import pytest

from app.application.pipeline.base import (
    BaseStep,
    PipelineContext,
    StepStatus,
    make_deadline_middleware,
    make_logging_middleware,
)
from app.application.pipeline.factory import PipelineFactory
from app.application.pipeline.pack.steps.common import BuildStep
from app.core.exceptions import TransientError


class _ReqKeysStep(BaseStep):
    name = "req_keys"
    required_keys = ["needed"]

    async def run(self, context: PipelineContext) -> None:  # pragma: no cover - not reached
        context.set("ok", True)


class _SkipStep(BaseStep):
    name = "skip_me"

    def can_skip(self, context: PipelineContext) -> bool:
        return True

    async def run(self, context: PipelineContext) -> None:  # pragma: no cover - skipped
        context.set("ran", True)


class _RetryThenSucceedStep(BaseStep):
    name = "retry_then_ok"

    def __init__(self, fail_times: int):
        self._remaining = fail_times
        self.retries = fail_times
        self.retry_backoff = 0.0
        self.use_exponential_backoff = False

    async def run(self, context: PipelineContext) -> None:
        if self._remaining > 0:
            self._remaining -= 1
            raise RuntimeError("transient")
        context.set("done", True)


class _TimeoutStep(BaseStep):
    name = "timeout_step"

    def __init__(self, sleep_s: float, timeout: float):
        self._sleep = sleep_s
        self.timeout = timeout

    async def run(self, context: PipelineContext) -> None:
        await asyncio.sleep(self._sleep)


class _FailingStep(BaseStep):
    name = "always_fail"

    async def run(self, context: PipelineContext) -> None:
        raise ValueError("boom")


class _SimpleStep(BaseStep):
    name = "simple"

    async def run(self, context: PipelineContext) -> None:
        context.set("simple", True)


class _OnlyTransientRetryStep(BaseStep):
    name = "transient_retry"

    def __init__(self):
        self.calls = 0
        self.retry_exceptions = {
            TransientError: {"retries": 1, "retry_backoff": 0.0, "max_backoff": 0.0}
        }

    async def run(self, context: PipelineContext) -> None:
        self.calls += 1
        if self.calls == 1:
            raise TransientError("network hiccup")
        context.set("transient_retry_ok", True)


class _MissOnly(BuildStep):
    name = "miss_only"

    async def run(self, context: PipelineContext) -> None:
        context.set("built", True)


@pytest.mark.asyncio
async def test_required_keys_missing_raises():
    pipeline = PipelineFactory().add(_ReqKeysStep()).build()

    with pytest.raises(KeyError):
        await pipeline.execute(PipelineContext(input={}))


@pytest.mark.asyncio
async def test_skipped_step_counts_as_success():
    pipeline = PipelineFactory().add(_SkipStep()).add(_SimpleStep()).build()

    ctx = PipelineContext(input={})
    result = await pipeline.execute(ctx)

    # a cache hit skips every build step; the run is still a success
    assert result["success"] is True
    assert result["steps"][0]["status"] == StepStatus.SKIPPED.value
    assert result["steps"][1]["status"] == StepStatus.COMPLETED.value
    assert ctx.get("ran") is None


@pytest.mark.asyncio
async def test_build_step_skipped_on_cache_hit_and_runs_on_miss():
    hit = PipelineContext(input={"name": "pack"})
    hit.set("cache_hit", True)
    miss = PipelineContext(input={"name": "pack"})
    miss.set("cache_hit", False)

    await PipelineFactory().add(_MissOnly()).build().execute(hit)
    await PipelineFactory().add(_MissOnly()).build().execute(miss)

    assert hit.get("built") is None
    assert miss.get("built") is True


@pytest.mark.asyncio
async def test_retries_then_succeeds_records_attempts():
    pipeline = PipelineFactory().add(_RetryThenSucceedStep(fail_times=2)).build()

    result = await pipeline.execute(PipelineContext(input={}))

    assert result["success"] is True
    assert result["steps"][0]["attempts"] == 3
    assert result["steps"][0]["status"] == StepStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_steps_do_not_retry_by_default():
    step = _FailingStep()
    pipeline = PipelineFactory(fail_fast=False).add(step).build()

    result = await pipeline.execute(PipelineContext(input={}))

    assert result["steps"][0]["attempts"] == 1
    assert result["error"] == "boom"


@pytest.mark.asyncio
async def test_timeout_raises_and_fail_fast():
    pipeline = PipelineFactory().add(_TimeoutStep(sleep_s=0.2, timeout=0.05)).build()

    with pytest.raises(asyncio.TimeoutError):
        await pipeline.execute(PipelineContext(input={}))


@pytest.mark.asyncio
async def test_fail_fast_false_continues_and_keeps_first_error():
    pipeline = (
        PipelineFactory(fail_fast=False)
        .add(_FailingStep())
        .add(_SimpleStep())
        .build()
    )

    ctx = PipelineContext(input={})
    result = await pipeline.execute(ctx)

    assert result["success"] is False
    assert result["error"] == "boom"
    assert result["steps"][0]["status"] == StepStatus.FAILED.value
    assert result["steps"][1]["status"] == StepStatus.COMPLETED.value
    assert ctx.get("simple") is True


@pytest.mark.asyncio
async def test_logging_middleware_emits_begin_end_with_pack_name(caplog):
    caplog.set_level(logging.DEBUG)
    pipeline = (
        PipelineFactory(middlewares=[make_logging_middleware()])
        .add(_SimpleStep())
        .build()
    )

    await pipeline.execute(PipelineContext(input={"name": "cats_by_bot"}))

    logs = "\n".join(rec.getMessage() for rec in caplog.records)
    assert "BEGIN" in logs
    assert "END" in logs
    assert "pack=cats_by_bot" in logs


@pytest.mark.asyncio
async def test_retry_exceptions_policy_overrides_default():
    step = _OnlyTransientRetryStep()
    pipeline = PipelineFactory().add(step).build()

    ctx = PipelineContext(input={})
    result = await pipeline.execute(ctx)

    assert result["success"] is True
    assert result["steps"][0]["attempts"] == 2
    assert ctx.get("transient_retry_ok") is True


@pytest.mark.asyncio
async def test_wrapped_step_preserves_name():
    step = _SimpleStep()
    pipeline = (
        PipelineFactory(middlewares=[make_logging_middleware()]).add(step).build()
    )

    result = await pipeline.execute(PipelineContext(input={}))

    assert result["steps"][0]["name"] == step.name


class _RequireThenSkipStep(BaseStep):
    name = "require_then_skip"
    required_keys = ["needed"]

    def can_skip(self, context: PipelineContext) -> bool:
        return True

    async def run(self, context: PipelineContext) -> None:  # pragma: no cover
        pass


@pytest.mark.asyncio
async def test_skipped_step_does_not_need_its_inputs():
    step = _RequireThenSkipStep()
    pipeline = PipelineFactory().add(step).build()

    result = await pipeline.execute(PipelineContext(input={}))

    assert result["success"] is True
    assert step.status == StepStatus.SKIPPED


@pytest.mark.asyncio
async def test_pipeline_result_structure_and_types():
    pipeline = PipelineFactory().add(_SimpleStep()).add(_SimpleStep()).build()

    ctx = PipelineContext(input={"name": "x"})
    result = await pipeline.execute(ctx)

    assert set(result.keys()) == {"success", "duration", "steps", "error", "context"}
    assert isinstance(result["duration"], float) and result["duration"] >= 0.0
    assert result["error"] is None
    assert result["context"] is ctx
    assert ctx.get_run_id()
    for s in result["steps"]:
        assert set(s.keys()) == {"name", "status", "duration", "error", "attempts"}
        assert s["status"] in {v.value for v in StepStatus}
        assert isinstance(s["attempts"], int) and s["attempts"] >= 1


class _SleepStep(BaseStep):
    def __init__(self, name: str, seconds: float):
        self.name = name
        self.seconds = seconds

    async def run(self, context: PipelineContext) -> None:
        await asyncio.sleep(self.seconds)
        context.set(self.name, True)


@pytest.mark.asyncio
async def test_deadline_is_shared_across_steps():
    pipeline = (
        PipelineFactory(middlewares=[make_deadline_middleware(0.15)])
        .add(_SleepStep("first", 0.1))
        .add(_SleepStep("second", 0.1))
        .build()
    )
    ctx = PipelineContext(input={})

    with pytest.raises(asyncio.TimeoutError):
        await pipeline.execute(ctx)
    assert ctx.get("first") is True
    assert not ctx.has("second")


@pytest.mark.asyncio
async def test_deadline_exempt_step_runs_past_it():
    pipeline = (
        PipelineFactory(middlewares=[make_deadline_middleware(0.05, exempt=("deliver",))])
        .add(_SleepStep("build", 0.01))
        .add(_SleepStep("deliver", 0.1))
        .build()
    )
    ctx = PipelineContext(input={})

    result = await pipeline.execute(ctx)

    assert result["success"] is True
    assert ctx.get("deliver") is True
