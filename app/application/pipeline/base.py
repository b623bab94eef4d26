from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    TypedDict,
    runtime_checkable,
    Mapping,
    Callable,
    ClassVar,
)
import logging
from abc import ABC, abstractmethod
from time import perf_counter
from enum import Enum
import asyncio
import uuid

from app.application.services.retry import RetryPolicy


@dataclass(slots=True)
class PipelineContext:
    """Common pipeline context shared across all pipelines.

    - input: immutable-like request input (sticker set name, destination)
    - artifacts: cross-step working data and outputs (also stores the
      run id via a reserved key)
    """

    RUN_ID_KEY: ClassVar[str] = "_run_id"

    input: Mapping[str, Any]
    artifacts: Dict[str, Any] = field(default_factory=dict)

    # ----- Artifacts: primary cross-step data store -----
    def set(self, key: str, value: Any) -> None:
        self.artifacts[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.artifacts.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.artifacts

    def remove(self, key: str) -> None:
        if key in self.artifacts:
            del self.artifacts[key]

    def update(self, **items: Any) -> None:
        self.artifacts.update(items)

    def require(self, keys: List[str]) -> None:
        missing = [k for k in keys if k not in self.artifacts]
        if missing:
            raise KeyError(f"Missing required context keys: {', '.join(missing)}")

    # ----- Run ID (stored in artifacts) -----
    def get_run_id(self) -> Optional[str]:
        return self.get(self.RUN_ID_KEY, None)

    def set_run_id(self, run_id: str) -> None:
        self.set(self.RUN_ID_KEY, run_id)

    def ensure_run_id(self, factory: Optional[Callable[[], str]] = None) -> str:
        rid = self.get_run_id()
        if not rid and factory:
            rid = factory()
        if not rid:
            rid = uuid.uuid4().hex
        self.set_run_id(rid)
        return rid


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@runtime_checkable
class Step(Protocol):
    async def __call__(
        self, context: PipelineContext
    ) -> None:  # pragma: no cover - protocol
        ...


logger = logging.getLogger(__name__)


class BaseStep(ABC):
    """Base class for pipeline steps with lifecycle hooks, status, retry & timeout.

    Steps default to a single attempt; the pack pipeline only retries inside
    the delivery service.
    """

    name: str = "base_step"

    # execution config
    required_keys: List[str] = []
    retries: int = 0
    retry_backoff: float = 0.5  # seconds
    timeout: Optional[float] = None  # seconds
    use_exponential_backoff: bool = True
    max_backoff: float = 5.0
    jitter: float = 0.0
    # Per-exception retry policy overrides
    # Example: {TransientError: {"retries": 3, "retry_backoff": 0.5, "max_backoff": 3.0}}
    retry_exceptions: Dict[type[Exception], Dict[str, Any]] = {}

    # runtime fields
    status: StepStatus = StepStatus.PENDING
    last_error: Optional[Exception] = None
    duration: float = 0.0
    attempts: int = 0

    def retry_policy_for(self, error: Exception) -> RetryPolicy:
        """Resolve the effective retry policy for the raised exception type."""
        retries = self.retries
        backoff = self.retry_backoff
        max_backoff = self.max_backoff
        jitter = self.jitter
        use_exp = self.use_exponential_backoff

        for exc_type, cfg in getattr(self, "retry_exceptions", {}).items():
            if isinstance(error, exc_type):
                retries = int(cfg.get("retries", retries))
                backoff = float(cfg.get("retry_backoff", backoff))
                max_backoff = float(cfg.get("max_backoff", max_backoff))
                jitter = float(cfg.get("jitter", jitter))
                use_exp = bool(cfg.get("use_exponential_backoff", use_exp))
                break

        return RetryPolicy.from_retries(
            retries,
            base_delay=backoff,
            max_delay=max_backoff,
            jitter=jitter,
            use_exponential_backoff=use_exp,
        )

    async def __call__(self, context: PipelineContext) -> None:
        attempts = 0
        self.last_error = None

        # skipped steps never need their inputs
        if self.can_skip(context):
            self.status = StepStatus.SKIPPED
            self.on_skip(context)
            return

        if not self.validate_inputs(context):
            missing = [k for k in self.required_keys if not context.has(k)]
            raise KeyError(
                f"Missing required inputs for step '{self.name}': {', '.join(missing)}"
            )

        while True:
            attempts += 1
            self.attempts = attempts
            self.status = StepStatus.RUNNING
            self.on_start(context)
            start = perf_counter()
            try:
                if self.timeout:
                    await asyncio.wait_for(self.run(context), timeout=self.timeout)
                else:
                    await self.run(context)
                self.status = StepStatus.COMPLETED
                return
            except Exception as e:  # noqa: BLE001
                self.last_error = e
                self.status = StepStatus.FAILED
                policy = self.retry_policy_for(e)
                if attempts < policy.max_attempts:
                    await asyncio.sleep(policy.delay_for(attempts))
                    continue
                raise
            finally:
                self.duration = perf_counter() - start
                self.on_finish(context, self.duration)

    @abstractmethod
    async def run(
        self, context: PipelineContext
    ) -> None:  # pragma: no cover - abstract
        ...

    # Hooks
    def on_start(self, context: PipelineContext) -> None:
        logger.debug("Step %s start", getattr(self, "name", self.__class__.__name__))

    def on_finish(self, context: PipelineContext, duration: float) -> None:
        logger.info(
            "Step %s finished in %.3fs with status=%s attempts=%d run_id=%s",
            getattr(self, "name", self.__class__.__name__),
            duration,
            self.status.value,
            getattr(self, "attempts", 0),
            context.get_run_id(),
        )

    def on_skip(self, context: PipelineContext) -> None:
        logger.info("Step %s skipped", getattr(self, "name", self.__class__.__name__))

    # Utilities
    def validate_inputs(self, context: PipelineContext) -> bool:
        if not self.required_keys:
            return True
        return all(context.has(k) for k in self.required_keys)

    def can_skip(self, context: PipelineContext) -> bool:
        return False


class StepResult(TypedDict):  # pragma: no cover - typing helper
    name: str
    status: str
    duration: float
    error: Optional[str]
    attempts: int


class PipelineResult(TypedDict):  # pragma: no cover - typing helper
    success: bool
    duration: float
    steps: List[StepResult]
    error: Optional[str]
    context: PipelineContext


_OK_STATUSES = (StepStatus.COMPLETED.value, StepStatus.SKIPPED.value)


class Pipeline:
    def __init__(self, steps: List[Step], *, fail_fast: bool = True):
        self._steps = steps
        self.fail_fast = fail_fast

    @property
    def steps(self) -> List[Step]:
        return list(self._steps)

    async def execute(self, context: PipelineContext) -> PipelineResult:
        context.ensure_run_id()

        pipeline_start = perf_counter()
        results: Dict[str, Any] = {
            "success": False,
            "duration": 0.0,
            "steps": [],
            "error": None,
        }

        for step in self._steps:
            step_info: Dict[str, Any] = {
                "name": getattr(step, "name", step.__class__.__name__),
                "status": StepStatus.PENDING.value,
                "duration": 0.0,
                "error": None,
                "attempts": 0,
            }
            results["steps"].append(step_info)

            step_start = perf_counter()
            try:
                await step(context)  # use __call__ lifecycle
                step_info["status"] = getattr(
                    step, "status", StepStatus.COMPLETED
                ).value
                step_info["attempts"] = int(getattr(step, "attempts", 1) or 1)
            except Exception as e:  # noqa: BLE001
                step_info["status"] = StepStatus.FAILED.value
                step_info["error"] = str(e)
                step_info["attempts"] = int(getattr(step, "attempts", 1) or 1)
                if results["error"] is None:
                    results["error"] = str(e)
                if self.fail_fast:
                    raise
            finally:
                step_info["duration"] = perf_counter() - step_start

        results["duration"] = perf_counter() - pipeline_start
        # skipped steps (e.g. build steps on a cache hit) count as success
        results["success"] = all(
            s.get("status") in _OK_STATUSES for s in results["steps"]
        )
        results["context"] = context
        return results


class Middleware(Protocol):  # pragma: no cover - optional extension point
    def __call__(self, step: Step) -> Step: ...


def make_logging_middleware(
    logger_obj: logging.Logger | None = None,
    level_before: int = logging.DEBUG,
    level_after: int = logging.INFO,
) -> Middleware:
    """Return a middleware that logs before and after each step execution.

    Logs include: step name, run_id, sticker set name, status, attempts, duration.
    """
    _log = logger_obj or logger

    def _middleware(step: Step) -> Step:
        class _Wrapped:
            def __init__(self, inner: Step):
                self._inner = inner

            def __getattr__(self, item):  # delegate attributes like 'name'
                return getattr(self._inner, item)

            async def __call__(self, context: PipelineContext) -> None:
                step_name = getattr(self._inner, "name", self._inner.__class__.__name__)
                rid = context.get_run_id()
                pack = context.input.get("name")
                _log.log(
                    level_before, "[run_id=%s pack=%s] Step %s BEGIN", rid, pack, step_name
                )
                start = perf_counter()
                try:
                    await self._inner(context)
                finally:
                    duration = perf_counter() - start
                    status = getattr(self._inner, "status", StepStatus.PENDING)
                    attempts = int(getattr(self._inner, "attempts", 0) or 0)
                    _log.log(
                        level_after,
                        "[run_id=%s pack=%s] Step %s END status=%s attempts=%d duration=%.3fs",
                        rid,
                        pack,
                        step_name,
                        getattr(status, "value", str(status)),
                        attempts,
                        duration,
                    )

        return _Wrapped(step)

    return _middleware


def make_deadline_middleware(
    timeout: float, *, exempt: tuple[str, ...] = ()
) -> Middleware:
    """Return a middleware that bounds the combined run time of the steps.

    The clock starts when the first wrapped step is called and is shared by
    every step built with this middleware. Steps named in ``exempt`` run
    outside the deadline. Exceeding it raises ``asyncio.TimeoutError``.
    """
    deadline: Dict[str, float] = {}

    def _middleware(step: Step) -> Step:
        step_name = getattr(step, "name", step.__class__.__name__)
        if step_name in exempt:
            return step

        class _Bounded:
            def __init__(self, inner: Step):
                self._inner = inner

            def __getattr__(self, item):
                return getattr(self._inner, item)

            async def __call__(self, context: PipelineContext) -> None:
                loop = asyncio.get_running_loop()
                ends_at = deadline.setdefault("at", loop.time() + timeout)
                remaining = ends_at - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError(
                        f"Deadline of {timeout}s passed before step {step_name}"
                    )
                await asyncio.wait_for(self._inner(context), timeout=remaining)

        return _Bounded(step)

    return _middleware
