from __future__ import annotations

from typing import List

from app.application.pipeline.base import Pipeline, Step, Middleware


class PipelineFactory:
    """Fluent builder for Pipelines; every step is wrapped by each middleware.

    Example:
        pipeline = (
            PipelineFactory(middlewares=[make_logging_middleware()])
            .add(CacheLookupStep(cache))
            .add(DeliverStep(delivery, publisher))
            .build()
        )
    """

    def __init__(self, *, middlewares: List[Middleware] | None = None, fail_fast: bool = True):
        self._steps: List[Step] = []
        self._middlewares = list(middlewares or [])
        self._fail_fast = fail_fast

    def add(self, step: Step) -> "PipelineFactory":
        if not callable(step):
            raise TypeError(
                f"Pipeline step {step!r} must be an async callable taking a context"
            )
        wrapped = step
        # first middleware ends up outermost
        for mw in reversed(self._middlewares):
            wrapped = mw(wrapped)
        self._steps.append(wrapped)
        return self

    def extend(self, steps: List[Step]) -> "PipelineFactory":
        for s in steps:
            self.add(s)
        return self

    def step_names(self) -> List[str]:
        return [getattr(s, "name", s.__class__.__name__) for s in self._steps]

    def build(self) -> Pipeline:
        return Pipeline(list(self._steps), fail_fast=self._fail_fast)
