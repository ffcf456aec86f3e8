"""
Analysis orchestrator

Fans one analysis request out to the enabled models in dependency phases,
bounds every model by its own timeout and the whole run by a deadline, and
fans the results back in through the aggregator. A failing model never fails
the analysis; only initialization errors reach the caller.
"""

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from .aggregator import build_advisory
from .concurrency import AsyncSemaphore
from .config import ClimateSyncConfig, get_config
from .errors import (
    DeadlineExceededError,
    InitializationError,
    NotInitializedError,
    PredictionError,
)
from .models import Advisory, AdvisoryStatus, AnalysisRequest, ModelResult, ResultStatus
from .observability import add_event, get_metrics, set_attribute, trace_async, trace_operation
from .performance import PerformanceTracker
from .predictors import PredictionContext, Predictor, registry

logger = logging.getLogger(__name__)

HEALTH_DEGRADED_BELOW = 0.8
HEALTH_CRITICAL_BELOW = 0.5


def build_execution_plan(predictors: Mapping[str, Predictor]) -> list[list[str]]:
    """
    Layer models so each runs after the models it depends on

    Dependencies on models that are not registered are ignored, so a model
    whose upstream is disabled simply falls back to its defaults. Within a
    phase, models keep registration order.

    Raises:
        InitializationError: If the dependencies form a cycle
    """
    remaining = {
        name: {dep for dep in predictor.depends_on if dep in predictors and dep != name}
        for name, predictor in predictors.items()
    }
    phases: list[list[str]] = []
    resolved: set[str] = set()

    while remaining:
        ready = [name for name, deps in remaining.items() if deps <= resolved]
        if not ready:
            cycle = ", ".join(sorted(remaining))
            raise InitializationError(f"Model dependencies form a cycle among: {cycle}")
        phases.append(ready)
        resolved.update(ready)
        for name in ready:
            del remaining[name]

    return phases


class Orchestrator:
    """
    Main analysis orchestrator

    Coordinates model initialization, phased fan-out, per-model timeouts,
    performance tracking and advisory aggregation.
    """

    def __init__(
        self,
        predictors: Iterable[Predictor],
        tracker: Optional[PerformanceTracker] = None,
        config: Optional[ClimateSyncConfig] = None,
    ):
        self.config = config or get_config()
        self.predictors: dict[str, Predictor] = {}
        for predictor in predictors:
            if predictor.name in self.predictors:
                raise InitializationError(f"Duplicate model name: {predictor.name}")
            self.predictors[predictor.name] = predictor

        self.tracker = tracker or PerformanceTracker()
        self.initialized = False
        self._phases: list[list[str]] = []
        self._semaphore = AsyncSemaphore(
            self.config.orchestrator.max_concurrent_analyses, name="analyses"
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[ClimateSyncConfig] = None,
        tracker: Optional[PerformanceTracker] = None,
    ) -> "Orchestrator":
        """Build an orchestrator over every enabled registered model"""
        config = config or get_config()
        return cls(registry.create_enabled_predictors(config), tracker=tracker, config=config)

    @property
    def execution_plan(self) -> list[list[str]]:
        return [list(phase) for phase in self._phases]

    @trace_async("orchestrator.initialize")
    async def initialize(self) -> None:
        """
        Initialize every model and compute the execution plan

        Raises:
            InitializationError: If any model fails to load or the
                dependencies are cyclic
        """
        if self.initialized:
            return

        phases = build_execution_plan(self.predictors)

        names = list(self.predictors)
        outcomes = await asyncio.gather(
            *(self.predictors[name].initialize() for name in names),
            return_exceptions=True,
        )
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, InitializationError):
                raise outcome
            if isinstance(outcome, BaseException):
                raise InitializationError(f"Failed to initialize model {name}: {outcome}") from outcome

        self._phases = phases
        self.initialized = True
        logger.info(
            f"Orchestrator initialized with {len(names)} models in "
            f"{len(phases)} phases: {phases}"
        )

    async def _invoke(
        self, predictor: Predictor, request: AnalysisRequest, upstream: dict[str, ModelResult]
    ) -> ModelResult:
        """Run one model; failures become placeholders, never exceptions"""
        name = predictor.name
        context = PredictionContext(request=request, upstream=upstream)
        start = time.perf_counter()

        try:
            result = await asyncio.wait_for(predictor.predict(context), timeout=predictor.get_timeout())
        except asyncio.CancelledError:
            # Abandoned at the deadline; the result is discarded
            self.tracker.record(name, (time.perf_counter() - start) * 1000, 0.0, False)
            raise
        except asyncio.TimeoutError:
            error = PredictionError("timeout", name)
        except PredictionError as e:
            error = e
        except Exception as e:
            error = PredictionError(f"{type(e).__name__}: {e}", name)
        else:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self.tracker.record(name, elapsed_ms, result.confidence, True)
            return result

        elapsed_ms = (time.perf_counter() - start) * 1000
        self.tracker.record(name, elapsed_ms, 0.0, False)
        logger.warning(f"Model {name} failed after {elapsed_ms:.1f}ms: {error.reason}")
        add_event("model_failed", {"model": name, "reason": error.reason})
        return ModelResult.placeholder(name, error.reason)

    async def _execute(
        self,
        request: AnalysisRequest,
        in_scope: list[str],
        results: dict[str, ModelResult],
        deadline: float,
        deadline_at: float,
    ) -> None:
        """
        Run the phases in order, filling ``results`` as models complete

        Raises:
            DeadlineExceededError: When the deadline elapses mid-run
        """
        loop = asyncio.get_running_loop()

        for phase in self._phases:
            names = [name for name in phase if name in in_scope]
            if not names:
                continue

            remaining = deadline_at - loop.time()
            if remaining <= 0:
                raise DeadlineExceededError(deadline, dict(results))

            tasks = {}
            for name in names:
                predictor = self.predictors[name]
                upstream = {
                    dep: results[dep]
                    for dep in predictor.depends_on
                    if dep in results and not results[dep].is_placeholder
                }
                tasks[asyncio.create_task(self._invoke(predictor, request, upstream))] = name

            done, pending = await asyncio.wait(tasks, timeout=remaining)
            for task in done:
                results[tasks[task]] = task.result()

            if pending:
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                completed = dict(results)
                # Started but cut off: a failed call, not a skipped one
                for task in pending:
                    name = tasks[task]
                    results[name] = ModelResult.placeholder(name, "cancelled at deadline")
                raise DeadlineExceededError(deadline, completed)

    @trace_async("orchestrator.run_analysis")
    async def run_analysis(
        self, request: AnalysisRequest, deadline: Optional[float] = None
    ) -> Advisory:
        """
        Produce an advisory for one request

        Args:
            request: Location, observation and scope to analyze
            deadline: Seconds for the whole call, defaulting to the configured
                analysis deadline

        Returns:
            An advisory, degraded but valid when models fail or time out

        Raises:
            NotInitializedError: If initialize() has not completed
        """
        if not self.initialized:
            raise NotInitializedError("Orchestrator.initialize() must complete before analysis")

        deadline = deadline if deadline is not None else self.config.orchestrator.analysis_deadline
        floor = self.config.orchestrator.confidence_floor
        loop = asyncio.get_running_loop()
        deadline_at = loop.time() + deadline
        start = time.perf_counter()

        in_scope = request.resolve_scope(list(self.predictors))
        set_attribute("location.id", request.location.id)
        set_attribute("analysis.models", len(in_scope))

        results: dict[str, ModelResult] = {}
        timed_out = False
        metrics = get_metrics()

        with trace_operation("orchestrator.fan_out"):
            try:
                async with self._semaphore.acquire(timeout=max(deadline_at - loop.time(), 0.0)):
                    if metrics:
                        with metrics.time_analysis():
                            await self._execute(request, in_scope, results, deadline, deadline_at)
                    else:
                        await self._execute(request, in_scope, results, deadline, deadline_at)
            except asyncio.TimeoutError:
                timed_out = True
                logger.warning(
                    f"Analysis for {request.location.id} waited past its {deadline:.2f}s deadline "
                    f"for a free slot"
                )
            except DeadlineExceededError as e:
                timed_out = True
                logger.warning(
                    f"{e} for {request.location.id}; "
                    f"{len(e.partial)}/{len(in_scope)} models resolved"
                )
            except InitializationError:
                raise
            except Exception as e:
                logger.error(f"Analysis for {request.location.id} aborted: {e}")
                for name in in_scope:
                    results.setdefault(name, ModelResult.placeholder(name, f"aborted: {e}"))

        for name in in_scope:
            if name not in results:
                results[name] = ModelResult.placeholder(
                    name, "deadline exceeded", status=ResultStatus.SKIPPED
                )
        ordered = {name: results[name] for name in in_scope}

        succeeded = [name for name, result in ordered.items() if not result.is_placeholder]
        confidence_override = None
        if timed_out:
            status = AdvisoryStatus.DEADLINE_EXCEEDED
        elif not succeeded:
            status = AdvisoryStatus.ALL_MODELS_FAILED
        elif len(succeeded) < len(ordered):
            status = AdvisoryStatus.PARTIAL
        else:
            status = AdvisoryStatus.SUCCESS

        if not succeeded:
            confidence_override = floor
        elif timed_out:
            confidence_override = self._completed_confidence(ordered, len(succeeded), floor)

        processing_ms = (time.perf_counter() - start) * 1000
        advisory = build_advisory(
            request,
            ordered,
            status=status,
            processing_time_ms=processing_ms,
            confidence_override=confidence_override,
        )

        set_attribute("analysis.status", status.value)
        if metrics:
            metrics.record_analysis(status.value)
        logger.info(
            f"Advisory for {request.location.id}: status={status.value} "
            f"score={advisory.overall_score} confidence={advisory.overall_confidence} "
            f"({processing_ms:.1f}ms)"
        )
        return advisory

    @staticmethod
    def _completed_confidence(
        results: Mapping[str, ModelResult], completed: int, floor: float
    ) -> float:
        present = [result.confidence for result in results.values() if not result.is_placeholder]
        base = sum(present) / len(present)
        return max(floor, base * completed / len(results))

    def get_system_health(self) -> dict[str, Any]:
        """Summarize model success rates into healthy / degraded / critical"""
        snapshot = self.tracker.snapshot()
        total_calls = sum(record.total_calls for record in snapshot.values())
        successful = sum(record.successful_calls for record in snapshot.values())
        success_rate = successful / total_calls if total_calls else 1.0

        if success_rate < HEALTH_CRITICAL_BELOW:
            status = "critical"
        elif success_rate < HEALTH_DEGRADED_BELOW:
            status = "degraded"
        else:
            status = "healthy"

        return {
            "status": status,
            "initialized": self.initialized,
            "success_rate": round(success_rate, 3),
            "execution_plan": self.execution_plan,
            "models": {
                name: {**record.model_dump(mode="json"), "success_rate": round(record.success_rate, 3)}
                for name, record in snapshot.items()
            },
            "concurrency": self._semaphore.get_stats().to_dict(),
        }


@trace_async("orchestrator.run_analysis_entry")
async def run_analysis(
    request_data: dict[str, Any], deadline: Optional[float] = None
) -> dict[str, Any]:
    """
    Main entry point for advisory generation

    Args:
        request_data: AnalysisRequest dictionary
        deadline: Optional deadline in seconds for the whole analysis

    Returns:
        Advisory dictionary
    """
    request = AnalysisRequest.model_validate(request_data)
    orchestrator = Orchestrator.from_config(get_config())
    await orchestrator.initialize()
    advisory = await orchestrator.run_analysis(request, deadline=deadline)
    return advisory.model_dump(mode="json")
