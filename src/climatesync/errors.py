"""
Error taxonomy for climatesync

Only InitializationError (and subclasses) is meant to reach callers of the
orchestrator or the service. Everything else is contained and converted into
degraded-but-valid output.
"""

from typing import Any, Optional


class ClimateSyncError(Exception):
    """Base class for all climatesync errors"""


class InitializationError(ClimateSyncError):
    """A model or service cannot start; fatal for startup"""


class NotInitializedError(InitializationError):
    """Operation attempted before initialize() completed"""


class PredictionError(ClimateSyncError):
    """A single model invocation failed; isolated per model"""

    def __init__(self, reason: str, model: Optional[str] = None):
        self.reason = reason
        self.model = model
        prefix = f"[{model}] " if model else ""
        super().__init__(f"{prefix}{reason}")


class InsufficientDataError(PredictionError):
    """Input lacks the fields a model needs"""


class ThresholdConfigError(ClimateSyncError):
    """Threshold configuration is missing or violates the ladder ordering"""


class DeadlineExceededError(ClimateSyncError):
    """
    The analysis deadline elapsed before every model finished

    Carries whatever results completed in time so the caller can still
    build a best-effort advisory.
    """

    def __init__(self, deadline: float, partial: Optional[dict[str, Any]] = None):
        self.deadline = deadline
        self.partial = partial or {}
        super().__init__(f"Analysis deadline of {deadline:.2f}s exceeded")
