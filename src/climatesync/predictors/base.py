"""
Base prediction model interface and registry

Defines the capability contract every model satisfies from the
orchestrator's point of view, plus discovery and instantiation.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, Field

from ..config import ClimateSyncConfig, get_config
from ..errors import InitializationError, InsufficientDataError, PredictionError
from ..models import AnalysisRequest, ModelResult

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)


class PredictionContext(BaseModel):
    """
    Input to one predict call

    ``upstream`` holds results of the model's declared dependencies that
    were already resolved earlier in the same analysis.
    """

    request: AnalysisRequest
    upstream: dict[str, ModelResult] = Field(default_factory=dict)

    def upstream_prediction(self, name: str, prediction_type: type[P]) -> Optional[P]:
        """Typed prediction of a successful upstream model, or None"""
        result = self.upstream.get(name)
        if result is None or result.is_placeholder:
            return None
        if isinstance(result.predictions, prediction_type):
            return result.predictions
        return None


@runtime_checkable
class Predictor(Protocol):
    """
    Protocol for prediction models

    Models are responsible for:
    1. Loading whatever they need up front (initialize)
    2. Turning a prediction context into a typed result with a confidence (predict)
    3. Reporting their own call statistics (get_metrics)
    """

    name: str
    depends_on: tuple[str, ...]

    async def initialize(self) -> None:
        ...

    async def predict(self, context: PredictionContext) -> ModelResult:
        ...

    def get_metrics(self) -> dict[str, Any]:
        ...

    def get_timeout(self) -> float:
        ...


class PredictorBase(ABC):
    """
    Abstract base class for prediction models

    Handles the initialization state, input validation, confidence clamping
    and error wrapping shared by all concrete models.
    """

    name: str = ""
    version: str = "1.0"
    depends_on: tuple[str, ...] = ()
    # Observation fields that must be present for predict() to run
    required_fields: tuple[str, ...] = ()

    def __init__(self, config: Optional[ClimateSyncConfig] = None):
        self.config = config or get_config()
        self.model_settings = self.config.models.get_model_config(self.name)
        self.initialized = False
        self._calls = 0
        self._failures = 0

    async def initialize(self) -> None:
        """Load model resources; failures are fatal"""
        if self.initialized:
            return
        try:
            await self._load()
        except InitializationError:
            raise
        except Exception as e:
            raise InitializationError(f"Failed to initialize model {self.name}: {e}") from e
        self.initialized = True
        logger.info(f"Model {self.name} initialized (version {self.version})")

    async def _load(self) -> None:
        """Hook for subclasses that need setup"""

    def validate(self, context: PredictionContext) -> None:
        observation = context.request.observation
        for field_name in self.required_fields:
            if observation.metric(field_name) is None:
                raise InsufficientDataError(
                    f"missing observation field '{field_name}'", self.name
                )

    async def predict(self, context: PredictionContext) -> ModelResult:
        """
        Run the model on one context

        Raises:
            PredictionError: If the model is uninitialized, the input is
                invalid, or the computation fails
        """
        if not self.initialized:
            raise PredictionError("model not initialized", self.name)

        self._calls += 1
        try:
            self.validate(context)
            predictions, confidence = await self._predict(context)
        except PredictionError:
            self._failures += 1
            raise
        except Exception as e:
            self._failures += 1
            raise PredictionError(f"{type(e).__name__}: {e}", self.name) from e

        return ModelResult(
            model_type=self.name,
            predictions=predictions,
            confidence=round(min(1.0, max(0.0, confidence)), 3),
            metadata={"model_version": self.version},
        )

    @abstractmethod
    async def _predict(self, context: PredictionContext) -> tuple[BaseModel, float]:
        """Implementation-specific prediction returning (prediction, confidence)"""

    def get_metrics(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "initialized": self.initialized,
            "calls": self._calls,
            "failures": self._failures,
        }

    def is_enabled(self) -> bool:
        """Check if this model is enabled in configuration"""
        return self.name in self.config.models.enabled and self.model_settings.enabled

    def get_timeout(self) -> float:
        return self.model_settings.timeout


class PredictorRegistry:
    """Model name to predictor class, filled by ``@register_predictor``"""

    def __init__(self):
        self._classes: dict[str, type[PredictorBase]] = {}

    def register(self, predictor_class: type[PredictorBase]) -> None:
        name = getattr(predictor_class, "name", None)
        if not name:
            raise ValueError(f"{predictor_class.__name__} needs a 'name' attribute to register")
        existing = self._classes.get(name)
        if existing is not None and existing is not predictor_class:
            raise ValueError(f"Model name '{name}' already taken by {existing.__name__}")
        self._classes[name] = predictor_class

    def __contains__(self, name: str) -> bool:
        return name in self._classes

    def names(self) -> list[str]:
        return list(self._classes)

    def lookup(self, name: str) -> type[PredictorBase]:
        """
        Raises:
            InitializationError: If no model is registered under ``name``
        """
        try:
            return self._classes[name]
        except KeyError:
            raise InitializationError(
                f"Unknown model '{name}' in models.enabled; known models: {', '.join(self.names())}"
            ) from None

    def create_enabled_predictors(self, config: ClimateSyncConfig) -> list[PredictorBase]:
        """
        Instantiate every model listed in ``models.enabled``

        A listed model whose own section sets ``enabled: false`` is left out.

        Raises:
            InitializationError: If a listed name is unknown or its class
                cannot be constructed
        """
        predictors: list[PredictorBase] = []
        seen: set[str] = set()

        for name in config.models.enabled:
            if name in seen:
                logger.warning(f"Model '{name}' listed twice in models.enabled")
                continue
            seen.add(name)

            predictor_class = self.lookup(name)
            try:
                predictor = predictor_class(config)
            except Exception as e:
                raise InitializationError(f"Model '{name}' could not be constructed: {e}") from e

            if not predictor.is_enabled():
                logger.info(f"Model '{name}' disabled by its settings")
                continue
            predictors.append(predictor)

        logger.info(f"Enabled models: {[p.name for p in predictors]}")
        return predictors


registry = PredictorRegistry()


def register_predictor(predictor_class: type[PredictorBase]) -> type[PredictorBase]:
    """Class decorator adding a model to the global registry"""
    registry.register(predictor_class)
    return predictor_class
