"""Prediction orchestration: scale, infer under lock, map class index to name.

Design
- One ``threading.Lock`` guards every inference call; only one inference is
  in flight per process. Scaling happens outside the lock since scaler
  parameters are read-only.
- ``try_predict`` returns a tagged ``PredictionOutcome``; ``predict`` is the
  raising form of the same call.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import structlog

from libs.common.metrics import MetricsCollector
from ..loaders.model_loader import ModelHandle
from .errors import InvalidInputError, PredictionError, ServiceNotReadyError, UnknownClassError
from .feature_scaler import FeatureScaler

logger = structlog.get_logger("classifier.prediction_service")


class ServiceState(Enum):
    """Lifecycle states of the prediction service."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


class ClassTable:
    """Explicit, bounds-checked mapping from class index to class name."""

    def __init__(self, names: Sequence[str]):
        if not names:
            raise ValueError("class table must not be empty")
        self._names: Tuple[str, ...] = tuple(names)

    @property
    def names(self) -> Tuple[str, ...]:
        return self._names

    def __len__(self) -> int:
        return len(self._names)

    def lookup(self, class_index: int) -> str:
        """Return the name for ``class_index`` or raise ``UnknownClassError``."""
        if 0 <= class_index < len(self._names):
            return self._names[class_index]
        raise UnknownClassError(class_index, len(self._names))


@dataclass(frozen=True)
class PredictionResult:
    """Predicted class identifier and its symbolic name."""

    class_index: int
    class_name: str


@dataclass(frozen=True)
class PredictionOutcome:
    """Tagged result of a prediction: exactly one of ``result``/``error`` is set."""

    result: Optional[PredictionResult] = None
    error: Optional[PredictionError] = None
    latency_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> PredictionResult:
        if self.error is not None:
            raise self.error
        if self.result is None:
            raise RuntimeError("Prediction outcome holds neither a result nor an error")
        return self.result


class PredictionService:
    """Serves predictions from one model handle and one feature scaler.

    Parameters
    - model: Loaded ``ModelHandle`` (owned; closed by ``close``)
    - scaler: ``FeatureScaler`` with the training-time parameters
    - class_table: ``ClassTable`` indexed by the model's class output
    - metrics: Optional ``MetricsCollector`` for inference metrics
    """

    def __init__(
        self,
        model: ModelHandle,
        scaler: FeatureScaler,
        class_table: ClassTable,
        metrics: Optional[MetricsCollector] = None,
    ):
        self._model = model
        self._scaler = scaler
        self._class_table = class_table
        self._metrics = metrics
        self._lock = threading.Lock()
        self._state = ServiceState.READY

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is ServiceState.READY

    @property
    def feature_count(self) -> int:
        return self._scaler.feature_count

    @property
    def model(self) -> ModelHandle:
        return self._model

    @property
    def class_table(self) -> ClassTable:
        return self._class_table

    def predict(self, features: Sequence[float]) -> PredictionResult:
        """Predict the class for one feature vector.

        Raises
        - InvalidInputError: wrong feature count or non-numeric features
        - InferenceError: engine failure or malformed output
        - UnknownClassError: class index outside the class table
        - ServiceNotReadyError: service not in the ready state
        """
        return self.try_predict(features).unwrap()

    def try_predict(self, features: Sequence[float]) -> PredictionOutcome:
        """Predict without raising for classified failures."""
        start_time = time.perf_counter()
        try:
            result = self._predict(features)
        except PredictionError as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            log = logger.warning if e.is_client_error else logger.error
            log("Prediction failed", kind=e.kind.value, error=e.message, latency_ms=latency_ms)
            if self._metrics is not None:
                self._metrics.record_prediction_error(e.kind.value)
            return PredictionOutcome(error=e, latency_ms=latency_ms)

        duration = time.perf_counter() - start_time
        if self._metrics is not None:
            self._metrics.record_inference(self._model.name, duration)
            self._metrics.record_predicted_class(result.class_name)
        logger.info(
            "Prediction completed",
            class_index=result.class_index,
            class_name=result.class_name,
            latency_ms=duration * 1000,
        )
        return PredictionOutcome(result=result, latency_ms=duration * 1000)

    def _predict(self, features: Sequence[float]) -> PredictionResult:
        if self._state is not ServiceState.READY:
            raise ServiceNotReadyError(self._state.value)

        try:
            count = len(features)
        except TypeError as e:
            raise InvalidInputError("Features must be a sequence of numbers") from e
        if count != self.feature_count:
            raise InvalidInputError(f"Expected {self.feature_count} features, got {count}")

        standardized = self._scaler.standardize(features)

        wait_start = time.perf_counter()
        with self._lock:
            if self._metrics is not None:
                self._metrics.record_lock_wait(time.perf_counter() - wait_start)
            # Shutdown may have completed while this call waited for the lock.
            if self._state is not ServiceState.READY:
                raise ServiceNotReadyError(self._state.value)
            class_index = self._model.infer(standardized)

        return PredictionResult(
            class_index=class_index,
            class_name=self._class_table.lookup(class_index),
        )

    def close(self) -> None:
        """Stop serving and release the model handle. Idempotent."""
        if self._state in (ServiceState.SHUTTING_DOWN, ServiceState.CLOSED):
            return
        self._state = ServiceState.SHUTTING_DOWN
        logger.info("Prediction service shutting down")
        with self._lock:
            self._model.close()
            self._state = ServiceState.CLOSED
        logger.info("Prediction service closed")
