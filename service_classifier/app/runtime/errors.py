"""Error taxonomy for the classifier core.

Each failure carries an ``ErrorKind`` so the HTTP layer can classify it
without importing transport concerns into the core.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Classification of core failures."""

    INVALID_INPUT = "invalid_input"      # caller-correctable
    MODEL_LOAD = "model_load"            # fatal, startup only
    INFERENCE = "inference"              # server-side, per request
    UNKNOWN_CLASS = "unknown_class"      # server-side, per request
    NOT_READY = "not_ready"              # service not serving


class PredictionError(Exception):
    """Base exception for the classifier core."""

    kind: ErrorKind = ErrorKind.INFERENCE

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        return self.kind is ErrorKind.INVALID_INPUT


class InvalidInputError(PredictionError):
    """Feature vector rejected before reaching the model."""

    kind = ErrorKind.INVALID_INPUT


class ModelLoadError(PredictionError):
    """An artifact is missing or malformed; the service must not start."""

    kind = ErrorKind.MODEL_LOAD

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(f"{message} ({path})" if path else message)


class InferenceError(PredictionError):
    """The inference engine failed or produced unusable output."""

    kind = ErrorKind.INFERENCE


class UnknownClassError(PredictionError):
    """The model returned a class index outside the class-name table."""

    kind = ErrorKind.UNKNOWN_CLASS

    def __init__(self, class_index: int, table_size: int) -> None:
        self.class_index = class_index
        self.table_size = table_size
        super().__init__(
            f"Model returned class index {class_index}, "
            f"but only {table_size} classes are known"
        )


class ServiceNotReadyError(PredictionError):
    """Predict called while the service is not in the ready state."""

    kind = ErrorKind.NOT_READY

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(f"Prediction service is not ready (state: {state})")
