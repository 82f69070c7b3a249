"""Feature standardization for the classifier.

The scaler parameters are exported next to the model by the training job
(sklearn ``StandardScaler.mean_`` / ``StandardScaler.scale_``) and applied
here as ``(x - mean) / scale`` per feature.

Values are computed in float64. Narrowing to the dtype the graph expects
happens only when the input tensor is built (see ``ModelHandle.infer``).
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ValidationError
import structlog

from .errors import InvalidInputError, ModelLoadError

logger = structlog.get_logger("classifier.feature_scaler")

# Width of the feature vector the classifier was trained on.
FEATURE_COUNT = 10


@dataclass(frozen=True)
class ScalerParams:
    """Standardization parameters, immutable after construction.

    Parameters
    - mean: Per-feature mean
    - scale: Per-feature scale; every entry must be finite and non-zero
    """

    mean: Tuple[float, ...]
    scale: Tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "mean", tuple(float(v) for v in self.mean))
        object.__setattr__(self, "scale", tuple(float(v) for v in self.scale))

        if not self.mean:
            raise ValueError("scaler parameters must not be empty")
        if len(self.mean) != len(self.scale):
            raise ValueError(
                f"scaler_mean has {len(self.mean)} entries but "
                f"scaler_scale has {len(self.scale)}"
            )
        if not all(math.isfinite(v) for v in self.mean + self.scale):
            raise ValueError("scaler parameters must be finite numbers")
        zero_indices = [i for i, v in enumerate(self.scale) if v == 0.0]
        if zero_indices:
            raise ValueError(f"scaler_scale is zero at indices {zero_indices}")

    @property
    def feature_count(self) -> int:
        return len(self.mean)


class FeatureScaler:
    """Stateless standardization over fixed ``ScalerParams``."""

    def __init__(self, params: ScalerParams):
        self._params = params
        self._mean = np.asarray(params.mean, dtype=np.float64)
        self._scale = np.asarray(params.scale, dtype=np.float64)
        self._mean.setflags(write=False)
        self._scale.setflags(write=False)

    @property
    def params(self) -> ScalerParams:
        return self._params

    @property
    def feature_count(self) -> int:
        return self._params.feature_count

    def standardize(self, features: Sequence[float]) -> np.ndarray:
        """Return ``(features - mean) / scale`` as a new float64 vector.

        Raises
        - InvalidInputError: if the vector is not numeric, has the wrong
          length, or holds NaN or infinite values
        """
        try:
            values = np.asarray(features, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Features must be numeric: {e}") from e

        if values.ndim != 1 or values.shape[0] != self.feature_count:
            got = values.shape[0] if values.ndim == 1 else values.shape
            raise InvalidInputError(f"Expected {self.feature_count} features, got {got}")
        if not np.all(np.isfinite(values)):
            bad = np.flatnonzero(~np.isfinite(values)).tolist()
            raise InvalidInputError(
                f"Features must be finite numbers, got NaN or infinity at indices {bad}"
            )

        return (values - self._mean) / self._scale


class _ClassifierSection(BaseModel):
    scaler_mean: List[float]
    scaler_scale: List[float]


class _PreprocessingDocument(BaseModel):
    classifier: _ClassifierSection


def load_scaler_params(
    path: Union[str, Path],
    feature_count: int = FEATURE_COUNT
) -> ScalerParams:
    """Load scaler parameters from the preprocessing JSON document.

    The document must hold ``classifier.scaler_mean`` and
    ``classifier.scaler_scale``, each with ``feature_count`` numbers.

    Raises
    - ModelLoadError: if the file is missing or malformed
    """
    path = Path(path)
    logger.info("Loading scaler parameters", path=str(path))

    try:
        raw = path.read_bytes()
    except FileNotFoundError as e:
        raise ModelLoadError("Scaler parameters file not found", str(path)) from e
    except OSError as e:
        raise ModelLoadError(f"Cannot read scaler parameters: {e}", str(path)) from e

    try:
        document = _PreprocessingDocument.model_validate_json(raw)
        params = ScalerParams(
            mean=tuple(document.classifier.scaler_mean),
            scale=tuple(document.classifier.scaler_scale),
        )
    except ValidationError as e:
        raise ModelLoadError(
            f"Malformed scaler parameters: {e.error_count()} validation error(s)", str(path)
        ) from e
    except ValueError as e:
        raise ModelLoadError(f"Invalid scaler parameters: {e}", str(path)) from e

    if params.feature_count != feature_count:
        raise ModelLoadError(
            f"Expected {feature_count} scaler parameters, got {params.feature_count}",
            str(path),
        )

    logger.debug("Scaler parameters loaded", mean=list(params.mean), scale=list(params.scale))
    logger.info("Scaler parameters ready", feature_count=params.feature_count)
    return params
