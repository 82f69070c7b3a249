"""Shared test fixtures for the classifier service tests."""

from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

import pytest

from service_classifier.app.runtime.feature_scaler import FEATURE_COUNT, FeatureScaler, ScalerParams
from tests.helpers import classifier_graph, constant_class_weights, write_preprocessing


@pytest.fixture
def identity_params() -> ScalerParams:
    """Scaler parameters that leave features unchanged."""
    return ScalerParams(mean=(0.0,) * FEATURE_COUNT, scale=(1.0,) * FEATURE_COUNT)


@pytest.fixture
def identity_scaler(identity_params) -> FeatureScaler:
    return FeatureScaler(identity_params)


@pytest.fixture
def make_artifacts(tmp_path) -> Callable[..., Dict[str, Path]]:
    """Factory writing a model graph and preprocessing JSON into ``tmp_path``."""

    def _make(
        class_index: int = 1,
        n_classes: int = 4,
        model_bytes: Optional[bytes] = None,
        mean: Optional[Sequence[float]] = None,
        scale: Optional[Sequence[float]] = None,
    ) -> Dict[str, Path]:
        if model_bytes is None:
            model_bytes = classifier_graph(constant_class_weights(class_index, n_classes))
        model_path = tmp_path / "sklearn_classifier.onnx"
        model_path.write_bytes(model_bytes)
        preprocessing_path = write_preprocessing(
            tmp_path / "sklearn_preprocessing.json",
            mean if mean is not None else [0.0] * FEATURE_COUNT,
            scale if scale is not None else [1.0] * FEATURE_COUNT,
        )
        return {"model": model_path, "preprocessing": preprocessing_path}

    return _make


@pytest.fixture
def artifacts(make_artifacts) -> Dict[str, Path]:
    """Model predicting class 1 for positive features, identity scaler."""
    return make_artifacts()
