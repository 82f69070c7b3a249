"""Tests for startup and shutdown of the classifier resources."""

import pytest

from libs.common.config import ClassifierServingConfig
from service_classifier.app.runtime.errors import ModelLoadError, ServiceNotReadyError
from service_classifier.app.runtime.lifecycle import ResourceLifecycle
from service_classifier.app.runtime.prediction_service import PredictionResult, ServiceState
from tests.helpers import FEATURES, classifier_graph, constant_class_weights


def make_config(paths, **overrides) -> ClassifierServingConfig:
    return ClassifierServingConfig(
        ml_classifier_model_path=paths["model"],
        ml_classifier_preprocessing_path=paths["preprocessing"],
        **overrides
    )


@pytest.mark.integration
class TestStartup:

    def test_startup_reaches_ready(self, artifacts):
        lifecycle = ResourceLifecycle(make_config(artifacts))
        assert lifecycle.state is ServiceState.UNINITIALIZED

        service = lifecycle.startup()

        assert lifecycle.state is ServiceState.READY
        assert lifecycle.service is service
        assert service.model.name == "sklearn_classifier"
        assert service.predict(FEATURES) == PredictionResult(class_index=1, class_name="B")
        lifecycle.shutdown()

    def test_startup_is_idempotent(self, artifacts):
        lifecycle = ResourceLifecycle(make_config(artifacts))

        assert lifecycle.startup() is lifecycle.startup()
        lifecycle.shutdown()

    def test_custom_class_names(self, make_artifacts):
        paths = make_artifacts(class_index=2, n_classes=3)
        lifecycle = ResourceLifecycle(
            make_config(paths, ml_classifier_class_names=["setosa", "versicolor", "virginica"])
        )

        assert lifecycle.startup().predict(FEATURES).class_name == "virginica"
        lifecycle.shutdown()

    def test_missing_model_never_becomes_ready(self, artifacts):
        artifacts["model"].unlink()
        lifecycle = ResourceLifecycle(make_config(artifacts))

        for _ in range(2):
            with pytest.raises(ModelLoadError, match="Model file not found"):
                lifecycle.startup()
            assert lifecycle.state is ServiceState.UNINITIALIZED

        with pytest.raises(ServiceNotReadyError):
            lifecycle.service

    def test_missing_scaler_never_becomes_ready(self, artifacts):
        artifacts["preprocessing"].unlink()
        lifecycle = ResourceLifecycle(make_config(artifacts))

        with pytest.raises(ModelLoadError, match="Scaler parameters file not found"):
            lifecycle.startup()
        assert lifecycle.state is ServiceState.UNINITIALIZED

    def test_malformed_scaler(self, make_artifacts):
        paths = make_artifacts(scale=[1.0] * 9 + [0.0])
        lifecycle = ResourceLifecycle(make_config(paths))

        with pytest.raises(ModelLoadError):
            lifecycle.startup()
        assert lifecycle.state is ServiceState.UNINITIALIZED

    def test_graph_with_two_outputs(self, make_artifacts):
        paths = make_artifacts(
            model_bytes=classifier_graph(constant_class_weights(0), extra_output=True)
        )
        lifecycle = ResourceLifecycle(make_config(paths))

        with pytest.raises(ModelLoadError, match="output port"):
            lifecycle.startup()
        assert lifecycle.state is ServiceState.UNINITIALIZED


@pytest.mark.integration
class TestShutdown:

    def test_shutdown_releases_model(self, artifacts):
        lifecycle = ResourceLifecycle(make_config(artifacts))
        service = lifecycle.startup()

        lifecycle.shutdown()

        assert lifecycle.state is ServiceState.CLOSED
        assert service.model.closed
        with pytest.raises(ServiceNotReadyError):
            service.predict(FEATURES)

    def test_shutdown_twice(self, artifacts):
        lifecycle = ResourceLifecycle(make_config(artifacts))
        lifecycle.startup()

        lifecycle.shutdown()
        lifecycle.shutdown()

        assert lifecycle.state is ServiceState.CLOSED

    def test_startup_after_shutdown(self, artifacts):
        lifecycle = ResourceLifecycle(make_config(artifacts))
        lifecycle.startup()
        lifecycle.shutdown()

        with pytest.raises(ServiceNotReadyError, match="closed"):
            lifecycle.startup()
        assert lifecycle.state is ServiceState.CLOSED

    def test_shutdown_without_startup(self, artifacts):
        lifecycle = ResourceLifecycle(make_config(artifacts))

        lifecycle.shutdown()

        assert lifecycle.state is ServiceState.UNINITIALIZED

    def test_shutdown_after_failed_startup(self, artifacts):
        artifacts["model"].unlink()
        lifecycle = ResourceLifecycle(make_config(artifacts))
        with pytest.raises(ModelLoadError):
            lifecycle.startup()

        lifecycle.shutdown()

        assert lifecycle.state is ServiceState.UNINITIALIZED
