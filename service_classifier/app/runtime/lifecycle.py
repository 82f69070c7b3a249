"""Startup and shutdown hooks around the prediction service."""

from typing import Optional

import structlog

from libs.common.config import ClassifierServingConfig
from libs.common.metrics import MetricsCollector
from ..loaders.model_loader import ModelHandle
from .errors import ModelLoadError, ServiceNotReadyError
from .feature_scaler import FEATURE_COUNT, FeatureScaler, load_scaler_params
from .prediction_service import ClassTable, PredictionService, ServiceState

logger = structlog.get_logger("classifier.lifecycle")


class ResourceLifecycle:
    """Loads the artifacts before serving and releases them afterwards.

    ``startup`` either produces a ready ``PredictionService`` or raises
    ``ModelLoadError`` and leaves nothing half-initialized behind.
    ``shutdown`` is idempotent and tolerates a failed or skipped startup.
    """

    def __init__(
        self,
        config: ClassifierServingConfig,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config
        self.metrics = metrics
        self._model: Optional[ModelHandle] = None
        self._service: Optional[PredictionService] = None

    @property
    def state(self) -> ServiceState:
        if self._service is None:
            return ServiceState.UNINITIALIZED
        return self._service.state

    @property
    def service(self) -> PredictionService:
        """The running service; raises ``ServiceNotReadyError`` before startup."""
        if self._service is None:
            raise ServiceNotReadyError(self.state.value)
        return self._service

    def startup(self) -> PredictionService:
        """Load scaler parameters and model; fail fast on any bad artifact.

        Raises ``ServiceNotReadyError`` if called after ``shutdown``.
        """
        if self._service is not None:
            if self._service.state is not ServiceState.READY:
                logger.warning("Startup called after shutdown", state=self._service.state.value)
                raise ServiceNotReadyError(self._service.state.value)
            return self._service

        logger.info(
            "Loading classifier artifacts",
            model_path=str(self.config.ml_classifier_model_path),
            preprocessing_path=str(self.config.ml_classifier_preprocessing_path),
        )

        try:
            params = load_scaler_params(
                self.config.ml_classifier_preprocessing_path, FEATURE_COUNT
            )
            self._model = ModelHandle.load_file(
                self.config.ml_classifier_model_path,
                feature_count=FEATURE_COUNT,
                providers=self.config.ml_classifier_providers,
                intra_op_threads=self.config.ml_classifier_intra_op_threads,
                name=self.config.ml_classifier_model_path.stem,
            )
        except ModelLoadError as e:
            logger.error("Classifier startup failed", error=e.message, path=e.path)
            self._release_model()
            raise

        self._service = PredictionService(
            model=self._model,
            scaler=FeatureScaler(params),
            class_table=ClassTable(self.config.ml_classifier_class_names),
            metrics=self.metrics,
        )
        logger.info(
            "Classifier ready",
            input_name=self._model.input_name,
            output_name=self._model.output_name,
            class_count=len(self._service.class_table),
        )
        return self._service

    def shutdown(self) -> None:
        """Release native resources exactly once."""
        if self._service is not None:
            self._service.close()
        self._release_model()
        logger.info("Classifier shutdown complete", state=self.state.value)

    def _release_model(self) -> None:
        if self._model is not None:
            self._model.close()
