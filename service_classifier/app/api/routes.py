"""API routes for the classifier service."""

from typing import List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, FiniteFloat, field_validator

from ..runtime.feature_scaler import FEATURE_COUNT
from ..runtime.prediction_service import PredictionService
from .errors import ErrorResponse, prediction_error_response


router = APIRouter()


class PredictionRequest(BaseModel):
    """Request model for the classifier endpoint."""
    features: List[FiniteFloat] = Field(..., description=f"Exactly {FEATURE_COUNT} raw feature values")

    @field_validator("features")
    @classmethod
    def _check_length(cls, value: List[FiniteFloat]) -> List[FiniteFloat]:
        if len(value) != FEATURE_COUNT:
            raise ValueError(f"Features array must have exactly {FEATURE_COUNT} elements")
        return value


class PredictionResponse(BaseModel):
    """Response model for the classifier endpoint."""
    prediction: float = Field(..., description="Predicted class index")
    classification: str = Field(..., description="Predicted class name")


class ModelDescription(BaseModel):
    """Metadata about the loaded classifier."""
    name: str = Field(..., description="Model name")
    input_name: str = Field(..., description="Graph input port")
    output_name: str = Field(..., description="Graph output port")
    input_dtype: str = Field(..., description="Input tensor element type")
    feature_count: int = Field(..., description="Features per request")
    providers: List[str] = Field(..., description="ONNX Runtime execution providers")
    class_names: List[str] = Field(..., description="Class names by class index")
    state: str = Field(..., description="Service state")


def get_prediction_service(request: Request) -> PredictionService:
    """Get the running prediction service from application state."""
    return request.app.state.lifecycle.service


@router.post(
    "/classifier",
    response_model=PredictionResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def classifier_prediction(
    request: PredictionRequest,
    service: PredictionService = Depends(get_prediction_service)
):
    """Predict the class of one feature vector.

    Declared synchronous so the blocking inference runs in the worker pool.
    """
    outcome = service.try_predict(request.features)
    if not outcome.ok:
        return prediction_error_response(outcome.error)

    result = outcome.result
    return PredictionResponse(
        prediction=float(result.class_index),
        classification=result.class_name,
    )


@router.get("/classifier/model", response_model=ModelDescription)
def classifier_model(service: PredictionService = Depends(get_prediction_service)):
    """Describe the loaded model and class table."""
    description = service.model.describe()
    return ModelDescription(
        name=description["name"],
        input_name=description["input_name"],
        output_name=description["output_name"],
        input_dtype=description["input_dtype"],
        feature_count=description["feature_count"],
        providers=description["providers"],
        class_names=list(service.class_table.names),
        state=service.state.value,
    )
