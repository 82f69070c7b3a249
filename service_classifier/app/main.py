"""Classifier serving service main application."""

import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
import structlog

from .api.errors import register_error_handlers
from .api.routes import router as api_router
from .runtime.lifecycle import ResourceLifecycle
from .runtime.metrics import get_metrics_collector
from .runtime.prediction_service import ServiceState
from libs.common.config import ClassifierServingConfig
from libs.common.logging import configure_logging

SERVICE_NAME = "classifier-serving"

logger = structlog.get_logger("classifier")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Artifacts are loaded before the first request is accepted; a load failure
    propagates so the server never starts serving.
    """
    # Startup
    config = ClassifierServingConfig()
    configure_logging(SERVICE_NAME, config.ml_log_level, config.ml_log_format)

    app.state.config = config
    app.state.metrics_collector = get_metrics_collector(SERVICE_NAME)
    app.state.lifecycle = ResourceLifecycle(config, metrics=app.state.metrics_collector)

    logger.info("Starting classifier serving service", env=config.ml_env)
    try:
        app.state.lifecycle.startup()
    except Exception:
        app.state.lifecycle.shutdown()
        raise
    logger.info("Classifier serving service started successfully")

    try:
        yield
    finally:
        # Shutdown
        logger.info("Shutting down classifier serving service")
        app.state.lifecycle.shutdown()
        logger.info("Classifier serving service shutdown complete")


app = FastAPI(
    title="Classifier Serving Service",
    description="ONNX classifier predictions over a fixed-length feature vector",
    version="0.1.0",
    lifespan=lifespan
)

register_error_handlers(app)
app.include_router(api_router, prefix="/api/ml")


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Collect metrics for HTTP requests."""
    start_time = time.time()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        if hasattr(request.app.state, "metrics_collector"):
            request.app.state.metrics_collector.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status=status_code,
                duration=time.time() - start_time
            )


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint; healthy only while the service is ready."""
    lifecycle = getattr(request.app.state, "lifecycle", None)
    state = lifecycle.state if lifecycle is not None else ServiceState.UNINITIALIZED

    if state is ServiceState.READY:
        return {"status": "healthy", "service": SERVICE_NAME, "state": state.value}
    return JSONResponse(
        status_code=503,
        content={"status": "unhealthy", "service": SERVICE_NAME, "state": state.value}
    )


@app.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint."""
    if hasattr(request.app.state, "metrics_collector"):
        metrics_data = request.app.state.metrics_collector.get_metrics()
        return Response(content=metrics_data, media_type="text/plain")
    return Response(content="# No metrics available\n", media_type="text/plain")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": SERVICE_NAME,
        "version": "0.1.0",
        "endpoints": {
            "health": "/health",
            "metrics": "/metrics",
            "predict": "/api/ml/classifier",
            "model": "/api/ml/classifier/model"
        }
    }


if __name__ == "__main__":
    uvicorn.run(
        "service_classifier.app.main:app",
        host="0.0.0.0",
        port=ClassifierServingConfig().ml_classifier_port,
        log_level="info"
    )
