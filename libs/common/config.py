"""Configuration management for classifier serving.

This module centralizes environment-driven configuration. It builds on
``pydantic_settings.BaseSettings`` so configuration can be provided via
environment variables, ``.env`` files, or defaults. Field names double as
environment variable names (case-insensitive), e.g. ``ml_log_level`` is read
from ``ML_LOG_LEVEL``.

Usage
- Inject the config in your service entrypoint:
  ``config = ClassifierServingConfig()``
- Or select dynamically: ``config = get_config("classifier")``
"""

from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class for all services.

    Notes
    - Add new shared settings here so downstream services inherit them.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ml_env: str = Field(default="local")

    # Logging
    ml_log_level: str = Field(default="INFO")
    ml_log_format: str = Field(default="json")

    @field_validator("ml_log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError("ml_log_format must be 'json' or 'console'")
        return value


class ClassifierServingConfig(BaseConfig):
    """Configuration for the classifier serving service.

    Extends ``BaseConfig`` with the artifact locations, the class-name table
    and ONNX Runtime session knobs.
    """

    ml_classifier_port: int = Field(default=8080)
    ml_classifier_model_path: Path = Field(default=Path("models/sklearn_classifier.onnx"))
    ml_classifier_preprocessing_path: Path = Field(
        default=Path("static/sklearn_preprocessing.json")
    )
    ml_classifier_class_names: List[str] = Field(default_factory=lambda: ["A", "B", "C", "D"])
    ml_classifier_providers: List[str] = Field(
        default_factory=lambda: ["CPUExecutionProvider"]
    )
    ml_classifier_intra_op_threads: int = Field(default=1, ge=0)

    @field_validator("ml_classifier_class_names")
    @classmethod
    def _check_class_names(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("ml_classifier_class_names must not be empty")
        return value


def get_config(service_name: str) -> BaseConfig:
    """Get configuration for a specific service.

    Parameters
    - service_name: ``classifier`` or anything else for the base settings.

    Returns
    - A concrete ``BaseConfig`` subclass pre-wired to read the right env vars.
    """
    config_map = {
        "classifier": ClassifierServingConfig,
    }

    config_class = config_map.get(service_name, BaseConfig)
    return config_class()
