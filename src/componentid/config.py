"""Environment-based configuration for ComponentID."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from COMPONENTID_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COMPONENTID_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082
    log_level: str = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Assets: read from assets_dir, or from a HuggingFace repo when hub_repo_id is set
    assets_dir: str = "assets"
    model_file: str = "component_classifier.onnx"
    labels_file: str = "labels.txt"
    catalog_file: str = "component_info.json"
    hub_repo_id: str | None = None
    hub_revision: str | None = None

    # Model input is input_size x input_size x 3
    input_size: int = Field(default=224, ge=1)

    # Parse the metadata catalog once instead of on every lookup
    cache_catalog: bool = False

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)

    # Concurrency
    max_concurrent: int = Field(default=1, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
