"""Configuration management for the site document OCR pipeline.

Loads and validates YAML configuration with defaults for preprocessing,
recognition, the worker pool, field extraction, upload validation, and
the job status registry.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 50 * 1024 * 1024


class PreprocessingConfig(BaseModel):
    """Configuration for bitmap normalization before recognition."""

    max_dimension: int = Field(default=2000, gt=0)
    binarize_threshold: int = Field(default=128, ge=0, le=255)
    output_format: str = "PNG"
    pdf_dpi: int = 300


class OCRConfig(BaseModel):
    """Configuration for the Tesseract engine and its retry policy."""

    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    psm: int = 6
    oem: int | None = None
    preserve_interword_spaces: bool = True
    timeout: float = 0
    max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = 0.2
    retry_max_delay: float = 2.0


class PoolConfig(BaseModel):
    """Configuration for the recognition worker pool."""

    max_workers: int = Field(default=2, ge=1)
    warm_up: bool = True


class ExtractionConfig(BaseModel):
    """Configuration for structured field extraction."""

    table_min_rows: int = Field(default=3, ge=1)
    table_min_columns: int = Field(default=2, ge=2)
    merge_synonyms: bool = False
    default_currency: str = "IDR"
    validate_fields: bool = True
    min_date_year: int = 2000
    max_date_year: int = 2100
    max_amount: float = Field(default=1e9, gt=0)


class ValidationConfig(BaseModel):
    """Configuration for upload validation."""

    allowed_extensions: set[str] = Field(
        default_factory=lambda: {"pdf", "jpg", "jpeg", "png", "tiff", "bmp"}
    )
    max_file_size_bytes: int = MAX_UPLOAD_BYTES


class RegistryConfig(BaseModel):
    """Configuration for job status retention."""

    max_entries: int = Field(default=1000, ge=1)
    ttl_seconds: float = 3600.0


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
