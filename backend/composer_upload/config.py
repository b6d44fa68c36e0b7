"""Composer upload configuration.

Loads settings from a single YAML file:
  * composer.settings.yaml: upload policy, placeholder labels, transport

A missing file is not an error; every model has working defaults so an
embedded session can be built without any configuration on disk.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("composer.settings.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class UploadSettings(BaseModel):
    """Upload policy enforced by the validator and the routing gate."""
    simultaneous_uploads:                 int       = 5
    authorized_extensions:                List[str] = Field(
        default_factory=lambda: ["jpg", "jpeg", "png", "gif", "heic", "heif", "webp", "avif", "svg"]
    )
    authorized_extensions_for_staff:      List[str] = Field(default_factory=list)
    max_image_size_kb:                    int       = 4096
    max_attachment_size_kb:               int       = 4096
    allow_staff_to_upload_any_file_in_pm: bool      = True
    use_placeholders:                     bool      = True
    auto_grid_images:                     bool      = True
    upload_type:                          str       = "composer"
    debug_upload_timings:                 bool      = False

    @field_validator("authorized_extensions", "authorized_extensions_for_staff")
    @classmethod
    def _normalize_extensions(cls, value: List[str]) -> List[str]:
        return [ext.strip().lstrip(".").lower() for ext in value if ext and ext.strip()]

    @field_validator("simultaneous_uploads")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("simultaneous_uploads must be >= 0 (0 means unlimited)")
        return value


class PlaceholderSettings(BaseModel):
    """Labels used to build placeholder spans in the document."""
    uploading_label:  str = "Uploading"
    processing_label: str = "Processing"
    clipboard_label:  str = "image"


class TransportSettings(BaseModel):
    """Plain-transfer endpoint. Choosing the endpoint is the host's job."""
    base_url:  str           = "http://localhost:3000"
    endpoint:  str           = "/uploads.json"
    client_id: Optional[str] = None


class PreprocessingSettings(BaseModel):
    checksum_algorithm: Literal["sha1", "sha256", "md5"] = "sha1"


class LoggingSettings(BaseModel):
    level: str = "info"


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    uploads:       UploadSettings        = Field(default_factory=UploadSettings)
    placeholders:  PlaceholderSettings   = Field(default_factory=PlaceholderSettings)
    transport:     TransportSettings     = Field(default_factory=TransportSettings)
    preprocessing: PreprocessingSettings = Field(default_factory=PreprocessingSettings)
    logging:       LoggingSettings       = Field(default_factory=LoggingSettings)
    server:        ServerSettings        = Field(default_factory=ServerSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_settings(path: Optional[Path] = None) -> AppConfig:
    """Load *composer.settings.yaml* into an *AppConfig* object."""
    settings_data = _load_yaml(path or SETTINGS_FILE)

    app_config = AppConfig(**settings_data)
    logger.info(
        "Settings loaded (simultaneous_uploads=%s, placeholders=%s, auto_grid=%s, endpoint=%s)",
        app_config.uploads.simultaneous_uploads,
        app_config.uploads.use_placeholders,
        app_config.uploads.auto_grid_images,
        app_config.transport.endpoint,
    )
    return app_config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_settings()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (for testing)."""
    global _config
    _config = None
