"""Configuration and persisted plugin data for localimages."""

from __future__ import annotations

import copy
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from localimages.constants import (
    DEFAULT_ATTACHMENT_FOLDER,
    DEFAULT_ATTACHMENT_LOCATION,
    DEFAULT_FILE_NAMING,
    DEFAULT_LINK_STYLE,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_IMAGE_BYTES,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_USER_AGENT,
)


class _PersistedModel(BaseModel):
    """Base for models stored in the plugin data blob.

    Keys are camelCase on disk, snake_case in Python. Unknown keys written
    by newer versions are kept so a round trip never drops them.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        validate_assignment=True,
    )


class LogConfig(_PersistedModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class LocalImagesSettings(_PersistedModel):
    """User options consumed read-only by the engine."""

    show_ribbon_icon: bool = True
    attachment_location: Literal["vault_folder", "note_folder", "note_subfolder"] = (
        DEFAULT_ATTACHMENT_LOCATION
    )
    attachment_folder: str = DEFAULT_ATTACHMENT_FOLDER
    file_naming: Literal["url", "hash", "note"] = DEFAULT_FILE_NAMING
    link_style: Literal["relative", "vault"] = DEFAULT_LINK_STYLE
    include_html_images: bool = True
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1)
    max_image_bytes: int = Field(default=DEFAULT_MAX_IMAGE_BYTES, ge=1)
    require_image_content_type: bool = True
    verify_integrity: bool = False  # also compare size and sha256 of stored files
    user_agent: str = DEFAULT_USER_AGENT
    log: LogConfig = Field(default_factory=LogConfig)


class ImageMeta(_PersistedModel):
    """Metadata describing one downloaded artifact."""

    file_path: str
    size: int | None = None
    sha256: str | None = None
    content_type: str | None = None
    downloaded_at: str | None = None


class PluginData(_PersistedModel):
    """Everything persisted at plugin scope."""

    settings: LocalImagesSettings = Field(default_factory=LocalImagesSettings)
    processed_image_urls: dict[str, ImageMeta] = Field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize using on-disk (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def fill_defaults(data: Any, defaults: Any) -> Any:
    """Recursively fill absent keys in ``data`` from ``defaults``.

    Keys present in ``data`` win, including keys ``defaults`` does not know
    about. Nested dicts are merged at every depth so a blob written by an
    older version still gains newly introduced nested options. Non-dict
    values are never merged: a stored list or scalar replaces the default.

    Args:
        data: Loaded value (may be None or a partial dict)
        defaults: Fully populated canonical value

    Returns:
        New merged value; neither input is modified.
    """
    if data is None:
        return copy.deepcopy(defaults)
    if not isinstance(data, dict) or not isinstance(defaults, dict):
        return copy.deepcopy(data)

    merged: dict[str, Any] = {}
    for key, default_value in defaults.items():
        if key in data:
            merged[key] = fill_defaults(data[key], default_value)
        else:
            merged[key] = copy.deepcopy(default_value)
    for key, value in data.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
    return merged


def default_plugin_data() -> dict[str, Any]:
    """Return the canonical, fully populated plugin data blob."""
    return PluginData().to_json_dict()


def load_plugin_data(raw: dict[str, Any] | None) -> PluginData:
    """Build PluginData from a loaded blob, filling every missing field.

    Args:
        raw: Blob returned by the data store, or None when nothing was saved

    Returns:
        Validated PluginData
    """
    if raw is not None and not isinstance(raw, dict):
        raise TypeError(f"Plugin data must be a JSON object, got {type(raw).__name__}")
    merged = fill_defaults(raw, default_plugin_data())
    return PluginData.model_validate(merged)


def _resolve_attr(model: BaseModel, part: str) -> str:
    """Map a snake_case or camelCase key to the model's field name."""
    if part in type(model).model_fields:
        return part
    for name, field in type(model).model_fields.items():
        if field.alias == part:
            return name
    raise KeyError(part)


def get_setting(settings: LocalImagesSettings, key: str) -> Any:
    """Get a setting by dot-separated key path.

    Example: get_setting(settings, "log.level")
    """
    value: Any = settings
    for part in key.split("."):
        if not isinstance(value, BaseModel):
            raise KeyError(key)
        value = getattr(value, _resolve_attr(value, part))
    return value


def set_setting(settings: LocalImagesSettings, key: str, value: Any) -> None:
    """Set a setting by dot-separated key path, validating the new value.

    Example: set_setting(settings, "fileNaming", "hash")

    Raises:
        KeyError: If the key does not name a known setting
        pydantic.ValidationError: If the value is invalid for the field
    """
    parts = key.split(".")
    parent: Any = settings
    for part in parts[:-1]:
        parent = getattr(parent, _resolve_attr(parent, part))
        if not isinstance(parent, BaseModel):
            raise KeyError(key)
    setattr(parent, _resolve_attr(parent, parts[-1]), value)
