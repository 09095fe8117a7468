"""Shared Pydantic schemas for classdocs."""
import logging
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EntryKind(str, Enum):
    """Kind of a documented type."""

    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"


class DocumentationEntry(BaseModel):
    """One documented type as listed in the lookup index.

    The index file stores entries as ``{full_name, path, type, package}``;
    the JSON keys are accepted as aliases.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    full_name: str = Field(min_length=1)
    relative_path: str = Field(alias="path", min_length=1)
    kind: EntryKind = Field(alias="type")
    package_name: str = Field(alias="package", default="")

    @field_validator("relative_path")
    @classmethod
    def _check_relative_path(cls, value: str) -> str:
        path = PurePosixPath(value.replace("\\", "/"))
        if path.is_absolute() or ".." in path.parts:
            raise ValueError(f"path must stay inside the bundle: {value!r}")
        return value

    @model_validator(mode="before")
    @classmethod
    def _derive_package(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("package") or data.get("package_name"):
            return data
        full_name = data.get("full_name")
        if isinstance(full_name, str) and "." in full_name:
            data = {**data, "package": full_name.rsplit(".", 1)[0]}
        return data


class ServerSettings(BaseModel):
    """Runtime configuration for the documentation server."""

    docs_dir: Path = Path("docs")
    docs_url: Optional[str] = None
    fetch_timeout: float = Field(default=300.0, gt=0)  # seconds
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = "INFO"
    max_search_results: int = Field(default=25, ge=1)

    @field_validator("docs_url")
    @classmethod
    def _blank_url_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = logging.getLevelNamesMapping().get(value.strip().upper())
        if level is None or level == logging.NOTSET:
            raise ValueError(f"unknown log level {value!r}")
        # Canonical name, e.g. WARN becomes WARNING
        return logging.getLevelName(level)


class ProvisionAction(str, Enum):
    """How a provisioning run reached the Ready state."""

    LOCAL = "local"  # no remote source configured
    UNCHANGED = "unchanged"  # identifier matched, no network
    FETCHED = "fetched"  # new bundle installed
    STALE = "stale"  # refresh failed, previous bundle kept


class ProvisionReport(BaseModel):
    """Outcome of a successful provisioning run."""

    action: ProvisionAction
    docs_dir: str
    identifier: Optional[str] = None
    entry_count: Optional[int] = None
    error: Optional[str] = None
    completed_at: str = ""  # ISO format datetime
