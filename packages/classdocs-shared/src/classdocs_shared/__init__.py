"""Shared components for classdocs."""
from .schemas import (
    EntryKind,
    DocumentationEntry,
    ServerSettings,
    ProvisionAction,
    ProvisionReport,
)
from .config import load_config, load_settings

__all__ = [
    "EntryKind",
    "DocumentationEntry",
    "ServerSettings",
    "ProvisionAction",
    "ProvisionReport",
    "load_config",
    "load_settings",
]
