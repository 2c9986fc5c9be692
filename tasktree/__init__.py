"""Local store for Space -> Folder -> List -> Task hierarchies with per-task stopwatches."""
from .config import Settings, load_settings
from .errors import StoreError, IntegrityViolation, NotFound, MigrationFailure, ValidationFailure
from .models import (
    ContainerRef, SpaceDirect, UnderFolder,
    SpaceOut, FolderOut, ListOut, TaskOut, FolderNode, SpaceNode,
)
from .clock import format_duration
from .schema import SCHEMA_VERSION
from .store import Store, open_store

__all__ = [
    "Settings", "load_settings",
    "StoreError", "IntegrityViolation", "NotFound", "MigrationFailure", "ValidationFailure",
    "ContainerRef", "SpaceDirect", "UnderFolder",
    "SpaceOut", "FolderOut", "ListOut", "TaskOut", "FolderNode", "SpaceNode",
    "format_duration", "SCHEMA_VERSION",
    "Store", "open_store",
]
