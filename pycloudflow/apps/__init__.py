"""Cloudflow applications - manifest expansion and file synchronization."""

from .compatibility import (
    Compatibility,
    check_compatibility,
    check_update,
    validate_license,
)
from .discovery import find_application_folders, find_applications
from .expander import LocalExpansion, expand_local, expand_remote
from .manifest import (
    PROJECT_FILE_NAME,
    ApplicationManifest,
    ValidationResult,
    load_manifest,
    save_manifest,
    validate_manifest,
)
from .paths import CloudflowPath, PathKind, from_local, resolve, resolve_all
from .sync import ApplicationReport, ApplicationSync, SyncOptions, SyncState
from .transfer import (
    TransferAction,
    TransferDirection,
    TransferExecutor,
    TransferOutcome,
    TransferResult,
    decide_action,
)

__all__ = [
    "ApplicationManifest",
    "ApplicationReport",
    "ApplicationSync",
    "CloudflowPath",
    "Compatibility",
    "LocalExpansion",
    "PROJECT_FILE_NAME",
    "PathKind",
    "SyncOptions",
    "SyncState",
    "TransferAction",
    "TransferDirection",
    "TransferExecutor",
    "TransferOutcome",
    "TransferResult",
    "ValidationResult",
    "check_compatibility",
    "check_update",
    "decide_action",
    "expand_local",
    "expand_remote",
    "find_application_folders",
    "find_applications",
    "from_local",
    "load_manifest",
    "resolve",
    "resolve_all",
    "save_manifest",
    "validate_license",
    "validate_manifest",
]
