"""pycloudflow - package and synchronize Cloudflow applications."""

from .api import CloudflowClient
from .exceptions import (
    CannotFindCFAppFileError,
    CloudflowAPIError,
    CloudflowError,
    CloudflowExistenceCheckFailedError,
    CloudflowTooOldError,
    DownloadError,
    InvalidCloudflowVersionError,
    InvalidMinimumCloudflowVersionError,
    InvalidVersionFormatError,
    ProjectCFAppSyntaxError,
    RemoteFileDoesNotExistError,
    TransferBatchError,
    UploadError,
)
from .version import CloudflowVersion, compare_versions

__version__ = "0.1.0"

__all__ = [
    "CloudflowClient",
    "CloudflowVersion",
    "compare_versions",
    "CannotFindCFAppFileError",
    "CloudflowAPIError",
    "CloudflowError",
    "CloudflowExistenceCheckFailedError",
    "CloudflowTooOldError",
    "DownloadError",
    "InvalidCloudflowVersionError",
    "InvalidMinimumCloudflowVersionError",
    "InvalidVersionFormatError",
    "ProjectCFAppSyntaxError",
    "RemoteFileDoesNotExistError",
    "TransferBatchError",
    "UploadError",
]
