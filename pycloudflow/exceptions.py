"""Exceptions raised by pycloudflow.

Every error carries an ``error_code`` so that the JSON output of the CLI can
report a stable identifier next to the human readable message.
"""

from typing import Optional


class CloudflowError(Exception):
    """Base class for all pycloudflow errors."""

    error_code = "CFERR000"


# =========================
# Transport errors
# =========================


class CloudflowAPIError(CloudflowError):
    """The remote Cloudflow API returned an error or could not be reached."""

    error_code = "CFAPIERR001"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CloudflowAuthenticationError(CloudflowAPIError):
    """Login failed or the session was rejected."""

    error_code = "CFAPIERR002"


class CloudflowNetworkError(CloudflowAPIError):
    """The request never got a response."""

    error_code = "CFAPIERR003"


class CloudflowInvalidResponseError(CloudflowAPIError):
    """The remote answered with something that is not the expected JSON."""

    error_code = "CFAPIERR004"


class CloudflowConfigError(CloudflowError):
    """Invalid local configuration."""

    error_code = "CFCFGERR001"


# =========================
# Manifest errors
# =========================


class ManifestNotFoundError(CloudflowError):
    error_code = "CFMANERR001"

    def __init__(self, path: str):
        super().__init__(f"cannot find project file {path}")
        self.path = path


class ProjectCFAppSyntaxError(CloudflowError):
    """The project.cfapp file is not valid JSON."""

    error_code = "CFMANERR002"

    def __init__(self, path: str, cause: Exception):
        super().__init__(f"syntax error in {path}: {cause}")
        self.path = path


class ManifestSchemaError(CloudflowError):
    """A field of the project.cfapp file has the wrong shape."""

    error_code = "CFMANERR003"

    def __init__(self, path: str, field: str, reason: str):
        super().__init__(f"invalid field '{field}' in {path}: {reason}")
        self.path = path
        self.field = field
        self.reason = reason


class InvalidCloudflowPathError(CloudflowError):
    error_code = "CFMANERR004"

    def __init__(self, path: str, reason: str):
        super().__init__(f"invalid Cloudflow path '{path}': {reason}")
        self.path = path


class PathCollisionError(CloudflowError):
    """Two different Cloudflow paths map to the same local file."""

    error_code = "CFMANERR005"

    def __init__(self, first: str, second: str, fs_path: str):
        super().__init__(
            f"Cloudflow paths '{first}' and '{second}' both resolve to {fs_path}"
        )
        self.first = first
        self.second = second
        self.fs_path = fs_path


# =========================
# Expansion errors
# =========================


class CannotFindCFAppFileError(CloudflowError):
    """A declared file is missing locally and is not marked as empty folder."""

    error_code = "CFMANERR006"

    def __init__(self, cloudflow_path: str, fs_path: str):
        super().__init__(
            f"cannot find file {cloudflow_path} of the project.cfapp at {fs_path}"
        )
        self.cloudflow_path = cloudflow_path
        self.fs_path = fs_path


class RemoteFileDoesNotExistError(CloudflowError):
    """The remote answered the existence query with 'does not exist'."""

    error_code = "CFMANERR007"

    def __init__(self, cloudflow_path: str):
        super().__init__(f"remote file {cloudflow_path} does not exist")
        self.cloudflow_path = cloudflow_path


class CloudflowExistenceCheckFailedError(CloudflowError):
    """The existence query itself failed."""

    error_code = "CFMANERR008"

    def __init__(self, cloudflow_path: str, cause: Optional[Exception] = None):
        message = f"could not check if {cloudflow_path} exists on Cloudflow"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cloudflow_path = cloudflow_path


# =========================
# Version and license errors
# =========================


class InvalidVersionFormatError(CloudflowError):
    error_code = "CFVERERR001"

    def __init__(self, version: object):
        super().__init__(f"invalid version '{version}', expected major.minor.patch")
        self.version = version


class InvalidCloudflowVersionError(CloudflowError):
    """The remote Cloudflow reported a version that cannot be parsed."""

    error_code = "CFVERERR002"

    def __init__(self, version: object):
        super().__init__(f"Cloudflow reported an invalid version '{version}'")
        self.version = version


class InvalidMinimumCloudflowVersionError(CloudflowError):
    """The minCloudflowVersion of a project.cfapp cannot be parsed."""

    error_code = "CFVERERR003"

    def __init__(self, app_name: str, version: str):
        super().__init__(
            f"application {app_name} has an invalid minimum Cloudflow "
            f"version '{version}'"
        )
        self.app_name = app_name
        self.version = version


class CloudflowTooOldError(CloudflowError):
    error_code = "CFVERERR004"

    def __init__(self, app_name: str, actual: object, required: object):
        super().__init__(
            f"application {app_name} requires Cloudflow {required}, "
            f"the remote runs {actual}"
        )
        self.app_name = app_name
        self.actual = actual
        self.required = required


class ApplicationLicenseError(CloudflowError):
    error_code = "CFLICERR001"

    def __init__(self, app_name: str, license_code: str):
        super().__init__(
            f"the Cloudflow license does not allow application {app_name} "
            f"(license '{license_code}')"
        )
        self.app_name = app_name
        self.license_code = license_code


class InvalidRemoteVersionError(CloudflowError):
    error_code = "CFAPPERR007"

    def __init__(self, app_name: str):
        super().__init__(f"invalid version for REMOTE {app_name}, force to update")
        self.app_name = app_name


class InvalidLocalVersionError(CloudflowError):
    error_code = "CFAPPERR008"

    def __init__(self, app_name: str):
        super().__init__(
            f"invalid version on LOCAL {app_name}, specify a valid version to update"
        )
        self.app_name = app_name


class OlderOrSameVersionError(CloudflowError):
    error_code = "CFAPPERR009"

    def __init__(self, app_name: str, local_version: object, remote_version: object):
        super().__init__(
            f"Application {app_name} LOCAL version {local_version} <= "
            f"REMOTE version {remote_version}, force to update"
        )
        self.app_name = app_name
        self.local_version = local_version
        self.remote_version = remote_version


class ApplicationNotInstalledError(CloudflowError):
    error_code = "CFAPPERR001"

    def __init__(self, app_name: str):
        super().__init__(f"application {app_name} is not installed")
        self.app_name = app_name


# =========================
# Transfer errors
# =========================


class TransferError(CloudflowError):
    """A single file could not be transferred."""

    error_code = "CFAPPERR010"

    verb = "transferring"

    def __init__(
        self,
        cloudflow_path: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        if status_code is not None:
            message = f"error {status_code} when {self.verb} file {cloudflow_path}"
        else:
            message = f"error when {self.verb} file {cloudflow_path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.cloudflow_path = cloudflow_path
        self.status_code = status_code
        self.reason = reason


class DownloadError(TransferError):
    error_code = "CFAPPERR005"
    verb = "downloading"


class UploadError(TransferError):
    error_code = "CFAPPERR006"
    verb = "uploading"


class TransferBatchError(CloudflowError):
    """One or more files of a batch failed; the others were still transferred."""

    error_code = "CFAPPERR011"

    def __init__(self, direction: str, errors: list, outcomes: Optional[list] = None):
        paths = ", ".join(error.cloudflow_path for error in errors)
        super().__init__(f"{len(errors)} file(s) failed during {direction}: {paths}")
        self.direction = direction
        self.errors = errors
        self.outcomes = outcomes or []
