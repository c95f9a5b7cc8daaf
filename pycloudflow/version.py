"""Cloudflow version triplets."""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import (
    InvalidCloudflowVersionError,
    InvalidLocalVersionError,
    InvalidRemoteVersionError,
    InvalidVersionFormatError,
    OlderOrSameVersionError,
)

if TYPE_CHECKING:
    from .api import CloudflowClient

_TRIPLET = re.compile(r"([0-9]+)\.([0-9]+)\.([0-9]+)")


@dataclass(frozen=True, order=True)
class CloudflowVersion:
    """A ``major.minor.patch`` version, ordered lexicographically."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: object) -> "CloudflowVersion":
        """Parse a version triplet.

        Raises:
            InvalidVersionFormatError: If ``text`` is not ``<int>.<int>.<int>``
        """
        if not isinstance(text, str):
            raise InvalidVersionFormatError(text)
        match = _TRIPLET.fullmatch(text)
        if match is None:
            raise InvalidVersionFormatError(text)
        major, minor, patch = (int(part) for part in match.groups())
        return cls(major, minor, patch)

    @classmethod
    def from_client(cls, client: "CloudflowClient") -> "CloudflowVersion":
        """Query the version of the remote Cloudflow.

        Raises:
            InvalidCloudflowVersionError: If the remote version cannot be parsed
        """
        reported = client.get_version()
        try:
            return cls.parse(reported)
        except InvalidVersionFormatError as e:
            raise InvalidCloudflowVersionError(reported) from e

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def compare_versions(a: CloudflowVersion, b: CloudflowVersion) -> int:
    """Return -1, 0 or 1 when ``a`` is lower than, equal to or greater than ``b``."""
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def check_update_allowed(app_name: str, local: object, remote: object) -> None:
    """Allow an update only when the local version is newer than the remote one.

    Raises:
        InvalidLocalVersionError: If the local version cannot be parsed
        InvalidRemoteVersionError: If the installed version cannot be parsed
        OlderOrSameVersionError: If local <= remote
    """
    try:
        local_version = CloudflowVersion.parse(local)
    except InvalidVersionFormatError as e:
        raise InvalidLocalVersionError(app_name) from e
    try:
        remote_version = CloudflowVersion.parse(remote)
    except InvalidVersionFormatError as e:
        raise InvalidRemoteVersionError(app_name) from e

    if local_version <= remote_version:
        raise OlderOrSameVersionError(app_name, local_version, remote_version)
