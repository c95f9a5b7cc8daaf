"""Checks that an application may be installed on a Cloudflow server."""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..exceptions import (
    ApplicationNotInstalledError,
    CloudflowTooOldError,
    InvalidMinimumCloudflowVersionError,
    InvalidVersionFormatError,
)
from ..version import CloudflowVersion, check_update_allowed
from .manifest import DEMO_LICENSE, ApplicationManifest

if TYPE_CHECKING:
    from ..api import CloudflowClient

logger = logging.getLogger(__name__)

DEMO_LICENSE_PRODUCT = "Demo License"


class Compatibility(str, Enum):
    """Outcome of a successful compatibility check."""

    COMPATIBLE = "compatible"
    """The remote version satisfies the application, or nothing is required"""

    FORCED = "forced"
    """The check was skipped on request"""


def check_compatibility(
    manifest: ApplicationManifest, client: "CloudflowClient", force: bool = False
) -> Compatibility:
    """Verify the remote runs at least the minimum Cloudflow version of the app.

    Args:
        manifest: Application to check
        client: Client of the remote Cloudflow
        force: Skip the check, the remote version is not queried

    Raises:
        InvalidCloudflowVersionError: If the remote version cannot be parsed
        InvalidMinimumCloudflowVersionError: If minCloudflowVersion is invalid
        CloudflowTooOldError: If the remote is older than the minimum
    """
    required_text = manifest.min_cloudflow_version
    if not required_text:
        return Compatibility.COMPATIBLE

    if force:
        logger.debug("Skipping Cloudflow version check for %s", manifest.display_name)
        return Compatibility.FORCED

    current = CloudflowVersion.from_client(client)
    try:
        required = CloudflowVersion.parse(required_text)
    except InvalidVersionFormatError as e:
        raise InvalidMinimumCloudflowVersionError(
            manifest.display_name, required_text
        ) from e

    if current < required:
        raise CloudflowTooOldError(manifest.display_name, current, required)

    logger.debug("Cloudflow %s satisfies minimum %s", current, required)
    return Compatibility.COMPATIBLE


def _products(license_record: dict[str, Any]) -> list[dict[str, Any]]:
    products = license_record.get("products") or []
    return [product for product in products if isinstance(product, dict)]


def check_demo_license(license_record: dict[str, Any]) -> bool:
    """True if the license holds the demo license product."""
    return any(
        product.get("name") == DEMO_LICENSE_PRODUCT
        or product.get("code") == DEMO_LICENSE
        for product in _products(license_record)
    )


def check_code(license_record: dict[str, Any], code: str) -> bool:
    """True if one of the licensed products has exactly this code."""
    return any(product.get("code") == code for product in _products(license_record))


def validate_license(manifest: ApplicationManifest, client: "CloudflowClient") -> bool:
    """Validate the license requirement of the app against the remote license."""
    if not manifest.has_license:
        return True

    license_record = client.get_license()
    code = manifest.license or ""
    if code == DEMO_LICENSE:
        return check_demo_license(license_record)
    return check_code(license_record, code)


def get_installed_version(
    manifest: ApplicationManifest, client: "CloudflowClient"
) -> str:
    """Version of the app in the remote registry, 'no version' if unversioned.

    Raises:
        ApplicationNotInstalledError: If the app is not installed
    """
    installed = client.list_installed_apps(manifest.display_name)
    if not installed:
        raise ApplicationNotInstalledError(manifest.display_name)
    return installed[0].get("version") or "no version"


def check_update(
    manifest: ApplicationManifest, client: "CloudflowClient", force: bool = False
) -> None:
    """Refuse to update an installed app with an older or equal version."""
    if force:
        return
    check_update_allowed(
        manifest.display_name,
        manifest.version or "no version",
        get_installed_version(manifest, client),
    )
