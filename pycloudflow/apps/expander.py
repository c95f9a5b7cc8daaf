"""Expansion of manifest entries into the concrete files of an application."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ..exceptions import (
    CannotFindCFAppFileError,
    CloudflowAPIError,
    CloudflowExistenceCheckFailedError,
    RemoteFileDoesNotExistError,
)
from .manifest import ApplicationManifest
from .paths import CloudflowPath, from_local, from_url, resolve_all

if TYPE_CHECKING:
    from ..api import CloudflowClient

logger = logging.getLogger(__name__)


@dataclass
class LocalExpansion:
    """Files found on disk for an application."""

    files_to_upload: list[CloudflowPath] = field(default_factory=list)
    """Every file to upload, once"""

    empty_directories: list[str] = field(default_factory=list)
    """Cloudflow paths of declared folders that do not exist locally"""


def walk_files(directory: Path) -> list[Path]:
    """Recursively list all files below ``directory``."""
    files: list[Path] = []
    for item in sorted(directory.iterdir()):
        if item.is_dir():
            files.extend(walk_files(item))
        else:
            files.append(item)
    return files


def expand_local(manifest: ApplicationManifest) -> LocalExpansion:
    """Expand the declared files, icon and documentation on the local disk.

    A declared path that does not exist is an error, unless it ends with a
    slash: then it is an intentionally empty folder and is recorded in
    ``empty_directories``.

    Raises:
        CannotFindCFAppFileError: If a declared file is missing
        PathCollisionError: If two declared paths map to the same local file
    """
    declared = resolve_all(manifest.declared_paths())

    expanded: dict[Path, CloudflowPath] = {}
    empty_directories: list[str] = []

    for cf_path in declared:
        if not cf_path.fs.exists():
            if not cf_path.is_folder:
                raise CannotFindCFAppFileError(cf_path.cloudflow, str(cf_path.fs))
            if cf_path.cloudflow not in empty_directories:
                empty_directories.append(cf_path.cloudflow)
            continue

        if cf_path.fs.is_dir():
            for fs_path in walk_files(cf_path.fs):
                if fs_path not in expanded:
                    expanded[fs_path] = from_local(
                        fs_path, manifest.folder, cf_path.kind
                    )
        elif cf_path.fs not in expanded:
            expanded[cf_path.fs] = cf_path

    logger.debug(
        "Expanded %s locally: %d file(s), %d empty folder(s)",
        manifest.display_name,
        len(expanded),
        len(empty_directories),
    )
    return LocalExpansion(
        files_to_upload=list(expanded.values()), empty_directories=empty_directories
    )


def _does_exist(client: "CloudflowClient", cf_path: CloudflowPath) -> dict:
    try:
        return client.does_exist(cf_path.url)
    except CloudflowAPIError as e:
        raise CloudflowExistenceCheckFailedError(cf_path.cloudflow, e) from e


def expand_remote(
    manifest: ApplicationManifest, client: "CloudflowClient"
) -> list[CloudflowPath]:
    """Expand the declared files, icon and documentation on the remote.

    A remote folder with nothing in it contributes no files.

    Raises:
        CloudflowExistenceCheckFailedError: If an existence query fails
        RemoteFileDoesNotExistError: If a declared path is missing remotely
    """
    expanded: dict[str, CloudflowPath] = {}

    for cf_path in resolve_all(manifest.declared_paths()):
        does_exist = _does_exist(client, cf_path)
        if not does_exist["exists"]:
            raise RemoteFileDoesNotExistError(cf_path.cloudflow)

        if does_exist["is_folder"]:
            prefix = cf_path.url if cf_path.is_folder else cf_path.url + "/"
            assets = client.list_assets(
                ["cloudflow.enclosing_folder", "begins with", prefix], ["cloudflow"]
            )
            for asset in assets:
                remote = from_url(
                    asset["cloudflow"]["file"], manifest.folder, cf_path.kind
                )
                if remote.cloudflow not in expanded:
                    expanded[remote.cloudflow] = remote
        elif cf_path.cloudflow not in expanded:
            expanded[cf_path.cloudflow] = cf_path

    logger.debug(
        "Expanded %s remotely: %d file(s)", manifest.display_name, len(expanded)
    )
    return list(expanded.values())
