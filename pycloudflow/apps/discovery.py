"""Finding the Cloudflow applications below a directory."""

import logging
from pathlib import Path

from .manifest import PROJECT_FILE_NAME, ApplicationManifest, load_manifest

logger = logging.getLogger(__name__)


def find_application_folders(directory: Path) -> list[Path]:
    """Folders holding a project.cfapp, in a stable (sorted) order.

    When ``directory`` itself is an application only that folder is returned.
    The search does not descend into application folders.
    """
    directory = Path(directory)
    if (directory / PROJECT_FILE_NAME).is_file():
        return [directory]

    folders: list[Path] = []
    for item in sorted(directory.iterdir()):
        if item.is_dir() and not item.name.startswith("."):
            folders.extend(find_application_folders(item))
    return folders


def find_applications(directory: Path) -> list[ApplicationManifest]:
    """Load every application below ``directory`` in discovery order."""
    folders = find_application_folders(directory)
    logger.debug("Found %d application(s) in %s", len(folders), directory)
    return [load_manifest(folder) for folder in folders]
