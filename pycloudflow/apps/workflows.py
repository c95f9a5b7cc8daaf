"""Upload and download of the workflows (whitepapers) of an application."""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..exceptions import (
    CannotFindCFAppFileError,
    ProjectCFAppSyntaxError,
    RemoteFileDoesNotExistError,
)
from ..output import OutputFormatter
from .manifest import ApplicationManifest

if TYPE_CHECKING:
    from ..api import CloudflowClient

logger = logging.getLogger(__name__)

WORKFLOW_FOLDER = "workflows"

# Keys the remote adds to a whitepaper that must not be sent back on create
_SERVER_KEYS = ("_id", "modification", "creation")


def workflow_file(manifest: ApplicationManifest, name: str) -> Path:
    """Local JSON file of a workflow."""
    return manifest.folder / WORKFLOW_FOLDER / f"{name}.json"


def upload_workflows(
    client: "CloudflowClient",
    manifest: ApplicationManifest,
    overwrite: bool = False,
    output: Optional[OutputFormatter] = None,
) -> int:
    """Create the workflows of the app on the remote.

    Returns:
        Number of workflows created

    Raises:
        CannotFindCFAppFileError: If a workflow file is missing locally
        ProjectCFAppSyntaxError: If a workflow file is not valid JSON
    """
    output = output or OutputFormatter()
    created = 0
    for name in manifest.workflows:
        path = workflow_file(manifest, name)
        if not path.is_file():
            raise CannotFindCFAppFileError(f"workflow {name}", str(path))
        try:
            whitepaper = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ProjectCFAppSyntaxError(str(path), e) from e

        existing = client.list_whitepapers(name)
        if existing and not overwrite:
            output.write_line(f"skipping workflow: {name} workflow exists")
            continue
        for whitepaper_record in existing:
            client.delete_whitepaper(whitepaper_record["_id"])

        output.write_line(f"uploading workflow: {name}")
        for key in _SERVER_KEYS:
            whitepaper.pop(key, None)
        whitepaper["name"] = name
        client.create_whitepaper(whitepaper)
        created += 1

    logger.debug("Uploaded %d workflow(s) for %s", created, manifest.display_name)
    return created


def download_workflows(
    client: "CloudflowClient",
    manifest: ApplicationManifest,
    overwrite: bool = False,
    output: Optional[OutputFormatter] = None,
) -> int:
    """Save the remote workflows of the app in its workflows folder.

    Returns:
        Number of workflows written

    Raises:
        RemoteFileDoesNotExistError: If a workflow does not exist remotely
    """
    output = output or OutputFormatter()
    written = 0
    for name in manifest.workflows:
        existing = client.list_whitepapers(name)
        if not existing:
            raise RemoteFileDoesNotExistError(f"workflow {name}")

        path = workflow_file(manifest, name)
        if path.exists() and not overwrite:
            output.write_line(f"skipping workflow: {name} file exists")
            continue

        output.write_line(f"downloading workflow: {name}")
        whitepaper = {
            key: value for key, value in existing[0].items() if key not in _SERVER_KEYS
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(whitepaper, indent=4) + "\n", encoding="utf-8")
        written += 1

    return written
