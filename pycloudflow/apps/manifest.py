"""The project.cfapp manifest of a Cloudflow application."""

import copy
import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from ..exceptions import (
    CloudflowAPIError,
    CloudflowExistenceCheckFailedError,
    InvalidCloudflowPathError,
    ManifestNotFoundError,
    ManifestSchemaError,
    ProjectCFAppSyntaxError,
    RemoteFileDoesNotExistError,
)
from .paths import CloudflowPath, PathKind, normalize_cloudflow_path, resolve

if TYPE_CHECKING:
    from ..api import CloudflowClient

logger = logging.getLogger(__name__)

PROJECT_FILE_NAME = "project.cfapp"

# License code of the manifests that only need a demo license
DEMO_LICENSE = "demo"


def _optional_string(data: dict, key: str, path: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ManifestSchemaError(path, key, "expected a string")
    return value or None


def _string_list(data: dict, key: str, path: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ManifestSchemaError(path, key, "expected a list of strings")
    for index, item in enumerate(value):
        if not isinstance(item, str) or not item:
            raise ManifestSchemaError(
                path, f"{key}[{index}]", "expected a non-empty string"
            )
    return list(value)


@dataclass(frozen=True)
class ApplicationManifest:
    """Typed contents of a project.cfapp file."""

    name: str
    folder: Path
    description: Optional[str] = None
    host: Optional[str] = None
    login: Optional[str] = None
    password: Optional[str] = None
    version: Optional[str] = None
    min_cloudflow_version: Optional[str] = None
    mars_name: Optional[str] = None
    license: Optional[str] = None
    icon: Optional[str] = None
    documentation: Optional[str] = None
    files: tuple[str, ...] = ()
    workflows: tuple[str, ...] = ()
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(
        cls, data: Any, folder: Path, source: str = PROJECT_FILE_NAME
    ) -> "ApplicationManifest":
        """Build a manifest from decoded JSON.

        Raises:
            ManifestSchemaError: If a field has the wrong shape
        """
        if not isinstance(data, dict):
            raise ManifestSchemaError(source, "<root>", "expected a JSON object")

        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ManifestSchemaError(source, "name", "expected a non-empty string")

        mars = data.get("mars") or {}
        if not isinstance(mars, dict):
            raise ManifestSchemaError(source, "mars", "expected an object")

        files = _string_list(data, "files", source)
        normalized = []
        for index, entry in enumerate(files):
            try:
                normalized.append(normalize_cloudflow_path(entry))
            except InvalidCloudflowPathError as e:
                raise ManifestSchemaError(source, f"files[{index}]", str(e)) from e

        icon = _optional_string(data, "icon", source)
        documentation = _optional_string(data, "documentation", source)
        for key, value in (("icon", icon), ("documentation", documentation)):
            if value is not None:
                try:
                    normalize_cloudflow_path(value)
                except InvalidCloudflowPathError as e:
                    raise ManifestSchemaError(source, key, str(e)) from e

        return cls(
            name=name,
            folder=Path(folder),
            description=_optional_string(data, "description", source),
            host=_optional_string(data, "host", source),
            login=_optional_string(data, "login", source),
            password=_optional_string(data, "password", source),
            version=_optional_string(data, "version", source),
            min_cloudflow_version=_optional_string(
                data, "minCloudflowVersion", source
            ),
            mars_name=_optional_string(mars, "name", f"{source}#mars"),
            license=_optional_string(mars, "license", f"{source}#mars"),
            icon=normalize_cloudflow_path(icon) if icon else None,
            documentation=(
                normalize_cloudflow_path(documentation) if documentation else None
            ),
            files=tuple(normalized),
            workflows=tuple(_string_list(data, "workflows", source)),
            raw=copy.deepcopy(data),
        )

    @property
    def display_name(self) -> str:
        """The MARS name when there is one, otherwise the manifest name."""
        return self.mars_name or self.name

    @property
    def has_license(self) -> bool:
        return self.license is not None

    @property
    def project_file(self) -> Path:
        return self.folder / PROJECT_FILE_NAME

    def declared_paths(self) -> list[CloudflowPath]:
        """All file, icon and documentation entries resolved in the app folder."""
        paths = [resolve(entry, self.folder, PathKind.FILE) for entry in self.files]
        if self.icon:
            paths.append(resolve(self.icon, self.folder, PathKind.ICON))
        if self.documentation:
            paths.append(
                resolve(self.documentation, self.folder, PathKind.DOCUMENTATION)
            )
        return paths

    def to_dict(self) -> dict:
        """JSON document of the manifest, keeping keys pycloudflow ignores."""
        data = copy.deepcopy(self.raw)
        data["name"] = self.name
        data["files"] = list(self.files)
        if self.documentation is not None:
            data["documentation"] = self.documentation
        if self.icon is not None:
            data["icon"] = self.icon
        if self.workflows:
            data["workflows"] = list(self.workflows)
        return data


def load_manifest(folder: Path) -> ApplicationManifest:
    """Read the project.cfapp in ``folder``.

    Raises:
        ManifestNotFoundError: If there is no project.cfapp
        ProjectCFAppSyntaxError: If the file is not valid JSON
        ManifestSchemaError: If a field has the wrong shape
    """
    folder = Path(folder)
    project_file = folder / PROJECT_FILE_NAME
    try:
        text = project_file.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ManifestNotFoundError(str(project_file)) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProjectCFAppSyntaxError(str(project_file), e) from e

    manifest = ApplicationManifest.from_dict(data, folder, str(project_file))
    logger.debug(
        "Loaded %s: %d file(s), %d workflow(s)",
        project_file,
        len(manifest.files),
        len(manifest.workflows),
    )
    return manifest


def save_manifest(manifest: ApplicationManifest) -> Path:
    """Write the manifest back to its project.cfapp."""
    manifest.project_file.write_text(
        json.dumps(manifest.to_dict(), indent=4) + "\n", encoding="utf-8"
    )
    return manifest.project_file


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    manifest: ApplicationManifest
    corrections: tuple[str, ...] = ()


def validate_manifest(
    manifest: ApplicationManifest, client: "CloudflowClient"
) -> ValidationResult:
    """Check the manifest against the remote and return a corrected copy.

    The documentation entry must end with a slash, and so must every file
    entry that is an empty folder on the remote. The input is never modified.

    Raises:
        CloudflowExistenceCheckFailedError: If an existence query fails
        RemoteFileDoesNotExistError: If a file entry is missing on the remote
    """
    corrections: list[str] = []

    documentation = manifest.documentation
    if documentation and not documentation.endswith("/"):
        corrections.append(f"documentation: {documentation} -> {documentation}/")
        documentation += "/"

    files = list(manifest.files)
    for index, entry in enumerate(files):
        cf_path = resolve(entry, manifest.folder)
        try:
            does_exist = client.does_exist(cf_path.url)
        except CloudflowAPIError as e:
            raise CloudflowExistenceCheckFailedError(entry, e) from e

        if not does_exist["exists"]:
            raise RemoteFileDoesNotExistError(entry)

        if does_exist["is_folder"] and not cf_path.is_folder:
            assets = client.list_assets(
                ["cloudflow.enclosing_folder", "begins with", cf_path.url + "/"],
                ["_id"],
            )
            if not assets:
                corrections.append(f"files[{index}]: {entry} -> {entry}/")
                files[index] = entry + "/"

    corrected = replace(manifest, documentation=documentation, files=tuple(files))
    return ValidationResult(
        is_valid=not corrections, manifest=corrected, corrections=tuple(corrections)
    )
