"""Mapping between Cloudflow paths and files in an application folder."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Iterable, Union

from ..exceptions import InvalidCloudflowPathError, PathCollisionError

CLOUDFLOW_SCHEME = "cloudflow://"


class PathKind(str, Enum):
    """Where a path of the manifest comes from."""

    FILE = "file"
    ICON = "icon"
    DOCUMENTATION = "documentation"
    WORKFLOW = "workflow"


def normalize_cloudflow_path(path: str) -> str:
    """Return the logical form ``/<filestore>/<path>`` of a Cloudflow path.

    ``cloudflow://`` URLs are accepted. A trailing slash is kept.

    Raises:
        InvalidCloudflowPathError: For empty paths, empty segments or ``..``
    """
    if not isinstance(path, str) or not path:
        raise InvalidCloudflowPathError(str(path), "path is empty")

    logical = path
    if logical.startswith(CLOUDFLOW_SCHEME):
        logical = logical[len(CLOUDFLOW_SCHEME) :]
    if not logical.startswith("/"):
        logical = "/" + logical

    is_folder = logical.endswith("/")
    segments = logical.strip("/").split("/")
    if segments == [""]:
        raise InvalidCloudflowPathError(path, "path has no file store")
    for segment in segments:
        if segment in ("", ".", ".."):
            raise InvalidCloudflowPathError(path, f"invalid segment '{segment}'")

    logical = "/" + "/".join(segments)
    return logical + "/" if is_folder else logical


@dataclass(frozen=True)
class CloudflowPath:
    """A Cloudflow path paired with its file in the application folder.

    Two instances are equal when their Cloudflow paths are equal.
    """

    cloudflow: str
    fs: Path = field(compare=False)
    kind: PathKind = field(default=PathKind.FILE, compare=False)

    @property
    def is_folder(self) -> bool:
        """True for paths marked as folder with a trailing slash."""
        return self.cloudflow.endswith("/")

    @property
    def url(self) -> str:
        """The ``cloudflow://`` URL used when talking to the remote."""
        return CLOUDFLOW_SCHEME + self.cloudflow.lstrip("/")

    def __str__(self) -> str:
        return self.cloudflow


def resolve(
    cloudflow_path: str, app_root: Path, kind: PathKind = PathKind.FILE
) -> CloudflowPath:
    """Resolve a manifest entry against the application folder."""
    logical = normalize_cloudflow_path(cloudflow_path)
    relative = PurePosixPath(logical.strip("/"))
    return CloudflowPath(
        cloudflow=logical, fs=Path(app_root).joinpath(*relative.parts), kind=kind
    )


def from_url(url: str, app_root: Path, kind: PathKind = PathKind.FILE) -> CloudflowPath:
    """Resolve a ``cloudflow://`` URL reported by the remote."""
    return resolve(url, app_root, kind)


def from_local(
    fs_path: Union[str, Path], app_root: Path, kind: PathKind = PathKind.FILE
) -> CloudflowPath:
    """Inverse of :func:`resolve` for a file inside the application folder."""
    fs_path = Path(fs_path)
    try:
        relative = fs_path.relative_to(app_root)
    except ValueError as e:
        raise InvalidCloudflowPathError(
            str(fs_path), f"not inside application folder {app_root}"
        ) from e
    return CloudflowPath(cloudflow="/" + relative.as_posix(), fs=fs_path, kind=kind)


def resolve_all(paths: Iterable[CloudflowPath]) -> list[CloudflowPath]:
    """Deduplicate by Cloudflow path, keeping the first occurrence.

    Raises:
        PathCollisionError: If two different Cloudflow paths share a local file
    """
    by_cloudflow: dict[str, CloudflowPath] = {}
    by_fs: dict[Path, str] = {}
    for path in paths:
        if path.cloudflow in by_cloudflow:
            continue
        owner = by_fs.get(path.fs)
        if owner is not None:
            raise PathCollisionError(owner, path.cloudflow, str(path.fs))
        by_cloudflow[path.cloudflow] = path
        by_fs[path.fs] = path.cloudflow
    return list(by_cloudflow.values())
