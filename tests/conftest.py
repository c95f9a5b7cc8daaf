"""Shared fixtures: a fake Cloudflow remote and application folders."""

import json
import threading
from pathlib import Path
from typing import Any, Optional

import pytest

from pycloudflow.apps.manifest import PROJECT_FILE_NAME
from pycloudflow.exceptions import CloudflowAPIError


class FakeCloudflow:
    """In-memory stand-in for CloudflowClient.

    Files are keyed by their ``cloudflow://`` URL. Every call is recorded
    under a lock so that tests can count calls made from worker threads.
    """

    def __init__(self, version: str = "18.0.0"):
        self.version = version
        self.files: dict[str, bytes] = {}
        self.folders: set[str] = set()
        self.license: dict[str, Any] = {"products": []}
        self.whitepapers: dict[str, dict] = {}
        self.installed_apps: list[dict] = []
        self.failing_exists: set[str] = set()
        self.failing_uploads: dict[str, int] = {}
        self.failing_deletes: set[str] = set()
        self.calls: list[tuple[str, Any]] = []
        self.session = "fake-session"
        self.closed = False
        self._lock = threading.Lock()

    def _record(self, method: str, argument: Any = None) -> None:
        with self._lock:
            self.calls.append((method, argument))

    def count(self, method: str, argument: Any = None) -> int:
        return sum(
            1
            for name, arg in self.calls
            if name == method and (argument is None or arg == argument)
        )

    def add_file(self, url: str, content: bytes = b"data") -> None:
        self.files[url] = content

    def add_folder(self, url: str) -> None:
        self.folders.add(url.rstrip("/"))

    # CloudflowClient interface

    def get_version(self) -> str:
        self._record("get_version")
        return self.version

    def get_license(self) -> dict:
        self._record("get_license")
        return self.license

    def list_installed_apps(self, name: str) -> list:
        self._record("list_installed_apps", name)
        return [app for app in self.installed_apps if app.get("name") == name]

    def does_exist(self, url: str) -> dict:
        self._record("does_exist", url)
        if url in self.failing_exists:
            raise CloudflowAPIError(f"file.does_exist failed for {url}")
        if url.rstrip("/") in self.folders:
            return {"exists": True, "is_folder": True, "url": url}
        return {"exists": url in self.files, "is_folder": False, "url": url}

    def list_assets(self, query: list, fields: Optional[list] = None) -> list:
        self._record("list_assets", query[2])
        prefix = query[2]
        return [
            {"_id": url, "cloudflow": {"file": url}}
            for url in sorted(self.files)
            if (url.rsplit("/", 1)[0] + "/").startswith(prefix)
        ]

    def delete_file(self, url: str) -> dict:
        self._record("delete_file", url)
        if url in self.failing_deletes:
            raise CloudflowAPIError(f"file.delete_file failed for {url}")
        with self._lock:
            self.files.pop(url, None)
        return {}

    def upload_file(self, fs_path: Path, url: str) -> int:
        self._record("upload_file", url)
        status = self.failing_uploads.get(url)
        if status is not None:
            raise CloudflowAPIError(f"upload of {url} failed", status)
        content = Path(fs_path).read_bytes()
        with self._lock:
            self.files[url] = content
        return 200

    def download_file(self, url: str, output_path: Path) -> Path:
        self._record("download_file", url)
        if url not in self.files:
            raise CloudflowAPIError(f"download of {url} failed", 404)
        Path(output_path).write_bytes(self.files[url])
        return output_path

    def list_whitepapers(self, name: str) -> list:
        self._record("list_whitepapers", name)
        whitepaper = self.whitepapers.get(name)
        return [whitepaper] if whitepaper else []

    def create_whitepaper(self, whitepaper: dict) -> dict:
        self._record("create_whitepaper", whitepaper["name"])
        self.whitepapers[whitepaper["name"]] = dict(whitepaper, _id=whitepaper["name"])
        return {}

    def delete_whitepaper(self, whitepaper_id: str) -> dict:
        self._record("delete_whitepaper", whitepaper_id)
        self.whitepapers.pop(whitepaper_id, None)
        return {}

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_cloudflow():
    """A fake remote Cloudflow."""
    return FakeCloudflow()


def write_app(folder: Path, project: dict, files: Optional[dict] = None) -> Path:
    """Create an application folder with a project.cfapp and local files.

    Args:
        folder: Application folder, created if needed
        project: Contents of the project.cfapp
        files: Mapping of relative path to file content
    """
    folder.mkdir(parents=True, exist_ok=True)
    (folder / PROJECT_FILE_NAME).write_text(json.dumps(project))
    for relative_path, content in (files or {}).items():
        path = folder / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return folder


@pytest.fixture
def make_app(tmp_path):
    """Factory creating application folders below tmp_path."""

    def _make_app(project: dict, files: Optional[dict] = None, name: str = "app"):
        return write_app(tmp_path / name, project, files)

    return _make_app
