"""Parallel upload and download of application files."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

from ..config import DEFAULT_MAX_WORKERS
from ..exceptions import (
    DownloadError,
    TransferBatchError,
    TransferError,
    UploadError,
)
from ..output import OutputFormatter
from .paths import CloudflowPath

if TYPE_CHECKING:
    from ..api import CloudflowClient

logger = logging.getLogger(__name__)


class TransferDirection(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"


class TransferAction(str, Enum):
    """What happens to a single file."""

    SKIP = "skip"
    """The destination exists and overwriting is off"""

    UPLOAD = "upload"
    """Upload to a remote path that does not exist yet"""

    DELETE_THEN_UPLOAD = "delete_then_upload"
    """Delete the remote file, then upload"""

    DOWNLOAD = "download"
    """Download to a local path that does not exist yet"""

    DELETE_THEN_DOWNLOAD = "delete_then_download"
    """Delete the local file, then download"""


def decide_action(
    direction: TransferDirection, destination_exists: bool, overwrite: bool
) -> TransferAction:
    """Decide what to do with one file, given whether its destination exists."""
    if destination_exists and not overwrite:
        return TransferAction.SKIP
    if direction == TransferDirection.UPLOAD:
        if destination_exists:
            return TransferAction.DELETE_THEN_UPLOAD
        return TransferAction.UPLOAD
    if destination_exists:
        return TransferAction.DELETE_THEN_DOWNLOAD
    return TransferAction.DOWNLOAD


@dataclass(frozen=True)
class TransferItem:
    """A file together with the action decided for this run."""

    path: CloudflowPath
    action: TransferAction
    remote_url: str
    """Canonical URL of the remote file"""


@dataclass
class TransferOutcome:
    path: CloudflowPath
    action: Optional[TransferAction] = None
    """None when the item failed before an action was decided"""

    error: Optional[TransferError] = None
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class TransferResult:
    direction: TransferDirection
    outcomes: list[TransferOutcome] = field(default_factory=list)

    def _count(self, *actions: TransferAction) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if outcome.succeeded and outcome.action in actions
        )

    @property
    def transferred(self) -> int:
        return self._count(
            TransferAction.UPLOAD,
            TransferAction.DELETE_THEN_UPLOAD,
            TransferAction.DOWNLOAD,
            TransferAction.DELETE_THEN_DOWNLOAD,
        )

    @property
    def overwritten(self) -> int:
        return self._count(
            TransferAction.DELETE_THEN_UPLOAD, TransferAction.DELETE_THEN_DOWNLOAD
        )

    @property
    def skipped(self) -> int:
        return self._count(TransferAction.SKIP)

    @property
    def errors(self) -> list[TransferError]:
        return [outcome.error for outcome in self.outcomes if outcome.error is not None]


class TransferExecutor:
    """Transfers files with a bounded pool of worker threads.

    Every file is handled independently: existence check, decision, optional
    delete, transfer. A failing file never stops the others; the batch fails
    once all files have been attempted.
    """

    def __init__(
        self,
        client: "CloudflowClient",
        output: Optional[OutputFormatter] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        """Initialize the transfer executor.

        Args:
            client: Client of the remote Cloudflow, with an open session
            output: Output formatter receiving one line per file
            max_workers: Maximum number of files transferred at once
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.client = client
        self.output = output or OutputFormatter()
        self.max_workers = max_workers

    def upload(
        self, paths: Iterable[CloudflowPath], overwrite: bool = False
    ) -> TransferResult:
        """Upload local files to their Cloudflow paths.

        Raises:
            TransferBatchError: If at least one file failed
        """
        return self.transfer(TransferDirection.UPLOAD, paths, overwrite)

    def download(
        self, paths: Iterable[CloudflowPath], overwrite: bool = False
    ) -> TransferResult:
        """Download Cloudflow files into the application folder.

        Raises:
            TransferBatchError: If at least one file failed
        """
        return self.transfer(TransferDirection.DOWNLOAD, paths, overwrite)

    def transfer(
        self,
        direction: TransferDirection,
        paths: Iterable[CloudflowPath],
        overwrite: bool = False,
    ) -> TransferResult:
        paths = list(paths)
        result = TransferResult(direction=direction)
        if not paths:
            return result

        workers = min(self.max_workers, len(paths))
        logger.debug(
            "Starting %s of %d file(s) with %d worker(s)",
            direction.value,
            len(paths),
            workers,
        )

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self._process, direction, path, overwrite)
                for path in paths
            ]
            for future in as_completed(futures):
                outcome = future.result()
                result.outcomes.append(outcome)
                if outcome.succeeded:
                    logger.debug(
                        "Completed %s (%s) in %.2fs",
                        outcome.path.cloudflow,
                        outcome.action.value if outcome.action else "-",
                        outcome.elapsed,
                    )
                else:
                    logger.debug(
                        "Failed %s in %.2fs", outcome.path.cloudflow, outcome.elapsed
                    )

        if result.errors:
            raise TransferBatchError(direction.value, result.errors, result.outcomes)
        return result

    def _process(
        self, direction: TransferDirection, path: CloudflowPath, overwrite: bool
    ) -> TransferOutcome:
        """Run one file to completion and report how it went."""
        start = time.time()
        outcome = TransferOutcome(path=path)
        try:
            if direction == TransferDirection.UPLOAD:
                item = self._plan_upload(path, overwrite)
                outcome.action = item.action
                self._execute_upload(item)
            else:
                item = self._plan_download(path, overwrite)
                outcome.action = item.action
                self._execute_download(item)
        except Exception as e:
            outcome.error = self._wrap_error(direction, path, e)
            self.output.write_line(
                f"could not {direction.value} file: {path.cloudflow}"
            )
            logger.debug("Error during %s of %s: %s", direction.value, path, e)
        outcome.elapsed = time.time() - start
        return outcome

    @staticmethod
    def _wrap_error(
        direction: TransferDirection, path: CloudflowPath, error: Exception
    ) -> TransferError:
        if isinstance(error, TransferError):
            return error
        error_class = (
            UploadError if direction == TransferDirection.UPLOAD else DownloadError
        )
        wrapped = error_class(
            path.cloudflow,
            status_code=getattr(error, "status_code", None),
            reason=str(error),
        )
        wrapped.__cause__ = error
        return wrapped

    # =========================
    # Upload
    # =========================

    def _plan_upload(self, path: CloudflowPath, overwrite: bool) -> TransferItem:
        does_exist = self.client.does_exist(path.url)
        action = decide_action(
            TransferDirection.UPLOAD, does_exist["exists"], overwrite
        )
        return TransferItem(
            path=path, action=action, remote_url=does_exist.get("url") or path.url
        )

    def _execute_upload(self, item: TransferItem) -> None:
        cloudflow = item.path.cloudflow
        if item.action == TransferAction.SKIP:
            self.output.write_line(f"skipping file: {cloudflow} file exists")
            return

        if item.action == TransferAction.DELETE_THEN_UPLOAD:
            self.output.write_line(f"overwriting file: {cloudflow}")
            self.client.delete_file(item.remote_url)
        else:
            self.output.write_line(f"uploading file: {cloudflow}")

        self.client.upload_file(item.path.fs, item.path.url)

    # =========================
    # Download
    # =========================

    def _plan_download(self, path: CloudflowPath, overwrite: bool) -> TransferItem:
        action = decide_action(TransferDirection.DOWNLOAD, path.fs.exists(), overwrite)
        return TransferItem(path=path, action=action, remote_url=path.url)

    def _execute_download(self, item: TransferItem) -> None:
        cloudflow = item.path.cloudflow
        if item.action == TransferAction.SKIP:
            self.output.write_line(f"skipping file: {cloudflow} file exists")
            return

        if item.action == TransferAction.DELETE_THEN_DOWNLOAD:
            self.output.write_line(f"overwriting file: {cloudflow}")
            item.path.fs.unlink()
        else:
            self.output.write_line(f"downloading file: {cloudflow}")

        item.path.fs.parent.mkdir(parents=True, exist_ok=True)
        self.client.download_file(item.remote_url, item.path.fs)
