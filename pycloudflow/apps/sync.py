"""Upload and download of complete Cloudflow applications."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from ..api import CloudflowClient
from ..config import DEFAULT_MAX_WORKERS, Config, config
from ..exceptions import ApplicationLicenseError
from ..output import OutputFormatter
from .compatibility import Compatibility, check_compatibility, validate_license
from .discovery import find_applications
from .expander import expand_local, expand_remote
from .manifest import ApplicationManifest
from .transfer import TransferDirection, TransferExecutor, TransferResult
from .workflows import WORKFLOW_FOLDER, download_workflows, upload_workflows

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Progress of one application through a synchronization run."""

    DISCOVERED = "discovered"
    GATED = "gated"
    EXPANDED = "expanded"
    TRANSFERRING = "transferring"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncOptions:
    """Options of an upload or download run.

    Connection values left to None fall back to the project.cfapp, then to
    the configuration.
    """

    host: Optional[str] = None
    login: Optional[str] = None
    password: Optional[str] = None
    session: Optional[str] = None
    overwrite: bool = False
    force_cloudflow_version: bool = False
    max_workers: int = DEFAULT_MAX_WORKERS
    verify_ssl: bool = True


@dataclass(frozen=True)
class ConnectionParameters:
    host: str
    login: str
    password: str
    session: Optional[str] = None


def connection_parameters(
    manifest: ApplicationManifest, options: SyncOptions, settings: Config = config
) -> ConnectionParameters:
    """Merge configuration, project.cfapp and explicit options, in that order."""
    return ConnectionParameters(
        host=options.host or manifest.host or settings.host,
        login=options.login or manifest.login or settings.login,
        password=options.password or manifest.password or settings.password,
        session=options.session or settings.session,
    )


ClientFactory = Callable[[ConnectionParameters, SyncOptions], CloudflowClient]


def create_client(
    parameters: ConnectionParameters, options: SyncOptions
) -> CloudflowClient:
    """Connect to Cloudflow and open a session unless one was given."""
    client = CloudflowClient(
        parameters.host, session=parameters.session, verify=options.verify_ssl
    )
    if not parameters.session:
        try:
            client.create_session(parameters.login, parameters.password)
        except Exception:
            client.close()
            raise
    return client


@dataclass
class ApplicationReport:
    """What happened to one application."""

    manifest: ApplicationManifest
    direction: TransferDirection
    state: SyncState = SyncState.DISCOVERED
    compatibility: Optional[Compatibility] = None
    result: Optional[TransferResult] = None
    empty_directories: list[str] = field(default_factory=list)
    workflows: int = 0
    error: Optional[Exception] = None


class ApplicationSync:
    """Runs the gate, expansion and transfer steps for applications."""

    def __init__(
        self,
        output: Optional[OutputFormatter] = None,
        client_factory: ClientFactory = create_client,
        settings: Config = config,
    ):
        self.output = output or OutputFormatter()
        self.client_factory = client_factory
        self.settings = settings

    def _connect(
        self, manifest: ApplicationManifest, options: SyncOptions
    ) -> CloudflowClient:
        parameters = connection_parameters(manifest, options, self.settings)
        self.output.write_line(f"application: {manifest.display_name}")
        self.output.write_line(f"Cloudflow: {parameters.host}")
        self.output.write_line(f"user: {parameters.login}")
        return self.client_factory(parameters, options)

    def _gate(
        self,
        manifest: ApplicationManifest,
        client: CloudflowClient,
        options: SyncOptions,
        report: ApplicationReport,
    ) -> None:
        report.compatibility = check_compatibility(
            manifest, client, options.force_cloudflow_version
        )
        if not validate_license(manifest, client):
            raise ApplicationLicenseError(manifest.display_name, manifest.license or "")
        report.state = SyncState.GATED

    def upload_app(
        self, manifest: ApplicationManifest, options: SyncOptions
    ) -> ApplicationReport:
        """Install one application on the remote Cloudflow.

        Raises:
            CloudflowError: The error of the first step that failed
        """
        report = ApplicationReport(
            manifest=manifest, direction=TransferDirection.UPLOAD
        )
        client = self._connect(manifest, options)
        try:
            self._gate(manifest, client, options, report)

            expansion = expand_local(manifest)
            report.empty_directories = expansion.empty_directories
            report.state = SyncState.EXPANDED

            self.output.write_line(f'installing app "{manifest.display_name}"')
            report.state = SyncState.TRANSFERRING
            report.workflows = upload_workflows(
                client, manifest, options.overwrite, self.output
            )
            executor = TransferExecutor(client, self.output, options.max_workers)
            report.result = executor.upload(
                expansion.files_to_upload, options.overwrite
            )
            report.state = SyncState.DONE
        except Exception as e:
            report.state = SyncState.FAILED
            report.error = e
            logger.debug("Upload of %s failed: %s", manifest.display_name, e)
            raise
        finally:
            client.close()
        return report

    def download_app(
        self, manifest: ApplicationManifest, options: SyncOptions
    ) -> ApplicationReport:
        """Download one application from the remote Cloudflow into its folder.

        Raises:
            CloudflowError: The error of the first step that failed
        """
        report = ApplicationReport(
            manifest=manifest, direction=TransferDirection.DOWNLOAD
        )
        client = self._connect(manifest, options)
        try:
            self._gate(manifest, client, options, report)

            files = expand_remote(manifest, client)
            report.state = SyncState.EXPANDED

            self.output.write_line(f'downloading app "{manifest.display_name}"')
            report.state = SyncState.TRANSFERRING
            (manifest.folder / WORKFLOW_FOLDER).mkdir(parents=True, exist_ok=True)
            report.workflows = download_workflows(
                client, manifest, options.overwrite, self.output
            )
            executor = TransferExecutor(client, self.output, options.max_workers)
            report.result = executor.download(files, options.overwrite)
            report.state = SyncState.DONE
        except Exception as e:
            report.state = SyncState.FAILED
            report.error = e
            logger.debug("Download of %s failed: %s", manifest.display_name, e)
            raise
        finally:
            client.close()
        return report

    def _run_all(
        self,
        directory: Path,
        options: SyncOptions,
        run: Callable[[ApplicationManifest, SyncOptions], ApplicationReport],
    ) -> list[ApplicationReport]:
        """Process the applications one after the other.

        The first failing application stops the run; its error propagates.
        """
        reports = []
        for manifest in find_applications(directory):
            reports.append(run(manifest, options))
        return reports

    def upload(self, directory: Path, options: SyncOptions) -> list[ApplicationReport]:
        """Upload every application found below ``directory``."""
        return self._run_all(Path(directory), options, self.upload_app)

    def download(
        self, directory: Path, options: SyncOptions
    ) -> list[ApplicationReport]:
        """Download every application found below ``directory``."""
        return self._run_all(Path(directory), options, self.download_app)
