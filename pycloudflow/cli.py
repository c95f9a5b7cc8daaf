"""CLI interface for pycloudflow."""

import logging
from pathlib import Path
from typing import Any, Callable, Optional

import click

from .apps import (
    ApplicationSync,
    SyncOptions,
    expand_local,
    find_applications,
    save_manifest,
    validate_manifest,
)
from .apps.sync import connection_parameters, create_client
from .config import config
from .exceptions import CloudflowError
from .output import OutputFormatter

logger = logging.getLogger(__name__)

DIRECTORY = click.Path(exists=True, file_okay=False)


_CONNECTION_OPTIONS = [
    click.option("--host", help="overrides the host address of the project.cfapp"),
    click.option(
        "--login", "--user", "login", help="overrides the login of the project.cfapp"
    ),
    click.option("--password", help="overrides the password of the project.cfapp"),
    click.option(
        "--session",
        help="session key for the Cloudflow API, overrides login and password",
    ),
    click.option(
        "--force-ssl-certificate",
        is_flag=True,
        help="forces the acceptance of the SSL certificate",
    ),
]

_TRANSFER_OPTIONS = [
    click.option("--overwrite", is_flag=True, help="force overwriting files"),
    click.option(
        "--force-cloudflow-version",
        is_flag=True,
        help="skips the Cloudflow version check",
    ),
    click.option(
        "--workers",
        "-j",
        type=click.IntRange(min=1),
        default=None,
        help="Number of files transferred in parallel (default: 20)",
    ),
]


def _add_options(options: list[Callable]) -> Callable:
    def decorator(command: Callable) -> Callable:
        for option in reversed(options):
            command = option(command)
        return command

    return decorator


def _build_options(
    host: Optional[str],
    login: Optional[str],
    password: Optional[str],
    session: Optional[str],
    force_ssl_certificate: bool,
    overwrite: bool = False,
    force_cloudflow_version: bool = False,
    workers: Optional[int] = None,
) -> SyncOptions:
    return SyncOptions(
        host=host,
        login=login,
        password=password,
        session=session,
        overwrite=overwrite,
        force_cloudflow_version=force_cloudflow_version,
        max_workers=workers or config.max_workers,
        verify_ssl=not force_ssl_certificate,
    )


def _fail(ctx: Any, out: OutputFormatter, error: Exception) -> None:
    if out.json_output:
        out.flush_json(error)
    else:
        out.error(str(error))
    ctx.exit(1)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pycloudflow")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """pycloudflow - package and synchronize Cloudflow applications."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pycloudflow").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.group()
def app() -> None:
    """Upload, download and validate Cloudflow applications."""


def _run_sync(ctx: Any, direction: str, directory: str, **kwargs: Any) -> None:
    out: OutputFormatter = ctx.obj["out"]
    try:
        options = _build_options(**kwargs)
        sync = ApplicationSync(out)
        if direction == "upload":
            reports = sync.upload(Path(directory), options)
        else:
            reports = sync.download(Path(directory), options)
    except CloudflowError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.flush_json()
        return

    if not reports:
        out.warning(f"No project.cfapp found in {directory}")
        return
    for report in reports:
        result = report.result
        transferred = result.transferred if result else 0
        skipped = result.skipped if result else 0
        out.success(
            f"{report.manifest.display_name}: {transferred} file(s) {direction}ed, "
            f"{skipped} skipped, {report.workflows} workflow(s)"
        )


@app.command()
@click.argument("directory", default=".", type=DIRECTORY)
@_add_options(_CONNECTION_OPTIONS)
@_add_options(_TRANSFER_OPTIONS)
@click.pass_context
def upload(ctx: Any, directory: str, **kwargs: Any) -> None:
    """Upload the apps in DIRECTORY to a Cloudflow installation."""
    _run_sync(ctx, "upload", directory, **kwargs)


@app.command()
@click.argument("directory", default=".", type=DIRECTORY)
@_add_options(_CONNECTION_OPTIONS)
@_add_options(_TRANSFER_OPTIONS)
@click.pass_context
def download(ctx: Any, directory: str, **kwargs: Any) -> None:
    """Download the files of the apps in DIRECTORY from Cloudflow."""
    _run_sync(ctx, "download", directory, **kwargs)


@app.command()
@click.argument("directory", default=".", type=DIRECTORY)
@_add_options(_CONNECTION_OPTIONS)
@click.option("--fix", is_flag=True, help="write the corrected project.cfapp")
@click.pass_context
def validate(ctx: Any, directory: str, fix: bool, **kwargs: Any) -> None:
    """Check the project.cfapp files in DIRECTORY against Cloudflow."""
    out: OutputFormatter = ctx.obj["out"]
    all_valid = True
    try:
        options = _build_options(**kwargs)
        for manifest in find_applications(Path(directory)):
            parameters = connection_parameters(manifest, options)
            client = create_client(parameters, options)
            try:
                result = validate_manifest(manifest, client)
            finally:
                client.close()

            if result.is_valid:
                out.success(f"{manifest.display_name}: project.cfapp is valid")
                continue

            all_valid = False
            out.warning(f"{manifest.display_name}: project.cfapp needs corrections")
            for correction in result.corrections:
                out.info(f"  {correction}")
            if fix:
                path = save_manifest(result.manifest)
                out.info(f"  written {path}")
    except CloudflowError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.flush_json()
    if not all_valid and not fix:
        ctx.exit(1)


@app.command()
@click.argument("directory", default=".", type=DIRECTORY)
@click.pass_context
def files(ctx: Any, directory: str) -> None:
    """List the local files that an upload of DIRECTORY would transfer."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        manifests = find_applications(Path(directory))
        expansions = [(manifest, expand_local(manifest)) for manifest in manifests]
    except CloudflowError as e:
        _fail(ctx, out, e)
        return

    if out.json_output:
        out.output_json(
            [
                {
                    "application": manifest.display_name,
                    "files": sorted(
                        path.cloudflow for path in expansion.files_to_upload
                    ),
                    "empty_directories": expansion.empty_directories,
                }
                for manifest, expansion in expansions
            ]
        )
        return

    for manifest, expansion in expansions:
        out.info(f"{manifest.display_name} ({manifest.folder})")
        for path in sorted(expansion.files_to_upload, key=lambda p: p.cloudflow):
            out.print(f"  {path.cloudflow}")
        for directory_path in expansion.empty_directories:
            out.print(f"  {directory_path} (empty)")


if __name__ == "__main__":
    main()
