"""Unit tests for the pycloudflow CLI commands."""

import json
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from pycloudflow.apps.manifest import load_manifest
from pycloudflow.cli import main
from pycloudflow.exceptions import CloudflowTooOldError


@pytest.fixture
def runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def mock_sync():
    """Replace the orchestrator used by upload and download."""
    with patch("pycloudflow.cli.ApplicationSync") as mock_class:
        yield mock_class.return_value


def _report(name="hello", transferred=2, skipped=1, workflows=0):
    report = Mock()
    report.manifest.display_name = name
    report.result.transferred = transferred
    report.result.skipped = skipped
    report.workflows = workflows
    return report


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "app" in result.output
        assert "--json" in result.output

    def test_app_help(self, runner):
        result = runner.invoke(main, ["app", "--help"])
        assert result.exit_code == 0
        for command in ("upload", "download", "validate", "files"):
            assert command in result.output


class TestUploadCommand:
    """Tests for the app upload command."""

    def test_upload(self, runner, mock_sync, tmp_path):
        mock_sync.upload.return_value = [_report()]

        result = runner.invoke(
            main,
            [
                "app",
                "upload",
                str(tmp_path),
                "--overwrite",
                "--workers",
                "5",
                "--host",
                "http://cloudflow:9090",
                "--force-ssl-certificate",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "hello: 2 file(s) uploaded, 1 skipped, 0 workflow(s)" in result.output
        directory, options = mock_sync.upload.call_args[0]
        assert str(directory) == str(tmp_path)
        assert options.overwrite is True
        assert options.max_workers == 5
        assert options.host == "http://cloudflow:9090"
        assert options.verify_ssl is False
        assert options.force_cloudflow_version is False

    def test_upload_error(self, runner, mock_sync, tmp_path):
        mock_sync.upload.side_effect = CloudflowTooOldError("app", "3.1.9", "3.2.0")

        result = runner.invoke(main, ["app", "upload", str(tmp_path)])

        assert result.exit_code == 1
        assert "requires Cloudflow 3.2.0" in result.output

    def test_upload_error_json(self, runner, mock_sync, tmp_path):
        """Test the error code is part of the JSON document."""
        mock_sync.upload.side_effect = CloudflowTooOldError("app", "3.1.9", "3.2.0")

        result = runner.invoke(main, ["--json", "app", "upload", str(tmp_path)])

        assert result.exit_code == 1
        document = json.loads(result.output)
        assert document["error"]["code"] == "CFVERERR004"
        assert document["lines"] == []

    def test_no_applications(self, runner, tmp_path):
        result = runner.invoke(main, ["app", "upload", str(tmp_path)])

        assert result.exit_code == 0
        assert "No project.cfapp found" in result.output

    def test_invalid_workers(self, runner, tmp_path):
        result = runner.invoke(main, ["app", "upload", str(tmp_path), "-j", "0"])
        assert result.exit_code == 2

    def test_missing_directory(self, runner, tmp_path):
        result = runner.invoke(main, ["app", "upload", str(tmp_path / "missing")])
        assert result.exit_code == 2


class TestDownloadCommand:
    def test_download(self, runner, mock_sync, tmp_path):
        mock_sync.download.return_value = [_report(transferred=3, skipped=0)]

        result = runner.invoke(
            main, ["app", "download", str(tmp_path), "--force-cloudflow-version"]
        )

        assert result.exit_code == 0, result.output
        assert "hello: 3 file(s) downloaded, 0 skipped" in result.output
        _, options = mock_sync.download.call_args[0]
        assert options.force_cloudflow_version is True
        assert options.overwrite is False


class TestValidateCommand:
    """Tests for the app validate command."""

    @pytest.fixture
    def app_folder(self, make_app, fake_cloudflow):
        fake_cloudflow.add_file("cloudflow://PP_FILE_STORE/hello/a.txt")
        return make_app(
            {
                "name": "hello",
                "documentation": "/PP_FILE_STORE/hello/docs",
                "files": ["/PP_FILE_STORE/hello/a.txt"],
            }
        )

    @pytest.fixture(autouse=True)
    def connect(self, fake_cloudflow):
        with patch("pycloudflow.cli.create_client", return_value=fake_cloudflow):
            yield

    def test_needs_corrections(self, runner, app_folder):
        result = runner.invoke(main, ["app", "validate", str(app_folder)])

        assert result.exit_code == 1
        assert "needs corrections" in result.output
        assert load_manifest(app_folder).documentation == "/PP_FILE_STORE/hello/docs"

    def test_fix(self, runner, app_folder):
        result = runner.invoke(main, ["app", "validate", str(app_folder), "--fix"])

        assert result.exit_code == 0, result.output
        assert load_manifest(app_folder).documentation == "/PP_FILE_STORE/hello/docs/"

    def test_valid(self, runner, make_app, fake_cloudflow):
        fake_cloudflow.add_file("cloudflow://PP_FILE_STORE/ok/a.txt")
        folder = make_app(
            {"name": "ok", "files": ["/PP_FILE_STORE/ok/a.txt"]}, name="ok"
        )

        result = runner.invoke(main, ["app", "validate", str(folder)])

        assert result.exit_code == 0, result.output
        assert "ok: project.cfapp is valid" in result.output
        assert fake_cloudflow.closed

    def test_missing_remote_file(self, runner, make_app):
        folder = make_app(
            {"name": "gone", "files": ["/PP_FILE_STORE/gone/a.txt"]}, name="gone"
        )

        result = runner.invoke(main, ["app", "validate", str(folder)])

        assert result.exit_code == 1
        assert "does not exist" in result.output


class TestFilesCommand:
    """Tests for the app files command."""

    @pytest.fixture
    def app_folder(self, make_app):
        return make_app(
            {"name": "hello", "files": ["/PP_FILE_STORE/hello/", "/empty/"]},
            {"PP_FILE_STORE/hello/b.txt": "b", "PP_FILE_STORE/hello/a.txt": "a"},
        )

    def test_files(self, runner, app_folder):
        result = runner.invoke(main, ["app", "files", str(app_folder)])

        assert result.exit_code == 0, result.output
        assert "/PP_FILE_STORE/hello/a.txt" in result.output
        assert "/empty/ (empty)" in result.output

    def test_files_json(self, runner, app_folder):
        result = runner.invoke(main, ["--json", "app", "files", str(app_folder)])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == [
            {
                "application": "hello",
                "files": ["/PP_FILE_STORE/hello/a.txt", "/PP_FILE_STORE/hello/b.txt"],
                "empty_directories": ["/empty/"],
            }
        ]

    def test_missing_file(self, runner, make_app):
        folder = make_app({"name": "hello", "files": ["/missing"]})

        result = runner.invoke(main, ["app", "files", str(folder)])

        assert result.exit_code == 1
        assert "cannot find file /missing" in result.output
