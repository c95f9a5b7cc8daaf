"""Tests for application discovery and the upload/download orchestrator."""

from unittest.mock import patch

import pytest

from pycloudflow.apps.discovery import find_application_folders, find_applications
from pycloudflow.apps.manifest import load_manifest
from pycloudflow.apps.sync import (
    ApplicationSync,
    ConnectionParameters,
    SyncOptions,
    SyncState,
    connection_parameters,
    create_client,
)
from pycloudflow.apps.compatibility import Compatibility
from pycloudflow.config import Config
from pycloudflow.exceptions import (
    ApplicationLicenseError,
    CannotFindCFAppFileError,
    CloudflowAuthenticationError,
    CloudflowTooOldError,
    TransferBatchError,
)
from pycloudflow.output import OutputFormatter


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Configuration read from an empty file, without environment overrides."""
    for name in ("CLOUDFLOW_HOST", "CLOUDFLOW_LOGIN", "CLOUDFLOW_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("CLOUDFLOW_SESSION", raising=False)
    return Config(tmp_path / "missing-config")


@pytest.fixture
def output():
    return OutputFormatter(json_output=True)


@pytest.fixture
def sync(fake_cloudflow, output, settings):
    """Orchestrator connected to the fake remote."""
    connections = []

    def factory(parameters, options):
        connections.append(parameters)
        return fake_cloudflow

    sync = ApplicationSync(output, client_factory=factory, settings=settings)
    sync.connections = connections
    return sync


def _project(name, **fields):
    return {
        "name": name,
        "files": [f"/PP_FILE_STORE/{name}/a.txt", f"/PP_FILE_STORE/{name}/empty/"],
        **fields,
    }


def _files(name):
    return {f"PP_FILE_STORE/{name}/a.txt": name}


class TestDiscovery:
    def test_directory_is_an_app(self, make_app):
        folder = make_app(_project("one"), _files("one"))
        assert find_application_folders(folder) == [folder]

    def test_sorted_and_not_below_apps(self, make_app, tmp_path):
        """Test apps are found in sorted order, skipping nested and hidden ones."""
        make_app(_project("b"), name="b")
        make_app(_project("a"), name="a")
        make_app(_project("nested"), name="a/nested")
        make_app(_project("c"), name="group/c")
        make_app(_project("hidden"), name=".hidden")
        (tmp_path / "not-an-app").mkdir()

        folders = find_application_folders(tmp_path)

        assert folders == [tmp_path / "a", tmp_path / "b", tmp_path / "group" / "c"]
        assert [m.name for m in find_applications(tmp_path)] == ["a", "b", "c"]

    def test_no_apps(self, tmp_path):
        assert find_applications(tmp_path) == []


class TestConnectionParameters:
    def test_options_win(self, make_app, settings):
        manifest = load_manifest(
            make_app(_project("one", host="http://app:9090", login="app-user"))
        )
        options = SyncOptions(host="http://cli:9090", password="cli-pass")

        parameters = connection_parameters(manifest, options, settings)

        assert parameters == ConnectionParameters(
            host="http://cli:9090", login="app-user", password="cli-pass"
        )

    def test_config_fallback(self, make_app, settings, monkeypatch):
        monkeypatch.setenv("CLOUDFLOW_HOST", "http://env:9090")
        monkeypatch.setenv("CLOUDFLOW_SESSION", "env-session")
        manifest = load_manifest(make_app(_project("one")))

        parameters = connection_parameters(manifest, SyncOptions(), settings)

        assert parameters.host == "http://env:9090"
        assert parameters.login == "admin"
        assert parameters.session == "env-session"


class TestCreateClient:
    @pytest.fixture
    def client_class(self):
        with patch("pycloudflow.apps.sync.CloudflowClient") as mock_class:
            yield mock_class

    def test_opens_session(self, client_class):
        parameters = ConnectionParameters("http://cloudflow:9090", "admin", "secret")

        client = create_client(parameters, SyncOptions(verify_ssl=False))

        assert client is client_class.return_value
        client_class.assert_called_once_with(
            "http://cloudflow:9090", session=None, verify=False
        )
        client.create_session.assert_called_once_with("admin", "secret")

    def test_existing_session(self, client_class):
        parameters = ConnectionParameters(
            "http://cloudflow:9090", "admin", "secret", session="abc"
        )

        client = create_client(parameters, SyncOptions())

        client.create_session.assert_not_called()

    def test_login_failure_closes_client(self, client_class):
        client = client_class.return_value
        client.create_session.side_effect = CloudflowAuthenticationError(
            "Could not log in as admin"
        )
        parameters = ConnectionParameters("http://cloudflow:9090", "admin", "wrong")

        with pytest.raises(CloudflowAuthenticationError):
            create_client(parameters, SyncOptions())

        client.close.assert_called_once_with()


class TestUpload:
    """Tests for ApplicationSync.upload."""

    def test_upload_app(self, make_app, sync, fake_cloudflow, output):
        folder = make_app(_project("one", minCloudflowVersion="18.0.0"), _files("one"))

        report = sync.upload_app(load_manifest(folder), SyncOptions())

        assert report.state == SyncState.DONE
        assert report.compatibility == Compatibility.COMPATIBLE
        assert report.result.transferred == 1
        assert report.empty_directories == ["/PP_FILE_STORE/one/empty/"]
        assert fake_cloudflow.files["cloudflow://PP_FILE_STORE/one/a.txt"] == b"one"
        assert fake_cloudflow.closed
        assert output.lines[:3] == [
            "application: one",
            "Cloudflow: http://localhost:9090",
            "user: admin",
        ]
        assert 'installing app "one"' in output.lines

    def test_too_old_stops_before_any_transfer(self, make_app, sync, fake_cloudflow):
        folder = make_app(_project("one", minCloudflowVersion="99.0.0"), _files("one"))

        with pytest.raises(CloudflowTooOldError):
            sync.upload_app(load_manifest(folder), SyncOptions())

        assert fake_cloudflow.count("does_exist") == 0
        assert fake_cloudflow.count("upload_file") == 0
        assert fake_cloudflow.closed

    def test_forced_version(self, make_app, sync, fake_cloudflow):
        folder = make_app(_project("one", minCloudflowVersion="99.0.0"), _files("one"))

        report = sync.upload_app(
            load_manifest(folder), SyncOptions(force_cloudflow_version=True)
        )

        assert report.compatibility == Compatibility.FORCED
        assert report.state == SyncState.DONE

    def test_license_refused(self, make_app, sync, fake_cloudflow):
        folder = make_app(
            _project("one", mars={"license": "hello_code"}), _files("one")
        )

        with pytest.raises(ApplicationLicenseError):
            sync.upload_app(load_manifest(folder), SyncOptions())
        assert fake_cloudflow.count("upload_file") == 0

    def test_upload_directory(self, make_app, tmp_path, sync, fake_cloudflow):
        make_app(_project("b"), _files("b"), name="b")
        make_app(_project("a"), _files("a"), name="a")

        reports = sync.upload(tmp_path, SyncOptions())

        assert [report.manifest.name for report in reports] == ["a", "b"]
        assert all(report.state == SyncState.DONE for report in reports)
        assert len(sync.connections) == 2

    def test_first_failure_stops_the_run(
        self, make_app, tmp_path, sync, fake_cloudflow
    ):
        """Test applications after a failing one are not processed."""
        make_app(_project("a"), name="a")
        make_app(_project("b"), _files("b"), name="b")

        with pytest.raises(CannotFindCFAppFileError):
            sync.upload(tmp_path, SyncOptions())

        assert len(sync.connections) == 1
        assert fake_cloudflow.count("upload_file") == 0

    def test_partial_transfer_failure(self, make_app, sync, fake_cloudflow):
        folder = make_app(
            {"name": "one", "files": ["/PP_FILE_STORE/one/"]},
            {"PP_FILE_STORE/one/a.txt": "a", "PP_FILE_STORE/one/b.txt": "b"},
        )
        fake_cloudflow.failing_uploads["cloudflow://PP_FILE_STORE/one/b.txt"] = 500

        with pytest.raises(TransferBatchError) as exc_info:
            sync.upload_app(load_manifest(folder), SyncOptions())

        assert len(exc_info.value.errors) == 1
        assert "cloudflow://PP_FILE_STORE/one/a.txt" in fake_cloudflow.files


class TestDownload:
    """Tests for ApplicationSync.download."""

    def test_download_app(self, make_app, sync, fake_cloudflow, output):
        folder = make_app({"name": "one", "files": ["/PP_FILE_STORE/one/"]})
        fake_cloudflow.add_folder("cloudflow://PP_FILE_STORE/one")
        fake_cloudflow.add_file("cloudflow://PP_FILE_STORE/one/a.txt", b"a")
        fake_cloudflow.add_file("cloudflow://PP_FILE_STORE/one/sub/b.txt", b"b")

        report = sync.download_app(load_manifest(folder), SyncOptions())

        assert report.state == SyncState.DONE
        assert report.result.transferred == 2
        assert (folder / "PP_FILE_STORE" / "one" / "sub" / "b.txt").read_bytes() == (
            b"b"
        )
        assert (folder / "workflows").is_dir()
        assert 'downloading app "one"' in output.lines

    def test_empty_remote_folder_downloads_nothing(
        self, make_app, sync, fake_cloudflow
    ):
        folder = make_app({"name": "one", "files": ["/PP_FILE_STORE/one/"]})
        fake_cloudflow.add_folder("cloudflow://PP_FILE_STORE/one")

        report = sync.download_app(load_manifest(folder), SyncOptions())

        assert report.state == SyncState.DONE
        assert report.result.transferred == 0
        assert fake_cloudflow.count("download_file") == 0

    def test_download_directory(self, make_app, tmp_path, sync, fake_cloudflow):
        make_app({"name": "one", "files": ["/PP_FILE_STORE/a"]}, name="one")
        fake_cloudflow.add_file("cloudflow://PP_FILE_STORE/a", b"a")

        reports = sync.download(tmp_path, SyncOptions())

        assert len(reports) == 1
        assert (tmp_path / "one" / "PP_FILE_STORE" / "a").read_bytes() == b"a"
