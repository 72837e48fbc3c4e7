"""Integration tests for the command-line interface."""

import pytest

from farm_pki.config import DEFAULT_CERT_ARN_PARAMETER
from farm_pki.main import main

from ..utils.test_helpers import InMemoryCertificateStore, InMemoryParameterStore, load_certificate


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for var in ("PKI_BASE_DIR", "LB_DNS", "CLIENT_DAYS", "SERVER_DAYS", "CLIENT_PFX_PASS",
                "AWS_REGION", "AWS_PROFILE", "CERT_ARN_PARAMETER"):
        monkeypatch.delenv(var, raising=False)


class FakeStores:
    def __init__(self):
        self.certificate_store = InMemoryCertificateStore()
        self.parameter_store = InMemoryParameterStore()
        self.calls = []

    def __call__(self, region, profile):
        self.calls.append((region, profile))
        return self.certificate_store, self.parameter_store


class TestCommandDispatch:
    """Test argument handling."""

    def test_missing_command_prints_usage(self, capsys):
        assert main([]) != 0
        assert "usage:" in capsys.readouterr().err

    def test_unknown_command_exits_non_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["bogus"])

        assert exc_info.value.code != 0
        assert "usage:" in capsys.readouterr().err

    def test_invalid_configuration(self, temp_dir, capsys):
        assert main(["--base-dir", str(temp_dir), "client", "--days", "0"]) == 1
        assert "Invalid configuration" in capsys.readouterr().err


class TestCommands:
    """Test each subcommand against a temp directory."""

    def test_ca_twice(self, temp_dir, capsys):
        assert main(["--base-dir", str(temp_dir), "ca"]) == 0
        assert "CA created: CN=CA" in capsys.readouterr().out

        assert main(["--base-dir", str(temp_dir), "ca"]) == 1
        assert "ALREADY_EXISTS" in capsys.readouterr().err

    def test_server_without_ca(self, temp_dir, capsys):
        assert main(["--base-dir", str(temp_dir), "server"]) == 1
        assert "CA_NOT_FOUND" in capsys.readouterr().err
        assert list(temp_dir.iterdir()) == []

    def test_import_without_server_certificate(self, temp_dir, capsys):
        stores = FakeStores()
        assert main(["--base-dir", str(temp_dir), "import_cert"], stores_factory=stores) == 1
        assert "MISSING_FILE" in capsys.readouterr().err
        assert stores.certificate_store.imports == []

    def test_full_run(self, temp_dir, monkeypatch, capsys):
        monkeypatch.setenv("CLIENT_DAYS", "730")
        monkeypatch.setenv("LB_DNS", "farm.example.com")
        stores = FakeStores()
        base = ["--base-dir", str(temp_dir), "--profile", "test-profile"]

        assert main(base + ["ca"]) == 0
        assert main(base + ["server"]) == 0
        assert main(base + ["client"]) == 0
        assert main(base + ["verify", "server"]) == 0
        assert main(base + ["verify", "client"]) == 0
        assert main(base + ["import_cert"], stores_factory=stores) == 0

        out = capsys.readouterr().out
        assert "Server certificate created: CN=farm.example.com" in out
        assert f"ARN: {stores.certificate_store.arn}" in out

        client_cert = load_certificate(temp_dir / "client" / "Deadline10RemoteClient.crt")
        assert (client_cert.not_valid_after_utc - client_cert.not_valid_before_utc).days == 730

        assert stores.calls == [("eu-west-2", "test-profile")]
        assert stores.parameter_store.values == {DEFAULT_CERT_ARN_PARAMETER: stores.certificate_store.arn}

        assert main(base + ["status"]) == 0
        status = capsys.readouterr().out
        assert "Phase: PUBLISHED" in status
        assert f"[x] {temp_dir / 'server' / 'server.pfx'}" in status

    def test_unreadable_state_record(self, temp_dir, capsys):
        (temp_dir / "state.json").mkdir()

        assert main(["--base-dir", str(temp_dir), "ca"]) == 1
        assert "EXTERNAL_COMMAND_FAILED" in capsys.readouterr().err
        assert not (temp_dir / "certs").exists()

        assert main(["--base-dir", str(temp_dir), "status"]) == 1
        assert "EXTERNAL_COMMAND_FAILED" in capsys.readouterr().err

    def test_status_of_empty_directory(self, temp_dir, capsys):
        assert main(["--base-dir", str(temp_dir), "status"]) == 0
        out = capsys.readouterr().out
        assert "Phase: EMPTY" in out
        assert f"[ ] {temp_dir / 'certs' / 'ca.key'}" in out
