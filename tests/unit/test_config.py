"""Unit tests for workflow configuration."""

import pytest
from pathlib import Path
from pydantic import ValidationError

from farm_pki.config import DEFAULT_CERT_ARN_PARAMETER, WorkflowConfig


class TestFromEnv:
    """Test configuration loading from environment variables."""

    def test_defaults(self):
        config = WorkflowConfig.from_env({})

        assert config.base_dir == Path.cwd() / "deadline10"
        assert config.lb_dns == "deadline-eu-west-2.konsistent.dev"
        assert config.client_name == "Deadline10RemoteClient"
        assert config.client_days == 365
        assert config.server_days == 3650
        assert config.client_pfx_password is None
        assert config.region == "eu-west-2"
        assert config.profile == "kc-dev-studio"
        assert config.cert_arn_parameter == DEFAULT_CERT_ARN_PARAMETER

    def test_reads_environment(self, temp_dir):
        config = WorkflowConfig.from_env({
            "PKI_BASE_DIR": str(temp_dir),
            "CLIENT_DAYS": "730",
            "CLIENT_PFX_PASS": "hunter2",
            "LB_DNS": "lb.example.com",
            "AWS_REGION": "us-east-1",
        })

        assert config.base_dir == temp_dir
        assert config.client_days == 730
        assert config.client_password_bytes() == b"hunter2"
        assert config.lb_dns == "lb.example.com"
        assert config.region == "us-east-1"

    def test_empty_password_means_unset(self):
        config = WorkflowConfig.from_env({"CLIENT_PFX_PASS": ""})

        assert config.client_pfx_password is None
        assert config.client_password_bytes() is None

    def test_password_is_not_printed(self):
        config = WorkflowConfig.from_env({"CLIENT_PFX_PASS": "hunter2"})
        assert "hunter2" not in repr(config)

    def test_overrides_win_over_environment(self, temp_dir):
        config = WorkflowConfig.from_env(
            {"CLIENT_DAYS": "730", "AWS_PROFILE": "from-env"},
            client_days=90,
            profile="from-flag",
            region=None,
        )

        assert config.client_days == 90
        assert config.profile == "from-flag"
        assert config.region == "eu-west-2"

    @pytest.mark.parametrize("days", ["0", "-5", "soon"])
    def test_invalid_client_days(self, days):
        with pytest.raises(ValidationError):
            WorkflowConfig.from_env({"CLIENT_DAYS": days})

    def test_parameter_path_must_be_absolute(self):
        with pytest.raises(ValidationError):
            WorkflowConfig.from_env({"CERT_ARN_PARAMETER": "relative/path"})


class TestLayout:
    """Test derived paths."""

    def test_directory_layout(self, temp_dir):
        config = WorkflowConfig(base_dir=temp_dir)

        assert config.ca_dir == temp_dir / "certs"
        assert config.server_dir == temp_dir / "server"
        assert config.client_dir == temp_dir / "client"
        assert config.state_path == temp_dir / "state.json"
        assert config.lock_path == temp_dir / ".pki.lock"
