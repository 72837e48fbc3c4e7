"""Workflow configuration."""

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

DEFAULT_CERT_ARN_PARAMETER = "/managed-studio/studio-ldn-deadline/deadline10/server-cert-arn"

# Environment variable -> config field
ENV_VARS = {
    "PKI_BASE_DIR": "base_dir",
    "LB_DNS": "lb_dns",
    "CLIENT_DAYS": "client_days",
    "SERVER_DAYS": "server_days",
    "CLIENT_PFX_PASS": "client_pfx_password",
    "AWS_REGION": "region",
    "AWS_PROFILE": "profile",
    "CERT_ARN_PARAMETER": "cert_arn_parameter",
}


class WorkflowConfig(BaseModel):
    """Process-wide settings for the certificate issuance workflow."""

    base_dir: Path = Field(default_factory=lambda: Path.cwd() / "deadline10", description="PKI working directory")
    lb_dns: str = Field(default="deadline-eu-west-2.konsistent.dev", min_length=1, description="Load balancer DNS name (server CN)")
    client_name: str = Field(default="Deadline10RemoteClient", min_length=1, description="Fixed client identity")
    client_days: int = Field(default=365, ge=1, description="Client certificate validity in days")
    server_days: int = Field(default=3650, ge=1, description="Server certificate validity in days")
    ca_days: int = Field(default=3650, ge=1, description="Authority validity in days")
    client_pfx_password: Optional[SecretStr] = Field(default=None, description="Client bundle export password")
    ca_key_size: int = Field(default=2048, ge=2048, description="Authority RSA key size")
    leaf_key_size: int = Field(default=4096, ge=2048, description="Leaf RSA key size")
    region: str = Field(default="eu-west-2", description="AWS region for ACM and SSM")
    profile: Optional[str] = Field(default="kc-dev-studio", description="AWS named profile")
    cert_arn_parameter: str = Field(default=DEFAULT_CERT_ARN_PARAMETER, description="SSM parameter holding the server certificate ARN")

    @field_validator("client_pfx_password", "profile", mode="before")
    @classmethod
    def _empty_is_unset(cls, value):
        if value == "":
            return None
        return value

    @field_validator("cert_arn_parameter")
    @classmethod
    def _parameter_is_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("parameter path must start with '/'")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "WorkflowConfig":
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Explicit values (e.g. from CLI flags); None values are ignored

        Returns:
            Validated configuration
        """
        environ = os.environ if environ is None else environ

        values = {
            field: environ[var]
            for var, field in ENV_VARS.items()
            if var in environ
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**values)

    @property
    def ca_dir(self) -> Path:
        return self.base_dir / "certs"

    @property
    def server_dir(self) -> Path:
        return self.base_dir / "server"

    @property
    def client_dir(self) -> Path:
        return self.base_dir / "client"

    @property
    def state_path(self) -> Path:
        return self.base_dir / "state.json"

    @property
    def lock_path(self) -> Path:
        return self.base_dir / ".pki.lock"

    def client_password_bytes(self) -> Optional[bytes]:
        if self.client_pfx_password is None:
            return None
        return self.client_pfx_password.get_secret_value().encode()
