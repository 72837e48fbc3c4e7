"""Data models for the certificate issuance workflow."""

import configparser
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, ObjectIdentifier
from pydantic import BaseModel, Field

from .config import WorkflowConfig

USAGE_POLICY = """\
[serverAuth]
extendedKeyUsage = serverAuth

[clientAuth]
extendedKeyUsage = clientAuth
"""

EXTENDED_KEY_USAGES: Dict[str, ObjectIdentifier] = {
    "serverAuth": ExtendedKeyUsageOID.SERVER_AUTH,
    "clientAuth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "codeSigning": ExtendedKeyUsageOID.CODE_SIGNING,
    "emailProtection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "timeStamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "OCSPSigning": ExtendedKeyUsageOID.OCSP_SIGNING,
}


class UsagePolicy:
    """Named extension profiles read from a usage-policy file."""

    def __init__(self, profiles: Dict[str, List[ObjectIdentifier]]):
        self.profiles = profiles

    @classmethod
    def parse(cls, text: str) -> "UsagePolicy":
        """
        Parse usage-policy text.

        Raises:
            ValueError: If the text is malformed or names an unknown usage
        """
        parser = configparser.ConfigParser()
        parser.optionxform = str
        try:
            parser.read_string(text)
        except configparser.Error as e:
            raise ValueError(f"Malformed usage policy: {e}")

        profiles = {}
        for section in parser.sections():
            raw = parser.get(section, "extendedKeyUsage", fallback="")
            usages = []
            for name in (n.strip() for n in raw.split(",")):
                if not name:
                    continue
                if name not in EXTENDED_KEY_USAGES:
                    raise ValueError(f"Unknown extended key usage '{name}' in profile [{section}]")
                usages.append(EXTENDED_KEY_USAGES[name])
            profiles[section] = usages

        return cls(profiles)

    @classmethod
    def load(cls, path: Path) -> "UsagePolicy":
        return cls.parse(path.read_text())

    def extended_key_usage(self, profile: str) -> List[ObjectIdentifier]:
        """Return the usage OIDs of a profile, raising ValueError if it is absent or empty."""
        usages = self.profiles.get(profile)
        if not usages:
            raise ValueError(f"Usage profile [{profile}] not defined")
        return usages


class LeafRole(str, Enum):
    """Leaf certificate roles and the usage profile each is signed with."""

    SERVER = "server"
    CLIENT = "client"

    @property
    def profile(self) -> str:
        return "serverAuth" if self is LeafRole.SERVER else "clientAuth"


class LeafPaths(BaseModel):
    """Output files of one leaf certificate."""

    key: Path
    request: Path
    certificate: Path
    bundle: Path

    @classmethod
    def for_role(cls, role: LeafRole, config: WorkflowConfig) -> "LeafPaths":
        if role is LeafRole.SERVER:
            directory, stem = config.server_dir, "server"
        else:
            directory, stem = config.client_dir, config.client_name

        return cls(
            key=directory / f"{stem}.key",
            request=directory / f"{stem}.req.pem",
            certificate=directory / f"{stem}.crt",
            bundle=directory / f"{stem}.pfx",
        )

    def all(self) -> List[Path]:
        return [self.key, self.request, self.certificate, self.bundle]


class CertificateSummary(BaseModel):
    """Identifying details of a certificate on disk."""

    subject: str = Field(..., description="RFC 4514 subject")
    issuer: str = Field(..., description="RFC 4514 issuer")
    serial_number: str = Field(..., description="Serial number (hex)")
    not_valid_before: datetime = Field(..., description="Certificate start date")
    not_valid_after: datetime = Field(..., description="Certificate expiration date")
    fingerprint_sha256: str = Field(..., description="SHA-256 fingerprint")

    @classmethod
    def from_certificate(cls, cert: x509.Certificate, fingerprint: str) -> "CertificateSummary":
        return cls(
            subject=cert.subject.rfc4514_string(),
            issuer=cert.issuer.rfc4514_string(),
            serial_number=f"{cert.serial_number:X}",
            not_valid_before=cert.not_valid_before_utc,
            not_valid_after=cert.not_valid_after_utc,
            fingerprint_sha256=fingerprint,
        )


class AuthorityInfo(BaseModel):
    """Result of creating the authority."""

    certificate: CertificateSummary
    files: List[Path]


class IssuedCertificate(BaseModel):
    """Result of issuing a leaf certificate."""

    role: LeafRole
    certificate: CertificateSummary
    files: List[Path]
    bundle_password_protected: bool = False


class PublishedCertificateRecord(BaseModel):
    """Result of publishing the server certificate."""

    certificate_arn: str = Field(..., min_length=1, description="Identifier returned by the certificate store")
    parameter_name: str = Field(..., description="Configuration store path the identifier was written to")
    published_at: datetime
    region: Optional[str] = None
