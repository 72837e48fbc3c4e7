"""Certificate verification utilities."""

from datetime import datetime, timezone
from typing import List, Optional
import logging

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import ExtensionOID, ObjectIdentifier

logger = logging.getLogger(__name__)


class CertificateVerificationError(Exception):
    """Exception raised when certificate verification fails."""
    pass


class CertificateVerifier:
    """Utility class for verifying leaf certificates against an authority."""

    @staticmethod
    def verify_leaf_certificate(
        cert: x509.Certificate,
        ca_cert: x509.Certificate,
        expected_usage: Optional[List[ObjectIdentifier]] = None,
        at: Optional[datetime] = None
    ) -> bool:
        """
        Verify a leaf certificate issued directly by an authority.

        Args:
            cert: Leaf certificate to verify
            ca_cert: Authority certificate
            expected_usage: Exact extended key usage the leaf must carry
            at: Point in time to check validity against (default: now)

        Returns:
            True if verification succeeds

        Raises:
            CertificateVerificationError: If verification fails
        """
        logger.info(f"Verifying {cert.subject.rfc4514_string()} against {ca_cert.subject.rfc4514_string()}")

        CertificateVerifier._verify_signature(cert, ca_cert)
        CertificateVerifier._verify_signature(ca_cert, ca_cert)

        CertificateVerifier._verify_validity(cert, at)
        CertificateVerifier._verify_validity(ca_cert, at)

        CertificateVerifier._verify_ca_constraints(ca_cert)

        if expected_usage is not None:
            CertificateVerifier._verify_extended_key_usage(cert, expected_usage)

        logger.info("Certificate verification successful")
        return True

    @staticmethod
    def _verify_signature(cert: x509.Certificate, issuer_cert: x509.Certificate):
        """
        Verify that cert is signed by issuer_cert.

        Raises:
            CertificateVerificationError: If signature verification fails
        """
        try:
            cert.verify_directly_issued_by(issuer_cert)
        except InvalidSignature:
            raise CertificateVerificationError(
                f"Invalid signature: {cert.subject.rfc4514_string()} "
                f"not signed by {issuer_cert.subject.rfc4514_string()}"
            )
        except (ValueError, TypeError) as e:
            raise CertificateVerificationError(f"Signature verification error: {e}")

    @staticmethod
    def _verify_validity(cert: x509.Certificate, at: Optional[datetime] = None):
        """
        Verify certificate is within its validity period.

        Raises:
            CertificateVerificationError: If certificate is expired or not yet valid
        """
        now = at or datetime.now(timezone.utc)

        if now < cert.not_valid_before_utc:
            raise CertificateVerificationError(
                f"Certificate not yet valid: {cert.subject.rfc4514_string()} "
                f"(valid from {cert.not_valid_before_utc})"
            )

        if now > cert.not_valid_after_utc:
            raise CertificateVerificationError(
                f"Certificate expired: {cert.subject.rfc4514_string()} "
                f"(expired on {cert.not_valid_after_utc})"
            )

    @staticmethod
    def _verify_ca_constraints(cert: x509.Certificate):
        """
        Verify CA basic constraints.

        Raises:
            CertificateVerificationError: If CA constraints are invalid
        """
        try:
            basic_constraints = cert.extensions.get_extension_for_oid(
                ExtensionOID.BASIC_CONSTRAINTS
            ).value
        except x509.ExtensionNotFound:
            raise CertificateVerificationError(
                "Basic constraints extension not found in CA certificate"
            )

        if not basic_constraints.ca:
            raise CertificateVerificationError(
                f"Certificate is not a CA: {cert.subject.rfc4514_string()}"
            )

    @staticmethod
    def _verify_extended_key_usage(cert: x509.Certificate, expected: List[ObjectIdentifier]):
        """
        Verify the certificate carries exactly the expected extended key usage.

        Raises:
            CertificateVerificationError: If the usage is missing or differs
        """
        actual = CertificateVerifier.get_extended_key_usage(cert)
        if actual is None:
            raise CertificateVerificationError(
                f"Extended key usage not found: {cert.subject.rfc4514_string()}"
            )

        if set(actual) != set(expected):
            raise CertificateVerificationError(
                f"Unexpected extended key usage for {cert.subject.rfc4514_string()}: "
                f"{[oid.dotted_string for oid in actual]}, expected {[oid.dotted_string for oid in expected]}"
            )

    @staticmethod
    def get_extended_key_usage(cert: x509.Certificate) -> Optional[List[ObjectIdentifier]]:
        """Return the extended key usage OIDs of a certificate, or None if absent."""
        try:
            ext = cert.extensions.get_extension_for_oid(ExtensionOID.EXTENDED_KEY_USAGE)
        except x509.ExtensionNotFound:
            return None
        return list(ext.value)

    @staticmethod
    def get_certificate_fingerprint(cert: x509.Certificate) -> str:
        """Get the hex-encoded SHA-256 fingerprint of a certificate."""
        return cert.fingerprint(hashes.SHA256()).hex()
