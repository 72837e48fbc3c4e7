"""Unit tests for certificate verification utilities."""

import pytest
from datetime import datetime, timedelta, timezone
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import ExtendedKeyUsageOID

from crypto_utils import CertificateVerificationError, CertificateVerifier, X509Utils


@pytest.fixture(scope="module")
def authority():
    return X509Utils.create_authority(key_size=2048)


def _issue(authority, usage, serial=1, days=30):
    ca_key, ca_cert = authority
    key, csr = X509Utils.create_signing_request("leaf.example.com", key_size=2048)
    cert = X509Utils.sign_request(
        csr,
        ca_private_key=ca_key,
        ca_cert=ca_cert,
        serial_number=serial,
        validity_days=days,
        extended_key_usage=usage,
    )
    return key, cert


class TestLeafVerification:
    """Test verification of a leaf against its authority."""

    def test_valid_leaf(self, authority):
        _, cert = _issue(authority, [ExtendedKeyUsageOID.SERVER_AUTH])

        assert CertificateVerifier.verify_leaf_certificate(
            cert, authority[1], expected_usage=[ExtendedKeyUsageOID.SERVER_AUTH]
        ) is True

    def test_untrusted_authority(self, authority):
        _, cert = _issue(authority, [ExtendedKeyUsageOID.SERVER_AUTH])
        _, other_ca = X509Utils.create_authority(key_size=2048)

        with pytest.raises(CertificateVerificationError, match="Invalid signature"):
            CertificateVerifier.verify_leaf_certificate(cert, other_ca)

    def test_issuer_name_mismatch(self, authority):
        _, cert = _issue(authority, [ExtendedKeyUsageOID.SERVER_AUTH])
        _, other_ca = X509Utils.create_authority(common_name="Other CA", key_size=2048)

        with pytest.raises(CertificateVerificationError, match="Signature verification error"):
            CertificateVerifier.verify_leaf_certificate(cert, other_ca)

    def test_expired_leaf(self, authority):
        _, cert = _issue(authority, [ExtendedKeyUsageOID.CLIENT_AUTH], days=1)
        later = datetime.now(timezone.utc) + timedelta(days=2)

        with pytest.raises(CertificateVerificationError, match="expired"):
            CertificateVerifier.verify_leaf_certificate(cert, authority[1], at=later)

    def test_not_yet_valid_leaf(self, authority):
        _, cert = _issue(authority, [ExtendedKeyUsageOID.CLIENT_AUTH])
        earlier = datetime.now(timezone.utc) - timedelta(days=1)

        with pytest.raises(CertificateVerificationError, match="not yet valid"):
            CertificateVerifier.verify_leaf_certificate(cert, authority[1], at=earlier)

    def test_usage_must_match_exactly(self, authority):
        _, cert = _issue(
            authority,
            [ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH],
        )

        with pytest.raises(CertificateVerificationError, match="extended key usage"):
            CertificateVerifier.verify_leaf_certificate(
                cert, authority[1], expected_usage=[ExtendedKeyUsageOID.SERVER_AUTH]
            )

    def test_leaf_cannot_act_as_authority(self, authority):
        leaf_key, leaf_cert = _issue(authority, [ExtendedKeyUsageOID.SERVER_AUTH])
        key, csr = X509Utils.create_signing_request("grandchild.example.com", key_size=2048)
        grandchild = X509Utils.sign_request(
            csr,
            ca_private_key=leaf_key,
            ca_cert=leaf_cert,
            serial_number=2,
            validity_days=1,
            extended_key_usage=[ExtendedKeyUsageOID.SERVER_AUTH],
        )

        with pytest.raises(CertificateVerificationError):
            CertificateVerifier.verify_leaf_certificate(grandchild, leaf_cert)


class TestFingerprint:
    """Test certificate fingerprints."""

    def test_sha256_fingerprint(self, authority):
        cert = authority[1]
        fingerprint = CertificateVerifier.get_certificate_fingerprint(cert)

        assert len(fingerprint) == 64
        assert fingerprint == cert.fingerprint(hashes.SHA256()).hex()
