"""X.509 certificate generation and management utilities."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from pathlib import Path
import logging
import os

from cryptography import x509
from cryptography.x509.oid import NameOID, ObjectIdentifier
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa

logger = logging.getLogger(__name__)


def _now() -> datetime:
    # Certificate times carry second precision only.
    return datetime.now(timezone.utc).replace(microsecond=0)


class X509Utils:
    """Utility class for X.509 certificate operations."""

    @staticmethod
    def generate_private_key(key_size: int = 4096) -> rsa.RSAPrivateKey:
        """
        Generate an RSA private key.

        Args:
            key_size: Size of the RSA key in bits (default: 4096)

        Returns:
            RSA private key object
        """
        logger.info(f"Generating {key_size}-bit RSA private key")
        return rsa.generate_private_key(public_exponent=65537, key_size=key_size)

    @staticmethod
    def create_authority(
        common_name: str = "CA",
        key_size: int = 2048,
        validity_days: int = 3650
    ) -> Tuple[rsa.RSAPrivateKey, x509.Certificate]:
        """
        Create a self-signed authority certificate.

        Args:
            common_name: Common name for the authority
            key_size: RSA key size for the authority key
            validity_days: Certificate validity period in days

        Returns:
            Tuple of (private_key, certificate)
        """
        logger.info(f"Creating self-signed authority: CN={common_name}")

        private_key = X509Utils.generate_private_key(key_size=key_size)

        subject = issuer = x509.Name([
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ])

        not_before = _now()
        cert = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(private_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_before + timedelta(days=validity_days))
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=0),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    key_cert_sign=True,
                    crl_sign=True,
                    key_encipherment=False,
                    content_commitment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
                critical=False,
            )
            .sign(private_key, hashes.SHA256())
        )

        logger.info(f"Authority created: CN={common_name} (valid for {validity_days} days)")
        return private_key, cert

    @staticmethod
    def create_signing_request(
        common_name: str,
        key_size: int = 4096
    ) -> Tuple[rsa.RSAPrivateKey, x509.CertificateSigningRequest]:
        """
        Generate a fresh key and a certificate signing request for it.

        Args:
            common_name: Subject common name
            key_size: RSA key size in bits

        Returns:
            Tuple of (private_key, csr)
        """
        logger.info(f"Generating key and CSR for: CN={common_name}")

        private_key = X509Utils.generate_private_key(key_size=key_size)
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(x509.Name([
                x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            ]))
            .sign(private_key, hashes.SHA256())
        )
        return private_key, csr

    @staticmethod
    def sign_request(
        csr: x509.CertificateSigningRequest,
        ca_private_key: rsa.RSAPrivateKey,
        ca_cert: x509.Certificate,
        serial_number: int,
        validity_days: int,
        extended_key_usage: List[ObjectIdentifier]
    ) -> x509.Certificate:
        """
        Issue a leaf certificate for a signing request.

        Args:
            csr: Signing request carrying the subject and public key
            ca_private_key: Authority private key
            ca_cert: Authority certificate
            serial_number: Serial number for the new certificate
            validity_days: Validity period in days
            extended_key_usage: Extended key usage OIDs from the usage profile

        Returns:
            Signed certificate

        Raises:
            ValueError: If the CSR signature does not verify
        """
        if not csr.is_signature_valid:
            raise ValueError(f"CSR signature invalid for {csr.subject.rfc4514_string()}")

        not_before = _now()
        cert = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(ca_cert.subject)
            .public_key(csr.public_key())
            .serial_number(serial_number)
            .not_valid_before(not_before)
            .not_valid_after(not_before + timedelta(days=validity_days))
            .add_extension(
                x509.BasicConstraints(ca=False, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    key_encipherment=True,
                    key_cert_sign=False,
                    crl_sign=False,
                    content_commitment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.ExtendedKeyUsage(extended_key_usage),
                critical=False,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(csr.public_key()),
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_private_key.public_key()),
                critical=False,
            )
            .sign(ca_private_key, hashes.SHA256())
        )

        logger.info(
            f"Signed {csr.subject.rfc4514_string()} "
            f"(serial: {serial_number:X}, valid for {validity_days} days)"
        )
        return cert

    @staticmethod
    def private_key_pem(private_key: rsa.RSAPrivateKey) -> bytes:
        """Serialize a private key as unencrypted PKCS#8 PEM."""
        return private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )

    @staticmethod
    def certificate_pem(cert: x509.Certificate) -> bytes:
        """Serialize a certificate as PEM."""
        return cert.public_bytes(serialization.Encoding.PEM)

    @staticmethod
    def signing_request_pem(csr: x509.CertificateSigningRequest) -> bytes:
        """Serialize a certificate signing request as PEM."""
        return csr.public_bytes(serialization.Encoding.PEM)

    @staticmethod
    def write_private_file(path: Path, data: bytes):
        """
        Write key material readable by the owner only.

        Args:
            path: File path to write
            data: Bytes to write
        """
        logger.debug(f"Writing private file: {path}")

        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        path.chmod(0o600)  # Restrict permissions

    @staticmethod
    def load_private_key(path: Path, password: Optional[bytes] = None) -> rsa.RSAPrivateKey:
        """
        Load private key from file.

        Args:
            path: File path to load from
            password: Optional password for decryption

        Returns:
            RSA private key object
        """
        logger.debug(f"Loading private key from: {path}")
        return serialization.load_pem_private_key(path.read_bytes(), password=password)

    @staticmethod
    def load_certificate(path: Path) -> x509.Certificate:
        """
        Load certificate from file.

        Args:
            path: File path to load from

        Returns:
            Certificate object
        """
        logger.debug(f"Loading certificate from: {path}")
        return x509.load_pem_x509_certificate(path.read_bytes())

    @staticmethod
    def load_signing_request(path: Path) -> x509.CertificateSigningRequest:
        """Load a PEM certificate signing request."""
        return x509.load_pem_x509_csr(path.read_bytes())
