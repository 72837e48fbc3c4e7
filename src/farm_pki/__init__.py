"""Certificate issuance workflow for the render farm management server."""

from .ca_manager import CAManager
from .cert_issuer import CertificateIssuer
from .config import WorkflowConfig
from .publisher import CertificatePublisher

__all__ = ['CAManager', 'CertificateIssuer', 'CertificatePublisher', 'WorkflowConfig']
