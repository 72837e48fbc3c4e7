"""Command-line entry point for the certificate issuance workflow."""

import argparse
import logging
import sys
from typing import Callable, List, Optional

from pydantic import ValidationError

from crypto_utils import CertificateVerificationError

from .ca_manager import CAManager
from .cert_issuer import CertificateIssuer
from .config import WorkflowConfig
from .errors import WorkflowError
from .models import LeafPaths, LeafRole
from .publisher import CertificatePublisher, build_aws_stores
from .state import StateStore

logger = logging.getLogger(__name__)

USAGE_EXIT_CODE = 2


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="farm-pki",
        description="Self-signed PKI for the render farm management server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  farm-pki ca                      # Create the authority
  farm-pki server                  # Issue the load balancer certificate
  CLIENT_DAYS=730 farm-pki client  # Issue the client certificate for two years
  farm-pki import_cert             # Import server cert into ACM, record ARN in SSM
        """
    )
    parser.add_argument('--base-dir', help='PKI working directory (env: PKI_BASE_DIR)')
    parser.add_argument('--region', help='AWS region (env: AWS_REGION)')
    parser.add_argument('--profile', help='AWS named profile (env: AWS_PROFILE)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', metavar='{ca,server,client,import_cert,verify,status}')

    subparsers.add_parser('ca', help='Create the self-signed authority')
    subparsers.add_parser('server', help='Issue the server certificate')

    client_parser = subparsers.add_parser('client', help='Issue the client certificate')
    client_parser.add_argument('--days', type=int, help='Validity in days (env: CLIENT_DAYS, default 365)')

    subparsers.add_parser('import_cert', help='Publish the server certificate to ACM and SSM')

    verify_parser = subparsers.add_parser('verify', help='Verify an issued certificate against the authority')
    verify_parser.add_argument('role', choices=[r.value for r in LeafRole])

    subparsers.add_parser('status', help='Show workflow state and artifacts')

    return parser


def cmd_ca(config: WorkflowConfig, stores_factory) -> int:
    info = CAManager(config).create_authority()
    print(f"CA created: {info.certificate.subject} (expires {info.certificate.not_valid_after:%Y-%m-%d})")
    for path in info.files:
        print(f"   {path} ({path.stat().st_size} bytes)")
    return 0


def _print_issued(issued):
    print(
        f"{issued.role.value.capitalize()} certificate created: {issued.certificate.subject} "
        f"(serial {issued.certificate.serial_number}, expires {issued.certificate.not_valid_after:%Y-%m-%d})"
    )
    for path in issued.files:
        print(f"   {path} ({path.stat().st_size} bytes)")


def cmd_server(config: WorkflowConfig, stores_factory) -> int:
    _print_issued(CertificateIssuer(CAManager(config)).create_server_certificate())
    return 0


def cmd_client(config: WorkflowConfig, stores_factory) -> int:
    _print_issued(CertificateIssuer(CAManager(config)).create_client_certificate())
    return 0


def cmd_import_cert(config: WorkflowConfig, stores_factory) -> int:
    certificate_store, parameter_store = stores_factory(config.region, config.profile)
    publisher = CertificatePublisher(CAManager(config), certificate_store, parameter_store)
    record = publisher.publish_server_certificate()
    print(f"ARN: {record.certificate_arn}")
    print(f"Stored in SSM: {record.parameter_name}")
    return 0


def cmd_verify(config: WorkflowConfig, stores_factory, role: str) -> int:
    summary = CertificateIssuer(CAManager(config)).verify(LeafRole(role))
    print(f"OK: {summary.subject} issued by {summary.issuer} (expires {summary.not_valid_after:%Y-%m-%d})")
    return 0


def cmd_status(config: WorkflowConfig, stores_factory) -> int:
    state = StateStore(config.state_path).load()
    print(f"Base directory: {config.base_dir}")
    print(f"Phase: {state.phase.value}")
    if state.certificate_arn:
        print(f"Certificate ARN: {state.certificate_arn}")

    paths = CAManager(config).artifact_paths()
    for role in LeafRole:
        paths.extend(LeafPaths.for_role(role, config).all())

    for path in paths:
        print(f"   [{'x' if path.exists() else ' '}] {path}")
    return 0


COMMANDS = {
    'ca': cmd_ca,
    'server': cmd_server,
    'client': cmd_client,
    'import_cert': cmd_import_cert,
    'status': cmd_status,
}


def main(argv: Optional[List[str]] = None, stores_factory: Callable = build_aws_stores) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_usage(sys.stderr)
        return USAGE_EXIT_CODE

    setup_logging(args.verbose)

    try:
        config = WorkflowConfig.from_env(
            base_dir=args.base_dir,
            region=args.region,
            profile=args.profile,
            client_days=getattr(args, 'days', None),
        )
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 1

    logger.debug(f"Running '{args.command}' in {config.base_dir}")

    try:
        if args.command == 'verify':
            return cmd_verify(config, stores_factory, args.role)
        return COMMANDS[args.command](config, stores_factory)
    except WorkflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except CertificateVerificationError as e:
        print(f"Verification failed: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
