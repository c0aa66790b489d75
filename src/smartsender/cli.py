"""
Command-line interface for the Smart Sender.

Provides commands for delivering a batch file and inspecting the validity window.
"""

import argparse
import asyncio
import sys

import structlog

from smartsender import __version__
from smartsender.batchfile import BatchFileError, load_instruction_sets
from smartsender.config import (
    Commitment,
    NetworkType,
    NodeProvider,
    SenderConfig,
    set_config,
)
from smartsender.core.sender import SmartInstructionSender
from smartsender.node.blockfrost import BlockfrostAdapter
from smartsender.node.interface import NodeInterface
from smartsender.node.ogmios import OgmiosAdapter
from smartsender.tx.signer import KeyWalletSigner


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    import logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def _add_node_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--network",
        choices=["mainnet", "preprod", "preview"],
        default="preprod",
        help="Cardano network (default: preprod)",
    )
    parser.add_argument(
        "--provider",
        choices=["blockfrost", "ogmios"],
        default="blockfrost",
        help="Node provider (default: blockfrost)",
    )
    parser.add_argument(
        "--blockfrost-project-id",
        help="Blockfrost project ID",
    )
    parser.add_argument(
        "--ogmios-host",
        default="localhost",
        help="Ogmios host (default: localhost)",
    )
    parser.add_argument(
        "--ogmios-port",
        type=int,
        default=1337,
        help="Ogmios port (default: 1337)",
    )
    parser.add_argument(
        "--commitment",
        choices=[c.value for c in Commitment],
        default=Commitment.PROCESSED.value,
        help="Commitment for slot and window queries (default: processed)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="smartsender",
        description="Deliver ordered transaction batches with automatic re-signing",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Send command
    send_parser = subparsers.add_parser("send", help="Deliver a batch file")
    send_parser.add_argument(
        "--batch",
        required=True,
        help="JSON batch file with instruction sets",
    )
    send_parser.add_argument(
        "--signing-key",
        help="Path to the wallet signing key file",
    )
    send_parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Attempts per transaction on confirmation timeouts (default: from config, 3)",
    )
    send_parser.add_argument(
        "--continue-on-failure",
        action="store_true",
        help="Keep sending after an item fails instead of aborting",
    )
    _add_node_arguments(send_parser)

    # Tip command
    tip_parser = subparsers.add_parser("tip", help="Show the current validity window")
    _add_node_arguments(tip_parser)

    return parser


def build_config(args: argparse.Namespace) -> SenderConfig:
    """Create a configuration from command-line arguments."""
    overrides = {}
    if getattr(args, "signing_key", None):
        overrides["wallet_signing_key_path"] = args.signing_key
    if getattr(args, "max_attempts", None) is not None:
        overrides["max_signing_attempts"] = args.max_attempts
    if getattr(args, "continue_on_failure", False):
        overrides["abort_on_failure"] = False
    if args.blockfrost_project_id:
        overrides["blockfrost_project_id"] = args.blockfrost_project_id

    return SenderConfig(
        network=NetworkType(args.network),
        node_provider=NodeProvider(args.provider),
        ogmios_host=args.ogmios_host,
        ogmios_port=args.ogmios_port,
        commitment=Commitment(args.commitment),
        log_level=args.log_level,
        log_json=args.log_json,
        **overrides,
    )


def create_node(config: SenderConfig) -> NodeInterface:
    """Create the node adapter selected in the configuration."""
    if config.node_provider == NodeProvider.OGMIOS:
        return OgmiosAdapter(config)
    return BlockfrostAdapter(config)


async def send_batch(args: argparse.Namespace) -> int:
    """Deliver a batch file. Returns the process exit code."""
    config = build_config(args)
    set_config(config)

    wallet = KeyWalletSigner(config)
    try:
        wallet.load_from_config()
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}")
        return 1

    try:
        instruction_sets = load_instruction_sets(args.batch, owner=wallet.address)
    except BatchFileError as e:
        print(f"Error: {e}")
        return 1

    node = create_node(config)
    await node.connect()

    expected = sum(1 for s in instruction_sets if not s.is_empty)
    failures = []

    def on_progress(index: int, tx_id: str) -> None:
        print(f"  [{index}] confirmed {tx_id}")

    def on_re_sign(attempt: int, index: int) -> None:
        print(f"  [{index}] window expired, re-signing remaining transactions (attempt {attempt})")

    def on_failure(error: Exception, successful_items: int, index: int, instruction_set) -> None:
        failures.append(index)
        print(f"  [{index}] failed after {successful_items} successful item(s): {error}")

    sender = (
        SmartInstructionSender.build(wallet, node, config=config)
        .with_instruction_sets(instruction_sets)
        .on_progress(on_progress)
        .on_re_sign(on_re_sign)
        .on_failure(on_failure)
    )

    print(f"Sending {expected} transaction(s) from {args.batch}")
    print(f"Wallet: {wallet.address_str[:30]}...")
    print()

    try:
        await sender.send()
    finally:
        await node.disconnect()

    print()
    print(f"Delivered {sender.successful_items}/{expected} transaction(s)")
    return 0 if sender.successful_items == expected and not failures else 1


async def show_tip(args: argparse.Namespace) -> int:
    """Print the current validity window."""
    config = build_config(args)
    node = create_node(config)
    await node.connect()

    try:
        window = await node.get_validity_window(config.commitment)
    finally:
        await node.disconnect()

    print(f"Slot:            {window.slot}")
    print(f"Block hash:      {window.block_hash}")
    print(f"Last valid slot: {window.last_valid_slot}")
    print(f"Exhausted at:    {window.exhausted_at}")
    return 0


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Setup logging
    log_level = getattr(args, "log_level", "INFO")
    log_json = getattr(args, "log_json", False)
    setup_logging(log_level, log_json)

    # Run appropriate command
    if args.command == "send":
        sys.exit(asyncio.run(send_batch(args)))
    elif args.command == "tip":
        sys.exit(asyncio.run(show_tip(args)))


if __name__ == "__main__":
    main()
