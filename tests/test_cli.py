"""
Test suite for the command-line interface.
"""

import pytest

from pycardano import PaymentSigningKey

from smartsender.cli import build_config, create_node, create_parser, send_batch
from smartsender.config import Commitment, NetworkType, NodeProvider
from smartsender.node.blockfrost import BlockfrostAdapter
from smartsender.node.ogmios import OgmiosAdapter


class TestParser:
    """Tests for argument parsing."""

    def test_send_arguments(self):
        args = create_parser().parse_args([
            "send",
            "--batch", "batch.json",
            "--signing-key", "wallet.skey",
            "--max-attempts", "5",
            "--continue-on-failure",
            "--network", "preview",
            "--commitment", "confirmed",
        ])

        config = build_config(args)

        assert args.command == "send"
        assert config.wallet_signing_key_path == "wallet.skey"
        assert config.max_signing_attempts == 5
        assert config.abort_on_failure is False
        assert config.network == NetworkType.PREVIEW
        assert config.commitment == Commitment.CONFIRMED

    def test_send_defaults(self):
        args = create_parser().parse_args(["send", "--batch", "batch.json"])

        config = build_config(args)

        assert config.max_signing_attempts == 3
        assert config.abort_on_failure is True
        assert config.node_provider == NodeProvider.BLOCKFROST

    def test_max_attempts_from_environment(self, monkeypatch):
        """Without --max-attempts the environment setting is kept."""
        monkeypatch.setenv("SENDER_MAX_SIGNING_ATTEMPTS", "6")
        args = create_parser().parse_args(["send", "--batch", "batch.json"])

        assert args.max_attempts is None
        assert build_config(args).max_signing_attempts == 6

    def test_max_attempts_flag_overrides_environment(self, monkeypatch):
        monkeypatch.setenv("SENDER_MAX_SIGNING_ATTEMPTS", "6")
        args = create_parser().parse_args(["send", "--batch", "batch.json", "--max-attempts", "2"])

        assert build_config(args).max_signing_attempts == 2

    def test_send_requires_batch(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["send"])

    def test_tip_with_ogmios(self):
        args = create_parser().parse_args([
            "tip", "--provider", "ogmios", "--ogmios-host", "node.local", "--ogmios-port", "1442",
        ])

        config = build_config(args)

        assert config.ogmios_host == "node.local"
        assert config.ogmios_port == 1442
        assert isinstance(create_node(config), OgmiosAdapter)


class TestCreateNode:
    """Tests for node adapter selection."""

    def test_blockfrost_by_default(self, test_config):
        assert isinstance(create_node(test_config), BlockfrostAdapter)


class TestSendBatch:
    """Tests for the send command."""

    @pytest.mark.asyncio
    async def test_missing_batch_file(self, tmp_path, capsys):
        key_path = tmp_path / "wallet.skey"
        PaymentSigningKey.generate().save(str(key_path))
        args = create_parser().parse_args([
            "send",
            "--batch", str(tmp_path / "missing.json"),
            "--signing-key", str(key_path),
        ])

        exit_code = await send_batch(args)

        assert exit_code == 1
        assert "Batch file not found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_missing_signing_key(self, tmp_path, capsys):
        args = create_parser().parse_args([
            "send",
            "--batch", str(tmp_path / "batch.json"),
            "--signing-key", str(tmp_path / "missing.skey"),
        ])

        exit_code = await send_batch(args)

        assert exit_code == 1
        assert "Signing key file not found" in capsys.readouterr().out
