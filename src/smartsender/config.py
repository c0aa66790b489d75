"""
Configuration management for the Smart Sender.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NetworkType(str, Enum):
    """Cardano network types."""
    MAINNET = "mainnet"
    PREPROD = "preprod"
    PREVIEW = "preview"


class NodeProvider(str, Enum):
    """Supported node providers for blockchain access."""
    BLOCKFROST = "blockfrost"
    OGMIOS = "ogmios"


class Commitment(str, Enum):
    """
    Consistency level used when reading chain state.

    Each level maps to a number of blocks that must sit on top of the
    block being read before it is trusted.
    """
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    @property
    def depth(self) -> int:
        """Blocks behind the tip this level reads from."""
        return _COMMITMENT_DEPTH[self]


_COMMITMENT_DEPTH = {
    Commitment.PROCESSED: 0,
    Commitment.CONFIRMED: 1,
    Commitment.FINALIZED: 15,
}


class SenderConfig(BaseSettings):
    """
    Configuration settings for the Smart Sender.

    All settings can be configured via environment variables with the SENDER_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="SENDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Network settings
    network: NetworkType = Field(
        default=NetworkType.PREPROD,
        description="Cardano network to connect to"
    )

    # Node provider settings
    node_provider: NodeProvider = Field(
        default=NodeProvider.BLOCKFROST,
        description="Provider for blockchain access"
    )

    # Blockfrost settings
    blockfrost_project_id: Optional[str] = Field(
        default=None,
        description="Blockfrost project ID for API access"
    )
    blockfrost_base_url: Optional[str] = Field(
        default=None,
        description="Custom Blockfrost base URL (optional)"
    )

    # Ogmios settings
    ogmios_host: str = Field(
        default="localhost",
        description="Ogmios server host"
    )
    ogmios_port: int = Field(
        default=1337,
        description="Ogmios server port"
    )

    # Wallet settings
    wallet_signing_key_path: Optional[str] = Field(
        default=None,
        description="Path to the wallet's signing key file"
    )
    wallet_signing_key_cbor: Optional[str] = Field(
        default=None,
        description="CBOR-encoded signing key (alternative to file path)"
    )

    # Delivery settings
    max_signing_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per transaction before giving up on confirmation timeouts"
    )
    abort_on_failure: bool = Field(
        default=True,
        description="Stop the whole batch after the first unrecoverable item failure"
    )
    commitment: Commitment = Field(
        default=Commitment.PROCESSED,
        description="Consistency level for slot and validity window queries"
    )
    confirmation_commitment: Commitment = Field(
        default=Commitment.CONFIRMED,
        description="Consistency level a submitted transaction must reach"
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay before retrying a transaction that timed out"
    )
    confirmation_timeout_seconds: int = Field(
        default=120,
        ge=1,
        description="Maximum time to wait for a transaction confirmation"
    )
    confirmation_poll_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Interval between confirmation status polls"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    @property
    def blockfrost_url(self) -> str:
        """Get the appropriate Blockfrost URL based on network."""
        if self.blockfrost_base_url:
            return self.blockfrost_base_url

        network_urls = {
            NetworkType.MAINNET: "https://cardano-mainnet.blockfrost.io/api/v0",
            NetworkType.PREPROD: "https://cardano-preprod.blockfrost.io/api/v0",
            NetworkType.PREVIEW: "https://cardano-preview.blockfrost.io/api/v0",
        }
        return network_urls.get(self.network, "https://cardano-preprod.blockfrost.io/api/v0")


# Global config instance
_config: Optional[SenderConfig] = None


def get_config() -> SenderConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = SenderConfig()
    return _config


def set_config(config: SenderConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
