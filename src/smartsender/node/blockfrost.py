"""
Blockfrost API adapter for node integration.

Provides chain state, submission and confirmation via the Blockfrost API service.
"""

import asyncio
from typing import Any, Optional

import httpx
import structlog

from smartsender.config import Commitment, SenderConfig, get_config
from smartsender.node.interface import (
    NodeInterface,
    ChainTip,
    Confirmation,
    ConfirmationTimeoutError,
    NodeConnectionError,
    TransactionRejectedError,
    TransactionSubmitError,
)

logger = structlog.get_logger(__name__)


class BlockfrostAdapter(NodeInterface):
    """
    Blockfrost API adapter.

    Implements the NodeInterface using Blockfrost's REST API.
    """

    def __init__(
        self,
        config: Optional[SenderConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Blockfrost adapter.

        Args:
            config: Sender configuration. Uses global config if not provided.
            transport: Custom httpx transport (used by tests)
        """
        self.config = config or get_config()
        self.base_url = self.config.blockfrost_url
        self.project_id = self.config.blockfrost_project_id
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> dict:
        """Get request headers with API key."""
        return {
            "project_id": self.project_id or "",
            "Content-Type": "application/json",
        }

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        if not self.project_id:
            raise NodeConnectionError("Blockfrost project ID not configured")

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=30.0,
            transport=self._transport,
        )

        # Test connection
        try:
            response = await self._client.get("/health")
            if response.status_code != 200:
                raise NodeConnectionError(f"Blockfrost health check failed: {response.text}")
            logger.info("blockfrost_connected", base_url=self.base_url)
        except httpx.RequestError as e:
            raise NodeConnectionError(f"Failed to connect to Blockfrost: {e}")

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("blockfrost_disconnected")

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs,
    ) -> Any:
        """Make an API request."""
        if not self._client:
            await self.connect()

        try:
            response = await self._client.request(method, path, **kwargs)

            if response.status_code == 404:
                return None

            if response.status_code != 200:
                error_msg = response.text
                logger.error(
                    "blockfrost_request_failed",
                    path=path,
                    status=response.status_code,
                    error=error_msg,
                )
                raise NodeConnectionError(f"Blockfrost API error: {error_msg}")

            return response.json()

        except httpx.RequestError as e:
            logger.error("blockfrost_request_error", path=path, error=str(e))
            raise NodeConnectionError(f"Blockfrost request failed: {e}")

    async def get_chain_tip(
        self,
        commitment: Commitment = Commitment.PROCESSED,
    ) -> ChainTip:
        """Get the chain tip, stepping back from the latest block for deeper commitments."""
        data = await self._request("GET", "/blocks/latest")

        if commitment.depth and int(data["height"]) > commitment.depth:
            data = await self._request("GET", f"/blocks/{int(data['height']) - commitment.depth}")
            if not data:
                raise NodeConnectionError("Blockfrost returned no block for committed height")

        return ChainTip(
            slot=int(data["slot"]),
            block_hash=data["hash"],
            block_height=int(data["height"]),
        )

    async def submit_transaction(self, tx: Any) -> str:
        """Submit a signed transaction."""
        tx_cbor = tx.to_cbor()

        try:
            if not self._client:
                await self.connect()

            response = await self._client.post(
                "/tx/submit",
                content=tx_cbor,
                headers={
                    **self.headers,
                    "Content-Type": "application/cbor",
                },
            )
        except httpx.RequestError as e:
            raise TransactionSubmitError(f"Transaction submission request failed: {e}")

        if response.status_code == 400:
            # Bad request means the ledger validation rejected the transaction
            logger.error("tx_rejected", error=response.text)
            raise TransactionRejectedError(
                f"Transaction rejected: {response.text}",
                error_code=str(response.status_code),
            )

        if response.status_code != 200:
            logger.error("tx_submit_failed", status=response.status_code, error=response.text)
            raise TransactionSubmitError(
                f"Transaction submission failed: {response.text}",
                error_code=str(response.status_code),
            )

        tx_hash = response.json()
        logger.info("tx_submitted", tx_hash=tx_hash)
        return tx_hash

    async def await_transaction_confirmation(
        self,
        tx_hash: str,
        timeout_seconds: int = 120,
        commitment: Commitment = Commitment.CONFIRMED,
    ) -> Confirmation:
        """Poll until the transaction is in a block deep enough for the commitment."""
        start_time = asyncio.get_event_loop().time()

        while True:
            elapsed = asyncio.get_event_loop().time() - start_time
            if elapsed > timeout_seconds:
                logger.warning("tx_confirmation_timeout", tx_hash=tx_hash)
                raise ConfirmationTimeoutError(tx_hash, timeout_seconds)

            tx_data = await self.get_transaction(tx_hash)

            if tx_data and tx_data.get("block"):
                depth = 0
                if commitment.depth:
                    current_tip = await self.get_chain_tip(Commitment.PROCESSED)
                    depth = current_tip.block_height - int(tx_data.get("block_height", 0))

                if depth >= commitment.depth:
                    logger.info("tx_confirmed", tx_hash=tx_hash, depth=depth)
                    return Confirmation(tx_id=tx_hash, slot=int(tx_data["slot"]))

            await asyncio.sleep(self.config.confirmation_poll_seconds)

    async def get_transaction(self, tx_hash: str) -> Optional[dict]:
        """Get transaction details."""
        return await self._request("GET", f"/txs/{tx_hash}")
