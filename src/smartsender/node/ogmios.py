"""
Ogmios WebSocket adapter for node integration.

Provides chain state, submission and confirmation via the Ogmios JSON-RPC/WebSocket interface.
"""

import asyncio
import json
import uuid
from typing import Any, Dict, Optional

import structlog
import websockets

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


class OgmiosError(NodeConnectionError):
    """JSON-RPC error returned by Ogmios."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code

    @property
    def is_submission_rejection(self) -> bool:
        """Ogmios reports ledger rejections of submitted transactions in the 3000 range."""
        return self.code is not None and 3000 <= self.code < 4000


class OgmiosAdapter(NodeInterface):
    """
    Ogmios WebSocket adapter.

    Implements the NodeInterface using Ogmios's JSON-RPC over WebSocket.
    Ogmios only exposes the current tip, so deeper commitments are reached
    by waiting for blocks on top of a transaction rather than reading history.
    """

    def __init__(self, config: Optional[SenderConfig] = None):
        """
        Initialize the Ogmios adapter.

        Args:
            config: Sender configuration. Uses global config if not provided.
        """
        self.config = config or get_config()
        self.host = self.config.ogmios_host
        self.port = self.config.ogmios_port
        self._ws = None
        self._pending_requests: Dict[str, asyncio.Future] = {}
        self._receive_task: Optional[asyncio.Task] = None

    @property
    def ws_url(self) -> str:
        """Get WebSocket URL."""
        return f"ws://{self.host}:{self.port}"

    async def connect(self) -> None:
        """Establish WebSocket connection to Ogmios."""
        if self._ws is not None:
            return

        try:
            self._ws = await websockets.connect(
                self.ws_url,
                ping_interval=30,
                ping_timeout=10,
            )

            # Start receive loop
            self._receive_task = asyncio.create_task(self._receive_loop())

            logger.info("ogmios_connected", url=self.ws_url)

        except Exception as e:
            raise NodeConnectionError(f"Failed to connect to Ogmios: {e}")

    async def disconnect(self) -> None:
        """Close WebSocket connection."""
        if self._receive_task:
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
            self._receive_task = None

        if self._ws:
            await self._ws.close()
            self._ws = None
            logger.info("ogmios_disconnected")

    async def _receive_loop(self) -> None:
        """Background task to receive WebSocket messages."""
        try:
            async for message in self._ws:
                data = json.loads(message)

                # Match response to request
                request_id = data.get("id")
                if request_id and request_id in self._pending_requests:
                    future = self._pending_requests.pop(request_id)
                    if not future.done():
                        if "error" in data:
                            error = data["error"]
                            future.set_exception(
                                OgmiosError(error.get("message", "Unknown error"), error.get("code"))
                            )
                        else:
                            future.set_result(data.get("result"))

        except websockets.ConnectionClosed:
            logger.warning("ogmios_connection_closed")
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("ogmios_receive_error", error=str(e))

    async def _request(
        self,
        method: str,
        params: Optional[dict] = None,
        timeout: float = 30.0,
    ) -> Any:
        """Send a JSON-RPC request and await response."""
        if not self._ws:
            await self.connect()

        request_id = str(uuid.uuid4())
        request = {
            "jsonrpc": "2.0",
            "method": method,
            "id": request_id,
        }
        if params:
            request["params"] = params

        # Create future for response
        future = asyncio.get_event_loop().create_future()
        self._pending_requests[request_id] = future

        try:
            await self._ws.send(json.dumps(request))
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._pending_requests.pop(request_id, None)
            raise NodeConnectionError(f"Ogmios request timeout: {method}")
        except OgmiosError:
            raise
        except Exception as e:
            self._pending_requests.pop(request_id, None)
            raise NodeConnectionError(f"Ogmios request failed: {e}")

    async def get_chain_tip(
        self,
        commitment: Commitment = Commitment.PROCESSED,
    ) -> ChainTip:
        """Get current chain tip."""
        result = await self._request("queryNetwork/tip")
        height = await self._request("queryNetwork/blockHeight")

        if commitment.depth:
            logger.debug("ogmios_tip_commitment_ignored", commitment=commitment.value)

        return ChainTip(
            slot=result.get("slot", 0),
            block_hash=result.get("id", ""),
            block_height=height if isinstance(height, int) else 0,
        )

    async def submit_transaction(self, tx: Any) -> str:
        """Submit a signed transaction."""
        tx_cbor = tx.to_cbor().hex()

        try:
            result = await self._request(
                "submitTransaction",
                {"transaction": {"cbor": tx_cbor}},
            )
        except OgmiosError as e:
            if e.is_submission_rejection:
                raise TransactionRejectedError(str(e), error_code=str(e.code))
            raise TransactionSubmitError(str(e), error_code=str(e.code))
        except NodeConnectionError as e:
            raise TransactionSubmitError(str(e))

        tx_hash = result.get("transaction", {}).get("id")
        if not tx_hash:
            raise TransactionSubmitError("No transaction hash returned")

        logger.info("tx_submitted_ogmios", tx_hash=tx_hash)
        return tx_hash

    async def await_transaction_confirmation(
        self,
        tx_hash: str,
        timeout_seconds: int = 120,
        commitment: Commitment = Commitment.CONFIRMED,
    ) -> Confirmation:
        """
        Wait until the transaction's first output shows up and enough blocks follow it.

        Ogmios cannot report the inclusion slot, so the confirmation carries
        the tip slot of the poll that first found the output. That is an upper
        bound: it may flag the window as exhausted one poll early, never late.
        """
        start_time = asyncio.get_event_loop().time()
        seen: Optional[ChainTip] = None

        while True:
            elapsed = asyncio.get_event_loop().time() - start_time
            if elapsed > timeout_seconds:
                logger.warning("tx_confirmation_timeout", tx_hash=tx_hash)
                raise ConfirmationTimeoutError(tx_hash, timeout_seconds)

            if seen is None and await self._transaction_output_exists(tx_hash):
                seen = await self.get_chain_tip()

            if seen is not None:
                tip = await self.get_chain_tip()
                if tip.block_height - seen.block_height >= commitment.depth:
                    logger.info("tx_confirmed_ogmios", tx_hash=tx_hash)
                    return Confirmation(tx_id=tx_hash, slot=seen.slot)

            await asyncio.sleep(self.config.confirmation_poll_seconds)

    async def _transaction_output_exists(self, tx_hash: str) -> bool:
        """Ogmios has no transaction index, so look for the first output instead."""
        result = await self._request(
            "queryLedgerState/utxo",
            {"outputReferences": [{"transaction": {"id": tx_hash}, "index": 0}]},
        )
        return bool(result)
