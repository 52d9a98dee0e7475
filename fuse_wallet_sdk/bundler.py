"""
Bundler integration: UserOperation submission, receipt polling and lifecycle events
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from fuse_wallet_sdk.config import ClientOpts, validate_rpc_url
from fuse_wallet_sdk.errors import RpcError
from fuse_wallet_sdk.models import SmartWalletEvent, UserOperationReceipt
from fuse_wallet_sdk.rpc import JsonRpcClient
from fuse_wallet_sdk.user_operations import UserOperationBuilder

logger = logging.getLogger(__name__)


async def _sleep_unless_cancelled(seconds: float, cancel: Optional[asyncio.Event]) -> None:
    if cancel is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass


class SendUserOperationResponse:
    """Handle for a submitted UserOperation"""

    def __init__(self, user_op_hash: str, client: "BundlerClient"):
        self.user_op_hash = user_op_hash
        self._client = client

    def __repr__(self) -> str:
        return f"SendUserOperationResponse(user_op_hash={self.user_op_hash!r})"

    async def wait(self) -> Optional[UserOperationReceipt]:
        """Wait for inclusion. Returns ``None`` when the poll window runs out."""
        return await self._client.wait_for_receipt(self.user_op_hash)

    async def events(self, cancel: Optional[asyncio.Event] = None) -> AsyncIterator[SmartWalletEvent]:
        """Yield lifecycle events until the operation succeeds, fails or ``cancel`` is set.

        Every call starts a fresh polling loop.
        """
        client = self._client
        loop = asyncio.get_running_loop()
        deadline = loop.time() + client.opts.wait_timeout

        yield SmartWalletEvent.started(self.user_op_hash)
        while cancel is None or not cancel.is_set():
            receipt = await client._poll_receipt(self.user_op_hash)
            if receipt is not None:
                if receipt.transaction_hash:
                    yield SmartWalletEvent.hash_assigned(receipt.transaction_hash)
                if receipt.success:
                    yield SmartWalletEvent.succeeded(receipt)
                else:
                    yield SmartWalletEvent.failed(receipt.reason or "UserOperation reverted")
                return
            if loop.time() >= deadline:
                yield SmartWalletEvent.failed(
                    f"UserOperation not included within {client.opts.wait_timeout}s"
                )
                return
            await _sleep_unless_cancelled(client.opts.wait_interval, cancel)
        logger.info(f"Stopped watching {self.user_op_hash}: cancelled")


class BundlerClient:
    """Client for the Fuse ERC-4337 bundler"""

    def __init__(self, rpc: JsonRpcClient, chain_id: int, opts: Optional[ClientOpts] = None):
        self.rpc = rpc
        self.chain_id = chain_id
        self.opts = opts or ClientOpts()
        self.entry_point = self.opts.entry_point

    @classmethod
    async def init(
        cls,
        bundler_rpc: str,
        opts: Optional[ClientOpts] = None,
        rpc: Optional[JsonRpcClient] = None,
    ) -> "BundlerClient":
        opts = opts or ClientOpts()
        url = validate_rpc_url(opts.override_bundler_rpc or bundler_rpc, "bundler_rpc")
        rpc = rpc or JsonRpcClient(
            url,
            timeout=opts.request_timeout,
            fee_error_classifier=opts.fee_error_classifier,
        )
        chain_id = await rpc.request("eth_chainId", [])
        chain_id = int(chain_id, 16) if isinstance(chain_id, str) else int(chain_id)
        logger.info(f"Bundler client initialized on chain {chain_id}")
        return cls(rpc, chain_id, opts)

    async def send_user_operation(self, builder: UserOperationBuilder) -> SendUserOperationResponse:
        """Build, sign and send a UserOperation. Raises RpcError when the bundler rejects it."""
        user_op = await builder.build_op(self.entry_point, self.chain_id)

        logger.info("Sending UserOperation to bundler...")
        user_op_dict = user_op.to_rpc_dict()
        logger.debug(f"Full UserOp to bundler: {user_op_dict}")
        user_op_hash = await self.rpc.request("eth_sendUserOperation", [user_op_dict, self.entry_point])

        logger.info(f"UserOperation sent successfully: {user_op_hash}")
        return SendUserOperationResponse(user_op_hash, self)

    async def get_user_operation_receipt(self, user_op_hash: str) -> Optional[UserOperationReceipt]:
        result = await self.rpc.request("eth_getUserOperationReceipt", [user_op_hash])
        if not result:
            return None
        return UserOperationReceipt.from_rpc(result)

    async def _poll_receipt(self, user_op_hash: str) -> Optional[UserOperationReceipt]:
        try:
            return await self.get_user_operation_receipt(user_op_hash)
        except RpcError as e:
            logger.warning(f"Receipt poll for {user_op_hash} failed, retrying: {e}")
            return None

    async def wait_for_receipt(
        self,
        user_op_hash: str,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ) -> Optional[UserOperationReceipt]:
        """Poll for the receipt; ``None`` if it does not arrive within ``timeout`` seconds"""
        timeout = self.opts.wait_timeout if timeout is None else timeout
        interval = self.opts.wait_interval if interval is None else interval
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            receipt = await self._poll_receipt(user_op_hash)
            if receipt is not None:
                logger.info(f"UserOperation {user_op_hash} included in {receipt.transaction_hash}")
                return receipt
            if loop.time() >= deadline:
                logger.info(f"No receipt for {user_op_hash} after {timeout}s")
                return None
            await asyncio.sleep(interval)
