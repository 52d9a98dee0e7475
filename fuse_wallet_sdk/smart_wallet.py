"""
Etherspot smart wallet proxy: counterfactual address, nonce resolution and UserOperation building
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import Web3Exception

from fuse_wallet_sdk.config import (
    ENTRYPOINT_V06,
    ETHERSPOT_WALLET_FACTORY,
    PresetBuilderOpts,
    validate_rpc_url,
)
from fuse_wallet_sdk.contracts import encode_function_call, read_from_contract_with_first_result
from fuse_wallet_sdk.errors import ConfigError, DecodeError
from fuse_wallet_sdk.fees import FeeController
from fuse_wallet_sdk.rpc import JsonRpcClient
from fuse_wallet_sdk.user_operations import (
    Call,
    UserOperationBuilder,
    UserOperationMiddlewareContext,
    UserOperationMiddlewareFn,
    eoa_signature,
    estimate_user_operation_gas,
)

logger = logging.getLogger(__name__)


class EtherspotWallet:
    """Smart wallet controlled by an EOA signer.

    The wallet address is derived from the owner and salt through the wallet
    factory, so it is known before the wallet is deployed. The first
    operation carries ``initCode`` and deploys it.
    """

    def __init__(
        self,
        credentials: LocalAccount,
        proxy_client: AsyncWeb3,
        bundler: JsonRpcClient,
        sender: str,
        entry_point: str = ENTRYPOINT_V06,
        factory_address: str = ETHERSPOT_WALLET_FACTORY,
        salt: int = 0,
        paymaster_middleware: Optional[UserOperationMiddlewareFn] = None,
    ):
        self.credentials = credentials
        self.proxy_client = proxy_client
        self.bundler = bundler
        self.sender = Web3.to_checksum_address(sender)
        self.entry_point = Web3.to_checksum_address(entry_point)
        self.factory_address = Web3.to_checksum_address(factory_address)
        self.salt = salt
        self.paymaster_middleware = paymaster_middleware
        self.fees = FeeController()
        self.init_code = bytes.fromhex(self.factory_address[2:]) + encode_function_call(
            "EtherspotWalletFactory", "createAccount", [credentials.address, salt]
        )

    @classmethod
    async def init(
        cls,
        credentials: Union[LocalAccount, str],
        bundler_rpc: str,
        opts: Optional[PresetBuilderOpts] = None,
        proxy_client: Optional[AsyncWeb3] = None,
        bundler: Optional[JsonRpcClient] = None,
    ) -> "EtherspotWallet":
        """Resolve the counterfactual address and return a ready wallet"""
        opts = opts or PresetBuilderOpts()
        if isinstance(credentials, str):
            credentials = Account.from_key(credentials)

        rpc_url = validate_rpc_url(opts.override_bundler_rpc or bundler_rpc, "bundler_rpc")
        proxy_client = proxy_client or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        bundler = bundler or JsonRpcClient(rpc_url)
        factory_address = opts.factory_address or ETHERSPOT_WALLET_FACTORY
        salt = opts.salt or 0

        try:
            sender = await read_from_contract_with_first_result(
                proxy_client,
                "EtherspotWalletFactory",
                factory_address,
                "getAddress",
                [credentials.address, salt],
            )
        except (DecodeError, Web3Exception, OSError, asyncio.TimeoutError) as e:
            raise ConfigError(f"Could not resolve smart wallet address via {factory_address}: {e}") from e

        wallet = cls(
            credentials=credentials,
            proxy_client=proxy_client,
            bundler=bundler,
            sender=sender,
            entry_point=opts.entry_point or ENTRYPOINT_V06,
            factory_address=factory_address,
            salt=salt,
            paymaster_middleware=opts.paymaster_middleware,
        )
        logger.info(f"Smart wallet {wallet.sender} initialized for owner {credentials.address}")
        return wallet

    def get_sender(self) -> str:
        return self.sender

    def set_max_fee_per_gas(self, fee: int) -> None:
        self.fees.set_max_fee_per_gas(fee)

    def set_max_priority_fee_per_gas(self, fee: int) -> None:
        self.fees.set_max_priority_fee_per_gas(fee)

    def execute(self, call: Call) -> UserOperationBuilder:
        """Unsigned operation executing a single call"""
        call_data = encode_function_call(
            "EtherspotWallet", "execute", [Web3.to_checksum_address(call.to), call.value, call.data]
        )
        return self._new_builder().set_call_data(call_data)

    def execute_batch(self, calls: Sequence[Call]) -> UserOperationBuilder:
        """Unsigned operation executing all calls atomically in one transaction"""
        if not calls:
            raise ValueError("execute_batch requires at least one call")
        call_data = encode_function_call(
            "EtherspotWallet",
            "executeBatch",
            [
                [Web3.to_checksum_address(c.to) for c in calls],
                [c.value for c in calls],
                [c.data for c in calls],
            ],
        )
        return self._new_builder().set_call_data(call_data)

    def _new_builder(self) -> UserOperationBuilder:
        middlewares: List[UserOperationMiddlewareFn] = [
            self._resolve_account,
            self._apply_fees,
            self.paymaster_middleware or estimate_user_operation_gas(self.bundler),
            eoa_signature(self.credentials),
        ]
        return UserOperationBuilder(self.sender, middlewares)

    async def _resolve_account(self, ctx: UserOperationMiddlewareContext) -> None:
        """Fill nonce from the EntryPoint and initCode while the wallet is undeployed"""
        ctx.op.nonce = await read_from_contract_with_first_result(
            self.proxy_client, "EntryPoint", ctx.entry_point, "getNonce", [self.sender, 0]
        )
        code = await self.proxy_client.eth.get_code(self.sender)
        ctx.op.init_code = b'' if len(code) > 0 else self.init_code
        logger.info(f"Current nonce: {ctx.op.nonce} (deployed: {len(code) > 0})")

    async def _apply_fees(self, ctx: UserOperationMiddlewareContext) -> None:
        ctx.op.max_fee_per_gas = self.fees.max_fee_per_gas
        ctx.op.max_priority_fee_per_gas = self.fees.max_priority_fee_per_gas
