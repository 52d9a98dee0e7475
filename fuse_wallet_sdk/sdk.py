"""
Main Fuse smart wallet SDK orchestration
"""

import asyncio
import logging
from dataclasses import replace
from typing import Callable, List, Optional, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3

from fuse_wallet_sdk.amounts import to_base_units
from fuse_wallet_sdk.auth import SmartWalletAuth
from fuse_wallet_sdk.bundler import BundlerClient, SendUserOperationResponse
from fuse_wallet_sdk.config import (
    BASE_URL,
    DEFAULT_TX_OPTIONS,
    NATIVE_TOKEN_ADDRESS,
    ClientOpts,
    PresetBuilderOpts,
    SmartWalletConfig,
    TxOptions,
    get_api_base_url,
    get_bundler_rpc,
    get_paymaster_rpc,
)
from fuse_wallet_sdk.contracts import (
    encode_erc20_approve_call,
    encode_erc20_transfer_call,
    encode_erc721_approve_call,
    encode_erc721_safe_transfer_call,
    read_from_contract,
    read_from_contract_with_first_result,
)
from fuse_wallet_sdk.errors import AuthError, FeeTooLowError, ModuleError
from fuse_wallet_sdk.fees import increase_fee_by_percentage
from fuse_wallet_sdk.models import (
    StakeRequestBody,
    TokenDetails,
    TokenType,
    TradeRequestBody,
    UnstakeRequestBody,
)
from fuse_wallet_sdk.modules import ExplorerModule, FuseApi, NftModule, StakingModule, TradeModule
from fuse_wallet_sdk.paymaster import verifying_paymaster
from fuse_wallet_sdk.result import Result
from fuse_wallet_sdk.rpc import JsonRpcClient
from fuse_wallet_sdk.smart_wallet import EtherspotWallet
from fuse_wallet_sdk.user_operations import Call, UserOperationBuilder

logger = logging.getLogger(__name__)


def _is_native_token(address: str) -> bool:
    return address.lower() == NATIVE_TOKEN_ADDRESS.lower()


def _validate_amount(amount: int, field: str = "amount") -> None:
    if amount < 0:
        raise ValueError(f"{field} must be non-negative")


class FuseSDK:
    """Smart wallet operations for the Fuse network.

    Builds calls, submits them as user operations with a single fee-too-low
    retry, and composes approve-then-call batches for token spends.

    One instance drives one wallet session. Fee state lives on the wallet and
    submissions are serialized through its fee lock, so concurrent calls on
    the same instance queue up rather than racing.
    """

    def __init__(self, public_api_key: str, base_url: str = BASE_URL, api: Optional[FuseApi] = None):
        self.public_api_key = public_api_key
        self.base_url = base_url
        self._api = api or FuseApi(public_api_key, get_api_base_url(base_url))
        self._jwt_token: Optional[str] = None
        self.wallet: Optional[EtherspotWallet] = None
        self.client: Optional[BundlerClient] = None

        self._trade_module = TradeModule(self._api)
        self._staking_module = StakingModule(self._api)
        self._nft_module = NftModule(self._api)
        self._explorer_module = ExplorerModule(self._api)

    @property
    def trade_module(self) -> TradeModule:
        return self._trade_module

    @property
    def staking_module(self) -> StakingModule:
        return self._staking_module

    @property
    def nft_module(self) -> NftModule:
        return self._nft_module

    @property
    def explorer_module(self) -> ExplorerModule:
        return self._explorer_module

    @property
    def jwt_token(self) -> Optional[str]:
        return self._jwt_token

    @classmethod
    async def init(
        cls,
        public_api_key: str,
        credentials: Union[LocalAccount, str],
        with_paymaster: bool = False,
        paymaster_context: Optional[dict] = None,
        opts: Optional[PresetBuilderOpts] = None,
        client_opts: Optional[ClientOpts] = None,
        base_url: str = BASE_URL,
    ) -> "FuseSDK":
        """Create the wallet, authenticate and connect to the bundler.

        Raises:
            ConfigError: malformed RPC URL or unreachable wallet factory
            AuthError: the backend rejected the authentication signature
        """
        if isinstance(credentials, str):
            credentials = Account.from_key(credentials)
        sdk = cls(public_api_key, base_url)
        opts = opts or PresetBuilderOpts()
        client_opts = client_opts or ClientOpts()

        bundler_rpc = get_bundler_rpc(public_api_key, base_url)
        rpc = JsonRpcClient(
            opts.override_bundler_rpc or client_opts.override_bundler_rpc or bundler_rpc,
            timeout=client_opts.request_timeout,
            fee_error_classifier=client_opts.fee_error_classifier,
        )

        if with_paymaster and opts.paymaster_middleware is None:
            paymaster = JsonRpcClient(
                get_paymaster_rpc(public_api_key, base_url),
                timeout=client_opts.request_timeout,
                fee_error_classifier=client_opts.fee_error_classifier,
            )
            opts = replace(opts, paymaster_middleware=verifying_paymaster(paymaster, paymaster_context))

        sdk.wallet = await EtherspotWallet.init(credentials, bundler_rpc, opts, bundler=rpc)
        (await sdk.authenticate(credentials)).unwrap()
        sdk.client = await BundlerClient.init(
            bundler_rpc, replace(client_opts, entry_point=sdk.wallet.entry_point), rpc=rpc
        )
        return sdk

    async def authenticate(self, credentials: LocalAccount) -> Result[AuthError, str]:
        """Sign the wallet-binding challenge and exchange it for a JWT"""
        auth = SmartWalletAuth.signer(credentials, smart_wallet_address=self.wallet.get_sender())
        response = await self._api.request("POST", "/v2/smart-wallets/auth", json=auth.to_json())
        if response.has_error:
            logger.error(f"Authentication failed for {auth.smart_wallet_address}: {response.error}")
            return Result.fail(AuthError(str(response.error)))

        jwt = response.data.get('jwt') if isinstance(response.data, dict) else None
        if not jwt:
            return Result.fail(AuthError("Authentication response did not include a JWT"))

        self._jwt_token = jwt
        self._api.jwt = jwt
        logger.info(f"Authenticated smart wallet {auth.smart_wallet_address}")
        return Result.ok(jwt)

    async def transfer_token(
        self,
        token_address: str,
        recipient_address: str,
        amount: int,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        """Transfer ``amount`` base units of a token, or of the native coin for the native sentinel"""
        _validate_amount(amount)
        if _is_native_token(token_address):
            call = Call(to=recipient_address, value=amount, data=b'')
        else:
            call = Call(
                to=token_address,
                value=0,
                data=encode_erc20_transfer_call(token_address, recipient_address, amount),
            )
        return await self._execute_user_operation(call, options)

    async def transfer_nft(
        self,
        nft_contract_address: str,
        recipient_address: str,
        token_id: int,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        call_data = encode_erc721_safe_transfer_call(self.wallet.get_sender(), recipient_address, token_id)
        return await self._execute_user_operation(
            Call(to=nft_contract_address, value=0, data=call_data), options
        )

    async def approve_token(
        self,
        token_address: str,
        spender: str,
        amount: int,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        _validate_amount(amount)
        return await self._execute_token_operation(
            token_address, spender, amount, encode_erc20_approve_call, options
        )

    async def approve_nft_token(
        self,
        nft_contract_address: str,
        spender: str,
        token_id: int,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        return await self._execute_token_operation(
            nft_contract_address, spender, token_id, encode_erc721_approve_call, options
        )

    async def call_contract(
        self,
        to: str,
        value: int,
        data: bytes,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        return await self._execute_user_operation(Call(to=to, value=value, data=data), options)

    async def execute_batch(
        self,
        calls: List[Call],
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        """Execute all calls in one user operation, so at most one on-chain transaction"""
        if not calls:
            raise ValueError("execute_batch requires at least one call")
        return await self._send_with_retry(lambda: self.wallet.execute_batch(calls), options)

    async def approve_token_and_call_contract(
        self,
        token_address: str,
        spender: str,
        value: int,
        call_data: bytes,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        """Approve ``spender`` for ``value`` and call it, in one batch.

        Always includes the approval, whatever the current allowance.
        """
        calls = [
            Call(to=token_address, value=0, data=encode_erc20_approve_call(token_address, spender, value)),
            Call(to=spender, value=0, data=call_data),
        ]
        return await self.execute_batch(calls, options)

    async def swap_tokens(
        self,
        trade_request_body: TradeRequestBody,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        swap_call_parameters = self._handle_module_error(
            await self._trade_module.request_parameters(trade_request_body)
        )
        spender = swap_call_parameters.to
        call_data = bytes(HexBytes(swap_call_parameters.data))

        token_details = await self.get_erc20_token_details(trade_request_body.currency_in)
        amount = to_base_units(trade_request_body.amount_in, token_details.decimals)

        return await self._process_operation(
            token_address=trade_request_body.currency_in,
            spender=spender,
            call_data=call_data,
            amount=amount,
            options=options,
        )

    async def stake_token(
        self,
        stake_request_body: StakeRequestBody,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        staking_call = self._handle_module_error(await self._staking_module.stake(stake_request_body))

        token_details = await self.get_erc20_token_details(stake_request_body.token_address)
        amount = to_base_units(stake_request_body.token_amount, token_details.decimals)

        return await self._process_operation(
            token_address=stake_request_body.token_address,
            spender=staking_call.contract_address,
            call_data=bytes(HexBytes(staking_call.encoded_abi)),
            amount=amount,
            options=options,
        )

    async def unstake_token(
        self,
        unstake_request_body: UnstakeRequestBody,
        unstake_token_address: str,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        """Unstake; the spend is of the receipt token at ``unstake_token_address``"""
        staking_call = self._handle_module_error(await self._staking_module.unstake(unstake_request_body))

        token_details = await self.get_erc20_token_details(unstake_request_body.token_address)
        amount = to_base_units(unstake_request_body.token_amount, token_details.decimals)

        return await self._process_operation(
            token_address=unstake_token_address,
            spender=staking_call.contract_address,
            call_data=bytes(HexBytes(staking_call.encoded_abi)),
            amount=amount,
            options=options,
        )

    async def get_balance(self, token_address: str, address: str) -> int:
        """Balance of ``address`` in base units; native coin for the native sentinel"""
        if _is_native_token(token_address):
            return await self.wallet.proxy_client.eth.get_balance(Web3.to_checksum_address(address))
        return await read_from_contract_with_first_result(
            self.wallet.proxy_client, "ERC20", token_address, "balanceOf", [Web3.to_checksum_address(address)]
        )

    async def get_allowance(self, token_address: str, spender: str) -> int:
        """Amount ``spender`` may currently spend from the smart wallet"""
        return await read_from_contract_with_first_result(
            self.wallet.proxy_client,
            "ERC20",
            token_address,
            "allowance",
            [self.wallet.get_sender(), Web3.to_checksum_address(spender)],
        )

    async def get_erc20_token_details(self, token_address: str) -> TokenDetails:
        if _is_native_token(token_address):
            return TokenDetails.native(amount=0)

        name, symbol, decimals = await asyncio.gather(*(
            read_from_contract(self.wallet.proxy_client, "ERC20", token_address, method, [])
            for method in ('name', 'symbol', 'decimals')
        ))
        return TokenDetails(
            contract_address=token_address,
            name=name[0],
            symbol=symbol[0],
            decimals=int(decimals[0]),
            balance=0,
            type=TokenType.ERC20,
        )

    def set_wallet_fees(self, fee: int) -> None:
        """Set both max fee and priority fee per gas on the wallet"""
        self.wallet.fees.set_fees(fee)

    async def _execute_user_operation(
        self,
        call: Call,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        return await self._send_with_retry(lambda: self.wallet.execute(call), options)

    async def _send_with_retry(
        self,
        build: Callable[[], UserOperationBuilder],
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        """Submit with the requested fee, retrying once at a higher fee if the bundler says it is too low"""
        options = options or DEFAULT_TX_OPTIONS
        initial_fee = int(options.fee_per_gas)

        async with self.wallet.fees.lock:
            self.set_wallet_fees(initial_fee)
            try:
                return await self.client.send_user_operation(build())
            except FeeTooLowError:
                if not options.with_retry:
                    raise
                increased_fee = increase_fee_by_percentage(initial_fee, options.fee_increment_percentage)
                logger.info(f"Fee {initial_fee} too low, retrying with {increased_fee}")
                self.set_wallet_fees(increased_fee)
                return await self.client.send_user_operation(build())

    async def _process_operation(
        self,
        token_address: str,
        spender: str,
        call_data: bytes,
        amount: int,
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        """Spend ``amount`` of a token through ``spender``, approving only when needed.

        Native token: one call carrying ``amount`` as value.
        ERC-20 with enough allowance: one call, no value.
        Otherwise: approve then call, batched.
        """
        _validate_amount(amount)
        if _is_native_token(token_address):
            return await self._execute_user_operation(
                Call(to=spender, value=amount, data=call_data), options
            )

        token_allowance = await self.get_allowance(token_address, spender)
        if token_allowance >= amount:
            return await self._execute_user_operation(
                Call(to=spender, value=0, data=call_data), options
            )
        return await self.approve_token_and_call_contract(
            token_address, spender, amount, call_data, options
        )

    async def _execute_token_operation(
        self,
        contract_address: str,
        to: str,
        value: int,
        encoder: Callable[[str, str, int], bytes],
        options: Optional[TxOptions] = None,
    ) -> SendUserOperationResponse:
        call_data = encoder(contract_address, to, value)
        return await self._execute_user_operation(
            Call(to=contract_address, value=0, data=call_data), options
        )

    @staticmethod
    def _handle_module_error(response: Result[ModuleError, object]):
        return response.unwrap()


async def create_fuse_sdk(
    credentials: Union[LocalAccount, str],
    config: Optional[SmartWalletConfig] = None,
) -> FuseSDK:
    """Create a Fuse SDK with configuration from the environment"""
    config = config or SmartWalletConfig.from_env()
    return await FuseSDK.init(
        config.public_api_key,
        credentials,
        with_paymaster=config.with_paymaster,
        paymaster_context=config.paymaster_context,
        opts=PresetBuilderOpts(override_bundler_rpc=config.rpc_url),
        base_url=config.base_url,
    )
