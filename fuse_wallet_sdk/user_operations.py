"""
UserOperation creation, hashing and signing utilities for Fuse smart wallets (EntryPoint v0.6)
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, List, Optional, Union

from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3

from fuse_wallet_sdk.amounts import parse_quantity
from fuse_wallet_sdk.config import DEFAULT_GAS_LIMITS, DUMMY_SIGNATURE
from fuse_wallet_sdk.rpc import JsonRpcClient

logger = logging.getLogger(__name__)


def _to_bytes(value: Union[bytes, str, None]) -> bytes:
    if value is None:
        return b''
    if isinstance(value, str):
        return bytes(HexBytes(value))
    return bytes(value)


def _hex(value: bytes) -> str:
    return "0x" + value.hex()


@dataclass(frozen=True)
class Call:
    """A single EVM message executed by the smart wallet"""
    to: str
    value: int = 0
    data: bytes = b''

    def __post_init__(self):
        if self.value < 0:
            raise ValueError("Call value must be non-negative")
        object.__setattr__(self, "data", _to_bytes(self.data))


@dataclass
class UserOperation:
    """ERC-4337 UserOperation (EntryPoint v0.6 layout)"""
    sender: str
    nonce: int = 0
    init_code: bytes = b''
    call_data: bytes = b''
    call_gas_limit: int = DEFAULT_GAS_LIMITS["call"]
    verification_gas_limit: int = DEFAULT_GAS_LIMITS["verification"]
    pre_verification_gas: int = DEFAULT_GAS_LIMITS["pre_verification"]
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    paymaster_and_data: bytes = b''
    signature: bytes = b''

    def pack(self) -> bytes:
        """ABI-encode the operation without its signature, hashing the dynamic fields"""
        return encode(
            ['address', 'uint256', 'bytes32', 'bytes32', 'uint256', 'uint256',
             'uint256', 'uint256', 'uint256', 'bytes32'],
            [
                Web3.to_checksum_address(self.sender),
                self.nonce,
                Web3.keccak(self.init_code),
                Web3.keccak(self.call_data),
                self.call_gas_limit,
                self.verification_gas_limit,
                self.pre_verification_gas,
                self.max_fee_per_gas,
                self.max_priority_fee_per_gas,
                Web3.keccak(self.paymaster_and_data),
            ],
        )

    def get_hash(self, entry_point: str, chain_id: int) -> bytes:
        """UserOperation hash as computed by ``EntryPoint.getUserOpHash``"""
        return bytes(Web3.keccak(encode(
            ['bytes32', 'address', 'uint256'],
            [Web3.keccak(self.pack()), Web3.to_checksum_address(entry_point), chain_id],
        )))

    def to_rpc_dict(self) -> Dict[str, str]:
        """Convert to the bundler JSON-RPC format"""
        return {
            "sender": Web3.to_checksum_address(self.sender),
            "nonce": hex(self.nonce),
            "initCode": _hex(self.init_code),
            "callData": _hex(self.call_data),
            "callGasLimit": hex(self.call_gas_limit),
            "verificationGasLimit": hex(self.verification_gas_limit),
            "preVerificationGas": hex(self.pre_verification_gas),
            "maxFeePerGas": hex(self.max_fee_per_gas),
            "maxPriorityFeePerGas": hex(self.max_priority_fee_per_gas),
            "paymasterAndData": _hex(self.paymaster_and_data),
            "signature": _hex(self.signature),
        }


def sign_user_operation_hash(account: LocalAccount, user_op_hash: bytes) -> bytes:
    """EIP-191 personal signature over the 32-byte operation hash"""
    signed = account.sign_message(encode_defunct(primitive=user_op_hash))
    return bytes(signed.signature)


def recover_user_operation_signer(user_op_hash: bytes, signature: bytes) -> str:
    return Account.recover_message(encode_defunct(primitive=user_op_hash), signature=signature)


@dataclass
class UserOperationMiddlewareContext:
    """Mutable state threaded through the builder's middleware"""
    op: UserOperation
    entry_point: str
    chain_id: int
    data: Dict = field(default_factory=dict)

    def get_user_op_hash(self) -> bytes:
        return self.op.get_hash(self.entry_point, self.chain_id)


UserOperationMiddlewareFn = Callable[[UserOperationMiddlewareContext], Awaitable[None]]


class UserOperationBuilder:
    """Unsigned UserOperation plus the middleware that completes and signs it"""

    def __init__(self, sender: str, middlewares: Optional[List[UserOperationMiddlewareFn]] = None):
        self._op = UserOperation(sender=sender)
        self._middlewares: List[UserOperationMiddlewareFn] = list(middlewares or [])

    @property
    def op(self) -> UserOperation:
        return self._op

    def use_middleware(self, fn: UserOperationMiddlewareFn) -> "UserOperationBuilder":
        self._middlewares.append(fn)
        return self

    def set_call_data(self, call_data: bytes) -> "UserOperationBuilder":
        self._op.call_data = _to_bytes(call_data)
        return self

    def get_call_data(self) -> bytes:
        return self._op.call_data

    async def build_op(self, entry_point: str, chain_id: int) -> UserOperation:
        """Run the middleware over a copy of the operation and return the result"""
        ctx = UserOperationMiddlewareContext(
            op=replace(self._op),
            entry_point=entry_point,
            chain_id=chain_id,
        )
        for middleware in self._middlewares:
            await middleware(ctx)
        return ctx.op


def eoa_signature(account: LocalAccount) -> UserOperationMiddlewareFn:
    """Middleware signing the operation hash with the wallet owner's key. Must run last."""

    async def middleware(ctx: UserOperationMiddlewareContext) -> None:
        ctx.op.signature = sign_user_operation_hash(account, ctx.get_user_op_hash())

    return middleware


def estimate_user_operation_gas(bundler: JsonRpcClient) -> UserOperationMiddlewareFn:
    """Middleware filling gas limits from ``eth_estimateUserOperationGas``"""

    async def middleware(ctx: UserOperationMiddlewareContext) -> None:
        user_op_dict = ctx.op.to_rpc_dict()
        user_op_dict['signature'] = DUMMY_SIGNATURE
        estimate = await bundler.request(
            "eth_estimateUserOperationGas", [user_op_dict, ctx.entry_point]
        )
        logger.info(f"Gas estimate: {estimate}")
        apply_gas_values(ctx.op, estimate or {})

    return middleware


def apply_gas_values(op: UserOperation, values: Dict) -> None:
    """Copy gas fields returned by a bundler or paymaster onto ``op``"""
    if values.get('callGasLimit'):
        op.call_gas_limit = parse_quantity(values['callGasLimit'])
    if values.get('verificationGasLimit'):
        op.verification_gas_limit = parse_quantity(values['verificationGasLimit'])
    if values.get('preVerificationGas'):
        op.pre_verification_gas = parse_quantity(values['preVerificationGas'])
    if values.get('paymasterAndData'):
        op.paymaster_and_data = _to_bytes(values['paymasterAndData'])
