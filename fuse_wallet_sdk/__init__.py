"""
Fuse Smart Wallet SDK

Account-abstraction (ERC-4337) smart wallets on the Fuse network: wallet
address derivation, authentication, batched user operations through the
Fuse bundler and paymaster, and allowance-aware token spends.
"""

# Main SDK
from fuse_wallet_sdk.sdk import FuseSDK, create_fuse_sdk

# Configuration
from fuse_wallet_sdk.config import (
    DEFAULT_TX_OPTIONS,
    NATIVE_TOKEN_ADDRESS,
    ClientOpts,
    PresetBuilderOpts,
    SmartWalletConfig,
    TxOptions,
)

# Errors and results
from fuse_wallet_sdk.errors import (
    AuthError,
    ConfigError,
    DecodeError,
    FeeTooLowError,
    FuseSDKError,
    ModuleError,
    RpcError,
    is_fee_too_low,
)
from fuse_wallet_sdk.result import Result

# Individual components for advanced usage
from fuse_wallet_sdk.bundler import BundlerClient, SendUserOperationResponse
from fuse_wallet_sdk.contracts import (
    encode_erc20_approve_call,
    encode_erc20_transfer_call,
    encode_erc721_approve_call,
    encode_erc721_safe_transfer_call,
    read_from_contract,
    read_from_contract_with_first_result,
)
from fuse_wallet_sdk.fees import FeeController, increase_fee_by_percentage
from fuse_wallet_sdk.models import (
    EventKind,
    SmartWalletEvent,
    StakeRequestBody,
    TokenDetails,
    TokenType,
    TradeRequestBody,
    UnstakeRequestBody,
    UserOperationReceipt,
)
from fuse_wallet_sdk.smart_wallet import EtherspotWallet
from fuse_wallet_sdk.user_operations import Call, UserOperation, UserOperationBuilder

__version__ = "0.1.0"

__all__ = [
    "FuseSDK",
    "create_fuse_sdk",
    "DEFAULT_TX_OPTIONS",
    "NATIVE_TOKEN_ADDRESS",
    "ClientOpts",
    "PresetBuilderOpts",
    "SmartWalletConfig",
    "TxOptions",
    "AuthError",
    "ConfigError",
    "DecodeError",
    "FeeTooLowError",
    "FuseSDKError",
    "ModuleError",
    "RpcError",
    "is_fee_too_low",
    "Result",
    "BundlerClient",
    "SendUserOperationResponse",
    "encode_erc20_approve_call",
    "encode_erc20_transfer_call",
    "encode_erc721_approve_call",
    "encode_erc721_safe_transfer_call",
    "read_from_contract",
    "read_from_contract_with_first_result",
    "FeeController",
    "increase_fee_by_percentage",
    "EventKind",
    "SmartWalletEvent",
    "StakeRequestBody",
    "TokenDetails",
    "TokenType",
    "TradeRequestBody",
    "UnstakeRequestBody",
    "UserOperationReceipt",
    "EtherspotWallet",
    "Call",
    "UserOperation",
    "UserOperationBuilder",
]
