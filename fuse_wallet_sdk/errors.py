"""
Error taxonomy for the Fuse smart wallet SDK
"""

from typing import Any, Optional

__all__ = [
    "FuseSDKError",
    "AuthError",
    "RpcError",
    "FeeTooLowError",
    "ModuleError",
    "DecodeError",
    "ConfigError",
    "FEE_TOO_LOW_MESSAGE",
    "is_fee_too_low",
]

FEE_TOO_LOW_MESSAGE = "fee too low"


class FuseSDKError(Exception):
    """Base exception for the Fuse smart wallet SDK."""


class AuthError(FuseSDKError):
    """Raised when the backend rejects the wallet's authentication signature."""


class RpcError(FuseSDKError):
    """Raised when a bundler, paymaster or chain JSON-RPC request fails.

    Attributes:
        code: JSON-RPC error code, when the endpoint returned one
        data: JSON-RPC error data, when present
    """

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


class FeeTooLowError(RpcError):
    """Raised when the bundler rejects a user operation as underpriced."""


class ModuleError(FuseSDKError):
    """Business error reported by a trade, staking, NFT or explorer endpoint."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(FuseSDKError):
    """Raised when a contract read returns no data or data that does not match the ABI."""


class ConfigError(FuseSDKError, ValueError):
    """Raised for malformed initialization parameters."""


def is_fee_too_low(message: str) -> bool:
    """Default fee-too-low classifier.

    Matches the bundler's error text, so it breaks if the backend rewords
    the message. Supply a different classifier through ``ClientOpts`` for
    bundlers that report underpriced operations differently.
    """
    return FEE_TOO_LOW_MESSAGE in (message or "").lower()
