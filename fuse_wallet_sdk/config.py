"""
Configuration for Fuse smart wallet operations
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode, urlparse

from fuse_wallet_sdk.errors import ConfigError, is_fee_too_low

# Network constants
BASE_URL = "api.fuse.io"
NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
ENTRYPOINT_V06 = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"
ETHERSPOT_WALLET_FACTORY = "0x7f6d8F107fE8551160BD5351d5F1514A6aD5d40E"
FUSE_CHAIN_ID = 122

# Default gas limits for UserOperations
DEFAULT_GAS_LIMITS = {
    "call": 35000,
    "verification": 200000,
    "pre_verification": 50000,
}

# Placeholder ECDSA signature accepted by bundlers during gas estimation
DUMMY_SIGNATURE = (
    "0xfffffffffffffffffffffffffffffff0000000000000000000000000000000007"
    "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa1c"
)


def validate_rpc_url(url: str, name: str = "rpc_url") -> str:
    """Reject URLs that are not absolute http(s) endpoints"""
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"{name} must be an absolute http(s) URL (got: {url!r})")
    return url


def get_api_base_url(base_url: str = BASE_URL) -> str:
    return f"https://{base_url}/api"


def get_bundler_rpc(public_api_key: str, base_url: str = BASE_URL) -> str:
    """Bundler JSON-RPC endpoint for the given public API key"""
    return f"https://{base_url}/api/v0/bundler?{urlencode({'apiKey': public_api_key})}"


def get_paymaster_rpc(public_api_key: str, base_url: str = BASE_URL) -> str:
    """Paymaster JSON-RPC endpoint for the given public API key"""
    return f"https://{base_url}/api/v0/paymaster?{urlencode({'apiKey': public_api_key})}"


@dataclass(frozen=True)
class TxOptions:
    """Per-operation fee and retry settings"""
    fee_per_gas: str = "1000000"
    fee_increment_percentage: int = 10
    with_retry: bool = False


DEFAULT_TX_OPTIONS = TxOptions(
    fee_per_gas="1000000",
    fee_increment_percentage=10,
    with_retry=False,
)


@dataclass
class PresetBuilderOpts:
    """Smart wallet construction overrides. Unset fields fall back to the Fuse defaults."""
    entry_point: Optional[str] = None
    salt: Optional[int] = None
    factory_address: Optional[str] = None
    paymaster_middleware: Optional[Callable[..., Any]] = None
    override_bundler_rpc: Optional[str] = None


@dataclass
class ClientOpts:
    """Bundler client settings"""
    entry_point: str = ENTRYPOINT_V06
    wait_timeout: float = 30.0
    wait_interval: float = 5.0
    request_timeout: float = 30.0
    fee_error_classifier: Callable[[str], bool] = is_fee_too_low
    override_bundler_rpc: Optional[str] = None


@dataclass
class SmartWalletConfig:
    """Configuration for Fuse smart wallet operations"""
    public_api_key: str
    base_url: str = BASE_URL
    rpc_url: Optional[str] = None
    with_paymaster: bool = False
    paymaster_context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "SmartWalletConfig":
        public_api_key = os.environ.get("FUSE_PUBLIC_API_KEY")
        if not public_api_key:
            raise ConfigError("FUSE_PUBLIC_API_KEY environment variable is required")
        rpc_url = os.environ.get("FUSE_RPC_URL")
        if rpc_url:
            validate_rpc_url(rpc_url, "FUSE_RPC_URL")
        try:
            paymaster_context = json.loads(os.environ.get("FUSE_PAYMASTER_CONTEXT") or "{}")
        except ValueError as e:
            raise ConfigError(f"FUSE_PAYMASTER_CONTEXT must be a JSON object: {e}") from e
        if not isinstance(paymaster_context, dict):
            raise ConfigError("FUSE_PAYMASTER_CONTEXT must be a JSON object")
        return cls(
            public_api_key=public_api_key,
            base_url=os.environ.get("FUSE_BASE_URL", BASE_URL),
            rpc_url=rpc_url,
            with_paymaster=os.environ.get("FUSE_WITH_PAYMASTER", "false").lower() in ("1", "true", "yes"),
            paymaster_context=paymaster_context,
        )
