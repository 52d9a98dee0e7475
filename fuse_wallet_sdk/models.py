"""
Request and response records exchanged with the Fuse API and bundler
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from fuse_wallet_sdk.amounts import parse_quantity
from fuse_wallet_sdk.config import NATIVE_TOKEN_ADDRESS


class TokenType(str, Enum):
    NATIVE = "native"
    ERC20 = "ERC-20"


@dataclass
class TokenDetails:
    contract_address: str
    name: str
    symbol: str
    decimals: int
    balance: int = 0
    type: TokenType = TokenType.ERC20

    @classmethod
    def native(cls, amount: int = 0) -> "TokenDetails":
        """Descriptor for the chain's native token; built locally without any network call"""
        return cls(
            contract_address=NATIVE_TOKEN_ADDRESS,
            name="Fuse",
            symbol="FUSE",
            decimals=18,
            balance=amount,
            type=TokenType.NATIVE,
        )

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TokenDetails":
        return cls(
            contract_address=data['contractAddress'],
            name=data['name'],
            symbol=data['symbol'],
            decimals=int(data['decimals']),
            balance=int(data.get('balance') or 0),
            type=TokenType(data.get('type', TokenType.ERC20.value)),
        )


@dataclass
class AuthDto:
    hash: str
    owner_address: str
    signature: str
    smart_wallet_address: str

    def to_json(self) -> Dict[str, str]:
        return {
            'hash': self.hash,
            'ownerAddress': self.owner_address,
            'signature': self.signature,
            'smartWalletAddress': self.smart_wallet_address,
        }


@dataclass
class TradeRequestBody:
    currency_in: str
    currency_out: str
    amount_in: str
    recipient: str

    def to_json(self) -> Dict[str, str]:
        return {
            'currencyIn': self.currency_in,
            'currencyOut': self.currency_out,
            'amountIn': self.amount_in,
            'recipient': self.recipient,
        }


@dataclass
class TradeCallParameters:
    raw_txn: Dict[str, Any]

    @property
    def to(self) -> str:
        return self.raw_txn['to']

    @property
    def data(self) -> str:
        return self.raw_txn['data']

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TradeCallParameters":
        return cls(raw_txn=dict(data['rawTxn']))


@dataclass
class StakeRequestBody:
    account_address: str
    token_amount: str
    token_address: str

    def to_json(self) -> Dict[str, str]:
        return {
            'accountAddress': self.account_address,
            'tokenAmount': self.token_amount,
            'tokenAddress': self.token_address,
        }


# Same wire shape as a stake request
UnstakeRequestBody = StakeRequestBody


@dataclass
class StakingCallData:
    """Encoded call and target contract returned for a stake or unstake request"""
    contract_address: str
    encoded_abi: str

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "StakingCallData":
        return cls(contract_address=data['contractAddress'], encoded_abi=data['encodedABI'])


@dataclass
class StakingOption:
    token_address: str
    token_symbol: str
    token_name: str
    token_logo_uri: str
    unstake_token_address: str
    staking_apr: float
    expired: bool = False

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "StakingOption":
        return cls(
            token_address=data['tokenAddress'],
            token_symbol=data['tokenSymbol'],
            token_name=data['tokenName'],
            token_logo_uri=data.get('tokenLogoURI', ''),
            unstake_token_address=data['unStakeTokenAddress'],
            staking_apr=float(data.get('stakingApr') or 0),
            expired=bool(data.get('expired', False)),
        )


@dataclass
class StakedToken:
    token_address: str
    token_symbol: str
    token_name: str
    token_logo_uri: str
    staked_amount: float
    unstake_token_address: str
    staked_amount_usd: float
    earned_amount_usd: float
    staking_apr: float

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "StakedToken":
        return cls(
            token_address=data['tokenAddress'],
            token_symbol=data['tokenSymbol'],
            token_name=data['tokenName'],
            token_logo_uri=data['tokenLogoURI'],
            staked_amount=float(data['stakedAmount']),
            unstake_token_address=data['unStakeTokenAddress'],
            staked_amount_usd=float(data['stakedAmountUSD']),
            earned_amount_usd=float(data['earnedAmountUSD']),
            staking_apr=float(data['stakingApr']),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            'tokenAddress': self.token_address,
            'tokenSymbol': self.token_symbol,
            'tokenName': self.token_name,
            'tokenLogoURI': self.token_logo_uri,
            'stakedAmount': self.staked_amount,
            'unStakeTokenAddress': self.unstake_token_address,
            'stakedAmountUSD': self.staked_amount_usd,
            'earnedAmountUSD': self.earned_amount_usd,
            'stakingApr': self.staking_apr,
        }


@dataclass
class StakedTokenResponse:
    total_staked_amount_usd: float
    total_earned_amount_usd: float
    staked_tokens: List[StakedToken] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "StakedTokenResponse":
        return cls(
            total_staked_amount_usd=float(data['totalStakedAmountUSD']),
            total_earned_amount_usd=float(data['totalEarnedAmountUSD']),
            staked_tokens=[StakedToken.from_json(t) for t in data['stakedTokens']],
        )


@dataclass
class Collectible:
    token_id: str
    collection_address: str
    collection_name: str
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Collectible":
        collection = data.get('collection') or {}
        return cls(
            token_id=str(data['tokenId']),
            collection_address=collection.get('collectionAddress', ''),
            collection_name=collection.get('collectionName', ''),
            name=data.get('name'),
            description=data.get('description'),
            image_url=data.get('imageURL'),
        )


@dataclass
class TokenBalance:
    """Token holding as reported by the explorer"""
    contract_address: str
    name: str
    symbol: str
    decimals: int
    balance: int
    type: str

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TokenBalance":
        return cls(
            contract_address=data['contractAddress'],
            name=data.get('name', ''),
            symbol=data.get('symbol', ''),
            decimals=int(data.get('decimals') or 0),
            balance=int(data.get('balance') or 0),
            type=data.get('type', TokenType.ERC20.value),
        )


@dataclass
class UserOperationReceipt:
    user_op_hash: str
    success: bool
    transaction_hash: Optional[str] = None
    sender: Optional[str] = None
    nonce: int = 0
    actual_gas_cost: int = 0
    actual_gas_used: int = 0
    reason: Optional[str] = None
    block_number: Optional[int] = None

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "UserOperationReceipt":
        receipt = data.get('receipt') or {}
        block_number = receipt.get('blockNumber')
        return cls(
            user_op_hash=data['userOpHash'],
            success=bool(data.get('success')),
            transaction_hash=receipt.get('transactionHash'),
            sender=data.get('sender'),
            nonce=parse_quantity(data.get('nonce')),
            actual_gas_cost=parse_quantity(data.get('actualGasCost')),
            actual_gas_used=parse_quantity(data.get('actualGasUsed')),
            reason=data.get('reason') or None,
            block_number=parse_quantity(block_number) if block_number is not None else None,
        )


class EventKind(str, Enum):
    STARTED = "transactionStarted"
    HASH_ASSIGNED = "transactionHash"
    SUCCEEDED = "transactionSucceeded"
    FAILED = "transactionFailed"


@dataclass(frozen=True)
class SmartWalletEvent:
    """Lifecycle event emitted while a user operation is being confirmed"""
    kind: EventKind
    data: Any = None

    @classmethod
    def started(cls, user_op_hash: str) -> "SmartWalletEvent":
        return cls(EventKind.STARTED, user_op_hash)

    @classmethod
    def hash_assigned(cls, tx_hash: str) -> "SmartWalletEvent":
        return cls(EventKind.HASH_ASSIGNED, tx_hash)

    @classmethod
    def succeeded(cls, receipt: UserOperationReceipt) -> "SmartWalletEvent":
        return cls(EventKind.SUCCEEDED, receipt)

    @classmethod
    def failed(cls, reason: str) -> "SmartWalletEvent":
        return cls(EventKind.FAILED, reason)

    @property
    def is_terminal(self) -> bool:
        return self.kind in (EventKind.SUCCEEDED, EventKind.FAILED)
