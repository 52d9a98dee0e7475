from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account

from fuse_wallet_sdk.bundler import SendUserOperationResponse
from fuse_wallet_sdk.fees import FeeController
from fuse_wallet_sdk.sdk import FuseSDK

OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
SENDER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x2222222222222222222222222222222222222222"
SPENDER = "0x3333333333333333333333333333333333333333"
RECIPIENT = "0x4444444444444444444444444444444444444444"
UNSTAKE_TOKEN = "0x5555555555555555555555555555555555555555"


class StubWallet:
    """Records the calls of every operation built and the fee in force at that moment"""

    def __init__(self, sender=SENDER):
        self.sender = sender
        self.fees = FeeController()
        self.proxy_client = MagicMock()
        self.proxy_client.eth.call = AsyncMock()
        self.proxy_client.eth.get_balance = AsyncMock(return_value=0)
        self.built = []
        self.fees_at_build = []

    def get_sender(self):
        return self.sender

    def execute(self, call):
        return self._record("execute", [call])

    def execute_batch(self, calls):
        return self._record("execute_batch", list(calls))

    def _record(self, kind, calls):
        self.built.append((kind, calls))
        self.fees_at_build.append((self.fees.max_fee_per_gas, self.fees.max_priority_fee_per_gas))
        return (kind, calls)


@pytest.fixture
def owner():
    return Account.from_key(OWNER_KEY)


@pytest.fixture
def wallet():
    return StubWallet()


@pytest.fixture
def client():
    client = MagicMock()
    client.send_user_operation = AsyncMock(
        return_value=SendUserOperationResponse("0xuserophash", MagicMock())
    )
    return client


@pytest.fixture
def sdk(wallet, client):
    sdk = FuseSDK("test-api-key")
    sdk.wallet = wallet
    sdk.client = client
    return sdk


def json_response(body, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    return response
