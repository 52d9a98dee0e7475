from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import decode, encode

from fuse_wallet_sdk.config import ENTRYPOINT_V06, ETHERSPOT_WALLET_FACTORY, PresetBuilderOpts
from fuse_wallet_sdk.contracts import function_selector
from fuse_wallet_sdk.errors import ConfigError
from fuse_wallet_sdk.smart_wallet import EtherspotWallet
from fuse_wallet_sdk.user_operations import Call, recover_user_operation_signer

from tests.conftest import RECIPIENT, SENDER, SPENDER, TOKEN

BUNDLER_RPC = "https://api.fuse.io/api/v0/bundler?apiKey=test"


def _proxy_client(code=b''):
    client = MagicMock()
    client.eth.call = AsyncMock(return_value=encode(["uint256"], [7]))
    client.eth.get_code = AsyncMock(return_value=code)
    return client


def _bundler():
    bundler = MagicMock()
    bundler.request = AsyncMock(return_value={
        "callGasLimit": "0x1000",
        "verificationGasLimit": "0x2000",
        "preVerificationGas": "0x3000",
    })
    return bundler


def _wallet(owner, code=b'', paymaster_middleware=None):
    return EtherspotWallet(
        credentials=owner,
        proxy_client=_proxy_client(code),
        bundler=_bundler(),
        sender=SENDER,
        paymaster_middleware=paymaster_middleware,
    )


class TestInit:

    @pytest.mark.asyncio
    async def test_resolves_counterfactual_sender(self, owner):
        client = MagicMock()
        client.eth.call = AsyncMock(return_value=encode(["address"], [SENDER]))

        wallet = await EtherspotWallet.init(owner, BUNDLER_RPC, proxy_client=client, bundler=_bundler())

        assert wallet.get_sender().lower() == SENDER.lower()
        request = client.eth.call.call_args[0][0]
        assert request["to"].lower() == ETHERSPOT_WALLET_FACTORY.lower()
        owner_arg, salt = decode(["address", "uint256"], bytes.fromhex(request["data"][10:]))
        assert owner_arg.lower() == owner.address.lower()
        assert salt == 0

    @pytest.mark.asyncio
    async def test_salt_override(self, owner):
        client = MagicMock()
        client.eth.call = AsyncMock(return_value=encode(["address"], [SENDER]))

        wallet = await EtherspotWallet.init(
            owner, BUNDLER_RPC, PresetBuilderOpts(salt=5), proxy_client=client, bundler=_bundler()
        )

        assert wallet.salt == 5
        request = client.eth.call.call_args[0][0]
        assert decode(["address", "uint256"], bytes.fromhex(request["data"][10:]))[1] == 5

    @pytest.mark.asyncio
    async def test_malformed_url(self, owner):
        with pytest.raises(ConfigError):
            await EtherspotWallet.init(owner, "not-a-url")

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self, owner):
        client = MagicMock()
        client.eth.call = AsyncMock(side_effect=OSError("connection refused"))
        with pytest.raises(ConfigError):
            await EtherspotWallet.init(owner, BUNDLER_RPC, proxy_client=client, bundler=_bundler())


class TestCallData:

    def test_execute_encodes_single_call(self, owner):
        builder = _wallet(owner).execute(Call(to=RECIPIENT, value=10, data=b'\x01\x02'))
        call_data = builder.get_call_data()

        assert call_data[:4] == function_selector("execute(address,uint256,bytes)")
        to, value, data = decode(["address", "uint256", "bytes"], call_data[4:])
        assert (to.lower(), value, data) == (RECIPIENT.lower(), 10, b'\x01\x02')

    def test_execute_batch_keeps_call_order(self, owner):
        calls = [Call(to=TOKEN, data=b'\xaa'), Call(to=SPENDER, value=3, data=b'\xbb')]
        call_data = _wallet(owner).execute_batch(calls).get_call_data()

        assert call_data[:4] == function_selector("executeBatch(address[],uint256[],bytes[])")
        targets, values, datas = decode(["address[]", "uint256[]", "bytes[]"], call_data[4:])
        assert [t.lower() for t in targets] == [TOKEN.lower(), SPENDER.lower()]
        assert list(values) == [0, 3]
        assert list(datas) == [b'\xaa', b'\xbb']

    def test_empty_batch_rejected(self, owner):
        with pytest.raises(ValueError):
            _wallet(owner).execute_batch([])


class TestBuildOp:

    @pytest.mark.asyncio
    async def test_undeployed_wallet_gets_init_code_fees_and_signature(self, owner):
        wallet = _wallet(owner, code=b'')
        wallet.fees.set_fees(1_000_000)

        op = await wallet.execute(Call(to=RECIPIENT, value=1)).build_op(ENTRYPOINT_V06, 122)

        assert op.nonce == 7
        assert op.init_code[:20].hex() == ETHERSPOT_WALLET_FACTORY[2:].lower()
        assert op.max_fee_per_gas == op.max_priority_fee_per_gas == 1_000_000
        assert (op.call_gas_limit, op.verification_gas_limit, op.pre_verification_gas) == (
            0x1000, 0x2000, 0x3000
        )
        signer = recover_user_operation_signer(op.get_hash(ENTRYPOINT_V06, 122), op.signature)
        assert signer == owner.address

    @pytest.mark.asyncio
    async def test_deployed_wallet_has_no_init_code(self, owner):
        wallet = _wallet(owner, code=b'\x60\x80')
        op = await wallet.execute(Call(to=RECIPIENT, value=1)).build_op(ENTRYPOINT_V06, 122)
        assert op.init_code == b''

    @pytest.mark.asyncio
    async def test_paymaster_replaces_gas_estimation(self, owner):
        async def paymaster(ctx):
            ctx.op.paymaster_and_data = b'\x99'

        wallet = _wallet(owner, paymaster_middleware=paymaster)
        op = await wallet.execute(Call(to=RECIPIENT)).build_op(ENTRYPOINT_V06, 122)

        assert op.paymaster_and_data == b'\x99'
        wallet.bundler.request.assert_not_called()
