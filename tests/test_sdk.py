from unittest.mock import AsyncMock

import pytest
from eth_abi import decode
from eth_account import Account
from eth_account.messages import encode_defunct
from hexbytes import HexBytes

from fuse_wallet_sdk import sdk as sdk_module
from fuse_wallet_sdk.config import NATIVE_TOKEN_ADDRESS, SmartWalletConfig, TxOptions
from fuse_wallet_sdk.errors import AuthError, FeeTooLowError, ModuleError, RpcError
from fuse_wallet_sdk.models import (
    StakeRequestBody,
    StakingCallData,
    TokenDetails,
    TokenType,
    TradeCallParameters,
    TradeRequestBody,
)
from fuse_wallet_sdk.result import Result
from fuse_wallet_sdk.user_operations import Call

from tests.conftest import RECIPIENT, SENDER, SPENDER, TOKEN, UNSTAKE_TOKEN

CALL_DATA = b'\xde\xad\xbe\xef'


def _selector(call):
    return call.data[:4].hex()


def _token(decimals):
    return TokenDetails(TOKEN, "Token", "TKN", decimals)


class TestProcessOperation:

    @pytest.mark.asyncio
    async def test_native_token_sends_value_without_approval(self, sdk, wallet, monkeypatch):
        allowance = AsyncMock()
        monkeypatch.setattr(sdk, "get_allowance", allowance)

        await sdk._process_operation(NATIVE_TOKEN_ADDRESS, SPENDER, CALL_DATA, 500)

        kind, calls = wallet.built[0]
        assert kind == "execute"
        assert (calls[0].to, calls[0].value, calls[0].data) == (SPENDER, 500, CALL_DATA)
        allowance.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("allowance", [500, 10**18])
    async def test_sufficient_allowance_skips_approval(self, sdk, wallet, monkeypatch, allowance):
        monkeypatch.setattr(sdk, "get_allowance", AsyncMock(return_value=allowance))

        await sdk._process_operation(TOKEN, SPENDER, CALL_DATA, 500)

        kind, calls = wallet.built[0]
        assert kind == "execute"
        assert (calls[0].to, calls[0].value, calls[0].data) == (SPENDER, 0, CALL_DATA)

    @pytest.mark.asyncio
    async def test_insufficient_allowance_batches_approve_then_call(self, sdk, wallet, monkeypatch):
        monkeypatch.setattr(sdk, "get_allowance", AsyncMock(return_value=499))

        await sdk._process_operation(TOKEN, SPENDER, CALL_DATA, 500)

        kind, calls = wallet.built[0]
        assert kind == "execute_batch"
        approve, target = calls
        assert approve.to == TOKEN
        assert _selector(approve) == "095ea7b3"
        spender, amount = decode(["address", "uint256"], approve.data[4:])
        assert (spender.lower(), amount) == (SPENDER.lower(), 500)
        assert (target.to, target.value, target.data) == (SPENDER, 0, CALL_DATA)

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self, sdk, wallet):
        with pytest.raises(ValueError):
            await sdk._process_operation(TOKEN, SPENDER, CALL_DATA, -1)
        assert wallet.built == []


@pytest.mark.asyncio
async def test_approve_and_call_always_includes_approval(sdk, wallet, monkeypatch):
    allowance = AsyncMock(return_value=10**30)
    monkeypatch.setattr(sdk, "get_allowance", allowance)

    await sdk.approve_token_and_call_contract(TOKEN, SPENDER, 5, CALL_DATA)

    kind, calls = wallet.built[0]
    assert kind == "execute_batch"
    assert len(calls) == 2
    allowance.assert_not_called()


class TestRetry:

    @pytest.mark.asyncio
    async def test_without_retry_fee_error_propagates(self, sdk, client, wallet):
        client.send_user_operation.side_effect = FeeTooLowError("fee too low")

        with pytest.raises(FeeTooLowError):
            await sdk.transfer_token(NATIVE_TOKEN_ADDRESS, RECIPIENT, 1)
        assert client.send_user_operation.await_count == 1
        assert len(wallet.built) == 1

    @pytest.mark.asyncio
    async def test_retry_resubmits_once_with_increased_fee(self, sdk, client, wallet):
        ok = client.send_user_operation.return_value
        client.send_user_operation.side_effect = [FeeTooLowError("fee too low"), ok]

        response = await sdk.transfer_token(
            NATIVE_TOKEN_ADDRESS, RECIPIENT, 1, TxOptions(with_retry=True)
        )

        assert response is ok
        assert wallet.fees_at_build == [(1_000_000, 1_000_000), (1_100_000, 1_100_000)]

    @pytest.mark.asyncio
    async def test_second_fee_error_propagates(self, sdk, client):
        client.send_user_operation.side_effect = [
            FeeTooLowError("fee too low"),
            FeeTooLowError("fee too low"),
        ]
        with pytest.raises(FeeTooLowError):
            await sdk.call_contract(SPENDER, 0, CALL_DATA, TxOptions(with_retry=True))
        assert client.send_user_operation.await_count == 2

    @pytest.mark.asyncio
    async def test_other_rpc_errors_are_not_retried(self, sdk, client):
        client.send_user_operation.side_effect = RpcError("AA21 didn't pay prefund")
        with pytest.raises(RpcError):
            await sdk.call_contract(SPENDER, 0, CALL_DATA, TxOptions(with_retry=True))
        assert client.send_user_operation.await_count == 1

    @pytest.mark.asyncio
    async def test_batch_without_retry_builds_once(self, sdk, client, wallet):
        client.send_user_operation.side_effect = FeeTooLowError("fee too low")
        calls = [Call(to=TOKEN, data=CALL_DATA), Call(to=SPENDER, value=1)]

        with pytest.raises(FeeTooLowError):
            await sdk.execute_batch(calls)

        assert [kind for kind, _ in wallet.built] == ["execute_batch"]

    @pytest.mark.asyncio
    async def test_batch_retry_rebuilds_same_calls_at_higher_fee(self, sdk, client, wallet):
        ok = client.send_user_operation.return_value
        client.send_user_operation.side_effect = [FeeTooLowError("fee too low"), ok]
        calls = [Call(to=TOKEN, data=CALL_DATA), Call(to=SPENDER, value=1)]

        assert await sdk.execute_batch(calls, TxOptions(with_retry=True)) is ok

        assert wallet.built == [("execute_batch", calls), ("execute_batch", calls)]
        assert wallet.fees_at_build == [(1_000_000, 1_000_000), (1_100_000, 1_100_000)]
        assert client.send_user_operation.await_count == 2

    @pytest.mark.asyncio
    async def test_custom_fee_and_increment(self, sdk, client, wallet):
        ok = client.send_user_operation.return_value
        client.send_user_operation.side_effect = [FeeTooLowError("fee too low"), ok]

        await sdk.call_contract(
            SPENDER, 0, CALL_DATA,
            TxOptions(fee_per_gas="2000000", fee_increment_percentage=25, with_retry=True),
        )
        assert wallet.fees_at_build == [(2_000_000, 2_000_000), (2_500_000, 2_500_000)]


class TestTransfers:

    @pytest.mark.asyncio
    async def test_native_transfer_is_plain_value_call(self, sdk, wallet):
        await sdk.transfer_token(NATIVE_TOKEN_ADDRESS, RECIPIENT, 10**18)
        call = wallet.built[0][1][0]
        assert (call.to, call.value, call.data) == (RECIPIENT, 10**18, b'')

    @pytest.mark.asyncio
    async def test_erc20_transfer_targets_token(self, sdk, wallet):
        await sdk.transfer_token(TOKEN, RECIPIENT, 7)
        call = wallet.built[0][1][0]
        assert (call.to, call.value) == (TOKEN, 0)
        assert _selector(call) == "a9059cbb"

    @pytest.mark.asyncio
    async def test_nft_transfer_is_from_the_wallet(self, sdk, wallet):
        await sdk.transfer_nft(TOKEN, RECIPIENT, 3)
        call = wallet.built[0][1][0]
        owner, recipient, token_id = decode(["address", "address", "uint256"], call.data[4:])
        assert owner.lower() == SENDER.lower()
        assert recipient.lower() == RECIPIENT.lower()
        assert token_id == 3

    @pytest.mark.asyncio
    async def test_execute_batch_rejects_empty(self, sdk):
        with pytest.raises(ValueError):
            await sdk.execute_batch([])


class TestTokenDetails:

    @pytest.mark.asyncio
    async def test_native_needs_no_network(self, sdk, wallet):
        details = await sdk.get_erc20_token_details(NATIVE_TOKEN_ADDRESS)
        assert (details.symbol, details.decimals, details.type) == ("FUSE", 18, TokenType.NATIVE)
        wallet.proxy_client.eth.call.assert_not_called()

    @pytest.mark.asyncio
    async def test_erc20_reads_name_symbol_decimals(self, sdk, monkeypatch):
        values = {"name": ["Fuse Dollar"], "symbol": ["fUSD"], "decimals": [6]}

        async def fake_read(client, contract, address, method, params):
            return values[method]

        monkeypatch.setattr(sdk_module, "read_from_contract", fake_read)
        details = await sdk.get_erc20_token_details(TOKEN)

        assert (details.name, details.symbol, details.decimals) == ("Fuse Dollar", "fUSD", 6)
        assert details.type == TokenType.ERC20

    @pytest.mark.asyncio
    async def test_native_balance_uses_chain_balance(self, sdk, wallet):
        wallet.proxy_client.eth.get_balance.return_value = 42
        assert await sdk.get_balance(NATIVE_TOKEN_ADDRESS, RECIPIENT) == 42


class TestModuleOperations:

    @pytest.mark.asyncio
    async def test_swap_converts_amount_with_token_decimals(self, sdk, wallet, monkeypatch):
        sdk.trade_module.request_parameters = AsyncMock(return_value=Result.ok(
            TradeCallParameters({"to": SPENDER, "data": "0xdeadbeef"})
        ))
        monkeypatch.setattr(sdk, "get_erc20_token_details", AsyncMock(return_value=_token(6)))
        monkeypatch.setattr(sdk, "get_allowance", AsyncMock(return_value=0))

        await sdk.swap_tokens(TradeRequestBody(TOKEN, NATIVE_TOKEN_ADDRESS, "1.5", SENDER))

        kind, (approve, target) = wallet.built[0]
        assert kind == "execute_batch"
        assert decode(["address", "uint256"], approve.data[4:])[1] == 1_500_000
        assert target.data == CALL_DATA

    @pytest.mark.asyncio
    async def test_stake_module_error_raises(self, sdk, wallet):
        sdk.staking_module.stake = AsyncMock(return_value=Result.fail(ModuleError("boom", status_code=500)))

        with pytest.raises(ModuleError):
            await sdk.stake_token(StakeRequestBody(SENDER, "1", TOKEN))
        assert wallet.built == []

    @pytest.mark.asyncio
    async def test_unstake_spends_receipt_token(self, sdk, wallet, monkeypatch):
        sdk.staking_module.unstake = AsyncMock(return_value=Result.ok(
            StakingCallData(contract_address=SPENDER, encoded_abi="0xdeadbeef")
        ))
        monkeypatch.setattr(sdk, "get_erc20_token_details", AsyncMock(return_value=_token(18)))
        allowance = AsyncMock(return_value=0)
        monkeypatch.setattr(sdk, "get_allowance", allowance)

        await sdk.unstake_token(StakeRequestBody(SENDER, "2", TOKEN), UNSTAKE_TOKEN)

        allowance.assert_awaited_once_with(UNSTAKE_TOKEN, SPENDER)
        approve = wallet.built[0][1][0]
        assert approve.to == UNSTAKE_TOKEN


class TestAuthenticate:

    @pytest.mark.asyncio
    async def test_stores_jwt(self, sdk, owner):
        sdk._api.request = AsyncMock(return_value=Result.ok({"jwt": "token"}))

        result = await sdk.authenticate(owner)

        assert result.data == "token"
        assert sdk.jwt_token == "token"
        assert sdk._api.jwt == "token"

        method, path = sdk._api.request.call_args.args
        body = sdk._api.request.call_args.kwargs["json"]
        assert (method, path) == ("POST", "/v2/smart-wallets/auth")
        assert body["smartWalletAddress"] == SENDER
        assert body["ownerAddress"] == owner.address
        signer = Account.recover_message(
            encode_defunct(primitive=bytes(HexBytes(body["hash"]))), signature=body["signature"]
        )
        assert signer == owner.address

    @pytest.mark.asyncio
    async def test_rejection_is_an_error_result(self, sdk, owner):
        sdk._api.request = AsyncMock(return_value=Result.fail(ModuleError("unauthorized", status_code=401)))

        result = await sdk.authenticate(owner)

        assert result.has_error
        assert isinstance(result.error, AuthError)
        assert sdk.jwt_token is None


@pytest.mark.asyncio
async def test_create_fuse_sdk_passes_paymaster_settings(owner, monkeypatch):
    init = AsyncMock()
    monkeypatch.setattr(sdk_module.FuseSDK, "init", init)
    config = SmartWalletConfig("pk", with_paymaster=True, paymaster_context={"sponsorId": "fuse"})

    await sdk_module.create_fuse_sdk(owner, config)

    kwargs = init.call_args.kwargs
    assert kwargs["with_paymaster"] is True
    assert kwargs["paymaster_context"] == {"sponsorId": "fuse"}
