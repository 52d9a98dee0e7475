"""
Thin clients for the Fuse REST modules (trade, staking, NFT, explorer)

Every call returns a Result instead of raising, so HTTP failures and
business errors reach the caller as ModuleError values.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from fuse_wallet_sdk.config import get_api_base_url
from fuse_wallet_sdk.errors import ModuleError
from fuse_wallet_sdk.models import (
    Collectible,
    StakeRequestBody,
    StakedTokenResponse,
    StakingCallData,
    StakingOption,
    TokenBalance,
    TradeCallParameters,
    TradeRequestBody,
    UnstakeRequestBody,
)
from fuse_wallet_sdk.result import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FuseApi:
    """HTTP session for the Fuse REST API. Adds the API key and, once set, the JWT."""

    def __init__(
        self,
        public_api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.public_api_key = public_api_key
        self.base_url = (base_url or get_api_base_url()).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.jwt: Optional[str] = None

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Result[ModuleError, Any]:
        return await Result.capture(
            asyncio.to_thread(self._request, method, path, json, params), ModuleError
        )

    def _request(self, method, path, json, params) -> Any:
        """Send one request and return the decoded body. Raises ModuleError."""
        headers = {'Content-Type': 'application/json'}
        if self.jwt:
            headers['Authorization'] = f"Bearer {self.jwt}"
        query = {'apiKey': self.public_api_key, **(params or {})}

        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=query,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ModuleError(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = (body.get('error') or body.get('message')) if isinstance(body, dict) else None
            logger.error(f"{method} {path} returned HTTP {response.status_code}: {message}")
            raise ModuleError(
                message or f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if isinstance(body, dict) and body.get('error') and body.get('data') is None:
            raise ModuleError(str(body['error']), status_code=response.status_code)
        return body


class _ApiModule:

    def __init__(self, api: FuseApi):
        self.api = api

    async def _fetch(
        self,
        parse: Callable[[Any], T],
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Result[ModuleError, T]:
        response = await self.api.request(method, path, json=json, params=params)
        if response.has_error:
            return response
        payload = response.data
        if isinstance(payload, dict) and 'data' in payload:
            payload = payload['data']
        try:
            return Result.ok(parse(payload))
        except (KeyError, TypeError, ValueError) as e:
            return Result.fail(ModuleError(f"Unexpected response from {path}: {e}"))


class TradeModule(_ApiModule):

    async def request_parameters(self, body: TradeRequestBody) -> Result[ModuleError, TradeCallParameters]:
        """Swap call plan (target contract and call data) for a trade"""
        return await self._fetch(
            TradeCallParameters.from_json, "POST", "/v0/trade/requestparameters", json=body.to_json()
        )

    async def get_price(self, token_address: str) -> Result[ModuleError, str]:
        return await self._fetch(lambda d: str(d['price']), "GET", f"/v0/trade/price/{token_address}")


class StakingModule(_ApiModule):

    async def stake(self, body: StakeRequestBody) -> Result[ModuleError, StakingCallData]:
        return await self._fetch(StakingCallData.from_json, "POST", "/v0/staking/stake", json=body.to_json())

    async def unstake(self, body: UnstakeRequestBody) -> Result[ModuleError, StakingCallData]:
        return await self._fetch(StakingCallData.from_json, "POST", "/v0/staking/unstake", json=body.to_json())

    async def get_staking_options(self) -> Result[ModuleError, List[StakingOption]]:
        return await self._fetch(
            lambda d: [StakingOption.from_json(o) for o in d], "GET", "/v0/staking/stakingOptions"
        )

    async def get_staked_tokens(self, account_address: str) -> Result[ModuleError, StakedTokenResponse]:
        return await self._fetch(
            StakedTokenResponse.from_json, "GET", f"/v0/staking/stakedTokens/{account_address}"
        )


class NftModule(_ApiModule):

    async def get_collectibles_by_owner(self, owner: str) -> Result[ModuleError, List[Collectible]]:
        return await self._fetch(
            lambda d: [Collectible.from_json(c) for c in d], "GET", f"/v0/nft/collectibles/{owner}"
        )


class ExplorerModule(_ApiModule):

    async def get_token_list(self, address: str) -> Result[ModuleError, List[TokenBalance]]:
        return await self._fetch(
            lambda d: [TokenBalance.from_json(t) for t in d['result']],
            "GET",
            "/v0/explorer",
            params={'module': 'account', 'action': 'tokenlist', 'address': address},
        )

    async def get_token_balance(self, token_address: str, address: str) -> Result[ModuleError, int]:
        return await self._fetch(
            lambda d: int(d['result']),
            "GET",
            "/v0/explorer",
            params={
                'module': 'account',
                'action': 'tokenbalance',
                'contractaddress': token_address,
                'address': address,
            },
        )
