"""
JSON-RPC transport for the bundler and paymaster endpoints
"""

import asyncio
import itertools
import logging
from typing import Any, Callable, List, Optional

import requests

from fuse_wallet_sdk.errors import FeeTooLowError, RpcError, is_fee_too_low

logger = logging.getLogger(__name__)


class JsonRpcClient:
    """Posts JSON-RPC requests with a shared ``requests`` session.

    Requests run in a worker thread so callers on the event loop are not blocked.
    Errors are raised as :class:`RpcError`; messages the classifier flags as an
    underpriced operation are raised as :class:`FeeTooLowError`.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30,
        fee_error_classifier: Callable[[str], bool] = is_fee_too_low,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.fee_error_classifier = fee_error_classifier
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    async def request(self, method: str, params: List) -> Any:
        return await asyncio.to_thread(self._make_request, method, params)

    def _make_request(self, method: str, params: List) -> Any:
        """Make JSON-RPC request and return its ``result``"""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        logger.debug(f"JSON-RPC {method}: {params}")

        try:
            response = self.session.post(
                self.url,
                json=payload,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Request failed: {e}")
            raise RpcError(f"{method} request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"HTTP error: {response.status_code}")
            raise RpcError(f"{method} returned HTTP {response.status_code}", code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise RpcError(f"{method} returned a non-JSON response") from e

        if body.get('error'):
            error = body['error']
            message = error.get('message', 'Unknown error')
            logger.error(f"{method} error: {message}")
            error_type = FeeTooLowError if self.fee_error_classifier(message) else RpcError
            raise error_type(message, code=error.get('code'), data=error.get('data'))

        return body.get('result')
