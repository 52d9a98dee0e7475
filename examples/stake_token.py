"""
Stake a token and follow the user operation's lifecycle events
"""

import asyncio
import logging
import os

from fuse_wallet_sdk import EventKind, FuseSDK, ModuleError, StakeRequestBody, TxOptions

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main() -> None:
    fuse_sdk = await FuseSDK.init(
        os.environ["FUSE_PUBLIC_API_KEY"],
        os.environ["WALLET_PRIVATE_KEY"],
    )

    stake_request_body = StakeRequestBody(
        account_address=fuse_sdk.wallet.get_sender(),
        token_amount=os.environ["TOKEN_AMOUNT"],
        token_address=os.environ["TOKEN_ADDRESS"],
    )

    try:
        response = await fuse_sdk.stake_token(stake_request_body, TxOptions(with_retry=True))
    except ModuleError as e:
        logger.error(f"An error occurred while staking tokens: {e}")
        raise SystemExit(1)

    async for event in response.events():
        logger.info(f"{event.kind.value} {event.data}")
        if event.kind == EventKind.FAILED:
            raise SystemExit(1)


if __name__ == "__main__":
    asyncio.run(main())
