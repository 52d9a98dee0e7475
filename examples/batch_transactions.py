"""
Send a native transfer and an ERC-20 transfer in a single user operation
"""

import asyncio
import logging
import os

from fuse_wallet_sdk import Call, FuseSDK, encode_erc20_transfer_call

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main() -> None:
    # Create a project: https://developers.fuse.io
    fuse_sdk = await FuseSDK.init(
        os.environ["FUSE_PUBLIC_API_KEY"],
        os.environ["WALLET_PRIVATE_KEY"],
    )

    token = os.environ["TOKEN_ADDRESS"]
    recipient = os.environ["RECIPIENT_ADDRESS"]
    amount = int(os.environ["AMOUNT_IN_WEI"])

    response = await fuse_sdk.execute_batch([
        Call(to=recipient, value=amount, data=b''),
        Call(to=token, value=0, data=encode_erc20_transfer_call(token, recipient, amount)),
    ])
    logger.info(f"UserOpHash: {response.user_op_hash}")

    logger.info("Waiting for transaction...")
    receipt = await response.wait()
    logger.info(f"Transaction hash: {receipt.transaction_hash if receipt else None}")


if __name__ == "__main__":
    asyncio.run(main())
