"""
Authentication challenge signing for the Fuse smart wallet backend
"""

from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from web3 import Web3

from fuse_wallet_sdk.models import AuthDto


class SmartWalletAuth:

    @staticmethod
    def signer(credentials: LocalAccount, smart_wallet_address: str) -> AuthDto:
        """Sign ``keccak256(smart_wallet_address)`` with the owner key, binding the EOA to the wallet"""
        message_hash = Web3.keccak(text=smart_wallet_address)
        signed = credentials.sign_message(encode_defunct(primitive=bytes(message_hash)))
        return AuthDto(
            hash="0x" + bytes(message_hash).hex(),
            owner_address=credentials.address,
            signature="0x" + bytes(signed.signature).hex(),
            smart_wallet_address=smart_wallet_address,
        )
