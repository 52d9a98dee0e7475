"""
Call data encoding and contract reads for the standard contracts the SDK talks to
"""

import logging
from typing import Any, Dict, List, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import AsyncWeb3, Web3

from fuse_wallet_sdk.errors import DecodeError

logger = logging.getLogger(__name__)


def _fn(name: str, inputs: Sequence[str], outputs: Sequence[str] = (), view: bool = False) -> Dict:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": "", "type": t} for t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
        "stateMutability": "view" if view else "nonpayable",
    }


ERC20_ABI = [
    _fn("name", [], ["string"], view=True),
    _fn("symbol", [], ["string"], view=True),
    _fn("decimals", [], ["uint8"], view=True),
    _fn("totalSupply", [], ["uint256"], view=True),
    _fn("balanceOf", ["address"], ["uint256"], view=True),
    _fn("allowance", ["address", "address"], ["uint256"], view=True),
    _fn("transfer", ["address", "uint256"], ["bool"]),
    _fn("approve", ["address", "uint256"], ["bool"]),
    _fn("transferFrom", ["address", "address", "uint256"], ["bool"]),
]

ERC721_ABI = [
    _fn("name", [], ["string"], view=True),
    _fn("symbol", [], ["string"], view=True),
    _fn("balanceOf", ["address"], ["uint256"], view=True),
    _fn("ownerOf", ["uint256"], ["address"], view=True),
    _fn("getApproved", ["uint256"], ["address"], view=True),
    _fn("tokenURI", ["uint256"], ["string"], view=True),
    _fn("approve", ["address", "uint256"]),
    _fn("safeTransferFrom", ["address", "address", "uint256"]),
]

ENTRY_POINT_ABI = [
    _fn("getNonce", ["address", "uint192"], ["uint256"], view=True),
    _fn("balanceOf", ["address"], ["uint256"], view=True),
]

ETHERSPOT_WALLET_FACTORY_ABI = [
    _fn("getAddress", ["address", "uint256"], ["address"], view=True),
    _fn("createAccount", ["address", "uint256"], ["address"]),
]

ETHERSPOT_WALLET_ABI = [
    _fn("execute", ["address", "uint256", "bytes"]),
    _fn("executeBatch", ["address[]", "uint256[]", "bytes[]"]),
]

ABIS: Dict[str, List[Dict]] = {
    "ERC20": ERC20_ABI,
    "ERC721": ERC721_ABI,
    "EntryPoint": ENTRY_POINT_ABI,
    "EtherspotWalletFactory": ETHERSPOT_WALLET_FACTORY_ABI,
    "EtherspotWallet": ETHERSPOT_WALLET_ABI,
}


def get_function_abi(contract_name: str, method: str) -> Dict:
    """Look up a function entry in one of the bundled ABIs"""
    abi = ABIS.get(contract_name)
    if abi is None:
        raise DecodeError(f"Unknown contract ABI: {contract_name}")
    for entry in abi:
        if entry["type"] == "function" and entry["name"] == method:
            return entry
    raise DecodeError(f"Function {method} not found in {contract_name} ABI")


def function_selector(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature)[:4])


def encode_function_call(contract_name: str, method: str, args: Sequence[Any]) -> bytes:
    """ABI-encode ``method(args)`` with its 4-byte selector"""
    func = get_function_abi(contract_name, method)
    input_types = [inp["type"] for inp in func["inputs"]]
    if len(args) != len(input_types):
        raise ValueError(
            f"{contract_name}.{method} expects {len(input_types)} arguments, got {len(args)}"
        )
    selector = function_selector(f"{method}({','.join(input_types)})")
    return selector + encode(input_types, list(args))


def encode_erc20_transfer_call(token_address: str, recipient: str, amount: int) -> bytes:
    """Encode ``transfer(recipient, amount)`` for an ERC-20 token"""
    return encode_function_call("ERC20", "transfer", [Web3.to_checksum_address(recipient), amount])


def encode_erc20_approve_call(token_address: str, spender: str, amount: int) -> bytes:
    """Encode ``approve(spender, amount)`` for an ERC-20 token"""
    return encode_function_call("ERC20", "approve", [Web3.to_checksum_address(spender), amount])


def encode_erc721_safe_transfer_call(owner: str, recipient: str, token_id: int) -> bytes:
    """Encode ``safeTransferFrom(owner, recipient, token_id)``.

    ``owner`` is the current holder of the NFT, normally the smart wallet.
    """
    return encode_function_call(
        "ERC721",
        "safeTransferFrom",
        [Web3.to_checksum_address(owner), Web3.to_checksum_address(recipient), token_id],
    )


def encode_erc721_approve_call(contract_address: str, spender: str, token_id: int) -> bytes:
    """Encode ``approve(spender, token_id)`` for an ERC-721 collection"""
    return encode_function_call("ERC721", "approve", [Web3.to_checksum_address(spender), token_id])


def decode_function_result(contract_name: str, method: str, data: bytes) -> List[Any]:
    func = get_function_abi(contract_name, method)
    output_types = [out["type"] for out in func["outputs"]]
    if not data:
        raise DecodeError(f"{contract_name}.{method} returned no data")
    try:
        return list(decode(output_types, bytes(data)))
    except DecodingError as e:
        raise DecodeError(f"Could not decode {contract_name}.{method} result: {e}") from e


async def read_from_contract(
    client: AsyncWeb3,
    contract_name: str,
    contract_address: str,
    method: str,
    params: Sequence[Any] = (),
) -> List[Any]:
    """Call a view function with ``eth_call`` and return the decoded outputs as a list"""
    call_data = encode_function_call(contract_name, method, params)
    raw = await client.eth.call({
        "to": Web3.to_checksum_address(contract_address),
        "data": "0x" + call_data.hex(),
    })
    logger.debug(f"{contract_name}.{method} at {contract_address} returned {len(raw)} bytes")
    return decode_function_result(contract_name, method, raw)


async def read_from_contract_with_first_result(
    client: AsyncWeb3,
    contract_name: str,
    contract_address: str,
    method: str,
    params: Sequence[Any] = (),
) -> Any:
    """Like :func:`read_from_contract` but return only the first decoded value"""
    results = await read_from_contract(client, contract_name, contract_address, method, params)
    if not results:
        raise DecodeError(f"{contract_name}.{method} returned zero results")
    return results[0]
