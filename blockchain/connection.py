"""
Web3 connection utilities.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from web3 import Web3
from web3.contract import Contract
from web3.middleware import ExtraDataToPOAMiddleware

from errors import NetworkError


logger = logging.getLogger(__name__)

DEFAULT_ABI_PATH = Path(__file__).parent / "contract_abi.json"


def get_web3_connection(rpc_url: str, poa_chain: bool = False) -> Web3:
    """Create Web3 connection."""
    web3 = Web3(Web3.HTTPProvider(rpc_url))

    # POA networks put extra data in block headers
    if poa_chain:
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    if not web3.is_connected():
        raise NetworkError(f"Failed to connect to {rpc_url}")

    logger.info(f"Connected to blockchain at {rpc_url}")
    return web3


def load_abi(abi_path: Optional[Path] = None) -> list:
    """Load the game contract ABI."""
    with open(abi_path or DEFAULT_ABI_PATH, "r") as f:
        return json.load(f)


def get_contract(web3: Web3, contract_address: str, abi_path: Optional[Path] = None) -> Contract:
    """Get contract instance using ABI from file."""
    contract = web3.eth.contract(
        address=Web3.to_checksum_address(contract_address),
        abi=load_abi(abi_path)
    )

    logger.info(f"Loaded contract at {contract_address}")
    return contract
