"""
Configuration settings for the RPS ledger client.
"""

import os
from dataclasses import dataclass
from typing import Optional


# Deployment the original web client talked to
DEFAULT_CONTRACT_ADDRESS = "0x5821dc572072ace880fb032da8b2d6cd3312de58"


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ClientConfig:
    """Client configuration settings."""

    # Blockchain settings
    rpc_url: str
    private_key: str
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    chain_id: Optional[int] = None
    poa_chain: bool = False

    # First block to scan when rebuilding a game from its event history
    deploy_block: int = 0

    # Confirmation settings
    confirmation_timeout_seconds: float = 120.0
    poll_interval_seconds: float = 2.0

    # Transaction settings
    gas_buffer_percent: int = 20

    # Database settings
    db_path: str = "rps_client.db"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Create config from environment variables."""
        # Normalize private key to ensure it has 0x prefix
        private_key = os.environ["RPS_PRIVATE_KEY"].strip()
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key

        chain_id = os.getenv("RPS_CHAIN_ID")

        return cls(
            rpc_url=os.environ["RPS_RPC_URL"],
            private_key=private_key,
            contract_address=os.getenv("RPS_CONTRACT_ADDRESS", DEFAULT_CONTRACT_ADDRESS),
            chain_id=int(chain_id) if chain_id else None,
            poa_chain=_env_flag("RPS_POA_CHAIN"),
            deploy_block=int(os.getenv("RPS_DEPLOY_BLOCK", "0")),
            confirmation_timeout_seconds=float(os.getenv("RPS_CONFIRMATION_TIMEOUT", "120")),
            poll_interval_seconds=float(os.getenv("RPS_POLL_INTERVAL", "2")),
            gas_buffer_percent=int(os.getenv("RPS_GAS_BUFFER_PERCENT", "20")),
            db_path=os.getenv("RPS_DB_PATH", "rps_client.db"),
        )
