"""
Transaction utilities: operation requests, the signing wallet and the
contract invoker.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import requests
from eth_utils import ValidationError as KeyFormatError
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError, Web3Exception

from errors import NetworkError, Reverted, ValidationError, WalletRejection
from .game import Choice
from .units import MAX_UINT256


logger = logging.getLogger(__name__)

# Failures talking to the node. web3 reports JSON-RPC errors as
# Web3Exception subclasses or plain ValueError depending on the provider.
TRANSPORT_ERRORS = (
    requests.exceptions.RequestException,
    ConnectionError,
    TimeoutError,
    Web3Exception,
    ValueError,
)


@dataclass(frozen=True)
class OperationRequest:
    """A contract call ready for submission. Never mutated after creation."""
    function_name: str
    args: Tuple[Any, ...] = ()
    value: int = 0
    game_id: Optional[int] = None


def parse_game_id(game_id: Any) -> int:
    """Validate a user supplied game id."""
    if game_id is None or isinstance(game_id, bool):
        raise ValidationError("Game ID is required")
    if isinstance(game_id, str):
        text = game_id.strip()
        if not text.isdecimal():
            raise ValidationError(f"Invalid game ID: {game_id!r}")
        game_id = int(text)
    if not isinstance(game_id, int):
        raise ValidationError(f"Invalid game ID: {game_id!r}")
    if game_id < 0 or game_id > MAX_UINT256:
        raise ValidationError(f"Game ID out of range: {game_id}")
    return game_id


def _require_stake(stake: Any) -> int:
    if isinstance(stake, bool) or not isinstance(stake, int):
        raise ValidationError(f"Stake must be an integer amount of wei, got {stake!r}")
    if stake <= 0:
        raise ValidationError("Stake must be greater than zero")
    if stake > MAX_UINT256:
        raise ValidationError(f"Stake out of range: {stake}")
    return stake


def _error_message(exc: Exception) -> str:
    """Extract the provider error message if present."""
    details = exc.args[0] if exc.args else None
    if isinstance(details, dict):
        return str(details.get("message", "")).lower()
    return str(exc).lower()


def estimate_gas_with_buffer(function_call, params: Dict[str, Any], buffer_percent: int = 20) -> int:
    """Estimate gas with buffer.

    A revert during estimation propagates: sending the transaction anyway
    would only burn the fee.
    """
    estimated_gas = function_call.estimate_gas(params)
    return int(estimated_gas * (1 + buffer_percent / 100))


class LocalAccountWallet:
    """Wallet adapter signing with a locally held private key.

    ``approve`` is called with the built transaction before signing; a falsy
    return declines it.
    """

    def __init__(
        self,
        web3: Web3,
        private_key: str,
        *,
        chain_id: Optional[int] = None,
        gas_buffer_percent: int = 20,
        approve: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ):
        self.web3 = web3
        self._private_key = private_key
        try:
            self.account = web3.eth.account.from_key(private_key)
        except (ValueError, TypeError, KeyFormatError):
            raise ValidationError("Private key is not a valid 32 byte hex key")
        self.chain_id = chain_id
        self.gas_buffer_percent = gas_buffer_percent
        self.approve = approve

    @property
    def address(self) -> str:
        return self.account.address

    def submit(self, function_call, value: int = 0) -> str:
        """Build, sign and broadcast a contract call. Returns the tx hash.

        Does not wait for the receipt and never retries.
        """
        params: Dict[str, Any] = {"from": self.address, "value": value}
        try:
            gas = estimate_gas_with_buffer(function_call, params, self.gas_buffer_percent)
            tx_params = dict(params)
            tx_params["gas"] = gas
            tx_params["nonce"] = self.web3.eth.get_transaction_count(self.address, "pending")
            if self.chain_id is not None:
                tx_params["chainId"] = self.chain_id
            transaction = function_call.build_transaction(tx_params)
        except ContractLogicError as exc:
            raise Reverted(f"Operation would revert: {exc}", submitted=False)
        except TRANSPORT_ERRORS as exc:
            raise NetworkError(f"Failed to prepare transaction: {exc}")

        if self.approve is not None and not self.approve(transaction):
            raise WalletRejection("Signer declined the transaction")

        signed_txn = self.web3.eth.account.sign_transaction(transaction, self._private_key)

        try:
            tx_hash = self.web3.eth.send_raw_transaction(signed_txn.raw_transaction)
        except TRANSPORT_ERRORS as exc:
            # Same signed bytes already pooled: hand back its hash
            if "already known" in _error_message(exc):
                computed_hash = Web3.to_hex(Web3.keccak(signed_txn.raw_transaction))
                logger.info(f"Transaction already known to node: {computed_hash}")
                return computed_hash
            raise NetworkError(f"Failed to broadcast transaction: {exc}")

        return Web3.to_hex(tx_hash)


class ContractInvoker:
    """Builds operation requests and submits them through the wallet.

    All local preconditions are checked in the ``prepare_*`` methods, before
    anything touches the network.
    """

    def __init__(self, contract: Contract, wallet: LocalAccountWallet):
        self.contract = contract
        self.wallet = wallet

    @property
    def account(self) -> str:
        return self.wallet.address

    def prepare_create(self, stake: int) -> OperationRequest:
        return OperationRequest("createGame", (), _require_stake(stake))

    def prepare_join(self, game_id: Any, stake: int) -> OperationRequest:
        game_id = parse_game_id(game_id)
        # Equality with the creator's stake is enforced by the contract
        return OperationRequest("joinGame", (game_id,), _require_stake(stake), game_id)

    def prepare_play(self, game_id: Any, choice: Any) -> OperationRequest:
        game_id = parse_game_id(game_id)
        choice = Choice.parse(choice)
        if choice is Choice.NONE:
            raise ValidationError("A move (Rock, Paper or Scissors) is required")
        return OperationRequest("play", (game_id, int(choice)), 0, game_id)

    def prepare_timeout(self, game_id: Any) -> OperationRequest:
        game_id = parse_game_id(game_id)
        return OperationRequest("handleTimeout", (game_id,), 0, game_id)

    def submit(self, request: OperationRequest) -> str:
        """Submit a prepared request. Returns the pending tx hash."""
        function_call = getattr(self.contract.functions, request.function_name)(*request.args)
        logger.info(
            f"Submitting {request.function_name}{request.args} value={request.value} from {self.account}"
        )
        tx_hash = self.wallet.submit(function_call, request.value)
        logger.info(f"Submitted {request.function_name}: {tx_hash}")
        return tx_hash
