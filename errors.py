"""
Error taxonomy for the RPS ledger client.

Every error carries a ``kind`` string which is what flow results report.
"""

from typing import Any, Dict, Optional


class RPSClientError(Exception):
    """Base class for all client errors."""

    kind = "Error"


class ValidationError(RPSClientError):
    """Bad or missing user input, caught before submission."""

    kind = "ValidationError"


class WalletRejection(RPSClientError):
    """The signer declined the operation."""

    kind = "WalletRejection"


class NetworkError(RPSClientError):
    """Submission or receipt polling could not reach the node."""

    kind = "NetworkError"


class Reverted(RPSClientError):
    """The ledger rejected the operation.

    ``submitted`` is False when the revert was detected while simulating,
    i.e. nothing was broadcast and no fee was spent.
    """

    kind = "Reverted"

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        receipt: Optional[Dict[str, Any]] = None,
        submitted: bool = True,
    ):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.receipt = receipt
        self.submitted = submitted


class TimedOutWaiting(RPSClientError):
    """No receipt was observed before the deadline. Outcome unknown."""

    kind = "TimedOutWaiting"

    def __init__(self, tx_hash: str, timeout: float):
        super().__init__(
            f"Transaction {tx_hash} not confirmed within {timeout:g}s; "
            f"it may still be mined, watch it again later"
        )
        self.tx_hash = tx_hash
        self.timeout = timeout


class EventNotFound(RPSClientError):
    """A confirmed receipt lacked the expected event."""

    kind = "EventNotFound"


class InvalidTransition(RPSClientError):
    """A confirmed event does not fit the locally tracked phase."""

    kind = "InvalidTransition"


class UnknownChoiceError(RPSClientError):
    """An integer outside the contract's choice enumeration."""

    kind = "UnknownChoice"


class OperationInProgress(RPSClientError):
    """Another operation for the same game is still running."""

    kind = "OperationInProgress"
