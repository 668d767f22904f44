from __future__ import annotations


class RelayerError(Exception):
    """Base class for every error raised by the relayer."""


class ConfigurationError(RelayerError):
    """Missing or invalid startup configuration. Fatal."""


# -----------------------------------------------------------------------------
# Action (counterpart transaction) errors
# -----------------------------------------------------------------------------


class ActionError(RelayerError):
    """
    The counterpart transaction was not confirmed.

    The event must stay unrecorded so it is retried on a later cycle.
    """

    def __init__(self, message: str, *, tx_hash: str | None = None) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


class RpcSubmissionError(ActionError):
    """Transport or JSON-RPC failure while building or sending the transaction."""


class InsufficientBalanceError(ActionError):
    """The relayer account cannot pay for gas on the target chain."""


class TransactionRevertedError(ActionError):
    """Gas estimation reverted, or the mined receipt has status 0."""


class NonceConflictError(ActionError):
    """
    The node already knows a transaction with our nonce.

    Usually a previous submission that was still pending when the process
    died; it may confirm on its own.
    """


class ConfirmationTimeoutError(ActionError):
    """The transaction was sent but no receipt arrived in time."""


# -----------------------------------------------------------------------------
# Persistence errors
# -----------------------------------------------------------------------------


class PersistenceError(RelayerError):
    """The relayer database could not be read or written."""


class DuplicateEventError(PersistenceError):
    """A ProcessedEvent with the same (chain, tx_hash, log_index) already exists."""


class CursorRegressionError(PersistenceError):
    """Attempt to move a chain cursor backwards."""
