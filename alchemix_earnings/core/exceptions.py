class IndexerError(Exception):
    """
    Base exception for all errors raised by the indexer.

    Callers should catch specific subclasses before `IndexerError`, and `IndexerError` before
    general exceptions raised by third party dependencies.

    An optional message may be attached and retrieved from the `.message` attribute.
    """

    message: str | None = None

    def __init__(self, message: str | None = None) -> None:
        if message:
            self.message = message
            super().__init__(message)


class UnknownNetworkError(IndexerError):
    """
    Raised when a network has no AlchemistV2 deployment or RPC endpoint configured.
    """

    def __init__(self, network: str, reason: str = "no AlchemistV2 deployment configured") -> None:
        self.network = network
        super().__init__(message=f"Network {network!r}: {reason}")


class AuxiliaryReadError(IndexerError):
    """
    Raised when an on-chain read needed by a handler fails. The handler invocation is aborted.
    """

    def __init__(self, function_name: str, block_number: int, error: str) -> None:
        self.function_name = function_name
        self.block_number = block_number
        self.error = error
        super().__init__(message=f"Read of {function_name} at block {block_number} failed: {error}")


class DuplicateEventError(IndexerError):
    """
    Raised when a Harvest or Donate event id has already been recorded, which means the same log
    was delivered twice.
    """

    def __init__(self, table: str, event_id: str) -> None:
        self.table = table
        self.event_id = event_id
        super().__init__(message=f"Event {event_id} already recorded in {table}")


class ReferentialIntegrityError(IndexerError):
    """
    Raised when a share row or total update references a depositor or event row that does not
    exist.
    """


class DegenerateShareTotalError(IndexerError, ArithmeticError):
    """
    Raised when a pro-rata amount cannot be computed, i.e. the share total is zero or the result
    is not a finite number.
    """
