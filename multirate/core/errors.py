"""Exceptions raised by the multirate package."""


class MultirateError(Exception):
    """Base exception for multirate errors.

    Args:
        message: the error message.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ContractViolationError(MultirateError):
    """Raised when a caller breaks an invariant of the stepping core.

    Out-of-order history inserts, degenerate coefficient inputs, too short a
    history or mismatched directions of time all end up here. These are not
    recoverable: the message names the violated invariant.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
