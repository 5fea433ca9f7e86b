from typing import Any, Optional


class SniperError(Exception):
    """Base class for every error raised by the bot itself."""


class TransportError(SniperError):
    pass


class DecodeError(SniperError):
    pass


class ValidationError(SniperError):
    pass


class AccountNotFoundError(SniperError):
    pass


class ProtocolExecutionError(SniperError):
    """On-chain program failure, classified or generic. `raw` keeps the original error value."""

    def __init__(self, message: str, raw: Optional[Any] = None):
        super().__init__(message)
        self.raw = raw


class ExpiryError(SniperError):

    def __init__(self, message: str = "Transaction did not land"):
        super().__init__(message)


class DeadlineExceededError(SniperError, TimeoutError):
    pass


class RejectionError(SniperError):

    def __init__(self, reason: str):
        super().__init__(f"Jito bundle has been rejected: {reason}")
        self.reason = reason


class SwapLogNotFoundError(SniperError):

    def __init__(self, message: str = "Can not find swap log in the transaction"):
        super().__init__(message)


class RelayScheduleWarning(UserWarning):
    pass
