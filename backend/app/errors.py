"""Domain error taxonomy for strategy generation."""

from typing import Literal

ProviderErrorCode = Literal[
    "missing_api_key",
    "request_failed",
    "empty_response",
    "unknown_provider_error",
]


class StrategyError(Exception):
    """Base class for all domain errors."""


class RequestValidationError(StrategyError):
    """Raised when a job request is rejected before a job exists."""


class ParsingError(StrategyError):
    """Raised when a document or a generated draft cannot be parsed."""


class ProviderError(StrategyError):
    """Raised when a generation provider fails."""

    def __init__(self, message: str, code: ProviderErrorCode = "unknown_provider_error") -> None:
        super().__init__(message)
        self.code: ProviderErrorCode = code


class JobNotFoundError(StrategyError):
    """Raised when a job is unknown or owned by someone else."""


class InvalidTransitionError(StrategyError):
    """Raised when a job update would move backwards or leave a terminal stage."""


class PollTimeoutError(StrategyError):
    """Raised client-side when the polling budget is exhausted."""

    def __init__(self, message: str = "Generation timed out, please retry.") -> None:
        super().__init__(message)
