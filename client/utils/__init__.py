from .logger import setup_logging, get_logger
from .retry import RetryConfig, RetryableClient, NO_RETRY
from .validation import (
    Chain,
    Identity,
    InvalidIdentity,
    classify_address,
    is_valid_address,
    validate_wallet_address,
)

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",

    # Retry
    "RetryConfig",
    "RetryableClient",
    "NO_RETRY",

    # Validation
    "Chain",
    "Identity",
    "InvalidIdentity",
    "classify_address",
    "is_valid_address",
    "validate_wallet_address",
]
