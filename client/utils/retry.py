import asyncio
import random
from typing import Type, Tuple
import httpx

from utils.logger import get_logger

logger = get_logger("retry")


class RetryConfig:
    """Configuration for retry behavior"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        retryable_exceptions: Tuple[Type[Exception], ...] = (
            httpx.TimeoutException,
            httpx.NetworkError,
            ConnectionError,
            asyncio.TimeoutError,
        ),
        retryable_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504),
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retryable_exceptions = retryable_exceptions
        self.retryable_status_codes = retryable_status_codes


# Single attempt, used for non-idempotent calls such as profile generation.
NO_RETRY = RetryConfig(max_attempts=1)


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay with exponential backoff and optional jitter"""
    delay = min(config.base_delay * (config.exponential_base**attempt), config.max_delay)
    if config.jitter:
        delay = delay * (0.5 + random.random())
    return delay


def is_retryable_error(error: Exception, config: RetryConfig) -> bool:
    """Check if an error should be retried"""
    if isinstance(error, config.retryable_exceptions):
        return True

    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in config.retryable_status_codes

    return False


class RetryableClient:
    """HTTP client wrapper with automatic retry"""

    def __init__(self, client: httpx.AsyncClient, config: RetryConfig = None):
        self.client = client
        self.config = config or RetryConfig()

    async def request(
        self,
        method: str,
        url: str,
        config: RetryConfig = None,
        **kwargs,
    ) -> httpx.Response:
        """Make a request with retry logic"""
        config = config or self.config
        last_error = None

        for attempt in range(config.max_attempts):
            try:
                response = await self.client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except Exception as e:
                last_error = e

                if not is_retryable_error(e, config):
                    raise

                if attempt < config.max_attempts - 1:
                    delay = calculate_delay(attempt, config)

                    # Special handling for rate limits
                    if isinstance(e, httpx.HTTPStatusError) and e.response.status_code == 429:
                        retry_after = e.response.headers.get("Retry-After")
                        if retry_after:
                            try:
                                delay = max(delay, float(retry_after))
                            except ValueError:
                                pass

                    logger.warning(
                        "Retrying HTTP request",
                        method=method,
                        url=url,
                        attempt=attempt + 1,
                        delay=round(delay, 2),
                        error=str(e) or repr(e),
                    )
                    await asyncio.sleep(delay)

        raise last_error
