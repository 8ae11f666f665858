"""API key rotation for services that accept several comma-separated keys.

Keys are tried in the order given. Quota and rate-limit failures move on to
the next key; any other failure stops the rotation straight away since it
would fail the same way with every key.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Optional, TypeVar

from utils.errors import (
    AllCredentialsExhaustedError,
    NoCredentialsError,
    PipelineError,
    TransportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Matched case-insensitively against the error message. Provider wording
# changes over time, so this is a heuristic rather than a contract.
QUOTA_ERROR_MARKERS = (
    "quota",
    "rate limit",
    "quota_exceeded",
    "rate_limit_exceeded",
    "resource_exhausted",
    "too many requests",
)

KEY_PREFIX_LENGTH = 4


def parse_credentials(raw: str | Sequence[str] | None) -> list[str]:
    """Split a comma-separated key string into a clean, ordered list.

    Args:
        raw: Comma-separated string, or an already split sequence

    Returns:
        Trimmed keys with empty entries dropped
    """
    if not raw:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    return [part.strip() for part in parts if part and part.strip()]


def mask_key(key: str) -> str:
    """Return a log-safe representation of an API key."""
    return f"{key[:KEY_PREFIX_LENGTH]}..."


def is_quota_error(error: BaseException) -> bool:
    """Check whether an error looks like a quota or rate-limit failure."""
    message = str(error).lower()
    return any(marker in message for marker in QUOTA_ERROR_MARKERS)


@dataclass
class KeyAttempt:
    """One invocation of an operation with a single key."""

    label: str
    key_prefix: str
    succeeded: bool
    quota_error: bool = False
    error: Optional[str] = None


class KeyRotationExecutor:
    """Runs an async operation against a list of keys until one works.

    Attempts are kept on ``attempts`` for diagnostics. An executor is meant
    to be owned by a single job so the history is not shared between jobs.
    """

    def __init__(self) -> None:
        self.attempts: list[KeyAttempt] = []

    async def execute(
        self,
        operation: Callable[[str], Awaitable[T]],
        credentials: str | Sequence[str] | None,
        label: str,
    ) -> T:
        """Invoke ``operation`` with each key in turn.

        Args:
            operation: Coroutine function taking a single API key
            credentials: Comma-separated keys or a list of keys
            label: Human-readable operation name used in errors and logs

        Returns:
            Result of the first successful invocation

        Raises:
            NoCredentialsError: If no keys remain after parsing
            AllCredentialsExhaustedError: If every key hit a quota error
            TransportError: If a key failed with a non-quota error
            PipelineError: Domain errors raised by the operation propagate as-is
        """
        keys = parse_credentials(credentials)
        if not keys:
            raise NoCredentialsError(label)

        last_error: Optional[Exception] = None

        for index, key in enumerate(keys, start=1):
            prefix = mask_key(key)
            logger.debug(f"Attempting {label} with key {prefix} ({index}/{len(keys)})")

            try:
                result = await operation(key)
            except Exception as e:
                quota = is_quota_error(e)
                self.attempts.append(
                    KeyAttempt(
                        label=label,
                        key_prefix=prefix,
                        succeeded=False,
                        quota_error=quota,
                        error=str(e),
                    )
                )
                logger.warning(f"{label} failed with API key ({prefix}): {e}")

                if quota:
                    last_error = e
                    continue

                if isinstance(e, PipelineError):
                    raise
                raise TransportError(str(e) or type(e).__name__, label=label) from e

            self.attempts.append(
                KeyAttempt(label=label, key_prefix=prefix, succeeded=True)
            )
            return result

        raise AllCredentialsExhaustedError(label, last_error)
