from __future__ import annotations

from typing import Optional


class FundingError(RuntimeError):
    """Base error for the orchestration core."""

    short_message: Optional[str] = None


class PreconditionError(FundingError):
    """A check that runs before any external call failed; nothing was sent."""

    def __init__(self, reason: str) -> None:
        self.short_message = reason
        super().__init__(reason)


class WrongNetworkError(PreconditionError):
    pass


def normalize_error(exc: BaseException, fallback: str) -> str:
    """Return the user-facing text for `exc`.

    Preference order: a `short_message` attribute, then the exception message,
    then `fallback`. Chained causes are not consulted.
    """
    short = getattr(exc, "short_message", None)
    if isinstance(short, str) and short.strip():
        return short.strip()
    text = str(exc).strip()
    return text or fallback


__all__ = ["FundingError", "PreconditionError", "WrongNetworkError", "normalize_error"]
