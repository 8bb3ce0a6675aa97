"""Structured failures raised by vault, ledger and delegation operations.

Every failure carries a stable `reason` code (see `constants.ERR_*`). The
classes also derive from the matching builtin so callers that only care about
the broad category can keep catching `ValueError` / `PermissionError` /
`RuntimeError` / `ArithmeticError`.
"""


class Revert(Exception):
    """An operation was aborted and all of its state changes were rolled back."""

    def __init__(self, reason: str, detail: str | None = None):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class ValidationError(Revert, ValueError):
    """Bad input: zero/out-of-range amounts, durations, mismatched lengths."""


class AuthorizationError(Revert, PermissionError):
    """Caller lacks the role required by the operation."""


class StateError(Revert, RuntimeError):
    """Current state does not allow the operation."""


class ArithmeticRevert(Revert, ArithmeticError):
    """Accounting arithmetic cannot proceed (no shares, overflow)."""
