"""
zerodiv_shims/errors.py
═══════════════════════

Exception hierarchy for zerodiv-shims.

    ZeroDivShimsError (base)
    ├── DataflowRangeError   - declaration and use are not comparably ordered
    └── ConfigurationError   - invalid option passed by the host

None of these reach the caller of ``ZeroDivisorEvaluator.check_division``:
an unanswerable dataflow query is a failed proof, not an error.
"""

from __future__ import annotations

from typing import Any


class ZeroDivShimsError(Exception):
    """Base class for all errors raised by this package."""


class DataflowRangeError(ZeroDivShimsError):
    """
    Raised by a program model when a dataflow range query is not
    well-formed.

    Typical causes: the use lies in a different function body than the
    declaration, the use precedes the declaration in token order, or the
    declaring scope does not enclose the use.
    """

    def __init__(self, message: str, *, start: Any = None, end: Any = None) -> None:
        super().__init__(message)
        self.start = start
        self.end = end


class ConfigurationError(ZeroDivShimsError, ValueError):
    """Raised for option values the evaluator cannot honour."""

    def __init__(self, option: str, value: Any, reason: str = "") -> None:
        msg = f"invalid value for option '{option}': {value!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)
        self.option = option
        self.value = value
