"""Exception types raised by bootci."""

from __future__ import annotations

__all__ = ["InvalidStateError"]


class InvalidStateError(RuntimeError):
    r"""
    Raised when an internal invariant is violated.

    Bad user input is always reported as :class:`ValueError`. This error means the
    computation reached a state that a correct implementation never produces
    (a negative sum of squares, a NaN sum of finite values, a NaN bootstrap score),
    so the operation is aborted rather than returning a wrong answer.
    """
