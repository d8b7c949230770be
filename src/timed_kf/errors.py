"""Errors raised by timed-kf.

All errors inherit from :class:`KalmanFilterError`. They also inherit from the closest builtin exception so that
generic handlers (``except ValueError``) keep working.
"""

from __future__ import annotations


class KalmanFilterError(Exception):
    """Base class of all timed-kf errors."""


class ShapeMismatchError(KalmanFilterError, ValueError):
    """A matrix or vector does not match the dimensions of the filter (N, M or U).

    Attributes:
        name (str): Name of the faulty argument.
        expected (tuple[int, ...]): Expected shape.
        received (tuple[int, ...]): Received shape.
    """

    def __init__(self, name: str, expected: tuple[int, ...], received: tuple[int, ...]) -> None:
        super().__init__(f"{name}: expected shape {expected}, got {received}")
        self.name = name
        self.expected = expected
        self.received = received


class NumericalError(KalmanFilterError, ArithmeticError):
    """The innovation covariance cannot be safely inverted.

    Raised by :meth:`~timed_kf.KalmanFilter.update` (and ``project``) when ``S = H P Hᵀ + R`` is singular,
    too ill-conditioned or contains non-finite values. The filter state is left untouched.
    """
