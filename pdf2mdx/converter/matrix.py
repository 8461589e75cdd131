"""Affine matrix helpers using the PDF row-vector convention.

A matrix ``[a b c d e f]`` stands for::

    | a b 0 |
    | c d 0 |
    | e f 1 |

and points transform as ``[x y 1] × M``.  ``multiply(m1, m2)`` therefore
applies ``m1`` first and ``m2`` second, which is how ``cm`` and the
text-rendering matrix compose.
"""

from __future__ import annotations

from math import hypot
from typing import Sequence

__all__ = [
    "IDENTITY_MATRIX",
    "Matrix",
    "apply",
    "as_matrix",
    "multiply",
    "rendered_scale",
    "translate",
]

Matrix = tuple[float, float, float, float, float, float]

IDENTITY_MATRIX: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


def multiply(m1: Matrix, m2: Matrix) -> Matrix:
    a1, b1, c1, d1, e1, f1 = m1
    a2, b2, c2, d2, e2, f2 = m2
    return (
        a1 * a2 + b1 * c2,
        a1 * b2 + b1 * d2,
        c1 * a2 + d1 * c2,
        c1 * b2 + d1 * d2,
        e1 * a2 + f1 * c2 + e2,
        e1 * b2 + f1 * d2 + f2,
    )


def apply(matrix: Matrix, x: float, y: float) -> tuple[float, float]:
    a, b, c, d, e, f = matrix
    return a * x + c * y + e, b * x + d * y + f


def translate(matrix: Matrix, tx: float, ty: float) -> Matrix:
    """Return ``[1 0 0 1 tx ty] × matrix``."""

    return multiply((1.0, 0.0, 0.0, 1.0, tx, ty), matrix)


def rendered_scale(matrix: Matrix) -> float:
    """Scale factor a unit font size picks up under ``matrix``."""

    a, b, c, d, _, _ = matrix
    return max(hypot(a, b), hypot(c, d))


def as_matrix(values: Sequence[object]) -> Matrix | None:
    """Convert six numeric operands to a matrix, ``None`` when malformed."""

    if len(values) < 6:
        return None
    try:
        return tuple(float(value) for value in values[:6])  # type: ignore[return-value]
    except (TypeError, ValueError):
        return None
