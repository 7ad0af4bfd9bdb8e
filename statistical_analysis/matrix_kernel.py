import numpy as np
from typing import Sequence, Union


# Pivots smaller than this are treated as a singular column and skipped
PIVOT_TOLERANCE = 1e-10

MatrixLike = Union[np.ndarray, Sequence[Sequence[float]]]


class DimensionMismatch(ValueError):
    """Raised when matrix operands have incompatible shapes"""


def _as_matrix(m: MatrixLike) -> np.ndarray:
    matrix = np.array(m, dtype=float)
    if matrix.ndim != 2:
        raise DimensionMismatch(f"Expected a 2-D matrix, got {matrix.ndim} dimension(s)")
    return matrix


def transpose(m: MatrixLike) -> np.ndarray:
    return _as_matrix(m).T.copy()


def multiply(a: MatrixLike, b: MatrixLike) -> np.ndarray:
    left = _as_matrix(a)
    right = _as_matrix(b)
    if left.shape[1] != right.shape[0]:
        raise DimensionMismatch(
            f"Cannot multiply {left.shape[0]}x{left.shape[1]} by {right.shape[0]}x{right.shape[1]}"
        )
    return left @ right


def matrix_vector_multiply(m: MatrixLike, v: Sequence[float]) -> np.ndarray:
    matrix = _as_matrix(m)
    vector = np.asarray(v, dtype=float)
    if vector.ndim != 1 or matrix.shape[1] != vector.shape[0]:
        raise DimensionMismatch(
            f"Cannot multiply {matrix.shape[0]}x{matrix.shape[1]} matrix by vector of length {vector.size}"
        )
    return matrix @ vector


def invert(m: MatrixLike) -> np.ndarray:
    """Gauss-Jordan inverse with partial pivoting.

    A column whose best pivot falls below PIVOT_TOLERANCE is left
    uneliminated instead of failing. For rank-deficient input (e.g. an
    industry dummy collinear with the intercept) the result behaves like a
    generalized inverse: coefficients of the independent columns are still
    recovered, the skipped column's coefficient collapses to ~0.
    """
    matrix = _as_matrix(m)
    n, cols = matrix.shape
    if n != cols:
        raise DimensionMismatch(f"Cannot invert non-square {n}x{cols} matrix")

    augmented = np.hstack([matrix, np.eye(n)])

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(augmented[col:, col])))
        if pivot_row != col:
            augmented[[col, pivot_row]] = augmented[[pivot_row, col]]

        pivot = augmented[col, col]
        if abs(pivot) < PIVOT_TOLERANCE:
            continue

        augmented[col] = augmented[col] / pivot
        for row in range(n):
            if row != col:
                factor = augmented[row, col]
                if factor != 0:
                    augmented[row] = augmented[row] - factor * augmented[col]

    return augmented[:, n:]
