"""
Calibration Least-Squares Solver
Basis expansion and normal-equation solving by Gaussian elimination
"""

import numpy as np
from sklearn.preprocessing import PolynomialFeatures

from ..models import CalibrationMode


class SingularMatrixError(ValueError):
    """Normal equations have no unique solution"""


def make_basis(mode: CalibrationMode) -> PolynomialFeatures:
    """
    Build a fitted basis expander for a calibration mode

    AFFINE gives [1, x, y]; POLYNOMIAL gives [1, x, y, x^2, xy, y^2].

    Args:
        mode: Calibration mode

    Returns:
        PolynomialFeatures ready for transform() on (N, 2) inputs
    """
    poly = PolynomialFeatures(degree=mode.degree, include_bias=True)
    # Fit on a dummy row so transform() works without training data
    poly.fit(np.zeros((1, 2), dtype=np.float64))
    return poly


def gaussian_elimination(A: np.ndarray, b: np.ndarray, tolerance: float = 1e-12) -> np.ndarray:
    """
    Solve A x = b with partial pivoting

    Args:
        A: Square coefficient matrix
        b: Right-hand side vector
        tolerance: Pivot threshold relative to the largest entry of A

    Returns:
        Solution vector

    Raises:
        SingularMatrixError: if a pivot falls below the threshold
    """
    A = np.array(A, dtype=np.float64)
    b = np.array(b, dtype=np.float64)
    n = A.shape[0]
    if A.shape != (n, n) or b.shape != (n,):
        raise ValueError(f"Shape mismatch: A {A.shape}, b {b.shape}")

    scale = np.max(np.abs(A)) if A.size else 0.0
    if scale == 0.0 or not np.isfinite(scale):
        raise SingularMatrixError("Coefficient matrix is zero or not finite")
    threshold = tolerance * scale

    M = np.hstack([A, b.reshape(-1, 1)])

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(M[col:, col])))
        if abs(M[pivot_row, col]) <= threshold:
            raise SingularMatrixError(f"Pivot {col} below tolerance ({M[pivot_row, col]:.3e})")
        if pivot_row != col:
            M[[col, pivot_row]] = M[[pivot_row, col]]

        for row in range(col + 1, n):
            factor = M[row, col] / M[col, col]
            M[row, col:] -= factor * M[col, col:]

    x = np.zeros(n)
    for row in range(n - 1, -1, -1):
        x[row] = (M[row, n] - M[row, row + 1:n] @ x[row + 1:]) / M[row, row]
    return x


def solve_least_squares(design: np.ndarray, targets: np.ndarray, tolerance: float = 1e-12) -> np.ndarray:
    """Least-squares coefficients for design @ c ~= targets via the normal equations"""
    design = np.asarray(design, dtype=np.float64)
    targets = np.asarray(targets, dtype=np.float64)
    return gaussian_elimination(design.T @ design, design.T @ targets, tolerance)
