# ldaem/ml/mathops.py
"""
Vector normalization, digamma/trigamma and the structured Newton solve.

All functions are pure and accept python scalars or numpy arrays.
"""

from typing import Union

import numpy as np

from ldaem.core.errors import NormalizationError

ArrayLike = Union[float, np.ndarray]

# Below this the recurrence shifts the argument up before the series is used.
_ASYMPTOTIC_THRESHOLD = 6.0


def normalize(v) -> np.ndarray:
    """
    Return v scaled to sum to 1.

    Raises NormalizationError when v has no positive mass, instead of
    returning NaN.
    """
    arr = np.asarray(v, dtype=float)
    total = arr.sum()
    if not np.isfinite(total) or total <= 0.0:
        raise NormalizationError(f"cannot normalize vector with sum {total!r}")
    return arr / total


def normalize_or_uniform(v) -> np.ndarray:
    """
    Like normalize, but an all-zero vector becomes the uniform distribution.
    """
    arr = np.asarray(v, dtype=float)
    total = arr.sum()
    if arr.size == 0:
        return arr.copy()
    if not np.isfinite(total) or total <= 0.0:
        return np.full(arr.shape, 1.0 / arr.size)
    return arr / total


def normalize_columns(m: np.ndarray) -> np.ndarray:
    """
    Column-wise normalize_or_uniform for a (K, N) matrix.
    """
    m = np.asarray(m, dtype=float)
    if m.size == 0:
        return m.copy()
    totals = m.sum(axis=0)
    out = np.empty_like(m)
    good = np.isfinite(totals) & (totals > 0.0)
    out[:, good] = m[:, good] / totals[good]
    out[:, ~good] = 1.0 / m.shape[0]
    return out


def normalize_rows(m: np.ndarray) -> np.ndarray:
    return normalize_columns(np.asarray(m, dtype=float).T).T


def _check_positive(x: np.ndarray, name: str) -> None:
    if np.any(~(x > 0.0)):
        raise ValueError(f"{name} is only defined here for x > 0")


def digamma(x: ArrayLike) -> ArrayLike:
    """
    psi(x) = d/dx ln Gamma(x), for x > 0.

    psi(x) = psi(x + 1) - 1/x shifts small arguments to x >= 6, where the
    asymptotic series
        ln x - 1/(2x) - 1/(12x^2) + 1/(120x^4) - 1/(252x^6) + 1/(240x^8) - 1/(132x^10)
    is accurate to ~1e-11.
    """
    arr = np.array(x, dtype=float, ndmin=1)
    _check_positive(arr, "digamma")
    result = np.zeros_like(arr)
    small = arr < _ASYMPTOTIC_THRESHOLD
    while np.any(small):
        result[small] -= 1.0 / arr[small]
        arr[small] += 1.0
        small = arr < _ASYMPTOTIC_THRESHOLD
    f = 1.0 / (arr * arr)
    series = f * (1.0 / 12 - f * (1.0 / 120 - f * (1.0 / 252 - f * (1.0 / 240 - f / 132))))
    result += np.log(arr) - 0.5 / arr - series
    if np.ndim(x) == 0:
        return float(result[0])
    return result.reshape(np.shape(x))


def trigamma(x: ArrayLike) -> ArrayLike:
    """
    psi'(x), for x > 0. Same recurrence/series scheme as digamma:
    psi'(x) = psi'(x + 1) + 1/x^2, then
        1/x + 1/(2x^2) + 1/(6x^3) - 1/(30x^5) + 1/(42x^7) - 1/(30x^9) + 5/(66x^11)
    """
    arr = np.array(x, dtype=float, ndmin=1)
    _check_positive(arr, "trigamma")
    result = np.zeros_like(arr)
    small = arr < _ASYMPTOTIC_THRESHOLD
    while np.any(small):
        result[small] += 1.0 / (arr[small] * arr[small])
        arr[small] += 1.0
        small = arr < _ASYMPTOTIC_THRESHOLD
    inv = 1.0 / arr
    f = inv * inv
    series = inv + 0.5 * f + inv * f * (1.0 / 6 - f * (1.0 / 30 - f * (1.0 / 42 - f * (1.0 / 30 - f * 5.0 / 66))))
    result += series
    if np.ndim(x) == 0:
        return float(result[0])
    return result.reshape(np.shape(x))


def solve_structured_newton_step(gradient, hessian_diagonal, offdiagonal: float) -> np.ndarray:
    """
    Solve (diag(h) + z * 1 1^T) delta = g in O(K) via Sherman-Morrison.

        c = sum(g / h) / (1/z + sum(1 / h))
        delta_k = (g_k - c) / h_k
    """
    g = np.asarray(gradient, dtype=float)
    h = np.asarray(hessian_diagonal, dtype=float)
    if g.shape != h.shape:
        raise ValueError(f"gradient shape {g.shape} != hessian diagonal shape {h.shape}")
    if np.any(h == 0.0) or offdiagonal == 0.0:
        raise ZeroDivisionError("structured Hessian has a zero term")
    c = np.sum(g / h) / (1.0 / offdiagonal + np.sum(1.0 / h))
    return (g - c) / h


def safe_log(x) -> np.ndarray:
    """Elementwise log with zeros mapped to log(tiny) instead of -inf."""
    return np.log(np.maximum(np.asarray(x, dtype=float), np.finfo(float).tiny))

