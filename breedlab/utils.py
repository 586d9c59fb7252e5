"""Helpers for coercing and checking numeric inputs."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .errors import NumericalError, StructuralInputError

# 2-norm condition number above which a matrix is treated as singular
CONDITION_LIMIT = 1e12


def as_vector(values: Sequence[float], name: str) -> np.ndarray:
    array = np.asarray(values, dtype=float)
    if array.ndim == 2 and 1 in array.shape:
        array = array.reshape(-1)
    if array.ndim != 1:
        raise StructuralInputError(f"{name} must be one-dimensional, got shape {array.shape}")
    if not np.all(np.isfinite(array)):
        raise StructuralInputError(f"{name} contains non-finite values")
    return array


def as_matrix(values: Sequence[Sequence[float]], name: str) -> np.ndarray:
    try:
        array = np.asarray(values, dtype=float)
    except ValueError as exc:
        raise StructuralInputError(f"{name} must be a rectangular numeric matrix") from exc
    if array.ndim != 2:
        raise StructuralInputError(f"{name} must be two-dimensional, got shape {array.shape}")
    if not np.all(np.isfinite(array)):
        raise StructuralInputError(f"{name} contains non-finite values")
    return array


def require_positive(value: float, name: str) -> float:
    if not np.isfinite(value) or value <= 0:
        raise NumericalError(f"{name} must be positive, got {value}")
    return float(value)


def check_conditioning(matrix: np.ndarray, name: str) -> None:
    if matrix.size == 0:
        return
    cond = np.linalg.cond(matrix)
    if not np.isfinite(cond) or cond > CONDITION_LIMIT:
        raise NumericalError(f"{name} is singular or ill-conditioned (condition number {cond:.3g})")


def read_only(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=float, copy=True)
    array.setflags(write=False)
    return array


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def variance(values: Sequence[float]) -> float:
    """Sample variance; zero when fewer than two values."""
    if len(values) < 2:
        return 0.0
    return float(np.var(values, ddof=1))
