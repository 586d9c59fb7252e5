"""Genetic-parameter calculators: variance partition, heritability and selection response."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy import stats

from .errors import StructuralInputError
from .utils import require_positive


@dataclass(frozen=True)
class VarianceComponents:
    vp: float
    h2_broad: float
    h2_narrow: float
    va: float
    vd: float
    ve: float
    share_va: float
    share_vd: float
    share_ve: float


def variance_components(va: float, vd: float, ve: float) -> VarianceComponents:
    """Phenotypic variance ``VP = VA + VD + VE`` with heritabilities and percentage shares."""
    for name, value in (("VA", va), ("VD", vd), ("VE", ve)):
        if value < 0:
            raise StructuralInputError(f"{name} must be non-negative, got {value}")
    vp = va + vd + ve
    if vp == 0:
        return VarianceComponents(0.0, 0.0, 0.0, va, vd, ve, 0.0, 0.0, 0.0)
    return VarianceComponents(
        vp=vp,
        h2_broad=(va + vd) / vp,
        h2_narrow=va / vp,
        va=va,
        vd=vd,
        ve=ve,
        share_va=100 * va / vp,
        share_vd=100 * vd / vp,
        share_ve=100 * ve / vp,
    )


def selection_response(intensity: float, h2: float, sigma_p: float) -> float:
    """Breeder's equation per generation: ``R = i * h2 * sigma_p``."""
    return intensity * h2 * sigma_p


def annual_response(intensity: float, h2: float, sigma_p: float, generation_interval: float) -> float:
    generation_interval = require_positive(generation_interval, "generation_interval")
    return selection_response(intensity, h2, sigma_p) / generation_interval


def normal_density(mean: float, variance: float, n_points: int = 200) -> Tuple[np.ndarray, np.ndarray]:
    """Density of ``N(mean, variance)`` sampled over mean +/- 4 standard deviations."""
    if variance <= 0:
        raise StructuralInputError(f"variance must be positive, got {variance}")
    if n_points < 2:
        raise StructuralInputError("n_points must be at least 2")
    sigma = math.sqrt(variance)
    x = np.linspace(mean - 4 * sigma, mean + 4 * sigma, n_points + 1)
    return x, stats.norm.pdf(x, loc=mean, scale=sigma)
