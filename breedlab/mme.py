"""BLUP animal model: assembly and solution of the mixed model equations.

Model ``y = Xb + Za + e`` with ``var(a) = A*sigma_a2`` and
``var(e) = I*sigma_e2``. With ``alpha = sigma_e2 / sigma_a2``::

    [ X'X   X'Z             ] [b]   [X'y]
    [ Z'X   Z'Z + A^-1*alpha ] [a] = [Z'y]

The system is dense and solved by LU factorisation, which is cubic in
``p + q``. That is fine for teaching-sized pedigrees; evaluations with
thousands of animals need sparse A^-1 rules and iterative solvers.

Both A and the assembled left-hand side must have a condition number below
``CONDITION_LIMIT`` (1e12). As alpha approaches 0 (``sigma_a2`` much larger
than ``sigma_e2``) the left-hand side of a design such as one mean with
``Z = I`` tends to singular, so ratios ``sigma_a2 / sigma_e2`` around 1e12 and
above raise ``NumericalError`` even where LU could still return a solution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

import numpy as np
from scipy import linalg

from .data import Observation
from .errors import NumericalError, StructuralInputError
from .relationship import RelationshipMatrix
from .utils import as_matrix, as_vector, check_conditioning, require_positive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DesignMatrices:
    y: np.ndarray
    X: np.ndarray
    Z: np.ndarray
    levels: List[str]
    ids: List[str]

    @classmethod
    def from_observations(cls, observations: Iterable[Observation], ids: Sequence[str]) -> "DesignMatrices":
        """One-hot X over sorted group labels, Z over ``ids`` in relationship-matrix order."""
        observations = list(observations)
        if not observations:
            raise StructuralInputError("At least one observation is required")
        ids = [str(identifier) for identifier in ids]
        column: Dict[str, int] = {}
        for idx, identifier in enumerate(ids):
            # first occurrence, matching Pedigree.index_of
            column.setdefault(identifier, idx)
        levels = sorted({obs.group for obs in observations})
        level_column = {level: idx for idx, level in enumerate(levels)}

        y = np.zeros(len(observations))
        X = np.zeros((len(observations), len(levels)))
        Z = np.zeros((len(observations), len(ids)))
        for row, obs in enumerate(observations):
            if obs.animal not in column:
                raise StructuralInputError(f"Observation for '{obs.animal}' has no entry in the relationship matrix")
            y[row] = obs.value
            X[row, level_column[obs.group]] = 1.0
            Z[row, column[obs.animal]] = 1.0
        return cls(y=y, X=X, Z=Z, levels=levels, ids=ids)


@dataclass(frozen=True)
class SolverStep:
    step: int
    title: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MMESolution:
    fixed_effects: np.ndarray
    breeding_values: np.ndarray
    lhs: np.ndarray
    rhs: np.ndarray
    alpha: float
    pev: np.ndarray
    reliability: np.ndarray
    steps: tuple = ()

    @property
    def accuracy(self) -> np.ndarray:
        return np.sqrt(self.reliability)


class MMESolver:
    def __init__(self, *, record_trace: bool = True) -> None:
        self.record_trace = record_trace

    def solve(
        self,
        y: Sequence[float],
        X: Sequence[Sequence[float]],
        Z: Sequence[Sequence[float]],
        A: Sequence[Sequence[float]],
        sigma_e2: float,
        sigma_a2: float,
    ) -> MMESolution:
        y, X, Z, A = self._validate(y, X, Z, A)
        sigma_e2 = require_positive(sigma_e2, "sigma_e2")
        sigma_a2 = require_positive(sigma_a2, "sigma_a2")
        alpha = sigma_e2 / sigma_a2
        p, q = X.shape[1], Z.shape[1]
        steps: List[SolverStep] = []
        logger.debug("Solving MME: n_obs=%d p=%d q=%d alpha=%.6g", len(y), p, q, alpha)

        XtX, XtZ = X.T @ X, X.T @ Z
        ZtX, ZtZ = Z.T @ X, Z.T @ Z
        Xty, Zty = X.T @ y, Z.T @ y
        if self.record_trace:
            steps.append(SolverStep(1, "Variance ratio alpha = sigma_e2 / sigma_a2", {"sigma_e2": sigma_e2, "sigma_a2": sigma_a2, "alpha": alpha}))
            steps.append(SolverStep(2, "Normal-equation blocks X'X, X'Z, Z'Z", {"XtX": XtX, "XtZ": XtZ, "ZtZ": ZtZ}))

        check_conditioning(A, "Relationship matrix")
        try:
            A_inv = linalg.inv(A)
        except linalg.LinAlgError as exc:
            raise NumericalError(f"Relationship matrix is not invertible: {exc}") from exc
        if self.record_trace:
            steps.append(SolverStep(3, "Inverse relationship matrix scaled by alpha", {"A_inv": A_inv, "alpha": alpha}))

        lhs = np.block([[XtX, XtZ], [ZtX, ZtZ + A_inv * alpha]])
        rhs = np.concatenate([Xty, Zty])
        if self.record_trace:
            steps.append(SolverStep(4, "Assembled left-hand side and right-hand side", {"lhs": lhs, "rhs": rhs}))

        check_conditioning(lhs, "Mixed model equations")
        try:
            lu, piv = linalg.lu_factor(lhs, check_finite=True)
            solution = linalg.lu_solve((lu, piv), rhs)
            lhs_inv = linalg.lu_solve((lu, piv), np.eye(p + q))
        except (linalg.LinAlgError, ValueError) as exc:
            raise NumericalError(f"Mixed model equations could not be solved: {exc}") from exc

        fixed, breeding = solution[:p], solution[p:]
        pev = np.maximum(np.diag(lhs_inv)[p:] * sigma_e2, 0.0)
        reliability = np.clip(1.0 - pev / (sigma_a2 * np.diag(A)), 0.0, 1.0)
        if self.record_trace:
            steps.append(SolverStep(5, "Solutions: BLUE for fixed effects, BLUP for breeding values", {"blue": fixed, "blup": breeding}))

        return MMESolution(
            fixed_effects=fixed,
            breeding_values=breeding,
            lhs=lhs,
            rhs=rhs,
            alpha=alpha,
            pev=pev,
            reliability=reliability,
            steps=tuple(steps),
        )

    def solve_design(
        self,
        design: DesignMatrices,
        relationship: RelationshipMatrix,
        sigma_e2: float,
        sigma_a2: float,
    ) -> MMESolution:
        if list(relationship.ids) != list(design.ids):
            raise StructuralInputError("Design matrix Z columns do not follow the relationship matrix order")
        return self.solve(design.y, design.X, design.Z, relationship.matrix, sigma_e2, sigma_a2)

    @staticmethod
    def _validate(y, X, Z, A):
        y = as_vector(y, "y")
        X = as_matrix(X, "X")
        Z = as_matrix(Z, "Z")
        A = as_matrix(A, "A")
        n = len(y)
        if n == 0:
            raise StructuralInputError("y must contain at least one observation")
        if X.shape[0] != n:
            raise StructuralInputError(f"X has {X.shape[0]} rows but y has {n} observations")
        if Z.shape[0] != n:
            raise StructuralInputError(f"Z has {Z.shape[0]} rows but y has {n} observations")
        if X.shape[1] == 0 or Z.shape[1] == 0:
            raise StructuralInputError("X and Z need at least one column each")
        if A.shape != (Z.shape[1], Z.shape[1]):
            raise StructuralInputError(f"A must be {Z.shape[1]}x{Z.shape[1]} to match Z, got {A.shape[0]}x{A.shape[1]}")
        return y, X, Z, A
