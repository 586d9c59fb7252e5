"""Additive relationship matrix and inbreeding coefficients from a pedigree.

The matrix is filled row by row with the tabular method::

    F_i  = 0.5 * a(sire_i, dam_i)
    a_ii = 1 + F_i
    a_ij = 0.5 * (a(j, sire_i) + a(j, dam_i))      for j < i

Parents that are absent, unknown, or not yet processed (listed at or after
their offspring) resolve to ``NO_INDEX`` and contribute zero, so an
unordered pedigree silently treats the late parent as a founder. Pass
``strict=True`` to reject such pedigrees instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import linalg

from .data import NO_INDEX, Pedigree, PedigreeRecord
from .errors import NumericalError, StructuralInputError
from .utils import check_conditioning, read_only

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceStep:
    kind: str
    animal: str
    other: str
    value: float
    formula: str


@dataclass(frozen=True)
class RelationshipMatrix:
    ids: Tuple[str, ...]
    matrix: np.ndarray
    inbreeding: np.ndarray
    trace: Tuple[TraceStep, ...] = ()

    def __len__(self) -> int:
        return len(self.ids)

    def index(self, identifier: str) -> int:
        try:
            return self.ids.index(str(identifier))
        except ValueError:
            raise StructuralInputError(f"Individual '{identifier}' is not in the relationship matrix") from None

    def get(self, first: str, second: str) -> float:
        return float(self.matrix[self.index(first), self.index(second)])

    def inbreeding_of(self, identifier: str) -> float:
        return float(self.inbreeding[self.index(identifier)])

    def inverse(self) -> np.ndarray:
        check_conditioning(self.matrix, "Relationship matrix")
        try:
            return linalg.inv(self.matrix)
        except linalg.LinAlgError as exc:
            raise NumericalError(f"Relationship matrix is not invertible: {exc}") from exc

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(np.array(self.matrix), index=list(self.ids), columns=list(self.ids))


def _label(value: Optional[str]) -> str:
    return value if value is not None else "?"


class RelationshipMatrixBuilder:
    def __init__(self, *, strict: bool = False, record_trace: bool = True) -> None:
        self.strict = strict
        self.record_trace = record_trace

    def build(self, pedigree: Union[Pedigree, Iterable[PedigreeRecord]]) -> RelationshipMatrix:
        if not isinstance(pedigree, Pedigree):
            pedigree = Pedigree(list(pedigree))
        if self.strict:
            pedigree.validate_order()

        records = pedigree.records
        n = len(records)
        ids = tuple(pedigree.ids)
        A = np.zeros((n, n), dtype=float)
        F = np.zeros(n, dtype=float)
        trace: List[TraceStep] = []
        logger.debug("Building relationship matrix for %d individuals", n)

        for i, record in enumerate(records):
            sire_idx = self._resolve(pedigree, record.sire, i)
            dam_idx = self._resolve(pedigree, record.dam, i)

            if sire_idx != NO_INDEX and dam_idx != NO_INDEX:
                F[i] = 0.5 * A[sire_idx, dam_idx]
            A[i, i] = 1.0 + F[i]
            if self.record_trace:
                trace.append(self._diagonal_step(record, A, F[i], sire_idx, dam_idx, i))

            for j in range(i):
                from_sire = A[j, sire_idx] if sire_idx != NO_INDEX else 0.0
                from_dam = A[j, dam_idx] if dam_idx != NO_INDEX else 0.0
                A[i, j] = A[j, i] = 0.5 * (from_sire + from_dam)
                if self.record_trace and A[i, j] != 0:
                    trace.append(
                        TraceStep(
                            kind="offdiagonal",
                            animal=record.id,
                            other=ids[j],
                            value=float(A[i, j]),
                            formula=(
                                f"a({record.id},{ids[j]}) = 0.5*(a({ids[j]},{_label(record.sire)}) + "
                                f"a({ids[j]},{_label(record.dam)})) = 0.5*({from_sire:.4f} + {from_dam:.4f}) = {A[i, j]:.4f}"
                            ),
                        )
                    )

        return RelationshipMatrix(ids=ids, matrix=read_only(A), inbreeding=read_only(F), trace=tuple(trace))

    @staticmethod
    def _resolve(pedigree: Pedigree, parent: Optional[str], position: int) -> int:
        index = pedigree.index_of(parent)
        if index >= position:
            logger.debug("Parent '%s' of row %d is not listed before it; treating as founder", parent, position)
            return NO_INDEX
        return index

    @staticmethod
    def _diagonal_step(record: PedigreeRecord, A: np.ndarray, f: float, sire_idx: int, dam_idx: int, i: int) -> TraceStep:
        if sire_idx != NO_INDEX and dam_idx != NO_INDEX:
            formula = (
                f"a({record.id},{record.id}) = 1 + F_{record.id} = 1 + 0.5*a({record.sire},{record.dam}) "
                f"= 1 + 0.5*{A[sire_idx, dam_idx]:.4f} = {A[i, i]:.4f}"
            )
        else:
            formula = f"a({record.id},{record.id}) = 1 + F_{record.id} = 1 + 0 = 1"
        return TraceStep(kind="diagonal", animal=record.id, other=record.id, value=float(A[i, i]), formula=formula)
