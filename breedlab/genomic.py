"""Genomic relationship matrix from marker dosages (VanRaden, method 1)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .data import GenotypeTable
from .errors import NumericalError, StructuralInputError
from .utils import read_only

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenomicRelationship:
    G: np.ndarray
    Z: np.ndarray
    freqs: np.ndarray
    scale: float
    ids: Tuple[str, ...]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(np.array(self.G), index=list(self.ids), columns=list(self.ids))


class GenomicRelationshipBuilder:
    """Builds ``G = ZZ' / (2 * sum p_j (1 - p_j))`` with ``Z = M - 2p``."""

    def build(
        self,
        genotypes: Union[GenotypeTable, Sequence[Sequence[float]]],
        ids: Optional[Sequence[str]] = None,
    ) -> GenomicRelationship:
        if isinstance(genotypes, GenotypeTable):
            ids = genotypes.individuals if ids is None else ids
            genotypes = genotypes.matrix
        M = self._validate(genotypes)
        n, m = M.shape
        if ids is None:
            ids = [str(i) for i in range(n)]
        elif len(ids) != n:
            raise StructuralInputError(f"Got {len(ids)} identifiers for {n} genotyped individuals")

        freqs = M.sum(axis=0) / (2 * n)
        Z = M - 2 * freqs
        scale = float(2 * np.sum(freqs * (1 - freqs)))
        if scale <= 0:
            raise NumericalError("Every marker is monomorphic; the genomic scale factor is zero")
        G = (Z @ Z.T) / scale
        logger.debug("Genomic relationship for %d individuals over %d markers (scale=%.6g)", n, m, scale)
        return GenomicRelationship(
            G=read_only(G),
            Z=read_only(Z),
            freqs=read_only(freqs),
            scale=scale,
            ids=tuple(str(identifier) for identifier in ids),
        )

    @staticmethod
    def _validate(genotypes: Sequence[Sequence[float]]) -> np.ndarray:
        try:
            M = np.asarray(genotypes, dtype=float)
        except (TypeError, ValueError) as exc:
            raise StructuralInputError("Genotypes must be a rectangular numeric matrix") from exc
        if M.ndim != 2 or M.shape[0] == 0 or M.shape[1] == 0:
            raise StructuralInputError(f"Genotypes must be a non-empty n x m matrix, got shape {M.shape}")
        invalid = ~np.isin(M, (0.0, 1.0, 2.0))
        if invalid.any():
            row, col = np.argwhere(invalid)[0]
            raise StructuralInputError(
                f"Genotype dosages must be 0, 1 or 2; found {M[row, col]} at individual {row}, marker {col}"
            )
        return M
