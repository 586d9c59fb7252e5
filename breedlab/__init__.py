"""Breedlab: quantitative-genetics engine for animal-breeding teaching labs."""

from .data import GenotypeTable, Observation, ObservationTable, Pedigree, PedigreeRecord
from .errors import BreedlabError, NumericalError, PedigreeOrderError, StructuralInputError
from .genomic import GenomicRelationship, GenomicRelationshipBuilder
from .mme import DesignMatrices, MMESolution, MMESolver
from .relationship import RelationshipMatrix, RelationshipMatrixBuilder
from .simulation import BreedingSimulator, SimulationConfig, SimulationResult, compare_strategies

__all__ = [
    "BreedingSimulator",
    "BreedlabError",
    "DesignMatrices",
    "GenomicRelationship",
    "GenomicRelationshipBuilder",
    "GenotypeTable",
    "MMESolution",
    "MMESolver",
    "NumericalError",
    "Observation",
    "ObservationTable",
    "Pedigree",
    "PedigreeOrderError",
    "PedigreeRecord",
    "RelationshipMatrix",
    "RelationshipMatrixBuilder",
    "SimulationConfig",
    "SimulationResult",
    "StructuralInputError",
    "compare_strategies",
]
