import logging
import math
from dataclasses import asdict

import numpy as np

from backend.core.config import settings
from backend.schemas import schemas
from breedlab.data import Observation, Pedigree, PedigreeRecord
from breedlab.errors import StructuralInputError
from breedlab.genomic import GenomicRelationshipBuilder
from breedlab.mme import DesignMatrices, MMESolver
from breedlab.params import annual_response, selection_response, variance_components
from breedlab.relationship import RelationshipMatrixBuilder
from breedlab.simulation import SimulationConfig, SimulationResult, compare_strategies, simulate

logger = logging.getLogger(__name__)


def _plain(value):
    """Converts numpy containers nested in trace payloads into JSON-friendly lists."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


def _pedigree(entries):
    if len(entries) > settings.MAX_PEDIGREE_SIZE:
        raise StructuralInputError(
            f"Pedigree has {len(entries)} records; the limit is {settings.MAX_PEDIGREE_SIZE}"
        )
    return Pedigree([PedigreeRecord(e.id, e.sire, e.dam, e.generation) for e in entries])


def _strict(flag):
    return settings.STRICT_PEDIGREE if flag is None else flag


def _simulation_config(request: schemas.SimulationRequest, strategy: str) -> SimulationConfig:
    if request.pop_size > settings.MAX_POPULATION_SIZE:
        raise StructuralInputError(f"pop_size is limited to {settings.MAX_POPULATION_SIZE}")
    if request.n_generations > settings.MAX_GENERATIONS:
        raise StructuralInputError(f"n_generations is limited to {settings.MAX_GENERATIONS}")
    return SimulationConfig(
        h2=request.h2,
        intensity=request.intensity,
        generation_interval=request.generation_interval,
        pop_size=request.pop_size,
        n_generations=request.n_generations,
        mating_strategy=strategy,
        pheno_var=request.pheno_var,
        init_mean=request.init_mean,
        seed=settings.DEFAULT_SEED if request.seed is None else request.seed,
    )


def _simulation_response(result: SimulationResult) -> schemas.SimulationResponse:
    return schemas.SimulationResponse(
        seed=result.config.seed,
        mating_strategy=result.config.mating_strategy,
        generations=[schemas.GenerationSummarySchema(**asdict(g)) for g in result.generations],
        summary=schemas.RunSummarySchema(**asdict(result.summary)),
    )


def run_relationship_service(request: schemas.RelationshipRequest) -> schemas.RelationshipResponse:
    pedigree = _pedigree(request.pedigree)
    builder = RelationshipMatrixBuilder(strict=_strict(request.strict), record_trace=request.include_trace)
    result = builder.build(pedigree)
    logger.info(f"Relationship matrix built for {len(result)} individuals.")
    return schemas.RelationshipResponse(
        ids=list(result.ids),
        A=result.matrix.tolist(),
        F=result.inbreeding.tolist(),
        trace=[schemas.TraceStepSchema(**asdict(step)) for step in result.trace],
    )


def run_blup_service(request: schemas.BLUPRequest) -> schemas.BLUPResponse:
    pedigree = _pedigree(request.pedigree)
    relationship = RelationshipMatrixBuilder(strict=_strict(request.strict), record_trace=False).build(pedigree)
    observations = [Observation(o.animal, o.value, o.group) for o in request.observations]
    design = DesignMatrices.from_observations(observations, relationship.ids)
    solution = MMESolver(record_trace=request.include_steps).solve_design(
        design, relationship, request.sigma_e2, request.sigma_a2
    )
    logger.info(f"MME solved: {len(observations)} records, {len(design.levels)} levels, alpha={solution.alpha:.4f}")
    return schemas.BLUPResponse(
        alpha=solution.alpha,
        fixed_effects=[
            schemas.FixedEffectSchema(level=level, estimate=float(value))
            for level, value in zip(design.levels, solution.fixed_effects)
        ],
        breeding_values=[
            schemas.BreedingValueSchema(id=animal, ebv=float(ebv), pev=float(pev), reliability=float(rel), accuracy=float(acc))
            for animal, ebv, pev, rel, acc in zip(
                design.ids, solution.breeding_values, solution.pev, solution.reliability, solution.accuracy
            )
        ],
        lhs=solution.lhs.tolist(),
        rhs=solution.rhs.tolist(),
        steps=[
            schemas.SolverStepSchema(step=step.step, title=step.title, data=_plain(step.data))
            for step in solution.steps
        ],
    )


def run_genomic_service(request: schemas.GenomicRequest) -> schemas.GenomicResponse:
    if request.genotypes and len(request.genotypes[0]) > settings.MAX_MARKERS:
        raise StructuralInputError(f"At most {settings.MAX_MARKERS} markers are accepted")
    result = GenomicRelationshipBuilder().build(request.genotypes, ids=request.ids)
    logger.info(f"Genomic relationship built for {len(result.ids)} individuals (scale={result.scale:.4f}).")
    return schemas.GenomicResponse(
        ids=list(result.ids),
        G=result.G.tolist(),
        Z=result.Z.tolist(),
        freqs=result.freqs.tolist(),
        scale=result.scale,
    )


def run_simulation_service(request: schemas.SimulationRequest) -> schemas.SimulationResponse:
    config = _simulation_config(request, request.mating_strategy)
    result = simulate(config)
    logger.info(
        f"Simulation finished: {config.n_generations} generations, strategy={config.mating_strategy}, "
        f"seed={config.seed}, gain={result.summary.total_gain:.3f}"
    )
    return _simulation_response(result)


def run_comparison_service(request: schemas.ComparisonRequest) -> schemas.ComparisonResponse:
    if not request.strategies:
        raise StructuralInputError("At least one mating strategy is required")
    config = _simulation_config(request, request.strategies[0])
    results = compare_strategies(config, request.strategies, max_workers=settings.COMPARISON_WORKERS)
    logger.info(f"Compared strategies {', '.join(results)} with seed={config.seed}.")
    return schemas.ComparisonResponse(
        seed=config.seed,
        results={strategy: _simulation_response(result) for strategy, result in results.items()},
    )


def run_params_service(request: schemas.GeneticParamsRequest) -> schemas.GeneticParamsResponse:
    components = variance_components(request.va, request.vd, request.ve)
    response = schemas.GeneticParamsResponse(
        vp=components.vp,
        h2_broad=components.h2_broad,
        h2_narrow=components.h2_narrow,
        share_va=components.share_va,
        share_vd=components.share_vd,
        share_ve=components.share_ve,
    )
    if request.intensity is not None:
        sigma_p = math.sqrt(components.vp)
        response.selection_response = selection_response(request.intensity, components.h2_narrow, sigma_p)
        if request.generation_interval is not None:
            response.annual_response = annual_response(
                request.intensity, components.h2_narrow, sigma_p, request.generation_interval
            )
    return response
