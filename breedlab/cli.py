"""Command-line interface for the breedlab engine."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

import pandas as pd

from .data import GenotypeTable, ObservationTable, Pedigree
from .errors import BreedlabError
from .genomic import GenomicRelationshipBuilder
from .mme import DesignMatrices, MMESolver
from .relationship import RelationshipMatrixBuilder
from .simulation import MATING_STRATEGIES, SimulationConfig, compare_strategies, simulate

logger = logging.getLogger("breedlab")


def _load_pedigree(args: argparse.Namespace) -> Pedigree:
    return Pedigree.from_csv(
        args.pedigree,
        id_col=args.id_col,
        sire_col=args.sire_col,
        dam_col=args.dam_col,
        delimiter=args.sep,
    )


def _write_frame(path: str, frame: pd.DataFrame, *, index: bool = False) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(output, index=index)


def _config_from_args(args: argparse.Namespace, strategy: str) -> SimulationConfig:
    return SimulationConfig(
        h2=args.h2,
        intensity=args.intensity,
        generation_interval=args.generation_interval,
        pop_size=args.pop_size,
        n_generations=args.generations,
        mating_strategy=strategy,
        pheno_var=args.pheno_var,
        init_mean=args.init_mean,
        seed=args.seed,
    )


def command_relationship(args: argparse.Namespace) -> None:
    pedigree = _load_pedigree(args)
    result = RelationshipMatrixBuilder(strict=args.strict, record_trace=bool(args.trace_out)).build(pedigree)
    _write_frame(args.output, result.to_frame(), index=True)
    if args.inbreeding_out:
        _write_frame(args.inbreeding_out, pd.DataFrame({"id": list(result.ids), "F": result.inbreeding}))
    if args.trace_out:
        rows = [[step.kind, step.animal, step.other, step.value, step.formula] for step in result.trace]
        _write_frame(args.trace_out, pd.DataFrame(rows, columns=["kind", "animal", "other", "value", "formula"]))
    logger.info("Wrote %dx%d relationship matrix to %s", len(result), len(result), args.output)


def command_blup(args: argparse.Namespace) -> None:
    pedigree = _load_pedigree(args)
    relationship = RelationshipMatrixBuilder(strict=args.strict, record_trace=False).build(pedigree)
    observations = ObservationTable.from_csv(
        args.observations,
        animal_col=args.animal_col,
        value_col=args.value_col,
        group_col=args.group_col,
        delimiter=args.sep,
    )
    design = DesignMatrices.from_observations(observations, relationship.ids)
    solution = MMESolver(record_trace=False).solve_design(design, relationship, args.sigma_e2, args.sigma_a2)
    breeding = pd.DataFrame(
        {
            "id": design.ids,
            "ebv": solution.breeding_values,
            "pev": solution.pev,
            "reliability": solution.reliability,
            "accuracy": solution.accuracy,
        }
    )
    _write_frame(args.output, breeding)
    if args.fixed_out:
        _write_frame(args.fixed_out, pd.DataFrame({"level": design.levels, "estimate": solution.fixed_effects}))
    logger.info("Solved MME for %d animals and %d fixed levels (alpha=%.4f)", len(design.ids), len(design.levels), solution.alpha)


def command_genomic(args: argparse.Namespace) -> None:
    genotypes = GenotypeTable.from_csv(args.genotype, index_col=args.geno_index, delimiter=args.sep)
    result = GenomicRelationshipBuilder().build(genotypes)
    _write_frame(args.output, result.to_frame(), index=True)
    if args.freq_out:
        _write_frame(args.freq_out, pd.DataFrame({"marker": genotypes.markers, "p": result.freqs}))
    logger.info("Genomic scale factor %.6f over %d markers", result.scale, len(genotypes.markers))


def command_simulate(args: argparse.Namespace) -> None:
    result = simulate(_config_from_args(args, args.strategy))
    _write_frame(args.output, result.to_frame())
    if args.summary_out:
        _write_frame(args.summary_out, pd.DataFrame([asdict(result.summary)]))
    logger.info(
        "Expected response %.4f per generation, realized %.4f",
        result.summary.expected_response,
        result.summary.realized_response,
    )


def command_compare(args: argparse.Namespace) -> None:
    base = _config_from_args(args, args.strategies[0])
    results = compare_strategies(base, args.strategies, max_workers=args.workers)
    frames = []
    for strategy, result in results.items():
        frame = result.to_frame()
        frame.insert(0, "strategy", strategy)
        frames.append(frame)
    _write_frame(args.output, pd.concat(frames, ignore_index=True))
    if args.summary_out:
        summary = pd.DataFrame([{"strategy": strategy, **asdict(result.summary)} for strategy, result in results.items()])
        _write_frame(args.summary_out, summary)


def _add_pedigree_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--pedigree", required=True)
    parser.add_argument("--id-col", dest="id_col", default="id")
    parser.add_argument("--sire-col", dest="sire_col", default="sire")
    parser.add_argument("--dam-col", dest="dam_col", default="dam")
    parser.add_argument("--strict", action="store_true", help="Reject pedigrees where parents follow offspring")


def _add_simulation_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--h2", type=float, default=0.3)
    parser.add_argument("--intensity", type=float, default=1.4)
    parser.add_argument("--generation-interval", dest="generation_interval", type=float, default=5.0)
    parser.add_argument("--pop-size", dest="pop_size", type=int, default=200)
    parser.add_argument("--generations", type=int, default=10)
    parser.add_argument("--pheno-var", dest="pheno_var", type=float, default=100.0)
    parser.add_argument("--init-mean", dest="init_mean", type=float, default=100.0)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--output", required=True)
    parser.add_argument("--summary-out", dest="summary_out")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="breedlab", description="Quantitative-genetics teaching engine")
    parser.add_argument("--sep", default=",")
    parser.add_argument("--log-level", dest="log_level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command", required=True)

    rel_parser = subparsers.add_parser("relationship", help="Build the additive relationship matrix")
    _add_pedigree_arguments(rel_parser)
    rel_parser.add_argument("--output", required=True)
    rel_parser.add_argument("--inbreeding-out", dest="inbreeding_out")
    rel_parser.add_argument("--trace-out", dest="trace_out")
    rel_parser.set_defaults(func=command_relationship)

    blup_parser = subparsers.add_parser("blup", help="Solve the BLUP animal model")
    _add_pedigree_arguments(blup_parser)
    blup_parser.add_argument("--observations", required=True)
    blup_parser.add_argument("--animal-col", dest="animal_col", default="animal")
    blup_parser.add_argument("--value-col", dest="value_col", default="value")
    blup_parser.add_argument("--group-col", dest="group_col", default="group")
    blup_parser.add_argument("--sigma-e2", dest="sigma_e2", type=float, required=True)
    blup_parser.add_argument("--sigma-a2", dest="sigma_a2", type=float, required=True)
    blup_parser.add_argument("--output", required=True)
    blup_parser.add_argument("--fixed-out", dest="fixed_out")
    blup_parser.set_defaults(func=command_blup)

    genomic_parser = subparsers.add_parser("genomic", help="Build the genomic relationship matrix")
    genomic_parser.add_argument("--genotype", required=True)
    genomic_parser.add_argument("--geno-index", dest="geno_index", default=None)
    genomic_parser.add_argument("--output", required=True)
    genomic_parser.add_argument("--freq-out", dest="freq_out")
    genomic_parser.set_defaults(func=command_genomic)

    sim_parser = subparsers.add_parser("simulate", help="Run a breeding simulation")
    _add_simulation_arguments(sim_parser)
    sim_parser.add_argument("--strategy", choices=MATING_STRATEGIES, default="random")
    sim_parser.set_defaults(func=command_simulate)

    compare_parser = subparsers.add_parser("compare", help="Compare mating strategies under one seed")
    _add_simulation_arguments(compare_parser)
    compare_parser.add_argument("--strategies", nargs="+", choices=MATING_STRATEGIES, default=list(MATING_STRATEGIES))
    compare_parser.add_argument("--workers", type=int, default=None)
    compare_parser.set_defaults(func=command_compare)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    try:
        args.func(args)
    except BreedlabError as exc:
        logger.error("%s", exc)
        sys.exit(2)


if __name__ == "__main__":
    main()
