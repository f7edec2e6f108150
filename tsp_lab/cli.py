import argparse
import concurrent.futures
import json
import logging
import random
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional

from tsp_lab.data import Instance, load_instance, load_tsplib_instances, random_instance
from tsp_lab.errors import InvalidArgumentError
from tsp_lab.evaluation import SolveReport, aggregate_reports, evaluate_solver
from tsp_lab.evolutionary import GeneticAlgorithmConfig, GeneticAlgorithmSolver
from tsp_lab.geometry import Tour
from tsp_lab.registry import (
    available_crossovers,
    available_mutations,
    describe_solvers,
    resolve_solver,
)
from tsp_lab.solvers import AntColonyConfig, AntColonySolver, SimulatedAnnealingConfig, SimulatedAnnealingSolver
from tsp_lab.solvers.base import finished_tour


def log(msg: str) -> None:
    ts = time.strftime("%H:%M:%S")
    print(f"[{ts}] {msg}", flush=True)


def _load(args) -> Instance:
    if args.tsplib:
        return load_instance(Path(args.tsplib))
    return random_instance(args.cities, seed=args.seed)


def build_config(solver_cls, city_count: int, iterations: Optional[int], args=None):
    overrides = {"max_iterations": iterations} if iterations else {}
    if solver_cls is SimulatedAnnealingSolver:
        return SimulatedAnnealingConfig.for_problem_size(city_count, **overrides)
    if solver_cls is AntColonySolver:
        return AntColonyConfig.for_problem_size(city_count, **overrides)
    if solver_cls is GeneticAlgorithmSolver:
        return GeneticAlgorithmConfig(
            max_generations=iterations or 200,
            stagnation_limit=50,
            random_seed=getattr(args, "seed", None),
            crossover_name=getattr(args, "crossover", None) or "OrderCrossover",
            mutation_name=getattr(args, "mutation", None) or "SwapMutation",
            mutation_rate=0.05,
        )
    return None


def _stream(solver, instance: Instance, config, rng: random.Random, cancel: threading.Event) -> Tour:
    last = None
    try:
        for last in solver.solve_with_progress(
            instance.cities, config, cancel=cancel, rng=rng, distance_matrix=instance.distance_matrix
        ):
            if hasattr(last, "current_temperature"):
                extra = f"T={last.current_temperature:.3f}"
            else:
                extra = f"avg={last.average_distance:.2f} stagnation={last.stagnation_count}"
            log(f"iteration {last.iteration}: best={last.best_distance:.4f} {extra}")
    except KeyboardInterrupt:
        cancel.set()
        log("interrupted")
    if last is None:
        raise InvalidArgumentError("interrupted before the first progress snapshot")
    return finished_tour(last.best_tour, last.best_distance)


def solve(args) -> int:
    instance = _load(args)
    solver_cls = resolve_solver(args.algorithm)
    solver = solver_cls()
    n = len(instance.cities)
    config = build_config(solver_cls, n, args.iterations, args)
    rng = random.Random(args.seed)
    cancel = threading.Event()
    log(f"solving {instance.name} ({n} cities) with {solver.name}")
    t0 = time.perf_counter()
    if args.progress and hasattr(solver, "solve_with_progress") and n >= 3:
        tour = _stream(solver, instance, config, rng, cancel)
    else:
        try:
            tour = solver.solve(
                instance.cities, config=config, cancel=cancel, rng=rng, distance_matrix=instance.distance_matrix
            )
        except KeyboardInterrupt:
            log("interrupted")
            return 130
    elapsed = time.perf_counter() - t0
    gap = ""
    if instance.optimum:
        gap = f" gap={(tour.distance - instance.optimum) / instance.optimum:.2%}"
    log(f"distance={tour.distance:.4f} time={elapsed:.2f}s{gap}")
    if args.json:
        print(json.dumps({"instance": instance.name, "solver": solver.name, "distance": tour.distance,
                          "tour": list(tour.cities), "seconds": elapsed}))
    else:
        print(" -> ".join(str(c) for c in tour.cities))
    return 0


def list_strategies(args) -> int:
    print("algorithms:")
    for key, name, description in describe_solvers():
        print(f"  {key:<20} {name}: {description}")
    print("crossovers: " + ", ".join(available_crossovers()))
    print("mutations:  " + ", ".join(available_mutations()))
    return 0


def _benchmark_instance(instance: Instance, args) -> None:
    n = len(instance.cities)
    jobs = []
    for name in args.algorithms:
        solver_cls = resolve_solver(name)
        for run in range(args.runs):
            jobs.append((solver_cls, run))

    def worker(job) -> SolveReport:
        solver_cls, run = job
        # One independent random source per run.
        rng = random.Random((args.seed or 0) * 1000 + run)
        config = build_config(solver_cls, n, args.iterations, args)
        return evaluate_solver(
            solver_cls(), instance.cities, instance.optimum, instance.distance_matrix, rng=rng, config=config
        )

    log(f"benchmarking {len(args.algorithms)} algorithm(s) x {args.runs} run(s) on {instance.name} ({n} cities)")
    with concurrent.futures.ThreadPoolExecutor(max_workers=args.workers) as ex:
        reports = list(ex.map(worker, jobs))
    by_solver = {}
    for report in reports:
        by_solver.setdefault(report.solver_name, []).append(report)
    for solver_name, group in by_solver.items():
        agg = aggregate_reports(group)
        print(
            f"{instance.name:<12} {solver_name:<26} mean={agg['length']:10.4f} best={agg['best']:10.4f} "
            f"gap={agg['gap']:8.4f} runtime={agg['runtime']:7.3f}s"
        )


def benchmark(args) -> int:
    if args.tsplib_dir:
        instances = load_tsplib_instances(
            Path(args.tsplib_dir), max_nodes=args.max_nodes, max_instances=args.max_instances
        )
        if not instances:
            raise InvalidArgumentError(f"no TSPLIB instances found in {args.tsplib_dir}")
    else:
        instances = [_load(args)]
    for instance in instances:
        _benchmark_instance(instance, args)
    return 0


def _add_instance_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cities", type=int, default=30, help="random instance size")
    parser.add_argument("--tsplib", help="path to a TSPLIB .tsp file (overrides --cities)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--iterations", type=int, default=None, help="override the iteration/generation budget")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="TSP metaheuristics lab")
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command", required=True)

    solve_parser = subparsers.add_parser("solve", help="Solve one instance")
    _add_instance_args(solve_parser)
    solve_parser.add_argument("--algorithm", default="simulated_annealing")
    solve_parser.add_argument("--crossover", default=None)
    solve_parser.add_argument("--mutation", default=None)
    solve_parser.add_argument("--progress", action="store_true", help="stream progress snapshots first")
    solve_parser.add_argument("--json", action="store_true")
    solve_parser.set_defaults(func=solve)

    list_parser = subparsers.add_parser("list", help="List algorithms and operators")
    list_parser.set_defaults(func=list_strategies)

    bench_parser = subparsers.add_parser("benchmark", help="Compare algorithms on one or more instances in parallel")
    _add_instance_args(bench_parser)
    bench_parser.add_argument(
        "--algorithms", nargs="+", default=["nearest_neighbor", "two_opt", "simulated_annealing"]
    )
    bench_parser.add_argument("--runs", type=int, default=3)
    bench_parser.add_argument("--workers", type=int, default=4)
    bench_parser.add_argument("--tsplib-dir", help="benchmark every .tsp file in this directory")
    bench_parser.add_argument("--max-nodes", type=int, default=None, help="skip directory instances above this size")
    bench_parser.add_argument("--max-instances", type=int, default=None)
    bench_parser.set_defaults(func=benchmark)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(name)s %(levelname)s %(message)s")
    try:
        return args.func(args)
    except InvalidArgumentError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
