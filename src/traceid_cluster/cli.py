"""
Command line front end for traceid-cluster.

Reads tokens one per line from a file (or stdin) and prints JSON to stdout:

    traceid-cluster cluster ids.txt --algorithm dbscan --epsilon 0.25
    traceid-cluster search "req:auth:login-1a2b#v1" ids.txt --top 5
    traceid-cluster layout ids.txt --dimensions 3
    traceid-cluster sweep ids.txt --algorithm hierarchical --values 0.2 0.3 0.4

Progress messages go to the log (stderr).
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO

from .algorithms.clustering import CLUSTERING_ALGORITHMS, create_clustering_algorithm
from .algorithms.distance import (
    DISTANCE_CALCULATORS,
    TraceabilityId,
    build_distance_matrix,
    create_distance_calculator,
)
from .algorithms.dimensionality_reduction import classical_mds
from .algorithms.sweep import SweepConfig, run_sweep
from .config import Config, load_config
from .services.analysis_service import AnalysisService
from .services.graph_service import build_graph_data
from .services.similarity_service import SimilarityService
from .utils.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def read_items(stream: TextIO, unique: bool = False) -> List[str]:
    """One token per line; blank lines skipped; optional first-seen dedup."""
    items = [line.strip() for line in stream]
    items = [item for item in items if item]
    if unique:
        items = list(dict.fromkeys(items))
    return items


def parse_weights(text: str) -> Dict[str, float]:
    """Parse ``level=0.2,scope=0.3,...`` into a dict."""
    weights: Dict[str, float] = {}
    for part in text.split(","):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(
                f"Expected name=value in weights, got {part!r}"
            )
        try:
            weights[key.strip()] = float(value)
        except ValueError:
            raise argparse.ArgumentTypeError(
                f"Weight for {key.strip()!r} is not a number: {value!r}"
            ) from None
    return weights


def _add_input_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "input", nargs="?", type=Path, default=None,
        help="File with one token per line (default: stdin)",
    )


def build_parser(config: Config) -> argparse.ArgumentParser:
    """Create the argument parser with defaults taken from *config*."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--unique", action="store_true",
        help="Drop repeated tokens, keeping the first occurrence",
    )
    common.add_argument(
        "--distance", choices=DISTANCE_CALCULATORS, default=config.distance.name,
        help="Distance calculator",
    )
    common.add_argument(
        "--prefix-scale", type=float, default=config.distance.prefix_scale,
        help="Jaro-Winkler prefix weight (0-0.25)",
    )
    common.add_argument(
        "--ngram-size", type=int, default=config.distance.ngram_size,
        help="Cosine n-gram size",
    )
    common.add_argument(
        "--weights", type=parse_weights, default=None,
        help="Structural weights, e.g. level=0.2,scope=0.3,semantic=0.3,hash=0.1,version=0.1",
    )
    common.add_argument(
        "--algorithm", choices=CLUSTERING_ALGORITHMS, default=config.algorithm,
        help="Clustering algorithm",
    )
    common.add_argument("--threshold", type=float, default=config.clustering.threshold)
    common.add_argument("-k", type=int, default=config.clustering.k)
    common.add_argument(
        "--max-iterations", type=int, default=config.clustering.max_iterations
    )
    common.add_argument("--seed", type=int, default=config.clustering.seed)
    common.add_argument("--epsilon", type=float, default=config.clustering.epsilon)
    common.add_argument("--min-points", type=int, default=config.clustering.min_points)
    common.add_argument(
        "--log-level", default=config.log_level,
        help="Logging level for progress messages on stderr",
    )

    parser = argparse.ArgumentParser(
        prog="traceid-cluster",
        description="Cluster, search and lay out traceability IDs",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_cluster = sub.add_parser("cluster", parents=[common], help="Cluster tokens")
    _add_input_argument(p_cluster)
    p_cluster.add_argument(
        "--layout", action="store_true", help="Include MDS coordinates"
    )
    p_cluster.add_argument(
        "--dimensions", type=int, default=config.mds_dimensions,
        help="MDS dimensions when --layout is given",
    )
    p_cluster.add_argument(
        "--graph-threshold", type=float, default=None,
        help="Emit graph nodes/links with edges at or below this distance",
    )
    p_cluster.add_argument(
        "--near-duplicate-threshold", type=float, default=0.1,
        help="Report pairs closer than this distance as near-duplicates",
    )

    p_search = sub.add_parser("search", parents=[common], help="Rank tokens by similarity")
    p_search.add_argument("query", help="Token to search for")
    _add_input_argument(p_search)
    p_search.add_argument("--top", type=int, default=None, help="Keep the N closest")
    p_search.add_argument(
        "--keyword", action="store_true",
        help="Case-insensitive substring match instead of distance ranking",
    )
    p_search.add_argument(
        "--component", choices=TraceabilityId._fields, default=None,
        help="With --keyword, match only this part of each ID",
    )

    p_layout = sub.add_parser("layout", parents=[common], help="MDS coordinates")
    _add_input_argument(p_layout)
    p_layout.add_argument("--dimensions", type=int, default=config.mds_dimensions)

    p_sweep = sub.add_parser("sweep", parents=[common], help="Sweep a clustering parameter")
    _add_input_argument(p_sweep)
    p_sweep.add_argument(
        "--values", type=float, nargs="+", required=True,
        help="Values of threshold / k / epsilon to try",
    )

    return parser


def _load_items(args: argparse.Namespace, stdin: TextIO) -> List[str]:
    if args.input is None:
        return read_items(stdin, unique=args.unique)
    with open(args.input, "r", encoding="utf-8") as fh:
        return read_items(fh, unique=args.unique)


def run(args: argparse.Namespace, config: Config, stdin: TextIO) -> dict:
    """Execute the parsed command and return the JSON-ready payload."""
    calculator = create_distance_calculator(
        args.distance,
        prefix_scale=args.prefix_scale,
        ngram_size=args.ngram_size,
        weights=args.weights,
    )
    options = replace(
        config.clustering,
        threshold=args.threshold,
        k=args.k,
        max_iterations=args.max_iterations,
        seed=args.seed,
        epsilon=args.epsilon,
        min_points=args.min_points,
    )

    if args.command == "search":
        items = _load_items(args, stdin)
        if args.keyword:
            return {
                "query": args.query,
                "component": args.component,
                "items": SimilarityService.search_by_keyword(
                    args.query, items, component=args.component
                ),
            }
        logger.info("Searching %d items for %s", len(items), args.query)
        return SimilarityService(calculator).search_similar(
            args.query, items, top=args.top
        ).to_dict()

    if args.command == "layout":
        if args.dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {args.dimensions}")
        items = _load_items(args, stdin)
        matrix = build_distance_matrix(items, calculator)
        payload = classical_mds(matrix, args.dimensions).to_dict()
        payload["items"] = items
        return payload

    if args.command == "sweep":
        cfg = SweepConfig(algorithm=args.algorithm, values=args.values, options=options)
        items = _load_items(args, stdin)
        matrix = build_distance_matrix(items, calculator)
        return run_sweep(items, matrix, cfg).to_dict()

    # construct before reading input so bad parameters fail fast
    algorithm = create_clustering_algorithm(args.algorithm, options)
    service = AnalysisService(
        calculator,
        algorithm,
        mds_dimensions=args.dimensions,
        near_duplicate_threshold=args.near_duplicate_threshold,
    )
    items = _load_items(args, stdin)
    result = service.analyze(items, include_layout=args.layout)
    payload = result.to_dict()
    if args.graph_threshold is not None:
        coordinates = result.mds.coordinates if result.mds is not None else None
        payload["graph"] = build_graph_data(
            items, result.matrix, result.clusters, args.graph_threshold, coordinates
        ).to_dict()
    return payload


def main(
    argv: Optional[Sequence[str]] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """
    Entry point for the ``traceid-cluster`` console script.

    Returns:
        Process exit code (0 on success, 2 on configuration / input errors)
    """
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout

    try:
        config = load_config()
    except ValueError as e:
        print(f"traceid-cluster: configuration error: {e}", file=sys.stderr)
        return 2

    parser = build_parser(config)
    args = parser.parse_args(argv)

    try:
        setup_logging(args.log_level)
        payload = run(args, config, stdin)
    except (ValueError, OSError) as e:
        print(f"traceid-cluster: error: {e}", file=sys.stderr)
        return 2

    json.dump(payload, stdout, indent=2)
    stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
