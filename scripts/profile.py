from __future__ import annotations

import argparse
import cProfile
import pstats
from pathlib import Path

from scripts.bench import benchmark_composition, benchmark_processing, benchmark_resolution

RUNNERS = {
    "resolution": benchmark_resolution,
    "composition": benchmark_composition,
    "processing": benchmark_processing,
}


def main() -> None:
    parser = argparse.ArgumentParser(description="Profile chat benchmark scenarios.")
    parser.add_argument("target", choices=sorted(RUNNERS), help="Benchmark target to profile")
    parser.add_argument("--iterations", type=int, default=500, help="Iterations to run")
    parser.add_argument(
        "--output-dir",
        default="profiles",
        help="Directory receiving the .prof file",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=0,
        help="Print the N most expensive calls by cumulative time",
    )
    args = parser.parse_args()

    profiles_dir = Path(args.output_dir)
    profiles_dir.mkdir(parents=True, exist_ok=True)
    profile_path = profiles_dir / f"{args.target}.prof"
    runner = RUNNERS[args.target]

    profiler = cProfile.Profile()
    profiler.runcall(runner, args.iterations)
    profiler.dump_stats(str(profile_path))
    print(f"Profile written to {profile_path}")

    if args.top > 0:
        pstats.Stats(str(profile_path)).sort_stats("cumulative").print_stats(args.top)


if __name__ == "__main__":
    main()
