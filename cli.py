import argparse
import logging
import os
import sys

from config import CFG
from io_files import load_puzzle, write_summary
from puzzle_parser import PuzzleFormatError
from solver.orchestrator import solve_puzzle

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Count the regions whose required shapes can all be packed without overlap."
    )
    parser.add_argument("input", nargs="?", default=CFG.INPUT_FILE, help="puzzle text file")
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="number of worker processes (0 = cpu count, 1 = no multiprocessing)",
    )
    parser.add_argument("--node-limit", type=int, default=None, help="placements tried per region before giving up")
    parser.add_argument("--time-limit", type=float, default=None, help="seconds per region search (0 = no limit)")
    parser.add_argument("--no-cp-sat", action="store_true", help="do not hand undecided regions to CP-SAT")
    parser.add_argument("--summary", default=None, help="write per-region outcomes as JSON to this path")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more logging (-vv for debug)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    if args.node_limit is not None:
        CFG.NODE_LIMIT = max(1, args.node_limit)
    if args.time_limit is not None:
        CFG.REGION_TIME_LIMIT = max(0.0, args.time_limit)
    if args.no_cp_sat:
        CFG.CP_SAT_RESCUE = False

    workers = args.workers
    if workers is not None and workers <= 0:
        workers = os.cpu_count() or 1

    try:
        puzzle = load_puzzle(args.input)
    except OSError as exc:
        LOGGER.error("cannot read %s: %s", args.input, exc)
        return 2
    except PuzzleFormatError as exc:
        LOGGER.error("bad puzzle %s: %s", args.input, exc)
        return 2

    solvable, results = solve_puzzle(puzzle, workers=workers)

    if args.summary:
        CFG.SUMMARY_OUT = args.summary
        path = write_summary(results, solvable, os.getcwd())
        LOGGER.info("summary written to %s", path)

    print(solvable)
    return 0


if __name__ == "__main__":
    sys.exit(main())
