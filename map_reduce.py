#!/usr/bin/env python3
import argparse
import sys
from typing import List, Optional

from client import Client, ClientError
from ordering import NUMERIC, available_policies
from worker import LOG_LEVEL, WORK_DIR, configure_logging

usage_msg = """
map_reduce.py – Run the reduce task of one partition and inspect record files.

Commands:
  reduce <job_name> <partition> <job_file>  Merge, group and reduce the intermediate files
                                            mrtmp.<job_name>-<m>-<partition> of one partition.
         --num-maps N                       Number of map tasks that produced intermediate files.
         [--reduce REDUCE_FN]               Reduce function name (default: 'reduce_function').
         [--output PATH]                    Output file (default: mrtmp.<job_name>-res-<partition>).
         [--work-dir DIR]                   Directory of the intermediate files (default: $MR_WORK_DIR or '.').
         [--ordering numeric|lexicographic] Key ordering used for grouping (default: numeric).
  show <path>                               Print a record file as tab separated key/value lines.
  help                                      Show this help message.

Examples:
  python3 map_reduce.py reduce wc 0 client_folder/jobs/word_count.py --num-maps 3
  python3 map_reduce.py show mrtmp.wc-res-0
"""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="map_reduce",
        description="Run reduce tasks and inspect record files.",
        usage=usage_msg,
        add_help=True
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level (default: $MR_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    # Reduce
    p_reduce = subparsers.add_parser("reduce", help="Run the reduce task of one partition.")
    p_reduce.add_argument("job_name", help="Name of the MapReduce job")
    p_reduce.add_argument("partition", type=int, help="Partition index of the reduce task")
    p_reduce.add_argument("job_file", help="Python job file defining the reduce function")
    p_reduce.add_argument("--num-maps", type=int, required=True, help="Number of map tasks")
    p_reduce.add_argument("--reduce", dest="reduce_fn", default="reduce_function",
                          help="Reduce function name (default: reduce_function)")
    p_reduce.add_argument("--output", default=None, help="Output file path")
    p_reduce.add_argument("--work-dir", default=WORK_DIR, help="Directory of the intermediate files")
    p_reduce.add_argument("--ordering", choices=available_policies(), default=NUMERIC.name,
                          help="Key ordering used for grouping (default: numeric)")

    # Show
    p_show = subparsers.add_parser("show", help="Print a record file.")
    p_show.add_argument("path", help="Intermediate or result file")

    # Help fallback
    subparsers.add_parser("help", help="Show help")

    return parser.parse_args(argv)


def run_reduce(args: argparse.Namespace) -> int:
    client = Client(work_dir=args.work_dir)
    ack = client.reduce(
        args.job_name,
        args.partition,
        args.num_maps,
        args.job_file,
        function_name=args.reduce_fn,
        output_path=args.output,
        ordering=args.ordering,
    )
    if not ack.ok:
        print(f"reduce failed: {ack.message}", file=sys.stderr)
        return 1
    print(ack.message)
    return 0


def show(args: argparse.Namespace) -> int:
    try:
        records = Client(work_dir="").read_records(args.path)
    except ClientError as e:
        print(str(e), file=sys.stderr)
        return 1
    for kv in records:
        print(f"{kv.key}\t{kv.value}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    command = args.command

    if command == "reduce":
        return run_reduce(args)
    elif command == "show":
        return show(args)
    else:
        print(usage_msg)
        return 0


if __name__ == "__main__":
    sys.exit(main())
