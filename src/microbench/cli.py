"""The ``microbench`` command line interface."""

import argparse
import logging
import sys
from typing import Any

from microbench import __version__
from microbench.config import MODES, MicrobenchConfig, import_, parse_microbench_config
from microbench.context import builtin_providers, register_context_provider
from microbench.reporter import reporter_for
from microbench.reporter.console import ConsoleReporter
from microbench.runner import Benchmark, collect

_VERSION = f"%(prog)s version {__version__}"
logger = logging.getLogger("microbench")


class CustomFormatter(argparse.RawDescriptionHelpFormatter):
    def _format_action_invocation(self, action):
        if not action.option_strings:
            (metavar,) = self._metavar_formatter(action, action.dest)(1)
            return metavar
        elif isinstance(action, argparse.BooleanOptionalAction):
            if len(action.option_strings) == 2:
                true_opt, false_opt = action.option_strings
                return "--[no-]" + true_opt[2:]
        parts = []
        # if the Optional doesn't take a value, format is:
        #    -s, --long
        if action.nargs == 0:
            parts.extend(action.option_strings)

        # if the Optional takes a value, format is:
        #    -s, --long ARGS
        else:
            default = action.dest.upper()
            args_string = self._format_args(action, default)
            parts.extend(action.option_strings)
            parts[-1] += f" {args_string}"
        return ", ".join(parts)


def _log_level(log_level: str) -> str:
    """
    Initializes a stream handler to the microbench logger if any level except NOTSET is passed.

    This runs before input validation against "choices", so we must check the input is in fact a
    literal of the available log levels.
    """

    if log_level not in ("NOTSET", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        # ValueErrors are caught by argparse, but the error message is non-configurable,
        # and the original exception is swallowed
        raise ValueError

    if log_level != "NOTSET":
        logger.setLevel(log_level)
        sh = logging.StreamHandler()
        sh.setFormatter(
            logging.Formatter(fmt="[{levelname:<4} {name}:L{lineno}] {message}", style="{")
        )
        logger.addHandler(sh)
    return log_level


# hacky way to craft a nicer error message from a type hook:
# since __name__ is used as the argument value name, any weirdly
# named function (i.e. implementation detail) will produce a
# weird error message.
_log_level.__name__ = "log level"


def _positive_ms(val: str) -> float:
    ms = float(val)
    if ms <= 0:
        raise ValueError
    return ms


_positive_ms.__name__ = "duration"


def construct_parser(config: MicrobenchConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser("microbench", formatter_class=CustomFormatter)
    parser.add_argument("--version", action="version", version=_VERSION)
    parser.add_argument(
        "--log-level",
        default=config.log_level,
        type=_log_level,
        metavar="<level>",
        help="Log level to use for the microbench package, defaults to NOTSET (no logging).",
    )
    subparsers = parser.add_subparsers(
        title="Available commands",
        required=False,
        dest="command",
        metavar="",
    )
    run_parser = subparsers.add_parser(
        "run", help="Run a benchmark workload.", formatter_class=CustomFormatter
    )
    run_parser.add_argument(
        "benchmarks",
        nargs="?",
        metavar="<benchmarks>",
        default="benchmarks",
        help="A Python file, directory of files, or module containing tasks to run.",
    )
    run_parser.add_argument(
        "-n",
        "--name",
        type=str,
        default=None,
        metavar="<name>",
        help="A name to assign to the benchmark run, for example for record keeping.",
    )
    run_parser.add_argument(
        "-t",
        "--time",
        type=_positive_ms,
        default=config.time,
        metavar="<ms>",
        help="Measurement window per task in milliseconds, default: %(default)s.",
    )
    run_parser.add_argument(
        "-w",
        "--warmup",
        type=float,
        default=config.warmup,
        metavar="<ms>",
        help="Warmup window per task in milliseconds, default: 10%% of the measurement window.",
    )
    run_parser.add_argument(
        "-m",
        "--mode",
        choices=MODES,
        default=config.mode,
        metavar="<mode>",
        help=f"Scheduling mode, one of {', '.join(MODES)}, default: %(default)s.",
    )
    run_parser.add_argument(
        "--async",
        action=argparse.BooleanOptionalAction,
        dest="asynchronous",
        default=config.asynchronous,
        help="Await workloads returning awaitables.",
    )
    run_parser.add_argument(
        "--context",
        action="append",
        metavar="<key=value>",
        help="Additional context values giving information about the benchmark run.",
        default=list(),
    )
    run_parser.add_argument(
        "--tag",
        action="append",
        metavar="<tag>",
        dest="tags",
        help="Only run tasks marked with one or more given tag(s).",
        default=list(),
    )
    run_parser.add_argument(
        "--progress",
        action="store_true",
        help="Display running progress in round-robin mode.",
    )
    run_parser.add_argument(
        "-o",
        "--output-file",
        metavar="<file>",
        dest="outfile",
        help="File or stream to write results to, defaults to stdout.",
        default=sys.stdout,
    )

    show_parser = subparsers.add_parser(
        "show",
        help="Display previously saved benchmark results.",
        formatter_class=CustomFormatter,
    )
    show_parser.add_argument(
        "records",
        nargs="+",
        metavar="<file>",
        help="Result files to display. Can be given as local files or remote URIs.",
    )
    return parser


def _parse_context(config: MicrobenchConfig, values: list[str]) -> dict[str, Any]:
    for p in config.context:
        register_context_provider(p.name, import_(p.classpath), p.arguments)

    context: dict[str, Any] = {}
    for val in values:
        if val in builtin_providers:
            context.update(builtin_providers[val]())
        else:
            try:
                k, v = val.split("=", 1)
            except ValueError:
                raise ValueError("context values need to be of the form <key>=<value>")
            context[k] = v
    return context


def main(argv: list[str] | None = None) -> int:
    """The main ``microbench`` CLI entry point."""
    try:
        config = parse_microbench_config()
        parser = construct_parser(config)
        args = parser.parse_args(argv)
        if args.command is None:
            parser.print_help()
            return 1
        elif args.command == "run":
            context = _parse_context(config, args.context)
            tasks = collect(args.benchmarks, tags=tuple(args.tags))
            bench = Benchmark(
                time_ms=args.time,
                asynchronous=args.asynchronous,
                warmup_ms=args.warmup,
                tasks=tasks,
                name=args.name,
                context=context,
            )
            console = ConsoleReporter(budget_ms=args.time * bench.size())
            bench.on("task-start", console.task_started)
            if args.progress:
                bench.on("progress", console.progress)
            record = bench.run(args.mode)

            outfile = args.outfile
            reporter = reporter_for(outfile)
            reporter.write(record, outfile)
        elif args.command == "show":
            console = ConsoleReporter()
            for file in args.records:
                reporter = reporter_for(file)
                for record in reporter.read(file):
                    console.write(record)

        return 0
    except Exception as e:
        sys.stderr.write(f"error: {e}\n")
        return 1
