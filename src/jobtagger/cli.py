"""
Command-line interface for the job tagger.
"""

import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

console = Console()


def _add_walker_options(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--series-key",
        default="series",
        help="Member of a metric record that holds the node array (default: series)",
    )
    parser.add_argument(
        "--data-key",
        default="data",
        help="Member of a node record that holds the samples (default: data)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobtagger",
        description="Job Tagger - Locate per-node metric data in job performance files",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log structural events while walking",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Scan command
    scan_parser = subparsers.add_parser("scan", help="List the data payload of every node")
    scan_parser.add_argument("files", nargs="+", help="Job metric JSON files")
    _add_walker_options(scan_parser)

    # Summary command
    summary_parser = subparsers.add_parser("summary", help="Summarize payloads per metric")
    summary_parser.add_argument("files", nargs="+", help="Job metric JSON files")
    _add_walker_options(summary_parser)

    # Count command
    count_parser = subparsers.add_parser("count", help="Count payloads and tokens")
    count_parser.add_argument("files", nargs="+", help="Job metric JSON files")
    _add_walker_options(count_parser)

    # Trace command
    trace_parser = subparsers.add_parser("trace", help="Print every token visited by the walker")
    trace_parser.add_argument("file", help="Job metric JSON file")
    _add_walker_options(trace_parser)

    # Export command
    export_parser = subparsers.add_parser("export", help="Export payload descriptors to JSON")
    export_parser.add_argument("files", nargs="+", help="Job metric JSON files")
    export_parser.add_argument(
        "-o", "--output",
        required=True,
        help="Output JSON file path",
    )
    _add_walker_options(export_parser)

    return parser


def main(argv=None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from jobtagger import __version__
        console.print(f"jobtagger version {__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    from jobtagger import JobMetricData, ParseError, WalkerConfig

    try:
        config = WalkerConfig(series_key=args.series_key, data_key=args.data_key)

        if args.command == "trace":
            jd = JobMetricData(args.file, config=config)
            jd.print_trace(args.file)

        elif args.command == "scan":
            jd = JobMetricData(args.files, config=config)
            jd.print_payloads()

        elif args.command == "summary":
            jd = JobMetricData(args.files, config=config)
            jd.print_summary()

        elif args.command == "count":
            jd = JobMetricData(args.files, config=config)
            payloads = jd.count_payloads()
            tokens = jd.count_tokens()
            console.print(f"[bold green]Total payloads: {payloads:,}[/bold green]")
            console.print(f"[bold green]Total tokens: {tokens:,}[/bold green]")

        elif args.command == "export":
            jd = JobMetricData(args.files, config=config)
            jd.export_to_json(args.output)

    except FileNotFoundError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]", highlight=False)
        return 1
    except ParseError as e:
        console.print(f"[bold red]Invalid job data ({e.code}): {escape(str(e))}[/bold red]", highlight=False)
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130
    except Exception as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]", highlight=False)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
