"""Command line interface for iostriage."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from .. import __version__
from ..analysis.diff import diff, snapshot_tree, write_diff
from ..analysis.issues import BUILTIN_RULES, detect, load_issues, write_issues
from ..core.config import RuntimeConfig, load_config
from ..core.errors import DeviceError, SetupError
from ..core.log import configure_logging, get_logger
from ..core.models import highest_severity
from ..core.registry import load_plugin_rules
from ..core.snapshot import open_snapshot
from ..extract import Toolset, run_extraction
from ..normalize import load_records, process_snapshot
from ..reporting import TriageReport, to_json, to_markdown

logger = get_logger("cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iostriage",
        description="Incident response tool for iPhone or iPad",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", default=None, help="Display verbose output")
    parser.add_argument("--quiet", action="store_true", help="Only display warnings and errors")
    parser.add_argument("--latest-version", dest="latest_version", help="Latest known iOS version")
    parser.add_argument("--tool-dir", dest="tool_dir", type=Path, help="Directory holding the libimobiledevice tools")

    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_parser = subparsers.add_parser("extract", help="Extract IR artifacts from iPhone or iPad")
    extract_parser.add_argument("dir", nargs="?", type=Path, help="Output directory")
    extract_parser.add_argument("-b", "--backup", action="store_true", help="Backup iOS device")
    extract_parser.add_argument(
        "--syslog-timeout",
        dest="syslog_timeout",
        type=float,
        default=None,
        help="Seconds to keep collecting syslog, e.g. 86400 to collect for a day",
    )

    process_parser = subparsers.add_parser("process", help="Process extracted artifacts in <dir>")
    process_parser.add_argument("dir", type=Path)

    report_parser = subparsers.add_parser("report", help="Generate iOS IR reports from <dir>")
    report_parser.add_argument("dir", type=Path)
    report_parser.add_argument("diff_dir", nargs="?", type=Path, help="Earlier snapshot to compare against")

    return parser


def _print_status(title: str, status: dict[str, str]) -> None:
    print(title, file=sys.stderr)
    width = max((len(name) for name in status), default=0)
    for name, state in status.items():
        print(f"  {name.ljust(width)}  {state}", file=sys.stderr)


def _rules():
    return (*BUILTIN_RULES, *load_plugin_rules())


def _cmd_extract(args: argparse.Namespace, config: RuntimeConfig) -> int:
    if args.syslog_timeout is not None and args.syslog_timeout <= 0:
        raise ValueError("--syslog-timeout must be a positive number of seconds")
    base = args.dir if args.dir is not None else config.output_dir
    result = run_extraction(
        base,
        toolset=Toolset(config.tool_dir),
        backup=args.backup,
        syslog_timeout=args.syslog_timeout,
    )
    status = {}
    for name, outcome in result.outcomes.items():
        status[name] = outcome.state.value if outcome.error is None else f"{outcome.state.value}: {outcome.error}"
    _print_status(f"Extraction into {result.snapshot.root}", status)
    print(result.snapshot.root)
    return 0


def _cmd_process(args: argparse.Namespace, config: RuntimeConfig) -> int:
    snapshot = open_snapshot(args.dir)
    result = process_snapshot(snapshot)
    findings = detect(result.records, latest_version=config.latest_version, rules=_rules())
    write_issues(snapshot, findings)
    status = result.status()
    status["issues"] = f"ok ({len(findings)} finding(s))"
    _print_status(f"Processing {snapshot.root}", status)
    return 2 if highest_severity(findings) == "High" else 0


def _cmd_report(args: argparse.Namespace, config: RuntimeConfig) -> int:
    snapshot = open_snapshot(args.dir, require_processed=True)
    records = load_records(snapshot)
    findings = load_issues(snapshot)

    entries = None
    other = None
    if args.diff_dir is not None:
        other = open_snapshot(args.diff_dir, require_processed=True)
        before = snapshot_tree(load_records(other), load_issues(other))
        after = snapshot_tree(records, findings)
        entries = diff(before, after)
        write_diff(snapshot, entries)
        logger.info("%d change(s) since %s", len(entries), other.root)

    report = TriageReport(
        snapshot=snapshot,
        records=records,
        findings=findings,
        version=__version__,
        diff=entries,
        compared_to=other,
    )
    reports_dir = snapshot.prepare_reports()
    (reports_dir / "report.json").write_text(to_json(report) + "\n", encoding="utf-8")
    (reports_dir / "report.md").write_text(to_markdown(report), encoding="utf-8")
    print(f"Report written to {reports_dir}", file=sys.stderr)
    return 2 if highest_severity(findings) == "High" else 0


_COMMANDS = {
    "extract": _cmd_extract,
    "process": _cmd_process,
    "report": _cmd_report,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(
            cli_latest_version=args.latest_version,
            cli_tool_dir=args.tool_dir,
            cli_verbose=args.verbose,
        )
        configure_logging(verbose=config.verbose, quiet=args.quiet)
        return _COMMANDS[args.command](args, config)
    except (SetupError, DeviceError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
