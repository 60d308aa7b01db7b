"""
dnsentinel/cli.py
Command-line interface for DNS Sentinel.
Works on Windows, Linux, Mac, and Android Termux.

USAGE:
  python -m dnsentinel.cli --csv-dir ./logs --output ./dnsentinel.db
  python -m dnsentinel.cli --csv export-2025-09-13.csv --report report.json
  python -m dnsentinel.cli --csv-dir ./logs --config dnsentinel_config.json --verbose

EXAMPLES:
  # Whole directory of NextDNS exports
  python -m dnsentinel.cli --csv-dir "C:/Drive/NextDNS Logs" --output dnsentinel.db

  # Keep every raw record (no 30-second dedup)
  python -m dnsentinel.cli --csv one.csv two.csv --no-dedup

  # Termux
  python -m dnsentinel.cli --csv-dir /sdcard/NextDNS --output /sdcard/dnsentinel.db
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from dnsentinel import __version__
from dnsentinel.config import load_config, load_config_file, thresholds_from_config
from dnsentinel.detectors.activity_detector import run_full_analysis
from dnsentinel.exporters.sqlite_exporter import export
from dnsentinel.parsers.csv_parser import (
    deduplicate_events,
    drop_future_events,
    parse_csv_directory,
    parse_csv_file,
)
from dnsentinel.report import DISCLAIMER, build_report
from dnsentinel.report_export import write_report

logger = logging.getLogger(__name__)

# ANSI colors
GREEN  = '\033[92m'
YELLOW = '\033[93m'
RED    = '\033[91m'
CYAN   = '\033[96m'
RESET  = '\033[0m'
BOLD   = '\033[1m'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog        = 'dnsentinel',
        description = 'DNS Sentinel — Offline DNS Log Communication-Activity Analyzer',
        formatter_class = argparse.RawDescriptionHelpFormatter,
        epilog = """
NOTICE:
  Activity labels are probabilistic inferences from DNS lookup timing.
  They do not reveal message content and do not prove communication.
  All processing is local — no data leaves your device.
        """
    )

    parser.add_argument(
        '--csv', '-c',
        nargs    = '+',
        type     = Path,
        default  = [],
        help     = 'One or more CSV query-log exports',
    )
    parser.add_argument(
        '--csv-dir', '-d',
        type     = Path,
        help     = 'Directory containing *.csv query-log exports',
    )
    parser.add_argument(
        '--output', '-o',
        type    = Path,
        help    = 'Output SQLite database path (default: dnsentinel.db)',
    )
    parser.add_argument(
        '--report', '-r',
        type    = Path,
        help    = 'Output JSON report path (default: dnsentinel_report.json)',
    )
    parser.add_argument(
        '--config',
        type    = Path,
        help    = 'Config file (default: dnsentinel_config.json in the current directory)',
    )
    parser.add_argument(
        '--no-dedup',
        action  = 'store_true',
        help    = 'Keep repeat lookups instead of collapsing them per 30 seconds',
    )
    parser.add_argument(
        '--run-label',
        default = '',
        help    = 'Label for this run (stored in dnsentinel_meta table)',
    )
    parser.add_argument(
        '--verbose', '-v',
        action  = 'store_true',
        help    = 'Enable debug logging',
    )
    parser.add_argument(
        '--version',
        action  = 'version',
        version = f'%(prog)s {__version__}',
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    # ── LOGGING SETUP ────────────────────────────────────────
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level   = log_level,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    # ── CONFIG ───────────────────────────────────────────────
    config     = load_config_file(args.config) if args.config else load_config()
    thresholds = thresholds_from_config(config)
    csv_dir    = args.csv_dir or (Path(config['csv_dir']) if config.get('csv_dir') else None)
    db_path    = args.output or Path(config['db_path'])
    report     = args.report or Path(config['report_path'])
    dedup      = config.get('deduplicate', True) and not args.no_dedup

    # ── VALIDATE INPUT ───────────────────────────────────────
    if not args.csv and csv_dir is None:
        _print(f"{RED}Error: give --csv or --csv-dir (or set csv_dir in the config){RESET}")
        return 2
    if csv_dir is not None and not csv_dir.is_dir():
        _print(f"{RED}Error: Directory not found: {csv_dir}{RESET}")
        return 1
    missing = [p for p in args.csv if not p.is_file()]
    if missing:
        _print(f"{RED}Error: File not found: {missing[0]}{RESET}")
        return 1

    _banner()
    if csv_dir is not None:
        _print(f"Source directory : {CYAN}{csv_dir}{RESET}")
    if args.csv:
        _print(f"Source files     : {CYAN}{len(args.csv)}{RESET}")
    _print(f"Output database  : {CYAN}{db_path}{RESET}")
    _print(f"JSON report      : {CYAN}{report}{RESET}")
    _print(f"Deduplication    : {CYAN}{'30-second buckets' if dedup else 'off'}{RESET}")
    _print("")

    # ── PARSE ────────────────────────────────────────────────
    _step("Parsing DNS query logs...")
    t0     = time.time()
    events = []
    if csv_dir is not None:
        events.extend(parse_csv_directory(csv_dir))
    for path in args.csv:
        events.extend(parse_csv_file(path))
    events.sort(key=lambda e: e.timestamp)
    events = drop_future_events(events)
    raw_count = len(events)
    if dedup:
        events = deduplicate_events(events)
    _ok(f"{len(events):,} events ({raw_count:,} records) in {_elapsed(t0)}")

    if not events:
        _print(f"\n{YELLOW}No usable DNS records found.{RESET}")
        _print("Check that the CSV has timestamp and domain columns.")
        return 1

    # ── ANALYSIS ─────────────────────────────────────────────
    _step("Classifying minute windows...")
    t0 = time.time()

    def progress(current, total, msg):
        pct = int((current / total) * 40)
        bar = '█' * pct + '░' * (40 - pct)
        sys.stdout.write(
            f"\r  [{bar}] {current}/{total} — {msg[:40]:<40}"
        )
        sys.stdout.flush()

    results = run_full_analysis(events, thresholds=thresholds, progress_cb=progress)
    sys.stdout.write('\n')
    _ok(f"{len(results):,} windows classified in {_elapsed(t0)}")

    # ── EXPORT ───────────────────────────────────────────────
    _step("Writing SQLite database...")
    t0 = time.time()
    export(
        db_path   = db_path,
        events    = events,
        results   = results,
        run_label = args.run_label or str(csv_dir or args.csv[0]),
    )
    _ok(f"Database written in {_elapsed(t0)}")

    _step("Writing JSON report...")
    summary = build_report(results, event_count=len(events))
    write_report(summary, report, scan_parameters={
        'sources':     [str(p) for p in ([csv_dir] if csv_dir else []) + list(args.csv)],
        'deduplicate': dedup,
        'records':     raw_count,
    })
    _ok(f"Report → {report}")

    # ── SUMMARY ──────────────────────────────────────────────
    dist = summary.severity_distribution
    _print(f"\n{BOLD}{GREEN}✓ Complete{RESET}")
    _print(f"  Events     : {len(events):,}")
    _print(f"  Windows    : {len(results):,}")
    _print(f"  Flagged    : {len(summary.flagged_windows):,}")
    _print(f"  Masking    : {summary.summary.masking_windows:,}")
    _print(f"  VPN        : {summary.summary.vpn_windows:,}")
    _print(f"  Secretive  : {summary.summary.secret_windows:,}")
    _print(f"  Database   : {db_path.resolve()}")

    if summary.flagged_windows:
        _print(f"\n  Severity breakdown:")
        _print(f"    🔴 CRITICAL : {dist.critical_count}")
        _print(f"    🟠 HIGH     : {dist.high_count}")
        _print(f"    ⚠  MEDIUM   : {dist.medium_count}")

    for anomaly in summary.anomalies:
        _print(f"  {YELLOW}⚠ {anomaly.date}: {anomaly.description}{RESET}")

    _print(f"\n{YELLOW}⚖ NOTE: {DISCLAIMER}{RESET}\n")
    return 0


# ── PRINT HELPERS ────────────────────────────────────────────

def _banner():
    _print(f"""
{BOLD}{CYAN}
  ██████╗ ███╗   ██╗███████╗
  ██╔══██╗████╗  ██║██╔════╝
  ██║  ██║██╔██╗ ██║███████╗
  ██║  ██║██║╚██╗██║╚════██║
  ██████╔╝██║ ╚████║███████║
  ╚═════╝ ╚═╝  ╚═══╝╚══════╝
  SENTINEL — DNS Query Log Analyzer v{__version__}
{RESET}""")

def _step(msg):  _print(f"  {CYAN}→{RESET} {msg}")
def _ok(msg):    _print(f"  {GREEN}✓{RESET} {msg}")
def _print(msg): print(msg)

def _elapsed(t0: float) -> str:
    s = time.time() - t0
    return f"{s:.1f}s" if s < 60 else f"{int(s//60)}m {int(s%60)}s"


if __name__ == '__main__':
    sys.exit(main())
