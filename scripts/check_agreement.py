#!/usr/bin/env python3
"""
check_agreement.py

Check that every peer of a quiescent network has recorded the same ordered
history, and optionally that the history holds no duplicate transactions.

    1. collect each peer's history concurrently into <output-dir>/<peer>.chain
    2. compare the collected histories as a chain of adjacent pairs
    3. (--dup-check) scan for duplicate transaction ids: one history when all
       of them agree, every history otherwise
    4. delete the artifacts, unless --keep was given or anything went wrong

Usage
-----
    python3 check_agreement.py --network network.yaml --dup-check
    python3 check_agreement.py --network network.yaml --peers vp0,vp2 --keep
    python3 check_agreement.py --scan agreement/vp0.chain

Exit status: 0 agreement (or nothing to compare, or interrupted),
1 errors found, 2 configuration problem, 3 unparseable history.
"""
import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path

from chain_comparator import DiffCommand, compare_chain, files_identical
from duplicate_scanner import print_report, scan_artifact
from history_record import ArtifactParseError
from log_collector import CommandFetcher, collect_histories
from network_config import (
    ConfigurationError,
    check_collector_template,
    load_network,
    require_ordered_consensus,
)

KEPT = "kept"
DELETED = "deleted"

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_CONFIG = 2
EXIT_PARSE = 3


@dataclass
class Verdict:
    error_count: int = 0
    retention: str = DELETED
    peers: int = 0
    output_dir: Path = None
    noop: bool = False
    artifacts: list = field(default_factory=list)
    collection_failures: list = field(default_factory=list)
    mismatches: list = field(default_factory=list)
    # (peer id, DuplicateReport) for every history that was scanned
    duplicate_reports: list = field(default_factory=list)

    @property
    def success(self):
        return self.error_count == 0

    def conditions(self):
        lines = []
        for outcome in self.collection_failures:
            lines.append(f"collection failed for {outcome.peer.id}: {outcome.reason}")
        for mismatch in self.mismatches:
            lines.append(f"histories of {mismatch.left.peer.id} and {mismatch.right.peer.id} differ")
        for peer_id, report in self.duplicate_reports:
            for tx_id, where in report.duplicates.items():
                lines.append(f"duplicate transaction {tx_id} in {peer_id} on lines "
                             + ", ".join(str(n) for n in where))
        return lines


def dispose(verdict, keep):
    """Keep or delete every artifact of the run, all the same way."""
    if keep or verdict.error_count > 0:
        verdict.retention = KEPT
        return
    for path in verdict.artifacts:
        Path(path).unlink(missing_ok=True)
    verdict.retention = DELETED


def run_check(peers, consensus, output_dir, fetch, same=files_identical,
              keep=False, dup_check=False, quiet=False):
    """
    Run one agreement check over `peers` (in comparison order).

    Raises ConfigurationError before anything is collected when the
    consensus mode cannot give a single order, and lets ArtifactParseError
    through when a collected history cannot be read as records.
    """
    require_ordered_consensus(consensus)

    verdict = Verdict(peers=len(peers), output_dir=Path(output_dir))
    if len(peers) < 2 and not dup_check:
        verdict.noop = True
        return verdict

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    targets = [(peer, output_dir / f"{peer.id}.chain") for peer in peers]

    outcomes = collect_histories(targets, fetch, quiet=quiet)
    verdict.artifacts = [o.artifact_path for o in outcomes]
    verdict.collection_failures = [o for o in outcomes if not o.succeeded]
    verdict.error_count += len(verdict.collection_failures)

    verdict.mismatches = compare_chain(outcomes, same=same, quiet=quiet)
    verdict.error_count += len(verdict.mismatches)

    survivors = [o for o in outcomes if o.succeeded]
    if dup_check and survivors:
        # identical histories only need one scan
        to_scan = survivors if verdict.mismatches else survivors[:1]
        for outcome in to_scan:
            report = scan_artifact(outcome.artifact_path)
            if not quiet or report.duplicates:
                print_report(report, label=outcome.peer.id)
            verdict.duplicate_reports.append((outcome.peer.id, report))
            verdict.error_count += len(report.duplicates)

    dispose(verdict, keep)
    return verdict


def print_verdict(verdict):
    if verdict.noop:
        print(f"✅  {verdict.peers} peer(s) selected, nothing to compare")
        return

    if verdict.success:
        print(f"✅  all {verdict.peers} peers agree")
    else:
        print(f"❌  agreement check failed with {verdict.error_count} error(s):")
        for line in verdict.conditions():
            print(f"    - {line}")

    if verdict.retention == KEPT:
        print(f"📦  artifacts kept in {verdict.output_dir}")
    else:
        print(f"📦  artifacts deleted from {verdict.output_dir}")


def write_summary(verdict, path):
    with open(path, "w") as f:
        f.write(f"error_count {verdict.error_count}\n")
        f.write(f"retention {verdict.retention}\n")
        for line in verdict.conditions():
            f.write(f"error {line}\n")


def scan_files(paths, quiet=False):
    """Duplicate-scan already collected artifacts; returns the duplicate count."""
    total = 0
    for path in paths:
        report = scan_artifact(path)
        if not quiet or report.duplicates:
            print_report(report)
        total += len(report.duplicates)
    return total


def build_parser():
    ap = argparse.ArgumentParser(
        description="Check that all peers of a network recorded the same history.")
    ap.add_argument("--network", default="network.yaml",
                    help="YAML file describing consensus and peers (default: network.yaml)")
    ap.add_argument("--peers", default=None,
                    help="comma-separated peer ids to check, in comparison order (default: all)")
    ap.add_argument("--output-dir", default="agreement",
                    help="where collected histories are written (default: agreement)")
    ap.add_argument("--keep", action="store_true",
                    help="keep the collected histories even if all peers agree")
    ap.add_argument("--dup-check", action="store_true",
                    help="also check for duplicate transaction ids")
    ap.add_argument("--collector", default=None,
                    help="collector command template, {id} and {address} are substituted")
    ap.add_argument("--timeout", type=float, default=None,
                    help="per-peer collection timeout in seconds")
    ap.add_argument("--diff-cmd", default=None,
                    help="external comparator command, e.g. 'cmp -s' (default: in-process)")
    ap.add_argument("--summary", default=None,
                    help="also write a summary to this file")
    ap.add_argument("--quiet", action="store_true",
                    help="only print the final verdict")
    ap.add_argument("--scan", nargs="+", metavar="FILE", default=None,
                    help="only duplicate-scan already collected histories")
    return ap


def _main(args):
    if args.scan:
        total = scan_files(args.scan, quiet=args.quiet)
        if total:
            print(f"❌  {total} duplicated transaction id(s)")
            return EXIT_ERRORS
        print("✅  no duplicate transactions")
        return EXIT_OK

    network = load_network(args.network)
    peers = network.select(args.peers.split(",")) if args.peers else network.peers
    collector = args.collector or network.collector
    check_collector_template(collector)
    fetch = CommandFetcher(
        collector,
        user=network.user,
        timeout=args.timeout if args.timeout is not None else network.timeout,
    )
    same = DiffCommand(args.diff_cmd) if args.diff_cmd else files_identical

    verdict = run_check(
        peers,
        network.consensus,
        args.output_dir,
        fetch,
        same=same,
        keep=args.keep,
        dup_check=args.dup_check,
        quiet=args.quiet,
    )
    print_verdict(verdict)
    if args.summary:
        write_summary(verdict, args.summary)
    return EXIT_OK if verdict.success else EXIT_ERRORS


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        return _main(args)
    except ConfigurationError as e:
        print(f"❌  configuration error: {e}")
        return EXIT_CONFIG
    except ArtifactParseError as e:
        print(f"❌  unreadable history, aborting: {e}")
        print("📦  artifacts left in place for inspection")
        return EXIT_PARSE
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return EXIT_ERRORS
    except KeyboardInterrupt:
        print("Interrupted, abandoning agreement check")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
