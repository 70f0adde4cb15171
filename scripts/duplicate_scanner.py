#!/usr/bin/env python3
"""
duplicate_scanner.py

Single pass over one collected history, counting blocks, deploys and invokes
and reporting every transaction id that shows up on more than one line.

Usage
-----
    python3 duplicate_scanner.py agreement/vp0.chain [more.chain ...]
"""
import sys
from dataclasses import dataclass, field

from history_record import (
    ArtifactParseError,
    Block,
    Deploy,
    Invoke,
    Malformed,
    parse_line,
)


@dataclass
class DuplicateReport:
    path: str
    blocks: int = 0
    deploys: int = 0
    invokes: int = 0
    # tx_id -> every line it was seen on, first occurrence included
    duplicates: dict[str, list[int]] = field(default_factory=dict)

    @property
    def counts(self):
        return {"blocks": self.blocks, "deploys": self.deploys, "invokes": self.invokes}

    @property
    def clean(self):
        return not self.duplicates


def scan_lines(lines, path="<memory>"):
    """
    Scan an iterable of artifact lines and return a DuplicateReport.

    Scanning stops at the first blank line.  A line with an unknown marker
    raises ArtifactParseError; nothing after it is looked at.
    """
    report = DuplicateReport(path=str(path))
    # tx_id -> line of first occurrence, None once it has been reported
    first_seen: dict[str, int | None] = {}

    for line_number, line in enumerate(lines, 1):
        if not line.strip():
            break

        record = parse_line(line, line_number)
        if isinstance(record, Malformed):
            raise ArtifactParseError(path, line_number, line.rstrip("\n"), record.reason)
        if isinstance(record, Block):
            report.blocks += 1
            continue
        if isinstance(record, Deploy):
            report.deploys += 1
        elif isinstance(record, Invoke):
            report.invokes += 1

        tx_id = record.tx_id
        if tx_id not in first_seen:
            first_seen[tx_id] = line_number
            continue

        seen = report.duplicates.setdefault(tx_id, [])
        if first_seen[tx_id] is not None:
            seen.append(first_seen[tx_id])
            first_seen[tx_id] = None
        seen.append(line_number)

    return report


def _decoded_lines(f, path):
    for line_number, raw in enumerate(f, 1):
        try:
            yield raw.decode("utf-8")
        except UnicodeDecodeError:
            raise ArtifactParseError(path, line_number, raw.rstrip(b"\n"), "not valid UTF-8")


def scan_artifact(path):
    """Scan a collected artifact on disk."""
    with open(path, "rb") as f:
        return scan_lines(_decoded_lines(f, path), path)


def print_report(report, label=None):
    label = label or report.path
    print(f"[{label}] {report.blocks} blocks, {report.deploys} deploys, "
          f"{report.invokes} invokes")
    for tx_id, lines in report.duplicates.items():
        where = ", ".join(str(n) for n in lines)
        print(f"‼️  [{label}] duplicate transaction {tx_id} on lines {where}")


def main():
    if len(sys.argv) < 2:
        print(f"Usage: {sys.argv[0]} <artifact> [<artifact> ...]")
        sys.exit(1)

    total = 0
    for path in sys.argv[1:]:
        try:
            report = scan_artifact(path)
        except FileNotFoundError:
            print(f"Error: file '{path}' not found")
            sys.exit(1)
        except ArtifactParseError as e:
            print(f"❌  {e}")
            sys.exit(3)
        print_report(report)
        total += len(report.duplicates)

    if total:
        print(f"❌  {total} duplicated transaction id(s)")
        sys.exit(1)
    print("✅  no duplicate transactions")


if __name__ == "__main__":
    main()
