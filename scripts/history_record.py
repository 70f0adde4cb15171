"""
history_record.py

One parsed line of a collected peer history.

Each line starts with a one-character kind marker:

    b ...               block
    d <txid> ...        deploy transaction
    i <txid> ...        invoke transaction

Anything else is malformed.  A blank line ends the record stream and is
handled by the caller, not here.
"""
from dataclasses import dataclass

BLOCK_MARKER = "b"
DEPLOY_MARKER = "d"
INVOKE_MARKER = "i"


class ArtifactParseError(Exception):
    """A collected artifact holds a line that is not a history record."""

    def __init__(self, path, line_number, line, reason):
        self.path = path
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"{path}:{line_number}: {reason}: {line!r}")


@dataclass(frozen=True)
class Block:
    line_number: int


@dataclass(frozen=True)
class Deploy:
    line_number: int
    tx_id: str


@dataclass(frozen=True)
class Invoke:
    line_number: int
    tx_id: str


@dataclass(frozen=True)
class Malformed:
    line_number: int
    reason: str


def parse_line(line, line_number):
    """Classify one non-blank artifact line by its leading marker."""
    fields = line.split()
    if not fields:
        return Malformed(line_number, "empty record")

    marker = fields[0]
    if marker == BLOCK_MARKER:
        return Block(line_number)
    if marker not in (DEPLOY_MARKER, INVOKE_MARKER):
        return Malformed(line_number, f"unrecognized record marker '{marker}'")
    if len(fields) < 2:
        return Malformed(line_number, "transaction record without an id")

    if marker == DEPLOY_MARKER:
        return Deploy(line_number, fields[1])
    return Invoke(line_number, fields[1])
