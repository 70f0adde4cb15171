"""
chain_comparator.py

Prove that every successfully collected history is identical by comparing
adjacent pairs only: 0 vs 1, 1 vs 2, ..., n-2 vs n-1.  Equality is
transitive, so N-1 comparisons cover all N peers.
"""
import filecmp
import shlex
from dataclasses import dataclass

from invoke import run as local_run


@dataclass(frozen=True)
class Mismatch:
    left: object
    right: object

    def __str__(self):
        return f"{self.left.peer.id} and {self.right.peer.id} disagree"


def files_identical(left, right):
    return filecmp.cmp(left, right, shallow=False)


class DiffCommand:
    """External comparator, e.g. `cmp -s` or `diff -q`; exit 0 means equal."""

    def __init__(self, command):
        self.command = command

    def __call__(self, left, right):
        cmd = f"{self.command} {shlex.quote(str(left))} {shlex.quote(str(right))}"
        result = local_run(cmd, hide=True, warn=True, in_stream=False)
        return result.ok


def compare_chain(outcomes, same=files_identical, quiet=False):
    """
    Compare the artifacts of the succeeded outcomes, in order.

    Every disagreeing adjacent pair is reported; a mismatch does not stop
    the rest of the chain from being checked.
    """
    survivors = [o for o in outcomes if o.succeeded]
    mismatches = []

    for left, right in zip(survivors, survivors[1:]):
        if same(left.artifact_path, right.artifact_path):
            if not quiet:
                print(f"[{left.peer.id}] == [{right.peer.id}]")
            continue
        mismatch = Mismatch(left, right)
        print(f"‼️  [{left.peer.id}] != [{right.peer.id}]: histories differ")
        mismatches.append(mismatch)

    return mismatches
