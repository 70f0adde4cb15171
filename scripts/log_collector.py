"""
log_collector.py

Collect every peer's recorded history into a local artifact, one thread per
peer.  A peer that fails to deliver its history is recorded as failed and
never holds up or disturbs the others.

The history itself is produced by an external collector command (by default
`fabric-logger --peer {address}`).  The command runs locally through invoke,
or on the peer's own host over SSH through fabric when the peer has a
`connection`; its stdout is streamed straight into the artifact.
"""
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fabric import Connection
from invoke import run as local_run
from invoke.exceptions import CommandTimedOut

SUCCEEDED = "succeeded"
FAILED = "failed"


class CollectionError(Exception):
    pass


@dataclass(frozen=True)
class PeerOutcome:
    peer: object
    artifact_path: Path
    status: str
    reason: Optional[str] = None

    @property
    def succeeded(self):
        return self.status == SUCCEEDED


class CommandFetcher:
    """
    Run the collector command for one peer and write its stdout to the
    artifact.  Raises CollectionError on a non-zero exit or a timeout.
    """

    def __init__(self, template, user=None, timeout=None):
        self.template = template
        self.user = user
        self.timeout = timeout

    def command_for(self, peer):
        return self.template.format(id=peer.id, address=peer.address)

    def connect(self, peer):
        conn_str = peer.connection
        if "@" in conn_str:
            user, host = conn_str.split("@", 1)
        else:
            user, host = self.user, conn_str
        if user:
            return Connection(host=host, user=user, port=peer.port)
        return Connection(host=host, port=peer.port)

    def __call__(self, peer, artifact_path):
        cmd = self.command_for(peer)
        with open(artifact_path, "w", encoding="utf-8") as out:
            # stdout goes to the artifact, stderr is kept for the failure reason
            run_opts = dict(
                out_stream=out,
                hide="stderr",
                in_stream=False,
                warn=True,
                timeout=self.timeout,
            )
            try:
                if peer.remote:
                    result = self.connect(peer).run(cmd, **run_opts)
                else:
                    result = local_run(cmd, **run_opts)
            except CommandTimedOut:
                raise CollectionError(f"collector timed out after {self.timeout}s")

        if result.failed:
            reason = result.stderr.strip() or f"collector exited with code {result.exited}"
            raise CollectionError(reason)


def _collect_one(peer, artifact_path, fetch, results, slot, quiet):
    try:
        fetch(peer, artifact_path)
    except Exception as e:
        if not quiet:
            print(f"‼️  [{peer.id}] collection failed: {e}")
        results[slot] = PeerOutcome(peer, artifact_path, FAILED, str(e) or type(e).__name__)
        return
    if not quiet:
        print(f"[{peer.id}] history collected → {artifact_path}")
    results[slot] = PeerOutcome(peer, artifact_path, SUCCEEDED)


def collect_histories(targets, fetch, quiet=False):
    """
    Collect all (peer, artifact_path) targets concurrently.

    Returns one PeerOutcome per target, in the same order as `targets`,
    once every collection thread has finished.
    """
    results = [None] * len(targets)
    threads = []

    for slot, (peer, artifact_path) in enumerate(targets):
        if not quiet:
            print(f"[{peer.id}] collecting history → {artifact_path}")
        t = threading.Thread(
            target=_collect_one,
            args=(peer, Path(artifact_path), fetch, results, slot, quiet),
            name=f"collect-{peer.id}",
            daemon=True,
        )
        t.start()
        threads.append(t)

    for t in threads:
        t.join()

    return results
