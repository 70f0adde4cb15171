"""Shared fixtures: peers and fake collectors that write canned histories."""

import pytest

from network_config import Peer

AGREED = "b 1\nd tx1 chaincode\ni tx2 move\nb 2\n\n"


def make_peers(*ids):
    return [Peer(id=pid, address=f"{pid}:7050") for pid in ids]


class FakeFetch:
    """Writes histories[peer.id] to the artifact; raises for peers in `fail`."""

    def __init__(self, histories, fail=()):
        self.histories = histories
        self.fail = set(fail)
        self.calls = []

    def __call__(self, peer, artifact_path):
        self.calls.append(peer.id)
        if peer.id in self.fail:
            artifact_path.write_text("b 1\n", encoding="utf-8")
            raise RuntimeError(f"{peer.id} unreachable")
        artifact_path.write_text(self.histories[peer.id], encoding="utf-8")


@pytest.fixture
def peers():
    return make_peers("vp0", "vp1", "vp2", "vp3")
