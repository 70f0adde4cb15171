"""
network_config.py

Load the peer set and consensus mechanism of a network from a YAML file.

    consensus: pbft
    user: ubuntu
    collector: "fabric-logger --peer {address}"
    timeout: 120
    peers:
      - id: vp0
        address: 10.0.0.2:7050
        connection: ubuntu@host0
        port: 22
"""
from dataclasses import dataclass, field
from typing import Optional

import yaml

DEFAULT_COLLECTOR = "fabric-logger --peer {address}"

# Consensus modes that do not promise one global transaction order.  Comparing
# histories across such a network tells you nothing.
ORDER_NONDETERMINISTIC = {"noops"}


class ConfigurationError(Exception):
    pass


@dataclass(frozen=True)
class Peer:
    id: str
    address: str
    connection: Optional[str] = None
    port: int = 22

    @property
    def remote(self):
        return self.connection is not None


@dataclass
class Network:
    consensus: str
    peers: list = field(default_factory=list)
    collector: str = DEFAULT_COLLECTOR
    user: Optional[str] = None
    timeout: Optional[float] = None

    def select(self, peer_ids):
        """Return the named peers, in the order they were named."""
        by_id = {p.id: p for p in self.peers}
        missing = [pid for pid in peer_ids if pid not in by_id]
        if missing:
            raise ConfigurationError(f"unknown peer(s): {', '.join(missing)}")
        # each peer owns exactly one artifact path
        dupes = _repeated(peer_ids)
        if dupes:
            raise ConfigurationError(f"peer(s) named more than once: {', '.join(dupes)}")
        return [by_id[pid] for pid in peer_ids]


def _repeated(ids):
    ids = list(ids)
    return sorted({pid for pid in ids if ids.count(pid) > 1})


def check_collector_template(template):
    """Fail once, up front, on a template the peers could never be substituted into."""
    try:
        template.format(id="peer", address="peer")
    except (KeyError, IndexError, ValueError) as e:
        raise ConfigurationError(
            f"bad collector template {template!r}: {e!r}; "
            "only {id} and {address} are substituted, write literal braces as {{ }}"
        )


def require_ordered_consensus(consensus):
    """Refuse consensus modes whose nodes may legitimately disagree on order."""
    if consensus.lower() in ORDER_NONDETERMINISTIC:
        raise ConfigurationError(
            f"consensus '{consensus}' does not guarantee a single transaction order; "
            "agreement checking is meaningless on this network"
        )


def _load_peer(entry, index):
    if not isinstance(entry, dict) or "id" not in entry:
        raise ConfigurationError(f"peer #{index} has no 'id'")
    peer_id = str(entry["id"])
    try:
        port = int(entry.get("port", 22))
    except (TypeError, ValueError):
        raise ConfigurationError(f"peer {peer_id} has a bad port: {entry.get('port')!r}")
    return Peer(
        id=peer_id,
        address=str(entry.get("address", peer_id)),
        connection=entry.get("connection"),
        port=port,
    )


def load_network(yaml_file):
    try:
        with open(yaml_file, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"network file '{yaml_file}' not found")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"cannot parse network file '{yaml_file}': {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"network file '{yaml_file}' is not a mapping")
    if not data.get("consensus"):
        raise ConfigurationError(f"network file '{yaml_file}' does not name a consensus")

    entries = data.get("peers", [])
    if not isinstance(entries, list):
        raise ConfigurationError("'peers' must be a list")
    peers = [_load_peer(entry, i) for i, entry in enumerate(entries)]

    dupes = _repeated(p.id for p in peers)
    if dupes:
        raise ConfigurationError(f"duplicated peer id(s): {', '.join(dupes)}")

    timeout = data.get("timeout")
    if timeout is not None:
        try:
            timeout = float(timeout)
        except (TypeError, ValueError):
            raise ConfigurationError(f"bad timeout in '{yaml_file}': {timeout!r}")

    collector = str(data.get("collector", DEFAULT_COLLECTOR))
    check_collector_template(collector)

    return Network(
        consensus=str(data["consensus"]),
        peers=peers,
        collector=collector,
        user=data.get("user"),
        timeout=timeout,
    )
