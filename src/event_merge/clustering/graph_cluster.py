"""Graph-based clustering of duplicate pairs using networkx.

Builds an undirected graph from pairwise duplicate findings and extracts
connected components, so that A~B and B~C put A, B and C into one group
even when A and C were never compared directly.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import networkx as nx

from event_merge.models.processing import DuplicatePair


@dataclass
class ClusterResult:
    """Result of graph-based clustering.

    Attributes:
        clusters: Groups of two or more event ids, largest first.
        singleton_count: Events that matched nothing.
    """

    clusters: list[set[str]] = field(default_factory=list)
    singleton_count: int = 0

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)


def cluster_duplicates(
    pairs: Iterable[DuplicatePair],
    all_event_ids: Iterable[str] = (),
) -> ClusterResult:
    """Group events connected by duplicate pairs.

    Args:
        pairs: Duplicate pairs found by pairwise detection.
        all_event_ids: Every event considered, so that unmatched events are
            counted as singletons.

    Returns:
        A ``ClusterResult``.  Clusters are ordered by size, then by their
        smallest id, so the output is deterministic.
    """
    G = nx.Graph()
    G.add_nodes_from(all_event_ids)
    for pair in pairs:
        G.add_edge(pair.event_id_a, pair.event_id_b, weight=pair.score)

    clusters: list[set[str]] = []
    singleton_count = 0
    for component in nx.connected_components(G):
        if len(component) == 1:
            singleton_count += 1
        else:
            clusters.append(set(component))

    clusters.sort(key=lambda c: (-len(c), min(c)))
    return ClusterResult(clusters=clusters, singleton_count=singleton_count)
