"""Graph-based grouping of duplicate pairs.

Turns pairwise duplicate findings into event clusters using networkx
connected components.
"""

from .graph_cluster import ClusterResult, cluster_duplicates

__all__ = ["cluster_duplicates", "ClusterResult"]
