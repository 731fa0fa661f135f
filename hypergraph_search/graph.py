"""
Graph model for one episode.

An episode is a flat list of records: all nodes first, then all edges.
Nodes are implicitly numbered 0..N-1 in the order they appear. Edges
reference nodes through their cost pairs (1-based ids) and may touch
more than two nodes (hyperedges).
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

import networkx as nx
import numpy as np

from .errors import fatal
from .example import Example
from .logging_utils import Timer, log_kv


# ============================================================
# Label prior (lives for the whole task, never reset)
# ============================================================
class LabelPrior:
    def __init__(self, num_labels: int):
        self.num_labels = int(num_labels)
        self.counts = np.ones(self.num_labels + 1, dtype=np.float64)  # Laplace
        self.total = float(self.num_labels + 1)

    def observe(self, label: int):
        self.counts[int(label)] += 1.0
        self.total += 1.0

    def weight(self, label: int) -> float:
        """Inverse-frequency weight of a true label. Reported, not applied."""
        return float(self.total / self.counts[int(label)] / max(self.num_labels, 1))


# ============================================================
# Graph
# ============================================================
@dataclass
class Graph:
    nodes: List[Example]
    edges: List[Example]
    adjacency: List[List[int]] = field(default_factory=list)  # node -> edge arena ids

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    @property
    def num_edges(self) -> int:
        return len(self.edges)

    def edge_members(self, e: int) -> List[int]:
        return self.edges[e].node_ids()

    def neighbors(self, n: int) -> Iterator[Tuple[int, int]]:
        """(edge id, other endpoint) for every edge incident to n; repeats kept."""
        for e in self.adjacency[n]:
            for m in self.edge_members(e):
                if m == n:
                    continue
                yield e, m

    def to_networkx(self) -> nx.Graph:
        G = nx.Graph()
        G.add_nodes_from(range(self.num_nodes))
        for e in range(self.num_edges):
            members = self.edge_members(e)
            for i, u in enumerate(members):
                for v in members[i + 1:]:
                    if u != v:
                        G.add_edge(u, v)
        return G

    def num_components(self) -> int:
        if self.num_nodes == 0:
            return 0
        return nx.number_connected_components(self.to_networkx())


def build_graph(
    records: List[Example],
    prior: Optional[LabelPrior] = None,
    log_file: Optional[str] = None,
    num_labels: Optional[int] = None,
) -> Graph:
    t = Timer()
    K = num_labels if num_labels is not None else (prior.num_labels if prior is not None else None)
    nodes, edges = [], []
    for ex in records:
        if ex.is_edge:
            edges.append(ex)
            continue
        if edges:
            fatal("got a node after getting edges!", log_file)
        k = ex.true_label
        if k < 0 or (K is not None and k > K):
            fatal(f"node label {k} outside 1..{K if K is not None else 'K'} for node {len(nodes)}", log_file)
        nodes.append(ex)

    N = len(nodes)
    if N == 0 and edges:
        fatal("got edges without any nodes (perhaps the episode buffer is too small?)!", log_file)

    for edge in edges:
        for c, _ in edge.costs:
            if int(c) > N:
                fatal(f"edge source points to too large of a node id: {int(c)} > {N}", log_file)
            if int(c) < 1:
                fatal(f"edge source points to a non-positive node id: {int(c)}", log_file)

    adjacency = [[] for _ in range(N)]
    for e, edge in enumerate(edges):
        for n in edge.node_ids():
            # only consecutive repeats are dropped
            if not adjacency[n] or adjacency[n][-1] != e:
                adjacency[n].append(e)

    # a rejected episode never reaches the prior
    if prior is not None:
        for ex in nodes:
            if ex.costs:
                prior.observe(ex.true_label)

    log_kv(log_file, "GRAPH", nodes=N, edges=len(edges), t_build=f"{t.elapsed():.4f}s")
    return Graph(nodes=nodes, edges=edges, adjacency=adjacency)
