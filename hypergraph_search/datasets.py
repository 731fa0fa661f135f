from typing import List, Optional

import networkx as nx
import numpy as np

from .config import HashingConfig
from .example import Example

# =====================================================
# Synthetic episodes (planted partition)
# =====================================================

NODE_NAMESPACE = "n"
EDGE_NAMESPACE = "e"


def planted_partition_episode(
    num_nodes: int,
    num_labels: int,
    p_in: float = 0.3,
    p_out: float = 0.02,
    *,
    feature_noise: float = 0.3,
    hyperedges: bool = False,
    seed: int = 1337,
    hashing: Optional[HashingConfig] = None,
) -> List[Example]:
    """
    One episode of exactly `num_nodes` node records, then edge records.
    Group sizes differ by at most one.

    Each node carries its label as a single indicator feature, replaced
    by a uniformly random label with probability `feature_noise`, plus a
    bias feature. Graph edges become two-node edge records; with
    `hyperedges`, maximal cliques of size >= 3 are added as hyperedges.
    """
    if num_labels < 1:
        raise ValueError(f"num_labels must be >= 1, got {num_labels}")
    if num_nodes < num_labels:
        raise ValueError(f"need at least one node per label: nodes={num_nodes}, labels={num_labels}")

    hashing = hashing if hashing is not None else HashingConfig()
    rng = np.random.default_rng(int(seed))

    # the remainder goes to the first groups so exactly num_nodes are built
    base, extra = divmod(num_nodes, num_labels)
    sizes = [base + (1 if g < extra else 0) for g in range(num_labels)]
    G = nx.random_partition_graph(sizes, p_in, p_out, seed=int(seed))
    N = G.number_of_nodes()

    # random_partition_graph numbers nodes group by group; shuffle ids
    perm = rng.permutation(N)
    y = np.empty(N, dtype=np.int64)
    for g, block in enumerate(G.graph["partition"]):
        for u in block:
            y[perm[u]] = g + 1
    G = nx.relabel_nodes(G, {int(u): int(perm[u]) for u in range(N)})

    records = []
    for n in range(N):
        observed = int(y[n])
        if rng.random() < feature_noise:
            observed = int(rng.integers(1, num_labels + 1))
        records.append(Example.from_features(
            [(int(y[n]), 1.0)],
            {NODE_NAMESPACE: {observed: 1.0, num_labels + 1: 1.0}},
            hashing,
        ))

    for u, v in sorted(G.edges()):
        records.append(Example.from_features(
            [(u + 1, 1.0), (v + 1, 1.0)], {EDGE_NAMESPACE: {0: 1.0}}, hashing
        ))

    if hyperedges:
        cliques = sorted(sorted(c) for c in nx.find_cliques(G) if len(c) >= 3)
        for c in cliques:
            records.append(Example.from_features(
                [(m + 1, 1.0) for m in c], {EDGE_NAMESPACE: {1: 1.0}}, hashing
            ))

    return records

