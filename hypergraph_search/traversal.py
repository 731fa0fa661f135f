from typing import List, Sequence

from sortedcontainers import SortedSet

from .graph import Graph


def bfs_order(graph: Graph) -> List[int]:
    """
    Breadth-first visiting order over all nodes, seeded at node 0.

    Members of a hyperedge are all adjacent to each other through it.
    When a component is exhausted, the lowest-indexed untouched node
    seeds the next one, so every node appears exactly once.
    """
    N = graph.num_nodes
    order: List[int] = []
    untouched = SortedSet(range(N))

    i = 0
    while len(order) < N:
        # seed the next component
        seed = untouched[0]
        untouched.discard(seed)
        order.append(seed)

        while i < len(order):
            n = order[i]
            for e in graph.adjacency[n]:
                for m in graph.edge_members(e):
                    if m in untouched:
                        untouched.discard(m)
                        order.append(m)
            i += 1

    return order


def pass_order(order: Sequence[int], loop: int) -> List[int]:
    """Forwards on even passes, backwards on odd ones."""
    if loop % 2 == 1:
        return list(reversed(order))
    return list(order)
