"""
Neighbor-prediction features.

Before a node is predicted, every incident edge contributes a copy of
its own features to the node, relocated by the labels its other
endpoints currently carry:

  single neighbor : value unchanged, bucket = base + STRIDE * k
  many neighbors  : one feature per label bucket k with a nonzero count,
                    value = value * count[k], same bucket rule

where base is the feature's bucket with the model stride removed. All
of them land in NEIGHBOR_NAMESPACE on the node and are taken back out
by revert() right after the prediction.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .config import HashingConfig
from .errors import GraphTaskError, fatal
from .example import Feature, foreach_feature
from .graph import Graph

NEIGHBOR_NAMESPACE = chr(131)
NEIGHBOR_LABEL_STRIDE = 348919043
_UINT32 = 0xFFFFFFFF


@dataclass
class Augmentation:
    """Undo record for one augment() call."""
    node: int
    indices: List[str]
    features: Optional[List[Feature]]
    sum_feat_sq: Optional[float]
    total_sum_feat_sq: float
    num_features: int
    added: int = 0


class NeighborFeatureAugmenter:
    def __init__(
        self,
        num_labels: int,
        hashing: HashingConfig,
        use_structure: bool = True,
        log_file: Optional[str] = None,
    ):
        self.K = int(num_labels)
        self.hashing = hashing
        self.use_structure = bool(use_structure)
        self.log_file = log_file
        # scratch, cleared before every edge
        self.neighbor_predictions = np.zeros(self.K + 1, dtype=np.float64)
        self._active: Optional[Augmentation] = None

    # -------------------------
    # bucket arithmetic
    # -------------------------
    def relocate(self, fx: int, k: int) -> int:
        mult = self.hashing.multiplier
        if (fx // mult) * mult != fx:
            fatal(f"feature bucket {fx} is not aligned to the model stride {mult}", self.log_file)
        base = fx // mult
        return (((base + NEIGHBOR_LABEL_STRIDE * int(k)) * mult) & _UINT32) & self.hashing.mask

    def _histogram(self, graph: Graph, e: int, n: int, pred: Sequence[int]):
        """Fill the scratch histogram for edge e; returns (total, last bucket)."""
        self.neighbor_predictions.fill(0.0)
        if not self.use_structure:
            self.neighbor_predictions[0] = 1.0
            return 1, 0

        total, last = 0, 0
        for m in graph.edge_members(e):
            if m == n:
                continue
            k = int(pred[m]) - 1
            self.neighbor_predictions[k] += 1.0
            total += 1
            last = k
        return total, last

    # -------------------------
    # apply / undo
    # -------------------------
    def augment(self, graph: Graph, n: int, pred: Sequence[int]) -> Augmentation:
        if self._active is not None:
            raise GraphTaskError(
                f"augmentation of node {self._active.node} still active while augmenting node {n}"
            )
        node = graph.nodes[n]
        token = Augmentation(
            node=n,
            indices=list(node.indices),
            features=list(node.atomics[NEIGHBOR_NAMESPACE]) if NEIGHBOR_NAMESPACE in node.atomics else None,
            sum_feat_sq=node.sum_feat_sq.get(NEIGHBOR_NAMESPACE),
            total_sum_feat_sq=node.total_sum_feat_sq,
            num_features=node.num_features,
        )
        self._active = token
        try:
            self._inject(graph, n, pred, token)
        except BaseException:
            self.revert(graph, token)
            raise
        return token

    def _inject(self, graph: Graph, n: int, pred: Sequence[int], token: Augmentation):
        node = graph.nodes[n]
        feats = node.atomics.setdefault(NEIGHBOR_NAMESPACE, [])
        start_sq = node.sum_feat_sq.get(NEIGHBOR_NAMESPACE, 0.0)
        sum_sq = start_sq
        start = len(feats)

        for e in graph.adjacency[n]:
            total, last = self._histogram(graph, e, n, pred)
            if total == 0:
                continue

            if total == 1:
                def add_single(fv, fx, k=last):
                    nonlocal sum_sq
                    feats.append(Feature(fv, self.relocate(fx, k)))
                    sum_sq += fv * fv
                foreach_feature(graph.edges[e], add_single)
            else:
                counts = self.neighbor_predictions
                labels = np.flatnonzero(counts)
                def add_group(fv, fx):
                    nonlocal sum_sq
                    for k in labels:
                        fv2 = fv * float(counts[k])
                        feats.append(Feature(fv2, self.relocate(fx, int(k))))
                        sum_sq += fv2 * fv2
                foreach_feature(graph.edges[e], add_group)

        node.sum_feat_sq[NEIGHBOR_NAMESPACE] = sum_sq
        node.indices.append(NEIGHBOR_NAMESPACE)
        node.total_sum_feat_sq += sum_sq - start_sq
        node.num_features += len(feats) - start
        token.added = len(feats) - start

        # quadratic interactions that involve the new namespace
        for pair in self.hashing.pairs:
            a, b = pair[0], pair[1]
            if NEIGHBOR_NAMESPACE not in (a, b):
                continue
            node.num_features += len(node.atomics.get(a, ())) * len(node.atomics.get(b, ()))
            node.total_sum_feat_sq += node.sum_feat_sq.get(a, 0.0) * node.sum_feat_sq.get(b, 0.0)

    def revert(self, graph: Graph, token: Augmentation):
        if self._active is not token:
            raise GraphTaskError(f"revert of node {token.node} does not match the active augmentation")
        node = graph.nodes[token.node]
        node.indices[:] = token.indices
        if token.features is None:
            node.atomics.pop(NEIGHBOR_NAMESPACE, None)
            node.sum_feat_sq.pop(NEIGHBOR_NAMESPACE, None)
        else:
            node.atomics[NEIGHBOR_NAMESPACE] = token.features
            if token.sum_feat_sq is None:
                node.sum_feat_sq.pop(NEIGHBOR_NAMESPACE, None)
            else:
                node.sum_feat_sq[NEIGHBOR_NAMESPACE] = token.sum_feat_sq
        node.total_sum_feat_sq = token.total_sum_feat_sq
        node.num_features = token.num_features
        self._active = None

    def release(self):
        self.neighbor_predictions = np.zeros(0, dtype=np.float64)
        self._active = None
