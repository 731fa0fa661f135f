from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from .config import HashingConfig


@dataclass(frozen=True)
class Feature:
    x: float
    weight_index: int


@dataclass
class Example:
    """
    One record of an episode.

    costs:
      list of (class_index, weight). A node carries at most one pair
      (its true label, or nothing when unlabeled); an edge carries one
      pair per referenced node, class_index being the 1-based node id.
    atomics / indices / sum_feat_sq / total_sum_feat_sq / num_features:
      the feature set, split into one-character namespaces. `indices`
      lists the active namespaces in order.
    """
    costs: List[Tuple[int, float]] = field(default_factory=list)
    atomics: Dict[str, List[Feature]] = field(default_factory=dict)
    indices: List[str] = field(default_factory=list)
    sum_feat_sq: Dict[str, float] = field(default_factory=dict)
    total_sum_feat_sq: float = 0.0
    num_features: int = 0

    @classmethod
    def from_features(cls, costs, namespaces, hashing: HashingConfig) -> "Example":
        """
        namespaces: {ns: {feature_id: value}}; feature ids are placed on
        stride-aligned buckets of the model.
        """
        ex = cls(costs=[(int(c), float(w)) for c, w in costs])
        for ns, feats in namespaces.items():
            if len(ns) != 1:
                raise ValueError(f"namespace must be one character, got {ns!r}")
            items = feats.items() if isinstance(feats, dict) else feats
            fs = [Feature(float(v), (int(fid) * hashing.multiplier) & hashing.mask) for fid, v in items]
            ex.atomics[ns] = fs
            ex.indices.append(ns)
            ex.sum_feat_sq[ns] = sum(f.x * f.x for f in fs)
            ex.total_sum_feat_sq += ex.sum_feat_sq[ns]
            ex.num_features += len(fs)
        return ex

    @property
    def is_edge(self) -> bool:
        return len(self.costs) > 1

    @property
    def is_test(self) -> bool:
        return len(self.costs) == 0

    @property
    def true_label(self) -> int:
        return int(self.costs[0][0]) if self.costs else 0

    def node_ids(self) -> List[int]:
        return [int(c) - 1 for c, _ in self.costs]

    def snapshot(self):
        return (
            tuple(self.costs),
            tuple((ns, tuple(fs)) for ns, fs in self.atomics.items()),
            tuple(self.indices),
            tuple(self.sum_feat_sq.items()),
            self.total_sum_feat_sq,
            self.num_features,
        )


def foreach_feature(example: Example, fn: Callable[[float, int], None], offset: int = 0):
    for ns in example.indices:
        for f in example.atomics.get(ns, ()):
            fn(f.x, f.weight_index + offset)
