"""
Graph labeling task for the search host.

Lifecycle (driven by the host):
  GraphTask(host, K, config)  one-time setup
  setup(examples)             build graph + traversal order, reset predictions
  run(examples)               num_loops passes, then macro-F1 loss
  takedown(examples)          drop per-episode state
  finish()                    drop scratch buffers

Each pass walks the traversal order (forwards on even passes, backwards
on odd ones) and predicts every node once, conditioning on whatever its
neighbors currently hold. Predictions made earlier in the same pass are
already visible to later nodes.
"""

from typing import List, Optional

import numpy as np

from .config import GraphTaskConfig, HashingConfig
from .errors import GraphTaskError, fatal
from .features import NeighborFeatureAugmenter
from .graph import Graph, LabelPrior, build_graph
from .logging_utils import Timer, log_kv, write_log
from .metrics import ConfusionMatrix, format_predictions
from .traversal import bfs_order, pass_order

CONDITION_TAG = "e"


class GraphTask:
    name = "graph"

    def __init__(
        self,
        host,
        num_actions: int,
        config: Optional[GraphTaskConfig] = None,
        log_file: Optional[str] = None,
        log_prefix: str = "graph",
    ):
        if int(num_actions) < 1:
            raise ValueError(f"num_actions must be >= 1, got {num_actions}")
        self.host = host
        self.config = config if config is not None else GraphTaskConfig()
        self.K = int(num_actions)
        self.log_file = log_file
        self.log_prefix = log_prefix

        hashing = getattr(host, "hashing", None) or HashingConfig()
        self.augmenter = NeighborFeatureAugmenter(
            self.K, hashing, use_structure=self.config.use_structure, log_file=log_file
        )
        self.confusion = ConfusionMatrix(self.K)
        self.prior = LabelPrior(self.K)

        if self.config.separate_learners:
            host.set_num_learners(self.config.num_loops)

        # per-episode state
        self.graph: Optional[Graph] = None
        self.order: List[int] = []
        self.pred: Optional[np.ndarray] = None
        self.last_loss: Optional[float] = None

    def _logkv(self, tag: str, **kwargs):
        log_kv(self.log_file, tag=f"{self.log_prefix}:{tag}", **kwargs)

    # -------------------------
    # lifecycle
    # -------------------------
    def setup(self, examples):
        t = Timer()
        self.graph = build_graph(examples, prior=self.prior, log_file=self.log_file, num_labels=self.K)
        self.order = bfs_order(self.graph)
        self.pred = np.full(self.graph.num_nodes, self.K + 1, dtype=np.int64)

        N = self.graph.num_nodes
        deg = np.fromiter((len(a) for a in self.graph.adjacency), dtype=np.int64, count=N)
        self._logkv(
            "INIT",
            nodes=N,
            edges=self.graph.num_edges,
            components=self.graph.num_components(),
            mean_deg=float(deg.mean()) if N > 0 else 0.0,
            t_setup=f"{t.elapsed():.4f}s",
        )

    def run(self, examples) -> np.ndarray:
        if self.graph is None or self.pred is None:
            raise GraphTaskError("run() called before setup()")
        graph = self.graph
        N = graph.num_nodes

        self.confusion.reset()
        self.pred.fill(self.K + 1)

        for loop in range(self.config.num_loops):
            t = Timer()
            for n in pass_order(self.order, loop):
                self._predict_node(n, loop)
            self._logkv(
                "PASS",
                loop=loop,
                direction="backward" if loop % 2 == 1 else "forward",
                t_pass=f"{t.elapsed():.4f}s",
            )

        for n in range(N):
            k = graph.nodes[n].true_label
            if k > 0:
                self.confusion.add(k, self.pred[n])

        macro_f = self.confusion.macro_f1()
        self.last_loss = 1.0 - macro_f
        self.host.loss(self.last_loss)

        out = getattr(self.host, "output", None)
        if out is not None:
            out.write(format_predictions(self.pred) + "\n")

        self._logkv(
            "DONE",
            macro_f1=f"{macro_f:.4f}",
            loss=f"{self.last_loss:.4f}",
            labeled=int(self.confusion.counts.sum()),
            prior_total=self.prior.total,
        )
        return self.pred.copy()

    def takedown(self, examples):
        self.graph = None
        self.order = []
        self.pred = None

    def finish(self):
        self.augmenter.release()
        self.confusion = None
        write_log("task finished", self.log_file, tag=f"{self.log_prefix}:FINISH")

    # -------------------------
    # one decision
    # -------------------------
    def _predict_node(self, n: int, loop: int):
        graph = self.graph
        node = graph.nodes[n]
        k = node.true_label

        token = None
        if self.host.predict_needs_example():
            token = self.augmenter.augment(graph, n, self.pred)
        try:
            P = self.host.predictor(n + 1)
            P.set_input(node)
            if self.config.separate_learners:
                P.set_learner_id(loop)
            if k > 0:
                P.set_oracle(k)
            for _, m in graph.neighbors(n):
                P.add_condition(m + 1, CONDITION_TAG)
            label = int(P.predict())
        finally:
            if token is not None:
                self.augmenter.revert(graph, token)

        if not 1 <= label <= self.K:
            fatal(f"predictor returned label {label} outside 1..{self.K} for node {n}", self.log_file)
        self.pred[n] = label
