"""
Minimal search host for running the graph task end to end.

The policy is a hashed linear scorer over the example's active features
plus one feature per conditioning reference (tag name, referenced
label). During training every decision that carries an oracle label is
a perceptron step toward that label, and the oracle label is what gets
returned (reference roll-in). At test time the argmax is returned.
"""

from typing import Dict, List, Optional, Tuple

import torch

from .config import HashingConfig
from .example import Example, foreach_feature

_CONDITION_SALT = 2654435761


class HashedLinearPolicy:
    def __init__(
        self,
        num_labels: int,
        hashing: Optional[HashingConfig] = None,
        num_learners: int = 1,
        lr: float = 1.0,
    ):
        self.K = int(num_labels)
        self.hashing = hashing if hashing is not None else HashingConfig()
        self.lr = float(lr)
        self.weights = torch.zeros(int(num_learners), self.hashing.num_buckets, self.K, dtype=torch.float32)
        self.bias = torch.zeros(int(num_learners), self.K, dtype=torch.float32)

    @property
    def num_learners(self) -> int:
        return int(self.weights.size(0))

    def resize(self, num_learners: int):
        num_learners = max(int(num_learners), 1)
        if num_learners == self.num_learners:
            return
        w = torch.zeros(num_learners, self.hashing.num_buckets, self.K, dtype=torch.float32)
        b = torch.zeros(num_learners, self.K, dtype=torch.float32)
        keep = min(num_learners, self.num_learners)
        w[:keep] = self.weights[:keep]
        b[:keep] = self.bias[:keep]
        self.weights, self.bias = w, b

    def _row(self, bucket: int) -> int:
        return (int(bucket) >> self.hashing.stride_shift) & (self.hashing.num_buckets - 1)

    def condition_row(self, name: str, label: int) -> int:
        return ((ord(name) * _CONDITION_SALT) ^ (int(label) * 348919043)) & (self.hashing.num_buckets - 1)

    def featurize(self, example: Example, conditions: List[Tuple[str, int]]):
        rows, vals = [], []

        def collect(fv, fx):
            rows.append(self._row(fx))
            vals.append(fv)

        foreach_feature(example, collect)
        for name, label in conditions:
            rows.append(self.condition_row(name, label))
            vals.append(1.0)
        return (
            torch.tensor(rows, dtype=torch.long),
            torch.tensor(vals, dtype=torch.float32),
        )

    def scores(self, learner: int, rows: torch.Tensor, vals: torch.Tensor) -> torch.Tensor:
        if rows.numel() == 0:
            return self.bias[learner].clone()
        return (self.weights[learner, rows] * vals[:, None]).sum(dim=0) + self.bias[learner]

    @torch.no_grad()
    def update(self, learner: int, rows, vals, target: int, predicted: int):
        """Perceptron step; labels are 1-based."""
        if target == predicted:
            return
        t, p = int(target) - 1, int(predicted) - 1
        if rows.numel() > 0:
            self.weights[learner].index_put_((rows, torch.full_like(rows, t)), self.lr * vals, accumulate=True)
            self.weights[learner].index_put_((rows, torch.full_like(rows, p)), -self.lr * vals, accumulate=True)
        self.bias[learner, t] += self.lr
        self.bias[learner, p] -= self.lr


class Predictor:
    def __init__(self, host: "SearchHost", my_tag: int):
        self.host = host
        self.my_tag = int(my_tag)
        self.example: Optional[Example] = None
        self.oracle: Optional[int] = None
        self.learner_id = 0
        self.conditions: List[Tuple[int, str]] = []

    def set_input(self, example: Example):
        self.example = example
        return self

    def set_oracle(self, label: int):
        self.oracle = int(label)
        return self

    def add_condition(self, tag: int, name: str):
        self.conditions.append((int(tag), name))
        return self

    def set_learner_id(self, learner_id: int):
        self.learner_id = int(learner_id)
        return self

    def predict(self) -> int:
        return self.host._predict(self)


class SearchHost:
    def __init__(
        self,
        policy: HashedLinearPolicy,
        train: bool = True,
        output=None,
        needs_example: bool = True,
    ):
        self.policy = policy
        self.hashing = policy.hashing
        self.train = bool(train)
        self.output = output
        self.needs_example = bool(needs_example)
        self.losses: List[float] = []
        self._tag_predictions: Dict[int, int] = {}

    def predict_needs_example(self) -> bool:
        return self.needs_example

    def predictor(self, my_tag: int) -> Predictor:
        return Predictor(self, my_tag)

    def set_num_learners(self, num_learners: int):
        self.policy.resize(num_learners)

    def loss(self, value: float):
        self.losses.append(float(value))

    def _predict(self, P: Predictor) -> int:
        learner = P.learner_id
        if not 0 <= learner < self.policy.num_learners:
            raise ValueError(f"learner id {learner} outside 0..{self.policy.num_learners - 1}")
        conditions = []
        for tag, name in P.conditions:
            label = self._tag_predictions.get(tag)
            if label is not None:
                conditions.append((name, label))

        if self.needs_example and P.example is not None:
            rows, vals = self.policy.featurize(P.example, conditions)
        else:
            rows, vals = self.policy.featurize(Example(), conditions)
        scores = self.policy.scores(learner, rows, vals)
        predicted = int(torch.argmax(scores).item()) + 1

        label = predicted
        if self.train and P.oracle is not None:
            self.policy.update(learner, rows, vals, P.oracle, predicted)
            label = P.oracle

        self._tag_predictions[P.my_tag] = label
        return label

    def run_episode(self, task, examples) -> Optional[float]:
        self._tag_predictions = {}
        n_before = len(self.losses)
        task.setup(examples)
        try:
            task.run(examples)
        finally:
            task.takedown(examples)
        return self.losses[-1] if len(self.losses) > n_before else None
