import pytest

from hypergraph_search.config import HashingConfig
from hypergraph_search.example import Example

HASHING = HashingConfig(bits=10, stride_shift=2)


def node(label=0, feats=None, hashing=HASHING):
    costs = [(label, 1.0)] if label else []
    return Example.from_features(costs, {"n": feats if feats is not None else {1: 1.0}}, hashing)


def edge(*ids, feats=None, hashing=HASHING):
    return Example.from_features(
        [(i, 1.0) for i in ids], {"e": feats if feats is not None else {3: 2.0}}, hashing
    )


class FakePredictor:
    def __init__(self, host, tag):
        self.host = host
        self.tag = tag
        self.example = None
        self.oracle = None
        self.learner_id = None
        self.conditions = []

    def set_input(self, example):
        self.example = example

    def set_oracle(self, label):
        self.oracle = label

    def add_condition(self, tag, name):
        self.conditions.append((tag, name))

    def set_learner_id(self, learner_id):
        self.learner_id = learner_id

    def predict(self):
        self.host.calls.append(self)
        self.host.seen_features.append(
            (self.tag, list(self.example.atomics.get(chr(131), [])), self.example.num_features)
        )
        return self.host.policy(self)


class FakeHost:
    """Records every decision; answers with the oracle label or 1."""

    def __init__(self, needs_example=True, policy=None, hashing=HASHING, output=None):
        self.needs_example = needs_example
        self.policy = policy or (lambda P: P.oracle or 1)
        self.hashing = hashing
        self.output = output
        self.calls = []
        self.seen_features = []
        self.losses = []
        self.num_learners = None

    def predict_needs_example(self):
        return self.needs_example

    def predictor(self, tag):
        return FakePredictor(self, tag)

    def set_num_learners(self, n):
        self.num_learners = n

    def loss(self, value):
        self.losses.append(value)


@pytest.fixture
def hashing():
    return HASHING


@pytest.fixture
def fake_host():
    return FakeHost()
