import argparse

import pytest

from hypergraph_search.config import GraphTaskConfig, HashingConfig, add_program_options


def parse(argv):
    parser = argparse.ArgumentParser()
    add_program_options(parser)
    return parser.parse_args(argv)


def test_defaults():
    cfg = GraphTaskConfig.from_args(parse([]))
    assert cfg == GraphTaskConfig(num_loops=2, use_structure=True, separate_learners=False)


def test_switches():
    cfg = GraphTaskConfig.from_args(parse([
        "--search_graph_num_loops", "4",
        "--search_graph_no_structure",
        "--search_graph_separate_learners",
    ]))
    assert cfg.num_loops == 4
    assert cfg.use_structure is False
    assert cfg.separate_learners is True


@pytest.mark.parametrize("loops", [0, 1])
def test_single_pass_floor_disables_separate_learners(loops):
    cfg = GraphTaskConfig(num_loops=loops, separate_learners=True)
    assert cfg.num_loops == 1
    assert cfg.separate_learners is False


def test_negative_loops_rejected():
    with pytest.raises(ValueError):
        GraphTaskConfig(num_loops=-1)


def test_hashing_layout():
    h = HashingConfig(bits=10, stride_shift=2, wpp=2)
    assert h.multiplier == 8
    assert h.mask == (1024 << 2) - 1
    assert h.num_buckets == 1024


@pytest.mark.parametrize("kwargs", [
    {"bits": 0},
    {"bits": 33},
    {"stride_shift": -1},
    {"wpp": 0},
    {"pairs": ("abc",)},
])
def test_hashing_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        HashingConfig(**kwargs)
