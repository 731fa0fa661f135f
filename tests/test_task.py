import io

import pytest

from conftest import HASHING, FakeHost, edge, node
from hypergraph_search.config import GraphTaskConfig
from hypergraph_search.errors import GraphTaskError
from hypergraph_search.features import NEIGHBOR_LABEL_STRIDE
from hypergraph_search.task import GraphTask
from hypergraph_search.traversal import bfs_order


def chain_episode():
    # 0-1-2-3 plus an isolated node 4
    return [node(1), node(2), node(1), node(2), node(1), edge(1, 2), edge(2, 3), edge(3, 4)]


def run_episode(task, examples):
    task.setup(examples)
    try:
        return task.run(examples)
    finally:
        task.takedown(examples)


def test_passes_alternate_direction():
    host = FakeHost()
    task = GraphTask(host, 2, GraphTaskConfig(num_loops=2))
    examples = [node(1), node(2), node(1), node(2), edge(3, 1), edge(1, 4), edge(4, 2)]
    task.setup(examples)
    order = list(task.order)
    assert order == bfs_order(task.graph)
    task.run(examples)

    tags = [P.tag - 1 for P in host.calls]
    assert tags[:4] == order
    assert tags[4:] == order[::-1]


def test_three_passes_visit_every_node_once_each():
    host = FakeHost()
    task = GraphTask(host, 2, GraphTaskConfig(num_loops=3))
    run_episode(task, chain_episode())
    tags = [P.tag for P in host.calls]
    assert len(tags) == 15
    for p in range(3):
        assert sorted(tags[5 * p:5 * (p + 1)]) == [1, 2, 3, 4, 5]


def test_conditions_and_oracle():
    host = FakeHost()
    task = GraphTask(host, 2)
    examples = [node(1), node(), node(2), edge(1, 2, 3), edge(2, 1)]
    run_episode(task, examples)

    by_tag = {P.tag: P for P in host.calls[:3]}
    assert by_tag[1].conditions == [(2, "e"), (3, "e"), (2, "e")]
    assert by_tag[2].conditions == [(1, "e"), (3, "e"), (1, "e")]
    assert by_tag[3].conditions == [(1, "e"), (2, "e")]
    assert by_tag[1].oracle == 1
    assert by_tag[2].oracle is None
    assert by_tag[3].oracle == 2


def test_oracle_answers_give_zero_loss():
    host = FakeHost()
    task = GraphTask(host, 2)
    pred = run_episode(task, chain_episode())
    assert pred.tolist() == [1, 2, 1, 2, 1]
    assert host.losses == [pytest.approx(0.0)]


def test_constant_answer_loss():
    host = FakeHost(policy=lambda P: 1)
    task = GraphTask(host, 2)
    run_episode(task, chain_episode())
    # label 1: p=3/5 r=1 -> 0.75; label 2: never right -> 0
    assert host.losses == [pytest.approx(1.0 - 0.375)]


def test_unlabeled_nodes_do_not_enter_confusion():
    host = FakeHost(policy=lambda P: 2)
    task = GraphTask(host, 2)
    run_episode(task, [node(2), node(), node(), edge(1, 2)])
    assert task.confusion.counts.sum() == 1
    assert host.losses == [pytest.approx(0.0)]


def test_episode_without_labels_reports_full_loss():
    host = FakeHost()
    task = GraphTask(host, 3)
    run_episode(task, [node(), node(), edge(1, 2)])
    assert host.losses == [pytest.approx(1.0)]


def test_separate_learners_route_by_pass():
    host = FakeHost()
    task = GraphTask(host, 2, GraphTaskConfig(num_loops=2, separate_learners=True))
    assert host.num_learners == 2
    run_episode(task, chain_episode())
    assert [P.learner_id for P in host.calls] == [0] * 5 + [1] * 5


def test_shared_learner_never_sets_learner_id():
    host = FakeHost()
    task = GraphTask(host, 2, GraphTaskConfig(num_loops=2))
    run_episode(task, chain_episode())
    assert host.num_learners is None
    assert all(P.learner_id is None for P in host.calls)


def test_node_examples_unchanged_after_run():
    host = FakeHost()
    task = GraphTask(host, 2)
    examples = chain_episode()
    snaps = [ex.snapshot() for ex in examples]
    run_episode(task, examples)
    assert [ex.snapshot() for ex in examples] == snaps


def test_no_augmentation_when_host_only_needs_labels():
    host = FakeHost(needs_example=False)
    task = GraphTask(host, 2)
    run_episode(task, chain_episode())
    assert all(feats == [] for _, feats, _ in host.seen_features)


def test_later_nodes_see_predictions_from_the_same_pass():
    host = FakeHost(policy=lambda P: 2)
    task = GraphTask(host, 2, GraphTaskConfig(num_loops=1))
    run_episode(task, [node(1), node(1), edge(1, 2, feats={3: 1.0})])

    mult, mask = HASHING.multiplier, HASHING.mask
    bucket = lambda k: (((3 + NEIGHBOR_LABEL_STRIDE * k) * mult) & 0xFFFFFFFF) & mask
    seen = {tag: feats for tag, feats, _ in host.seen_features}
    # node 0 goes first and sees an unassigned neighbor (bucket K)
    assert [f.weight_index for f in seen[1]] == [bucket(2)]
    # node 1 sees node 0's fresh prediction (label 2 -> bucket 1)
    assert [f.weight_index for f in seen[2]] == [bucket(1)]


def test_second_pass_sees_first_pass_predictions():
    host = FakeHost(policy=lambda P: 1)
    task = GraphTask(host, 2, GraphTaskConfig(num_loops=2))
    run_episode(task, [node(1), node(1), edge(1, 2, feats={3: 1.0})])
    mult, mask = HASHING.multiplier, HASHING.mask
    bucket0 = (((3 + NEIGHBOR_LABEL_STRIDE * 0) * mult) & 0xFFFFFFFF) & mask
    # second pass runs backwards: node 1 then node 0, both see label 1
    assert [tag for tag, _, _ in host.seen_features[2:]] == [2, 1]
    assert all([f.weight_index for f in feats] == [bucket0] for _, feats, _ in host.seen_features[2:])


def test_predictions_reset_every_run():
    host = FakeHost(policy=lambda P: 1)
    task = GraphTask(host, 2, GraphTaskConfig(num_loops=1))
    examples = [node(1), node(1), edge(1, 2, feats={3: 1.0})]
    task.setup(examples)
    task.run(examples)
    task.run(examples)
    task.takedown(examples)
    # node 0 opens both runs and must see an unassigned neighbor both times
    first_run, second_run = host.seen_features[0], host.seen_features[2]
    assert first_run[0] == second_run[0] == 1
    assert first_run[1] == second_run[1]
    assert len(host.losses) == 2


def test_prediction_line_written_to_output():
    out = io.StringIO()
    host = FakeHost(output=out)
    task = GraphTask(host, 2)
    run_episode(task, chain_episode())
    assert out.getvalue() == "1 2 1 2 1\n"


def test_bad_episode_aborts_before_any_prediction():
    host = FakeHost()
    task = GraphTask(host, 2)
    with pytest.raises(GraphTaskError):
        task.setup([node(1), edge(1, 2), node(2)])
    with pytest.raises(GraphTaskError):
        task.setup([node(1), node(2), edge(1, 3)])
    assert host.calls == []
    with pytest.raises(GraphTaskError, match="before setup"):
        task.run([])


def test_node_label_past_num_labels_is_fatal_at_setup():
    host = FakeHost()
    task = GraphTask(host, 2)
    with pytest.raises(GraphTaskError, match="node label 3 outside 1..2"):
        task.setup([node(1), node(3), edge(1, 2)])
    assert host.calls == []
    assert task.prior.total == 3.0


def test_out_of_range_prediction_is_fatal():
    host = FakeHost(policy=lambda P: 0)
    task = GraphTask(host, 2)
    with pytest.raises(GraphTaskError, match="outside 1..2"):
        run_episode(task, chain_episode())


def test_predictor_failure_still_reverts_augmentation():
    def policy(P):
        raise RuntimeError("boom")

    host = FakeHost(policy=policy)
    task = GraphTask(host, 2)
    examples = chain_episode()
    snaps = [ex.snapshot() for ex in examples]
    with pytest.raises(RuntimeError, match="boom"):
        run_episode(task, examples)
    assert [ex.snapshot() for ex in examples] == snaps
    # the next episode can still augment
    run_episode(GraphTask(FakeHost(), 2), examples)


def test_label_prior_persists_across_episodes():
    host = FakeHost()
    task = GraphTask(host, 2)
    run_episode(task, chain_episode())
    run_episode(task, chain_episode())
    assert task.prior.counts.tolist() == [1.0, 7.0, 5.0]
    assert task.prior.total == 3.0 + 10.0


def test_empty_episode_runs():
    host = FakeHost()
    task = GraphTask(host, 2)
    pred = run_episode(task, [])
    assert pred.size == 0
    assert host.calls == []
    assert host.losses == [pytest.approx(1.0)]


def test_logging_writes_tagged_lines(tmp_path):
    log_file = str(tmp_path / "task.txt")
    task = GraphTask(FakeHost(), 2, log_file=log_file)
    run_episode(task, chain_episode())
    task.finish()
    with open(log_file, encoding="utf-8") as f:
        text = f.read()
    for tag in ("[graph:INIT]", "[graph:PASS]", "[graph:DONE]", "[graph:FINISH]"):
        assert tag in text
    assert "components=2" in text


def test_invalid_num_actions():
    with pytest.raises(ValueError):
        GraphTask(FakeHost(), 0)
