"""Train and evaluate the graph task on synthetic planted-partition episodes."""

import argparse
import os
import time
from typing import Optional

import numpy as np

from .config import GraphTaskConfig, HashingConfig, add_program_options
from .datasets import planted_partition_episode
from .host import HashedLinearPolicy, SearchHost
from .logging_utils import Timer, log_kv, write_log
from .metrics import plot_confusion
from .task import GraphTask


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hypergraph_search",
        description="Collective classification of (hyper)graph nodes by iterated search passes",
    )
    add_program_options(parser)

    data = parser.add_argument_group("synthetic data")
    data.add_argument("--nodes", type=int, default=60)
    data.add_argument("--labels", type=int, default=3)
    data.add_argument("--p_in", type=float, default=0.3)
    data.add_argument("--p_out", type=float, default=0.02)
    data.add_argument("--noise", type=float, default=0.4, help="probability a node feature shows a random label")
    data.add_argument("--hyperedges", action="store_true", help="add maximal cliques (size >= 3) as hyperedges")
    data.add_argument("--train_episodes", type=int, default=8)
    data.add_argument("--test_episodes", type=int, default=4)

    run = parser.add_argument_group("run")
    run.add_argument("--epochs", type=int, default=3)
    run.add_argument("--bits", type=int, default=16)
    run.add_argument("--seed", type=int, default=1337)
    run.add_argument("--log_file", type=str, default=None)
    run.add_argument("--plot", type=str, default=None, help="save the last test confusion matrix here")
    run.add_argument("--predictions", type=str, default=None, help="write test predictions here")
    return parser


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)

    log_file = args.log_file
    if log_file is None:
        timestamp_str = time.strftime("%Y%m%d_%H%M%S")
        log_file = os.path.join("logs", f"graph_{timestamp_str}.txt")

    cfg = GraphTaskConfig.from_args(args)
    hashing = HashingConfig(bits=args.bits)
    write_log(f"[main] starting run | {cfg}", log_file, tag="RUN")

    def episodes(count, offset):
        return [
            planted_partition_episode(
                args.nodes, args.labels, args.p_in, args.p_out,
                feature_noise=args.noise, hyperedges=args.hyperedges,
                seed=args.seed + offset + i, hashing=hashing,
            )
            for i in range(count)
        ]

    train_eps = episodes(args.train_episodes, 0)
    test_eps = episodes(args.test_episodes, 10_000)

    policy = HashedLinearPolicy(args.labels, hashing)
    host = SearchHost(policy, train=True)
    task = GraphTask(host, args.labels, cfg, log_file=log_file)

    t = Timer()
    for epoch in range(args.epochs):
        losses = [host.run_episode(task, ep) for ep in train_eps]
        log_kv(log_file, "TRAIN", epoch=epoch, mean_loss=f"{np.mean(losses):.4f}", t=f"{t.elapsed():.2f}s")

    host.train = False
    pred_stream = open(args.predictions, "w", encoding="utf-8") if args.predictions else None
    host.output = pred_stream
    try:
        test_losses = [host.run_episode(task, ep) for ep in test_eps]
    finally:
        if pred_stream is not None:
            pred_stream.close()
        host.output = None

    if args.plot and test_losses and task.confusion is not None:
        plot_confusion(task.confusion, args.plot, title=f"last test episode (loss={test_losses[-1]:.3f})")

    mean_loss = float(np.mean(test_losses)) if test_losses else float("nan")
    summary = (
        f"Test loss (1 - macro F1): {mean_loss:.4f} over {len(test_losses)} episodes\n"
        f"Passes={cfg.num_loops} structure={cfg.use_structure} separate_learners={cfg.separate_learners}"
    )
    write_log(summary, log_file, tag="SUMMARY", also_print=True)
    task.finish()
    return 0
