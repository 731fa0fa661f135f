"""
Task and hashing configuration.

GraphTaskConfig mirrors the three program switches of the graph task;
HashingConfig carries the model's feature-space layout (bits, stride,
weights-per-problem, quadratic namespace pairs) that neighbor features
have to be folded into.
"""

import argparse
from dataclasses import dataclass


@dataclass(frozen=True)
class GraphTaskConfig:
    num_loops: int = 2             # inference passes over the traversal order
    use_structure: bool = True     # neighbor-prediction features on/off
    separate_learners: bool = False  # one underlying model per pass

    def __post_init__(self):
        if int(self.num_loops) < 0:
            raise ValueError(f"num_loops must be >= 0, got {self.num_loops}")
        # a single pass has nothing to separate
        if int(self.num_loops) <= 1:
            object.__setattr__(self, "num_loops", 1)
            object.__setattr__(self, "separate_learners", False)
        else:
            object.__setattr__(self, "num_loops", int(self.num_loops))

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "GraphTaskConfig":
        num_loops = getattr(args, "search_graph_num_loops", None)
        return cls(
            num_loops=2 if num_loops is None else num_loops,
            use_structure=not getattr(args, "search_graph_no_structure", False),
            separate_learners=bool(getattr(args, "search_graph_separate_learners", False)),
        )


def add_program_options(parser: argparse.ArgumentParser):
    group = parser.add_argument_group("search graphtask options")
    group.add_argument("--search_graph_num_loops", type=int, default=2,
                       help="how many loops to run [def: 2]")
    group.add_argument("--search_graph_no_structure", action="store_true",
                       help="turn off edge features")
    group.add_argument("--search_graph_separate_learners", action="store_true",
                       help="use a different learner for each pass")
    return group


@dataclass(frozen=True)
class HashingConfig:
    bits: int = 18
    stride_shift: int = 2
    wpp: int = 1
    pairs: tuple = ()

    def __post_init__(self):
        if not 1 <= int(self.bits) <= 32:
            raise ValueError(f"bits must be in [1, 32], got {self.bits}")
        if int(self.stride_shift) < 0:
            raise ValueError(f"stride_shift must be >= 0, got {self.stride_shift}")
        if int(self.wpp) < 1:
            raise ValueError(f"wpp must be >= 1, got {self.wpp}")
        for p in self.pairs:
            if len(p) != 2:
                raise ValueError(f"namespace pair must have two characters, got {p!r}")
        object.__setattr__(self, "pairs", tuple(self.pairs))

    @property
    def multiplier(self) -> int:
        return int(self.wpp) << int(self.stride_shift)

    @property
    def mask(self) -> int:
        return ((1 << int(self.bits)) << int(self.stride_shift)) - 1

    @property
    def num_buckets(self) -> int:
        return 1 << int(self.bits)
