from .config import GraphTaskConfig, HashingConfig, add_program_options
from .errors import GraphTaskError
from .example import Example, Feature, foreach_feature
from .features import NEIGHBOR_LABEL_STRIDE, NEIGHBOR_NAMESPACE, Augmentation, NeighborFeatureAugmenter
from .graph import Graph, LabelPrior, build_graph
from .host import HashedLinearPolicy, Predictor, SearchHost
from .metrics import ConfusionMatrix, format_predictions
from .task import GraphTask
from .traversal import bfs_order, pass_order

__all__ = [
    "GraphTaskConfig",
    "HashingConfig",
    "add_program_options",
    "GraphTaskError",
    "Example",
    "Feature",
    "foreach_feature",
    "NEIGHBOR_LABEL_STRIDE",
    "NEIGHBOR_NAMESPACE",
    "Augmentation",
    "NeighborFeatureAugmenter",
    "Graph",
    "LabelPrior",
    "build_graph",
    "HashedLinearPolicy",
    "Predictor",
    "SearchHost",
    "ConfusionMatrix",
    "format_predictions",
    "GraphTask",
    "bfs_order",
    "pass_order",
]
