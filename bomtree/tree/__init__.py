"""In-memory hierarchy tree: building, searching and view state."""

from .builder import build_forest, count_nodes
from .search import (
    filter_forest,
    collect_ids,
    find_node,
    iter_nodes,
    iter_visible,
    TreeViewState,
)

__all__ = [
    "build_forest",
    "count_nodes",
    "filter_forest",
    "collect_ids",
    "find_node",
    "iter_nodes",
    "iter_visible",
    "TreeViewState",
]
