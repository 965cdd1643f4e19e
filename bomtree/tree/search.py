"""
Search and view state for the hierarchy tree.

``filter_forest`` is pure: it never touches the input forest and returns new
TreeNode objects, so it can run again on every keystroke. Expansion and
selection live in an explicit TreeViewState value owned by the caller.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

from ..models import TreeNode


def _self_matches(node: TreeNode, needle: str) -> bool:
    return needle in node.name.casefold() or needle in node.path.casefold()


def _filter(nodes: List[TreeNode], needle: str) -> List[TreeNode]:
    kept = []
    for node in nodes:
        children = _filter(node.children, needle)
        if children or _self_matches(node, needle):
            kept.append(dataclasses.replace(node, children=children))
    return kept


def filter_forest(forest: List[TreeNode], query: Optional[str]) -> List[TreeNode]:
    """
    Prune a forest to the nodes matching ``query`` and their ancestors.

    A node is kept when its name or path contains the query
    (case-insensitive), or when any descendant is kept. Kept nodes carry only
    their kept children, so non-matching siblings of a match disappear while
    the chain up to the root stays.

    An empty or blank query returns ``forest`` itself.
    """
    needle = (query or "").strip().casefold()
    if not needle:
        return forest
    return _filter(forest, needle)


def iter_nodes(forest: Iterable[TreeNode]) -> Iterator[TreeNode]:
    """Pre-order walk over every node of a forest."""
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def collect_ids(forest: Iterable[TreeNode]) -> Set[Any]:
    """Ids of every node reachable in a forest."""
    return {node.id for node in iter_nodes(forest)}


def find_node(forest: Iterable[TreeNode], node_id: Any) -> Optional[TreeNode]:
    for node in iter_nodes(forest):
        if node.id == node_id:
            return node
    return None


@dataclass(frozen=True)
class TreeViewState:
    """Which nodes are expanded and which one is selected.

    Immutable; every transition returns a new state.
    """
    expanded_ids: FrozenSet[Any] = frozenset()
    selected_id: Optional[Any] = None

    def is_expanded(self, node_id: Any) -> bool:
        return node_id in self.expanded_ids

    def toggle(self, node_id: Any) -> "TreeViewState":
        if node_id in self.expanded_ids:
            return dataclasses.replace(self, expanded_ids=self.expanded_ids - {node_id})
        return dataclasses.replace(self, expanded_ids=self.expanded_ids | {node_id})

    def expand(self, node_ids: Iterable[Any]) -> "TreeViewState":
        return dataclasses.replace(self, expanded_ids=self.expanded_ids | frozenset(node_ids))

    def collapse_all(self) -> "TreeViewState":
        return dataclasses.replace(self, expanded_ids=frozenset())

    def select(self, node_id: Optional[Any]) -> "TreeViewState":
        return dataclasses.replace(self, selected_id=node_id)

    def with_search_results(self, filtered: List[TreeNode]) -> "TreeViewState":
        """Expand every node of a non-empty search result; an empty result changes nothing."""
        if not filtered:
            return self
        return self.expand(collect_ids(filtered))


def iter_visible(
    forest: Iterable[TreeNode],
    state: TreeViewState
) -> Iterator[Tuple[int, TreeNode]]:
    """
    Yield (depth, node) for the rows a tree widget would show.

    Children are only visited below expanded nodes. Depth is relative to the
    forest roots, not the stored ``level``, so a filtered or orphaned subtree
    still renders from depth 0.
    """
    stack = [(0, node) for node in reversed(list(forest))]
    while stack:
        depth, node = stack.pop()
        yield depth, node
        if node.children and state.is_expanded(node.id):
            stack.extend((depth + 1, child) for child in reversed(node.children))
