"""
Assemble persisted hierarchy rows into a rooted forest for display.

Rows reference their parent by id only. Building never fails: a parent id
that isn't in the input (a dangling reference, or a partial fetch) puts the
node at the root, and parent cycles are cut so every input node appears
exactly once.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Union

from ..models import HierarchyNode, TreeNode

logger = logging.getLogger(__name__)


def _walk(roots: Iterable[TreeNode]) -> Iterator[TreeNode]:
    """Pre-order walk that visits each node object once, even on a cyclic graph."""
    seen = set()
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        stack.extend(reversed(node.children))


def build_forest(
    nodes: Iterable[Union[HierarchyNode, Mapping[str, Any]]]
) -> List[TreeNode]:
    """
    Build a forest from a flat list of hierarchy nodes.

    Nodes are sorted by path first, so siblings come out in lexicographic
    path order regardless of input order. Each node is attached to its
    parent when ``parent_id`` resolves within the input; otherwise it
    becomes a root.

    Args:
        nodes: HierarchyNode objects or asset_hierarchy row dictionaries

    Returns:
        Root TreeNodes; the total node count equals the input count
    """
    hierarchy = [
        n if isinstance(n, HierarchyNode) else HierarchyNode.from_row(n)
        for n in nodes
    ]
    hierarchy.sort(key=lambda n: n.path)

    tree_nodes = [TreeNode.from_node(n) for n in hierarchy]
    by_id: Dict[Any, TreeNode] = {}
    for tree_node in tree_nodes:
        by_id.setdefault(tree_node.id, tree_node)

    roots: List[TreeNode] = []
    for tree_node in tree_nodes:
        parent = by_id.get(tree_node.parent_id) if tree_node.parent_id is not None else None
        if parent is not None and parent is not tree_node:
            parent.children.append(tree_node)
        else:
            if tree_node.parent_id is not None and parent is None:
                logger.debug(f"Orphaned node '{tree_node.path}': parent {tree_node.parent_id} not loaded")
            roots.append(tree_node)

    # Nodes not reachable from a root sit on a parent cycle
    reachable = {id(n) for n in _walk(roots)}
    if len(reachable) < len(tree_nodes):
        for tree_node in tree_nodes:
            if id(tree_node) in reachable:
                continue
            parent = by_id[tree_node.parent_id]
            parent.children = [c for c in parent.children if c is not tree_node]
            roots.append(tree_node)
            reachable.update(id(n) for n in _walk([tree_node]))
            logger.warning(f"Parent cycle cut at '{tree_node.path}'")
        roots.sort(key=lambda n: n.path)

    for tree_node in tree_nodes:
        tree_node.is_folder = bool(tree_node.children)

    return roots


def count_nodes(forest: Iterable[TreeNode]) -> int:
    return sum(1 for _ in _walk(forest))
