"""
Enter and exit anchors for nodes appearing in or leaving the tree.
"""
import logging
from typing import Iterable

from models import LayoutTree, NodeRole, TreeNode
from services.errors import MissingRelationError
from services.geometry import position

logger = logging.getLogger(__name__)

EXIT_OFFSET = 400.0


def calculate_enter_and_exit_positions(
    tree: LayoutTree,
    node: TreeNode,
    entering: bool,
    exiting: bool,
    exit_offset: float = EXIT_OFFSET,
):
    """
    Record on the node where it animates from (entering) or to (exiting).

    An entering node starts at the closest placed relative: its partner for
    spouse cards, its parent on the ancestry side, and the parent's family
    branch point otherwise.
    """
    node.exiting = exiting
    if entering:
        if node.role == NodeRole.MAIN:
            node.prev_x, node.prev_y = node.x, node.y
        elif node.added:
            partner = tree.nodes.get(node.partner) if node.partner else None
            if partner is None:
                raise MissingRelationError(f"Spouse node {node.tid} has no partner")
            node.prev_x, node.prev_y = position(partner, "x"), position(partner, "y")
        elif node.is_ancestry:
            anchor = tree.nodes.get(node.parent) if node.parent else None
            if anchor is None:
                resolved = tree.resolve(node.parents)
                anchor = resolved[0] if resolved else None
            if anchor is not None:
                node.prev_x, node.prev_y = position(anchor, "x"), position(anchor, "y")
            elif node.sibling:
                # No parent in the tree, stay in place
                node.prev_x, node.prev_y = node.x, node.y
            else:
                raise MissingRelationError(f"no parent for ancestry node {node.tid}")
        elif node.psx is not None and node.psy is not None:
            node.prev_x, node.prev_y = node.psx, node.psy
        else:
            logger.warning("No branch point for entering node %s, entering in place", node.tid)
            node.prev_x, node.prev_y = position(node, "x"), position(node, "y")
    elif exiting:
        x_sign = 1 if position(node, "x") > 0 else -1
        y_sign = 1 if position(node, "y") > 0 else -1
        node.prev_x = node.x + exit_offset * x_sign
        node.prev_y = node.y + exit_offset * y_sign


def apply_transitions(
    tree: LayoutTree,
    entering: Iterable[str],
    exiting: Iterable[str],
    exit_offset: float = EXIT_OFFSET,
):
    """Resolve enter and exit anchors for the given node ids."""
    entering = set(entering)
    exiting = set(exiting)
    for tid in sorted(entering | exiting):
        node = tree.nodes.get(tid)
        if node is None:
            logger.warning("Transition requested for unknown node: %s", tid)
            continue
        calculate_enter_and_exit_positions(tree, node, tid in entering, tid in exiting, exit_offset)
