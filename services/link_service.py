"""
Link service: builds connector geometry for a positioned tree.

Each node owns the links to its parents (ancestry side), to its children
(progeny side) and to its spouses or co-parent. Paths are elbows made of six
points so that a collapsed path with the same topology can be used as the
start or end state of an animation.
"""
import logging
from typing import Dict, List, Optional, Set

from models import Link, LayoutTree, Person, Point, TreeNode
from services.errors import GeometryError
from services.geometry import effective_position, family_offset, midpoint, position

logger = logging.getLogger(__name__)

SPOUSE_LINK_EPSILON = 0.0001


def elbow(start: Point, end: Point, offset: float = 0, is_horizontal: bool = False) -> List[Point]:
    """
    Orthogonal path from start to end through a crossbar at the midpoint.

    The crossbar is shifted by offset along the depth axis so that bundles of
    different families stay apart.
    """
    sx, sy = start
    ex, ey = end
    if is_horizontal:
        hx = sx + (ex - sx) / 2 + offset
        return [(sx, sy), (hx, sy), (hx, sy), (hx, ey), (hx, ey), (ex, ey)]
    hy = sy + (ey - sy) / 2 + offset
    return [(sx, sy), (sx, hy), (sx, hy), (ex, hy), (ex, hy), (ex, ey)]


def link_id(*nodes: TreeNode) -> str:
    """Stable id built from the endpoint tids, independent of their order."""
    return ", ".join(sorted(n.tid for n in nodes))


def _xy(node: TreeNode) -> Point:
    return (position(node, "x"), position(node, "y"))


def _prev_xy(node: TreeNode) -> Point:
    return (effective_position(node, "x"), effective_position(node, "y"))


def _child_parent_ids(tree: LayoutTree, child: TreeNode, people: Dict[str, Person]) -> List[str]:
    person = people.get(child.person_id)
    if person is not None:
        return person.rels.parent_ids()
    return [p.person_id for p in tree.resolve(child.parents)]


def other_parent(tree: LayoutTree, child: TreeNode, node: TreeNode, people: Dict[str, Person]) -> Optional[TreeNode]:
    """The spouse of node that is also a parent of child, if placed."""
    parent_ids = _child_parent_ids(tree, child, people)
    for spouse in tree.resolve(node.spouses):
        if spouse.person_id in parent_ids:
            return spouse
    return None


def create_links(
    tree: LayoutTree,
    node: TreeNode,
    people: Dict[str, Person],
    is_horizontal: bool = False,
    link_curve: bool = True,
    offset_unit: float = 50.0,
) -> List[Link]:
    """Build the spouse, ancestry and progeny links owned by one node."""
    links: List[Link] = []
    # Spouses sit on the progeny side of bloodline nodes, coparents on the ancestry side
    if node.spouses or node.coparent:
        links.extend(_spouse_links(tree, node))
    ancestry = _ancestry_link(tree, node, is_horizontal, link_curve, offset_unit)
    if ancestry is not None:
        links.append(ancestry)
    links.extend(_progeny_links(tree, node, people, is_horizontal, link_curve, offset_unit))
    return links


def create_all_links(
    tree: LayoutTree,
    people: Dict[str, Person],
    is_horizontal: bool = False,
    link_curve: bool = True,
    offset_unit: float = 50.0,
) -> List[Link]:
    """Build links for every node in the tree, dropping duplicate ids."""
    links = []
    seen: Set[str] = set()
    for node in tree.nodes.values():
        for link in create_links(tree, node, people, is_horizontal, link_curve, offset_unit):
            if link.id in seen:
                logger.debug("Skipping duplicate link %s", link.id)
                continue
            seen.add(link.id)
            links.append(link)
    logger.info("Created %d links for %d nodes", len(links), len(tree.nodes))
    return links


def _ancestry_link(
    tree: LayoutTree,
    node: TreeNode,
    is_horizontal: bool,
    link_curve: bool,
    offset_unit: float,
) -> Optional[Link]:
    parents = tree.resolve(node.parents)
    if not parents:
        return None
    p1 = parents[0]
    p2 = parents[1] if len(parents) > 1 else p1

    offset = family_offset(p1.person_id, p2.person_id)
    logger.debug("Ancestry link for %s: parents=%s/%s, offset=%d", node.tid, p1.person_id, p2.person_id, offset)

    target = (
        midpoint(position(p1, "x"), position(p2, "x")),
        midpoint(position(p1, "y"), position(p2, "y")),
    )
    path = elbow(_xy(node), target, offset * offset_unit, is_horizontal)

    def collapsed() -> List[Point]:
        here = _prev_xy(node)
        return elbow(here, here, 0, is_horizontal)

    return Link(
        d=path,
        collapsed=collapsed,
        curve=link_curve,
        id=link_id(node, p1, p2),
        depth=node.depth + 1,
        is_ancestry=True,
        source=[node.tid],
        target=[p1.tid, p2.tid],
    )


def _progeny_links(
    tree: LayoutTree,
    node: TreeNode,
    people: Dict[str, Person],
    is_horizontal: bool,
    link_curve: bool,
    offset_unit: float,
) -> List[Link]:
    children = tree.resolve(node.children)
    if not children:
        return []
    logger.debug("Progeny links for %s: %d children", node.tid, len(children))

    links = []
    for child in children:
        other = other_parent(tree, child, node, people) or node
        sx = other.sx
        if not isinstance(sx, (int, float)):
            raise GeometryError(f"sx is not a number for node {other.tid}")

        offset = family_offset(node.person_id, other.person_id)
        if is_horizontal:
            branch = (position(node, "x"), sx)
        else:
            branch = (sx, position(node, "y"))

        links.append(Link(
            d=elbow(_xy(child), branch, offset * offset_unit, is_horizontal),
            collapsed=lambda branch=branch: elbow(branch, branch, 0, is_horizontal),
            curve=link_curve,
            id=link_id(child, node, other),
            depth=node.depth + 1,
            is_ancestry=False,
            source=[node.tid, other.tid],
            target=[child.tid],
        ))
    return links


def _spouse_links(tree: LayoutTree, node: TreeNode) -> List[Link]:
    if node.spouses:
        partners = tree.resolve(node.spouses)
    else:
        partners = tree.resolve([node.coparent])
    return [_spouse_link(node, partner) for partner in partners]


def _spouse_link(node: TreeNode, partner: TreeNode) -> Link:
    def collapsed() -> List[Point]:
        # Nudge one end so the line keeps a length when both ends coincide
        if node.is_ancestry:
            nx, ny = _prev_xy(node)
            return [(nx - SPOUSE_LINK_EPSILON, ny), _prev_xy(partner)]
        nx, ny = _xy(node)
        return [(nx, ny), (nx - SPOUSE_LINK_EPSILON, ny)]

    return Link(
        d=[_xy(node), _xy(partner)],
        collapsed=collapsed,
        curve=False,
        id=link_id(node, partner),
        depth=node.depth,
        is_ancestry=partner.is_ancestry,
        spouse=True,
        source=[node.tid],
        target=[partner.tid],
    )
