"""
Sibling service for placing brothers and sisters next to placed nodes.

Discovery inserts a node for every person sharing a parent with a placed
node. Positioning then finds room for each cohort (siblings with the same
depth and parent set) as one contiguous run:
1. Picks the side of the anchor without a spouse, or the side facing the parents
2. Looks for a gap between the corridors swept by other parent-child links
3. Widens the tree on the chosen side when the run would still collide
"""
import logging
from typing import Dict, List, NamedTuple, Optional, Tuple

from models import LayoutOptions, LayoutTree, NodeRole, Person, TreeNode
from services.errors import LayoutError, MissingRelationError
from services.geometry import position
from services.ordering import SortChildrenFunction, sort_add_new_children, sort_with_function

logger = logging.getLogger(__name__)

# Absolute cap on the open-ended gaps before the first and after the last corridor
GAP_SEARCH_LIMIT = 50000


class Gap(NamedTuple):
    start: float
    end: float

    @property
    def size(self) -> float:
        return self.end - self.start

    @property
    def center(self) -> float:
        return (self.start + self.end) / 2


class Occupancy:
    """Occupied x positions per depth, keyed by node tid."""

    def __init__(self):
        self._by_depth: Dict[int, Dict[str, float]] = {}

    @classmethod
    def from_tree(cls, tree: LayoutTree) -> "Occupancy":
        """Record every positioned node together with its spouses and coparent."""
        occupancy = cls()
        for node in tree.nodes.values():
            if node.x is None:
                continue
            occupancy.add(node.depth, node.tid, node.x)
            for partner in tree.resolve(node.spouses + [node.coparent]):
                if partner.x is not None:
                    occupancy.add(node.depth, partner.tid, partner.x)
        return occupancy

    def add(self, depth: int, tid: str, x: float):
        self._by_depth.setdefault(depth, {})[tid] = x

    def update(self, tid: str, x: float):
        """Move a node wherever it is recorded."""
        for positions in self._by_depth.values():
            if tid in positions:
                positions[tid] = x

    def positions(self, depth: int) -> List[float]:
        return sorted(self._by_depth.get(depth, {}).values())

    def collides(self, depth: int, x: float, threshold: float) -> bool:
        return any(abs(ox - x) < threshold for ox in self._by_depth.get(depth, {}).values())


def _parent_ids(node: TreeNode, people: Dict[str, Person]) -> List[str]:
    person = people.get(node.person_id)
    return person.rels.parent_ids() if person else []


def _new_sibling(tree: LayoutTree, record: Person, host: TreeNode, depth: int, parents: List[str]) -> TreeNode:
    return tree.add(TreeNode(
        tid=tree.new_tid(record.id),
        person_id=record.id,
        role=NodeRole.SIBLING,
        depth=depth,
        x=None,  # set by position_cohort
        y=host.y,
        parents=parents,
        is_ancestry=host.is_ancestry,
        host=host.tid,
    ))


def _ordered(cohort: List[TreeNode], people: Dict[str, Person],
             sort_children_function: Optional[SortChildrenFunction]) -> List[TreeNode]:
    """Custom comparator first, then placeholder records last."""
    by_person = {n.person_id: n for n in cohort}
    records = sort_with_function([people[n.person_id] for n in cohort], sort_children_function)
    return [by_person[r.id] for r in sort_add_new_children(records)]


def setup_siblings(
    tree: LayoutTree,
    people: Dict[str, Person],
    options: LayoutOptions,
    sort_children_function: Optional[SortChildrenFunction] = None,
    warnings: Optional[List[str]] = None,
) -> List[TreeNode]:
    """Insert and place the siblings of the main person only."""
    if warnings is None:
        warnings = []
    main = tree.main_node()
    if main is None:
        raise LayoutError("no main")
    main_record = people.get(main.person_id)
    if main_record is None:
        raise LayoutError(f"Main person {main.person_id} is not in the dataset")

    parent_ids = main_record.rels.parent_ids()[:2]
    present = {n.person_id for n in tree.nodes.values() if not n.added}
    siblings = [
        p for p in people.values()
        if p.id != main.person_id
        and p.id not in present
        and any(pid in p.rels.parents for pid in parent_ids)
    ]
    if not siblings:
        return []
    if not main.parents:
        raise MissingRelationError(f"Main person {main.person_id} has siblings but no parents in the tree")

    main_parents = {p.person_id: p for p in tree.resolve(main.parents)}

    def matched_slots(record: Person) -> List[Optional[TreeNode]]:
        slots = (record.rels.parents + [None, None])[:2]
        return [main_parents.get(pid) if pid else None for pid in slots]

    added = []
    for record in siblings:
        sib_parents = [p.tid for p in matched_slots(record) if p is not None]
        if not sib_parents:
            message = f"Sibling {record.id} shares no placed parent with main person {main.person_id}"
            logger.warning(message)
            warnings.append(message)
        added.append(_new_sibling(tree, record, main, main.depth - 1, sib_parents))

    cohort = _ordered(added, people, sort_children_function)

    # Half siblings through the first parent only come before full siblings
    def completeness(node: TreeNode) -> Tuple[int, int]:
        p1, p2 = matched_slots(people[node.person_id])
        return (int(p2 is not None), int(p1 is None))

    cohort.sort(key=completeness)
    position_cohort(tree, main, cohort, Occupancy.from_tree(tree), options)
    logger.info("Added %d siblings of main person %s", len(added), main.person_id)
    return added


def setup_all_siblings(
    tree: LayoutTree,
    people: Dict[str, Person],
    options: LayoutOptions,
    sort_children_function: Optional[SortChildrenFunction] = None,
    warnings: Optional[List[str]] = None,
) -> List[TreeNode]:
    """
    Insert siblings for every placed node, not just the main person.

    Persons already in the tree (other than as a spouse card) are never
    inserted twice, including siblings added earlier in the same pass.
    """
    if warnings is None:
        warnings = []
    hosts = [
        n for n in tree.nodes.values()
        if not n.added and not n.sibling and _parent_ids(n, people)
    ]
    logger.debug("Scanning %d nodes with parents for siblings", len(hosts))

    present = {n.person_id for n in tree.nodes.values() if not n.added}
    added = []
    for host in hosts:
        parent_ids = _parent_ids(host, people)
        candidates = [
            p for p in people.values()
            if p.id != host.person_id
            and p.id not in present
            and any(pid in p.rels.parents for pid in parent_ids)
        ]
        if not candidates:
            continue

        # Parent cards in the tree, preferring bloodline nodes over spouse cards
        parent_nodes: Dict[str, TreeNode] = {}
        for node in tree.nodes.values():
            if node.person_id not in parent_ids:
                continue
            current = parent_nodes.get(node.person_id)
            if current is None or (current.added and not node.added):
                parent_nodes[node.person_id] = node

        for record in candidates:
            sib_parents = [parent_nodes[pid].tid for pid in record.rels.parent_ids() if pid in parent_nodes]
            if not sib_parents:
                message = f"Sibling {record.id} of {host.person_id} has no parent in the tree"
                logger.warning(message)
                warnings.append(message)
            logger.debug("Adding sibling %s of %s", record.id, host.tid)
            added.append(_new_sibling(tree, record, host, host.depth, sib_parents))
            present.add(record.id)

    position_all_siblings(tree, people, options, sort_children_function, warnings)
    logger.info("Added %d siblings across the tree", len(added))
    return added


def position_all_siblings(
    tree: LayoutTree,
    people: Dict[str, Person],
    options: LayoutOptions,
    sort_children_function: Optional[SortChildrenFunction] = None,
    warnings: Optional[List[str]] = None,
):
    """Place every unplaced sibling cohort, one cohort at a time."""
    if warnings is None:
        warnings = []
    sep = options.node_separation

    # Group nodes by depth and parent set
    grouped: Dict[Tuple[int, Tuple[str, ...]], List[TreeNode]] = {}
    for node in tree.nodes.values():
        if node.added:
            continue
        parent_ids = _parent_ids(node, people)
        if not parent_ids:
            continue
        grouped.setdefault((node.depth, tuple(sorted(parent_ids))), []).append(node)

    occupancy = Occupancy.from_tree(tree)

    for (depth, parent_key), members in grouped.items():
        cohort = [n for n in members if n.sibling and n.x is None]
        if not cohort:
            continue
        cohort = _ordered(cohort, people, sort_children_function)

        anchor = next((n for n in members if not n.sibling), None)
        if anchor is None:
            anchor = tree.nodes.get(cohort[0].host) if cohort[0].host else None
        if anchor is None or anchor.x is None:
            message = f"No placed anchor for siblings of {'-'.join(parent_key)} at depth {depth}"
            logger.warning(message)
            warnings.append(message)
            for i, sib in enumerate(cohort):
                sib.x = i * sep
                occupancy.add(depth, sib.tid, sib.x)
            continue

        position_cohort(tree, anchor, cohort, occupancy, options)


def choose_side(anchor_x: float, partner_xs: List[float], parent_center_x: float) -> bool:
    """
    Return True when the cohort goes to the left of its anchor.

    A spouse on exactly one side sends the cohort to the other side;
    otherwise the cohort moves towards the centre of the parents.
    """
    has_left = any(x < anchor_x for x in partner_xs)
    has_right = any(x > anchor_x for x in partner_xs)
    if has_left and not has_right:
        return False
    if has_right and not has_left:
        return True
    return parent_center_x < anchor_x


def find_corridors(tree: LayoutTree, depth: int, options: LayoutOptions) -> List[Tuple[float, float]]:
    """X-ranges at a depth already swept by parent and child links, merged."""
    sep = options.node_separation
    buffer = sep * options.corridor_buffer
    corridors = []
    for node in tree.at_depth(depth):
        if node.added or node.sibling or node.x is None:
            continue
        for other in tree.resolve(node.parents) + tree.resolve(node.children):
            if other.x is None:
                continue
            corridors.append((min(other.x, node.x) - buffer, max(other.x, node.x) + buffer))
    return merge_corridors(corridors, sep)


def merge_corridors(corridors: List[Tuple[float, float]], sep: float) -> List[Tuple[float, float]]:
    if not corridors:
        return []
    ordered = sorted(corridors)
    merged = [list(ordered[0])]
    for lo, hi in ordered[1:]:
        last = merged[-1]
        if lo <= last[1] + sep:
            last[1] = max(last[1], hi)
        else:
            merged.append([lo, hi])
    return [(lo, hi) for lo, hi in merged]


def find_gaps(corridors: List[Tuple[float, float]], parent_center_x: float, options: LayoutOptions) -> List[Gap]:
    """Open intervals around and between corridors, bounded near the parents."""
    if not corridors:
        return []
    reach = options.node_separation * options.gap_search_range
    gaps = []

    first_end = corridors[0][0]
    first_start = max(first_end - GAP_SEARCH_LIMIT, parent_center_x - reach)
    if first_end > first_start:
        gaps.append(Gap(first_start, first_end))

    for (_, prev_max), (next_min, _) in zip(corridors, corridors[1:]):
        if next_min - prev_max > 0:
            gaps.append(Gap(prev_max, next_min))

    last_start = corridors[-1][1]
    last_end = min(last_start + GAP_SEARCH_LIMIT, parent_center_x + reach)
    if last_end > last_start:
        gaps.append(Gap(last_start, last_end))
    return gaps


def position_cohort(
    tree: LayoutTree,
    anchor: TreeNode,
    cohort: List[TreeNode],
    occupancy: Occupancy,
    options: LayoutOptions,
) -> List[float]:
    """Assign x to a cohort as one contiguous run next to its anchor."""
    sep = options.node_separation
    depth = anchor.depth
    anchor_x = position(anchor, "x")

    parents = [p for p in tree.resolve(anchor.parents) if p.x is not None]
    parent_center_x = sum(p.x for p in parents) / len(parents) if parents else anchor_x

    partner_xs = [p.x for p in tree.resolve(anchor.spouses + [anchor.coparent]) if p.x is not None]
    place_on_left = choose_side(anchor_x, partner_xs, parent_center_x)

    width = len(cohort) * sep
    default_start = anchor_x - width if place_on_left else anchor_x + sep
    group_start = default_start
    logger.debug(
        "Cohort of %d next to %s at x=%s: parent centre %s, %s side, occupied %s",
        len(cohort), anchor.tid, anchor_x, parent_center_x,
        "left" if place_on_left else "right", occupancy.positions(depth),
    )

    corridors = find_corridors(tree, depth, options)
    if corridors:
        gaps = [g for g in find_gaps(corridors, parent_center_x, options) if g.size >= width]
        if gaps:
            best = min(gaps, key=lambda g: abs(g.center - anchor_x))
            gap_start = best.center - width / 2
            if abs(gap_start - default_start) < sep * options.max_gap_displacement:
                group_start = gap_start
            logger.debug("Best gap %s..%s, group starts at %s", best.start, best.end, group_start)
        else:
            logger.debug("No adequate gap, placing adjacent to %s", anchor.tid)

    slots = [group_start + i * sep for i in range(len(cohort))]
    threshold = sep * options.collision_threshold
    if any(occupancy.collides(depth, x, threshold) for x in slots):
        shifted = widen(tree, anchor, cohort, occupancy, place_on_left, width)
        logger.debug("Collision next to %s, shifted %d nodes by %s", anchor.tid, shifted, width)
        slots = [default_start + i * sep for i in range(len(cohort))]

    for sib, x in zip(cohort, slots):
        sib.x = x
        occupancy.add(depth, sib.tid, x)
    return slots


def widen(
    tree: LayoutTree,
    anchor: TreeNode,
    cohort: List[TreeNode],
    occupancy: Occupancy,
    place_on_left: bool,
    width: float,
) -> int:
    """Push every node beyond the anchor on one side outward by width."""
    anchor_x = anchor.x
    shift = -width if place_on_left else width
    skip = {anchor.tid} | {n.tid for n in cohort}
    moved = set()

    def on_side(x: float) -> bool:
        return x < anchor_x if place_on_left else x > anchor_x

    def move(node: TreeNode):
        if node.tid in moved or node.tid in skip or node.x is None or not on_side(node.x):
            return
        node.x += shift
        occupancy.update(node.tid, node.x)
        moved.add(node.tid)

    for node in tree.at_depth(anchor.depth):
        if node.tid in skip or node.x is None or not on_side(node.x):
            continue
        move(node)
        for partner in tree.resolve(node.spouses + [node.coparent]):
            move(partner)
    return len(moved)
