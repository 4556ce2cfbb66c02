"""
Layout service for positioning a pre-built family tree.
"""
import logging
from typing import Dict, Iterable, Optional

from models import LayoutOptions, LayoutResult, LayoutTree, Person
from services.link_service import create_all_links
from services.ordering import SortChildrenFunction
from services.privacy_service import PrivateCondition, handle_private_cards
from services.sibling_service import setup_all_siblings, setup_siblings

logger = logging.getLogger(__name__)


def index_people(people: Iterable[Person]) -> Dict[str, Person]:
    """Map person records by id, keeping the first record of a duplicate id."""
    indexed: Dict[str, Person] = {}
    for person in people:
        if person.id in indexed:
            logger.warning("Duplicate person id in dataset: %s", person.id)
            continue
        indexed[person.id] = person
    return indexed


def calculate_layout(
    tree: LayoutTree,
    people: Iterable[Person],
    options: LayoutOptions,
    sort_children_function: Optional[SortChildrenFunction] = None,
    private_condition: Optional[PrivateCondition] = None,
) -> LayoutResult:
    """
    Complete the positioning of a tree and build its links.

    The tree is mutated in place:
    1. Siblings are inserted next to placed nodes and given x positions
    2. Nodes are marked private when a privacy condition is supplied
    3. Links are built over the final positions
    """
    people_by_id = index_people(people)
    warnings = []

    if options.sibling_mode == "main":
        setup_siblings(tree, people_by_id, options, sort_children_function, warnings)
    elif options.sibling_mode == "all":
        setup_all_siblings(tree, people_by_id, options, sort_children_function, warnings)

    if private_condition is not None:
        warnings.extend(handle_private_cards(tree, people_by_id, private_condition))

    links = create_all_links(
        tree,
        people_by_id,
        is_horizontal=options.is_horizontal,
        link_curve=options.link_curve,
        offset_unit=options.offset_unit,
    )

    logger.info("Calculated layout for %d nodes with %d links", len(tree.nodes), len(links))
    return LayoutResult(tree=tree, links=links, warnings=warnings)
