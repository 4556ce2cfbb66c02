"""
Privacy service: marks nodes whose card must be rendered redacted.

A person is private when the condition holds for them or for anyone reachable
through parents and spouses. Results are cached for the pass so shared
ancestors are only evaluated once.
"""
import logging
from typing import Callable, Dict, List, Optional

from models import LayoutTree, Person

logger = logging.getLogger(__name__)

PrivateCondition = Callable[[Person], bool]


class PrivacyClosure:
    """Memoized reachability over parents and spouses."""

    def __init__(self, people: Dict[str, Person], condition: PrivateCondition):
        self.people = people
        self.condition = condition
        self.cache: Dict[str, bool] = {}

    def is_private(self, person_id: str) -> bool:
        if person_id in self.cache:
            return self.cache[person_id]

        result = False
        visited = {person_id}
        stack = [person_id]
        while stack:
            pid = stack.pop()
            if pid != person_id and pid in self.cache:
                if self.cache[pid]:
                    result = True
                    break
                continue
            record = self.people.get(pid)
            if record is None:
                logger.warning("Privacy check reached unknown person: %s", pid)
                continue
            if record.is_pending:
                continue
            if self.condition(record):
                result = True
                break
            for rid in reversed(record.rels.parent_ids() + record.rels.spouses):
                if rid not in visited:
                    visited.add(rid)
                    stack.append(rid)

        self.cache[person_id] = result
        return result


def handle_private_cards(
    tree: LayoutTree,
    people: Dict[str, Person],
    condition: Optional[PrivateCondition],
) -> List[str]:
    """Set is_private on tree nodes. Returns warnings for the caller."""
    if condition is None:
        message = "private_cards_config.condition is not set"
        logger.error(message)
        return [message]

    closure = PrivacyClosure(people, condition)
    marked = 0
    for node in tree.nodes.values():
        record = people.get(node.person_id)
        if record is None or record.is_pending:
            continue
        if closure.is_private(node.person_id):
            node.is_private = True
            marked += 1
    logger.info("Marked %d of %d nodes private", marked, len(tree.nodes))
    return []


def field_condition(field: str) -> PrivateCondition:
    """Condition that holds when a display field of the record is truthy."""
    def condition(person: Person) -> bool:
        return bool(person.data.get(field))
    return condition
