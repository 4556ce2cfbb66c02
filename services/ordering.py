"""
Ordering helpers for children and sibling cohorts.
"""
from functools import cmp_to_key
from typing import Callable, Dict, List, Optional

from models import Person

SortChildrenFunction = Callable[[Person, Person], int]


def _other_parent(child: Person, parent: Person, people: Dict[str, Person]) -> Optional[Person]:
    for pid in child.rels.parent_ids():
        if pid != parent.id and pid in people:
            return people[pid]
    return None


def sort_children_with_spouses(children: List[Person], person: Person, people: Dict[str, Person]) -> List[Person]:
    """
    Order children by the position of their other parent in the spouse list.

    Children of a male person run in spouse order, children of anyone else in
    reverse spouse order, so each family sits on the side of its spouse card.
    """
    if not person.rels.children:
        return list(children)
    spouses = person.rels.spouses

    def spouse_index(child: Person) -> int:
        other = _other_parent(child, person, people)
        if other is None or other.id not in spouses:
            return -1
        return spouses.index(other.id)

    if person.data.get("gender") == "M":
        return sorted(children, key=spouse_index)
    return sorted(children, key=lambda c: -spouse_index(c))


def sort_add_new_children(children: List[Person]) -> List[Person]:
    """Move placeholder records after the real ones, keeping order otherwise."""
    return sorted(children, key=lambda c: c.is_pending)


def sort_with_function(people: List[Person], sort_children_function: Optional[SortChildrenFunction]) -> List[Person]:
    if sort_children_function is None:
        return list(people)
    return sorted(people, key=cmp_to_key(sort_children_function))
