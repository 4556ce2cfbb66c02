"""
Depth probe: how many generations can be shown around a person.
"""
import logging
from typing import Callable, Dict, List

from models import DepthProbe, Person
from services.errors import PersonNotFoundError

logger = logging.getLogger(__name__)


def _longest_chain(start: Person, people: Dict[str, Person], next_ids: Callable[[Person], List[str]]) -> int:
    memo: Dict[str, int] = {}

    def height(person: Person, path: frozenset) -> int:
        if person.id in memo:
            return memo[person.id]
        best = 0
        for rid in next_ids(person):
            relative = people.get(rid)
            if relative is None or relative.is_pending or rid in path:
                continue
            best = max(best, 1 + height(relative, path | {rid}))
        memo[person.id] = best
        return best

    return height(start, frozenset([start.id]))


def get_max_depth(person_id: str, people: Dict[str, Person]) -> DepthProbe:
    """Maximum ancestry and progeny depth reachable from a person."""
    person = people.get(person_id)
    if person is None:
        raise PersonNotFoundError(f"no datum for {person_id}")

    probe = DepthProbe(
        ancestry=_longest_chain(person, people, lambda p: p.rels.parent_ids()),
        progeny=_longest_chain(person, people, lambda p: list(p.rels.children)),
    )
    logger.debug("Depth of %s: ancestry=%d, progeny=%d", person_id, probe.ancestry, probe.progeny)
    return probe
