"""
Tree layout API endpoints (layout, depth probe, privacy).
"""
import logging
from typing import List

from fastapi import APIRouter, HTTPException

from models import LayoutRequest, Person, PrivacyRequest
from services.depth_service import get_max_depth
from services.errors import LayoutError, PersonNotFoundError
from services.layout_service import calculate_layout, index_people
from services.privacy_service import field_condition, handle_private_cards
from services.transition_service import apply_transitions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tree", tags=["tree"])


@router.post("/layout")
async def layout_tree(request: LayoutRequest):
    """Insert siblings, position them and build links for a pre-built tree."""
    condition = field_condition(request.private_field) if request.private_field else None

    try:
        result = calculate_layout(request.tree, request.people, request.options, private_condition=condition)
        apply_transitions(result.tree, request.entering, request.exiting, request.options.exit_offset)
    except LayoutError as e:
        logger.warning("Layout failed: %s", e)
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "tree": result.tree.model_dump(),
        "links": [link.to_payload() for link in result.links],
        "warnings": result.warnings,
    }


@router.post("/depth/{person_id}")
async def max_depth(person_id: str, people: List[Person]):
    """Get how many generations of ancestors and descendants a person has."""
    try:
        probe = get_max_depth(person_id, index_people(people))
    except PersonNotFoundError:
        raise HTTPException(status_code=404, detail="Person not found")
    return probe.model_dump()


@router.post("/private")
async def private_cards(request: PrivacyRequest):
    """Mark tree nodes that must be shown redacted."""
    condition = field_condition(request.private_field) if request.private_field else None
    warnings = handle_private_cards(request.tree, index_people(request.people), condition)
    return {
        "private": [n.tid for n in request.tree.nodes.values() if n.is_private],
        "warnings": warnings,
    }
