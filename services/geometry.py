"""
Geometry helpers shared by the link builder and the sibling engine.
"""
from typing import Optional

from models import TreeNode
from services.errors import GeometryError


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def hash_string(value: str) -> int:
    """
    Rolling 32-bit string hash (hash * 31 + code unit), returned as a magnitude.

    Works on UTF-16 code units so the result matches the browser-side hash
    for the same id pair.
    """
    encoded = value.encode("utf-16-le")
    h = 0
    for i in range(0, len(encoded), 2):
        code = encoded[i] | (encoded[i + 1] << 8)
        h = _to_int32((h << 5) - h + code)
    return abs(h)


def family_key(id_a: str, id_b: str) -> str:
    return "-".join(sorted([id_a, id_b]))


def family_offset(id_a: str, id_b: str) -> int:
    """Lateral offset factor in [-3, 3] for the family of two parents."""
    return hash_string(family_key(id_a, id_b)) % 7 - 3


def position(node: TreeNode, axis: str) -> float:
    """Current coordinate of a node on the given axis."""
    value = getattr(node, axis)
    if not isinstance(value, (int, float)):
        raise GeometryError(f"{axis} is not a number for node {node.tid}")
    return value


def effective_position(node: TreeNode, axis: str) -> float:
    """Pre-transition coordinate if one was recorded, else the current one."""
    prev: Optional[float] = getattr(node, f"prev_{axis}")
    if prev is not None:
        if not isinstance(prev, (int, float)):
            raise GeometryError(f"_{axis} is not a number for node {node.tid}")
        return prev
    return position(node, axis)


def midpoint(a: float, b: float) -> float:
    return a - (a - b) / 2
