"""
Pydantic models for the Family Tree Layout engine.
"""
from enum import Enum
from typing import Optional, List, Dict, Any, Callable, Tuple, Iterable
from pydantic import BaseModel, Field
import uuid


Point = Tuple[float, float]


def generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


class Relationships(BaseModel):
    """Relationship references of a person record."""
    parents: List[Optional[str]] = Field(default_factory=list)
    spouses: List[str] = Field(default_factory=list)
    children: List[str] = Field(default_factory=list)

    def parent_ids(self) -> List[str]:
        """Parent ids with empty slots removed."""
        return [p for p in self.parents if p]


class Person(BaseModel):
    """Model representing a person record in the dataset."""
    id: str = Field(default_factory=generate_id)
    rels: Relationships = Field(default_factory=Relationships)
    data: Dict[str, Any] = Field(default_factory=dict)
    main: bool = False
    to_add: bool = False  # placeholder card, not a real participant yet
    new_rel_data: Optional[Dict[str, Any]] = None

    @property
    def is_pending(self) -> bool:
        return self.to_add or self.new_rel_data is not None


class NodeRole(str, Enum):
    """Why a node is part of the tree."""
    MAIN = "main"
    ANCESTOR = "ancestor"
    DESCENDANT = "descendant"
    SIBLING = "sibling"
    SPOUSE = "spouse"
    COPARENT = "coparent"


class TreeNode(BaseModel):
    """
    A positioned node of the layout tree.

    All references to other nodes are tids (handles into LayoutTree.nodes).
    """
    tid: str
    person_id: str
    role: NodeRole
    depth: int = 0
    x: Optional[float] = None
    y: Optional[float] = None
    parents: List[str] = Field(default_factory=list)
    children: List[str] = Field(default_factory=list)
    spouses: List[str] = Field(default_factory=list)
    coparent: Optional[str] = None
    partner: Optional[str] = None  # node a spouse/coparent node is attached to
    parent: Optional[str] = None  # hierarchy parent
    host: Optional[str] = None  # placed node whose scan discovered this sibling
    sx: Optional[float] = None
    psx: Optional[float] = None
    psy: Optional[float] = None
    is_ancestry: bool = False
    is_private: bool = False
    prev_x: Optional[float] = None
    prev_y: Optional[float] = None
    exiting: bool = False

    @property
    def sibling(self) -> bool:
        return self.role == NodeRole.SIBLING

    @property
    def added(self) -> bool:
        """Partner nodes attached next to a primary node."""
        return self.role in (NodeRole.SPOUSE, NodeRole.COPARENT)


class LayoutTree(BaseModel):
    """Arena of tree nodes addressed by tid, kept in insertion order."""
    nodes: Dict[str, TreeNode] = Field(default_factory=dict)

    def get(self, tid: str) -> TreeNode:
        return self.nodes[tid]

    def add(self, node: TreeNode) -> TreeNode:
        if node.tid in self.nodes:
            raise ValueError(f"Duplicate tree node id: {node.tid}")
        self.nodes[node.tid] = node
        return node

    def resolve(self, tids: Iterable[Optional[str]]) -> List[TreeNode]:
        """Look up a list of handles, ignoring empty and dangling ones."""
        return [self.nodes[t] for t in tids if t and t in self.nodes]

    def main_node(self) -> Optional[TreeNode]:
        for node in self.nodes.values():
            if node.role == NodeRole.MAIN:
                return node
        return None

    def at_depth(self, depth: int) -> List[TreeNode]:
        return [n for n in self.nodes.values() if n.depth == depth]

    def new_tid(self, person_id: str) -> str:
        """Return an unused tid based on the person id."""
        if person_id not in self.nodes:
            return person_id
        i = 2
        while f"{person_id}#{i}" in self.nodes:
            i += 1
        return f"{person_id}#{i}"


class Link(BaseModel):
    """Connector geometry ready to be drawn."""
    d: List[Point]
    collapsed: Callable[[], List[Point]] = Field(exclude=True)
    curve: bool
    id: str
    depth: int
    is_ancestry: bool
    spouse: bool = False
    source: List[str]
    target: List[str]

    def to_payload(self) -> Dict[str, Any]:
        """Serializable form, with the collapsed path evaluated."""
        payload = self.model_dump()
        payload["_d"] = self.collapsed()
        return payload


class LayoutOptions(BaseModel):
    """Model for layout configuration."""
    node_separation: float = Field(default=250.0, gt=0)
    is_horizontal: bool = False
    link_curve: bool = True
    sibling_mode: str = Field(default="all", pattern="^(none|main|all)$")
    gap_search_range: float = 20.0  # in node separations around the parent centre
    max_gap_displacement: float = 5.0  # in node separations from the default start
    collision_threshold: float = 0.6
    corridor_buffer: float = 0.25
    offset_unit: float = 50.0
    exit_offset: float = 400.0


class LayoutResult(BaseModel):
    """Model for the outcome of a positioning pass."""
    tree: LayoutTree
    links: List[Link] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class DepthProbe(BaseModel):
    """Maximum reachable generations around a person."""
    ancestry: int = 0
    progeny: int = 0


class LayoutRequest(BaseModel):
    """Model for a layout call over HTTP."""
    tree: LayoutTree
    people: List[Person]
    options: LayoutOptions = Field(default_factory=LayoutOptions)
    private_field: Optional[str] = None
    entering: List[str] = Field(default_factory=list)
    exiting: List[str] = Field(default_factory=list)


class PrivacyRequest(BaseModel):
    """Model for a privacy closure call over HTTP."""
    tree: LayoutTree
    people: List[Person]
    private_field: Optional[str] = None
