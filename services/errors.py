"""
Errors raised by the layout services.
"""


class LayoutError(Exception):
    """Base error for a positioning pass that cannot continue."""


class GeometryError(LayoutError):
    """A coordinate was requested from a node that was never positioned."""


class MissingRelationError(LayoutError):
    """A node lacks the relation the pass needs to place or animate it."""


class PersonNotFoundError(LayoutError):
    """A person id does not match any record in the dataset."""
