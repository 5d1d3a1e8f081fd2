"""Error taxonomy for MindMesh.

None of these are fatal to the process. The mutation engine turns tree
errors into logged no-ops, and delivery failures are reported to the user
as transient notices.
"""

from typing import Optional


class MindMeshError(Exception):
    """Base class for all MindMesh errors."""


class NotFound(MindMeshError):
    """An operation referenced a node id absent from the tree."""

    def __init__(self, node_id: str):
        super().__init__(f"Node {node_id!r} not found")
        self.node_id = node_id


class StructureError(MindMeshError):
    """An insert would break the tree structure."""


class DanglingParent(StructureError):
    def __init__(self, node_id: str, parent_id: str):
        super().__init__(f"Node {node_id!r} references missing parent {parent_id!r}")
        self.node_id = node_id
        self.parent_id = parent_id


class DuplicateId(StructureError):
    def __init__(self, node_id: str):
        super().__init__(f"Node {node_id!r} already exists")
        self.node_id = node_id


class RootExists(StructureError):
    def __init__(self, node_id: str):
        super().__init__(f"Cannot add {node_id!r} as a second root")
        self.node_id = node_id


class InvariantViolation(MindMeshError):
    """A tree snapshot failed validation."""

    def __init__(self, problems: list):
        super().__init__("; ".join(problems))
        self.problems = problems


class PermissionDenied(MindMeshError):
    """A mutation was attempted while the session is read-only."""


class NetworkDeliveryFailure(MindMeshError):
    """A save or broadcast could not be sent."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class MapNotFound(MindMeshError):
    """The persistence collaborator has no mind map with this id."""

    def __init__(self, map_id: str):
        super().__init__(f"Mind map {map_id!r} not found")
        self.map_id = map_id


class ProtocolError(MindMeshError):
    """A wire payload could not be decoded."""
