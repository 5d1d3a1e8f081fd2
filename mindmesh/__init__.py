"""MindMesh - collaborative mind map editing."""

__version__ = "1.0.0"
__app_id__ = "io.github.mindmesh.MindMesh"
