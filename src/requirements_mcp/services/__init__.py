"""
Domain services built on the repositories: the status workflow engine and
the deletion-with-dependencies engine.
"""

from .deletion import DeletionService
from .status_workflow import StatusModelAdmin, StatusWorkflowEngine

__all__ = ["DeletionService", "StatusModelAdmin", "StatusWorkflowEngine"]
