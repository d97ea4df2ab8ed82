"""
Core application engine for orchestrating the download process.

The `Manager` is the task registry that hands out one `Workflow` per playlist
URL; each `Workflow` drives its task through attach, download and combine.
"""

from .events import EventChannel
from .manager import Manager
from .workflow import PhaseResult, Workflow, WorkflowState

__all__ = ["EventChannel", "Manager", "PhaseResult", "Workflow", "WorkflowState"]
