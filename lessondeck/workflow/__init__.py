"""Review workflow: state machine, effects and the event dispatcher."""

from .dispatcher import Dispatcher
from .machine import ReviewView
from .machine import WorkflowStateMachine

__all__ = ["Dispatcher", "ReviewView", "WorkflowStateMachine"]
