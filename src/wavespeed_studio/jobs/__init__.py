"""
Job submission, polling and fan-out.
"""
from .engine import GenerationEngine
from .fanout import FanOutCoordinator
from .poller import Poller
from .progress import ProgressBoard, ProgressEvent

__all__ = ["FanOutCoordinator", "GenerationEngine", "Poller", "ProgressBoard", "ProgressEvent"]
