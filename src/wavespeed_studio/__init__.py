"""
WaveSpeed generation job engine: submit, poll, fan out, normalize.
"""
from .config import load_config
from .jobs.engine import GenerationEngine
from .types import GenerationRequest, InputImage

__all__ = ["GenerationEngine", "GenerationRequest", "InputImage", "load_config"]
