"""
Persistence of generated artifacts.
"""
from .store import ArtifactStore

__all__ = ["ArtifactStore"]
