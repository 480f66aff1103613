"""
Client adapter for the WaveSpeed inference API.
"""
from .wavespeed import WaveSpeedClient

__all__ = ["WaveSpeedClient"]
