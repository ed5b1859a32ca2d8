"""
Engine configuration
"""

from .settings import EngineSettings, BatchingPolicy, ENGINE_NAME
from .script_loader import load_script, load_processor, attach_processor

__all__ = [
    'EngineSettings',
    'BatchingPolicy',
    'ENGINE_NAME',
    'load_script',
    'load_processor',
    'attach_processor'
]
