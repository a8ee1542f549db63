"""
Песочница скриптов источников (QuickJS).
"""

from .endpoints import extract_host_list
from .host import ScriptHost

__all__ = ["ScriptHost", "extract_host_list"]
