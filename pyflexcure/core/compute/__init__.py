"""
Shared compute infrastructure for pyflexcure.

Submodules:
    timing: Execution timing utilities
"""

from pyflexcure.core.compute.timing import Timer

__all__ = [
    "Timer",
]
