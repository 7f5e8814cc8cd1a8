"""
Core utilities module.

Provides shared utility functions used across all layers.
"""

from sfa.core.utils.time import elapsed_ms, utc_now

__all__ = ["elapsed_ms", "utc_now"]
