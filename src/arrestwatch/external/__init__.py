"""
External data sources reached over HTTP APIs rather than a browser.
"""

from .miami_dade import MiamiDadeIngestor, normalize_feature

__all__ = ["MiamiDadeIngestor", "normalize_feature"]
