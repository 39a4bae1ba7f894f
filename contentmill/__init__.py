# contentmill/__init__.py
"""
Multi-tenant content factory.

Harvests candidate items from per-site feeds and sitemaps, filters promotional
material, drops near-duplicates, rewrites survivors through a generative text
service and publishes the enriched result.
"""

__version__ = "0.1.0"
