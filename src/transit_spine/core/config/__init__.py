"""Configuration for transit-spine.

Quick start::

    from transit_spine.core.config import get_settings

    settings = get_settings()
    print(settings.database_path)     # data/transit_spine.db
    print(settings.max_concurrency)   # 10
"""

from .settings import TransitSpineSettings, clear_settings_cache, get_settings

__all__ = [
    "TransitSpineSettings",
    "clear_settings_cache",
    "get_settings",
]
