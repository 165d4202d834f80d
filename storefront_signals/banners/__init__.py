"""
Banners Module
"""
from .enricher import BannerEnricher, EnrichedBanner, format_discount
from .feed import BannerFeed, Visitor

__all__ = [
    "BannerEnricher",
    "EnrichedBanner",
    "format_discount",
    "BannerFeed",
    "Visitor",
]
