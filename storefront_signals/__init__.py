"""
Storefront Signals

Behavioral analytics, scoring and recommendation engine for a storefront.
"""

__version__ = "1.0.0"
