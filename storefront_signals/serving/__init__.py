"""
Serving Module
"""
from .container import SignalsEngine, build_engine

__all__ = ["SignalsEngine", "build_engine"]
