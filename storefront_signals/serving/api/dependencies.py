"""
Request Dependencies
"""

from typing import Any, Dict

from fastapi import Request

from storefront_signals.banners import Visitor
from storefront_signals.serving.container import SignalsEngine

DEFAULT_IP = "127.0.0.1"


def get_engine(request: Request) -> SignalsEngine:
    """Engine built in the app lifespan"""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise RuntimeError("Engine not initialized")
    return engine


def client_ip(request: Request) -> str:
    """
    Best guess at the visitor's IP.

    Order: cf-connecting-ip, first x-forwarded-for hop, x-real-ip.
    """
    headers = request.headers
    cf_ip = headers.get("cf-connecting-ip")
    if cf_ip and cf_ip.strip():
        return cf_ip.strip()

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return DEFAULT_IP


def request_metadata(request: Request) -> Dict[str, Any]:
    """User agent and referrer, when present"""
    metadata = {}
    user_agent = request.headers.get("user-agent")
    if user_agent:
        metadata["user_agent"] = user_agent
    referrer = request.headers.get("referer")
    if referrer:
        metadata["referrer"] = referrer
    return metadata


def get_visitor(request: Request) -> Visitor:
    return Visitor(
        ip=client_ip(request),
        session_id=request.headers.get("x-session-id") or None,
        user_id=request.headers.get("x-user-id") or None,
        user_agent=request.headers.get("user-agent") or None,
    )
