#!/usr/bin/env python
"""
Server Entry Point

Usage:
    Development:  python run_server.py --dev
    Production:   python run_server.py

    Or with Gunicorn:
    gunicorn storefront_signals.main:app -c gunicorn.conf.py
"""

import argparse
import os
import subprocess


def run_dev_server(port: int):
    """Run development server with auto-reload."""
    import uvicorn

    uvicorn.run(
        "storefront_signals.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        reload_dirs=["storefront_signals"],
        log_level="debug",
    )


def run_prod_server(port: int):
    """Run with Uvicorn directly."""
    import uvicorn

    uvicorn.run(
        "storefront_signals.main:app",
        host="0.0.0.0",
        port=port,
        workers=int(os.getenv("WORKERS", 4)),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn(port: int):
    """Run with Gunicorn (recommended for production)."""
    env = dict(os.environ, BIND=f"0.0.0.0:{port}")
    subprocess.run(
        ["gunicorn", "storefront_signals.main:app", "-c", "gunicorn.conf.py"],
        env=env,
        check=True,
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Storefront Signals API Server")
    parser.add_argument("--dev", action="store_true", help="Development mode with auto-reload")
    parser.add_argument("--gunicorn", action="store_true", help="Run with Gunicorn")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", 8000)))
    args = parser.parse_args()

    if args.dev:
        run_dev_server(args.port)
    elif args.gunicorn:
        run_gunicorn(args.port)
    else:
        run_prod_server(args.port)
