# app/__main__.py
from __future__ import annotations

import argparse

import uvicorn

from app.core.config import settings


def main() -> None:
    p = argparse.ArgumentParser(description="Run the SPIEGEL RSS headlines API")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=settings.PORT)
    p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development only)")
    args = p.parse_args()

    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload and not settings.is_production,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
