"""CLI entry point serving the demo application."""

from __future__ import annotations

import asyncio

import uvicorn

from .config import get_settings
from .demo import build_app
from .logging import configure_logging


async def _run() -> None:
    settings = get_settings()
    configure_logging(settings.bridge_log_level)

    app = build_app(settings)
    config = uvicorn.Config(app, host=settings.bridge_host, port=settings.bridge_port)
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
