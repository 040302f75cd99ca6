"""
Process entry point.

Runs the ASGI app under uvicorn on the configured port. Signal handling
and graceful shutdown (provider stop) are driven by uvicorn's lifespan.
"""

from __future__ import annotations

import uvicorn
from dotenv import load_dotenv

from config import AppConfig


def main() -> None:
    load_dotenv()
    config = AppConfig.load_from_env()

    uvicorn.run(
        "server.asgi:app",
        host="0.0.0.0",
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
