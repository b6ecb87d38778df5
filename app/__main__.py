"""
启动命令：
    uv run python -m app
"""

import logging

import uvicorn

from app.config.config import settings
from app.main import app

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(f"random-image listening on port {settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
