"""
Development launcher for the Chronicle API.

Usage:
    python run_server.py [--reload]
"""

import sys

import uvicorn

from chronicle_api.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(
        "chronicle_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload="--reload" in sys.argv[1:],
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
