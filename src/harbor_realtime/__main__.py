"""Entrypoint: python -m harbor_realtime"""
from __future__ import annotations

import uvicorn

from harbor_realtime.log import configure_logging


def main() -> None:
    configure_logging()
    uvicorn.run(
        "harbor_realtime.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level="info",
        log_config=None,
    )


if __name__ == "__main__":
    main()
