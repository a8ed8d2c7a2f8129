"""Run the monitor: python -m failed_payments"""

from __future__ import annotations

import logging

import uvicorn

from failed_payments.config import Settings
from failed_payments.serve import create_app


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = Settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
