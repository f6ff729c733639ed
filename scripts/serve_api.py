from __future__ import annotations

import uvicorn

from regalerts.apps.api.main import app
from regalerts.core.config import get_settings


def main() -> None:
    # Serve the admin API with env-driven settings; one process owns one database pool.
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
