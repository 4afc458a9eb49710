"""Run the fruits service with uvicorn."""

import uvicorn

from fruits.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "fruits.main:app",
        host=settings.application_host,
        port=settings.application_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
