import logging

import uvicorn

from .config import settings


def main() -> None:
    logging.basicConfig(level=logging.DEBUG if settings.DEV_MODE else logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    uvicorn.run("agriconnect.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=False)


if __name__ == "__main__":
    main()
