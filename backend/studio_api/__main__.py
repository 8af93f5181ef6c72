import uvicorn

from studio_api.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("studio_api.main:app", host="0.0.0.0", port=8000, reload=settings.debug)


if __name__ == "__main__":
    main()
