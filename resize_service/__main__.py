import uvicorn

from . import config


def main() -> None:
    settings = config.get_settings()
    uvicorn.run(
        "resize_service.api:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
