import uvicorn
from fastapi import FastAPI

from src.appointy_sync.api import routes
from src.appointy_sync.config import ServiceSettings, build_config_provider, get_settings
from src.appointy_sync.logging import get_logger, setup_logging
from src.appointy_sync.service import FeedService

log = get_logger(__name__)


def create_app(
    service: FeedService | None = None,
    settings: ServiceSettings | None = None,
) -> FastAPI:
    """Build the FastAPI app around a FeedService.

    The service (and so the cache) lives on app.state for the life of the
    process; pass one in to control its collaborators.
    """
    settings = settings or get_settings()
    if service is None:
        service = FeedService(settings, build_config_provider(settings))

    app = FastAPI(
        title="Appointy Calendar Sync",
        description="Appointy bookings republished as a subscribable iCalendar feed",
    )
    app.state.feed_service = service
    app.include_router(routes.router)

    log.info(
        "app_created",
        fetch_method=settings.fetch_method,
        config_source=service.config_provider.name,
    )
    return app


def main() -> None:
    settings = get_settings()
    setup_logging(json_output=settings.log_json, log_level=settings.log_level)
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
