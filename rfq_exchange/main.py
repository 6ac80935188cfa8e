import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rfq_exchange.api.v1.router import v1_router
from rfq_exchange.core.config import get_settings
from rfq_exchange.core.errors import TenderExchangeError
from rfq_exchange.core.logging import configure_logging
from rfq_exchange.core.middleware import RequestIdMiddleware

logger = logging.getLogger(__name__)


async def tender_exchange_error_handler(request: Request, exc: TenderExchangeError) -> JSONResponse:
    logger.info(
        "request refused",
        extra={"code": exc.code, "path": request.url.path, "request_id": getattr(request.state, "request_id", None)},
    )
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.message, "code": exc.code})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    # Domain refusals -> {"detail", "code"}
    app.add_exception_handler(TenderExchangeError, tender_exchange_error_handler)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
