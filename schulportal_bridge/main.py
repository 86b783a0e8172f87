import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api.middleware import RequestLogMiddleware
from .api.router import api_router
from .config import settings
from .exceptions import BridgeError, InternalFailure
from .logger import get_logger, setup_logger
from .services.moodle import MoodleDirectory
from .services.ratelimit import RateLimiter, rules_from_settings

logger = get_logger(__name__)


async def bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = InternalFailure()
    return JSONResponse(status_code=error.status_code, content=error.to_body())


def create_app() -> FastAPI:
    setup_logger()
    app = FastAPI(
        title="Schulportal Bridge",
        version="0.1.0",
        openapi_tags=[
            {"name": "auth", "description": "门户登录与免密续期"},
            {"name": "moodle", "description": "Moodle 单点登录"},
            {"name": "system", "description": "接口元信息"},
        ],
    )

    # 限流窗口是进程内唯一的共享状态，挂在 app 上注入给路由
    app.state.rate_limiter = RateLimiter(
        rules_from_settings(settings.RATE_LIMITS),
        prune_every=settings.RATE_LIMIT_PRUNE_EVERY,
    )
    app.state.moodle_directory = MoodleDirectory()
    if not settings.SPH_PUBLIC_KEY:
        logger.warning("SPH_PUBLIC_KEY is not set, legacy login requests will be answered with 503")

    app.add_middleware(RequestLogMiddleware)
    app.add_exception_handler(BridgeError, bridge_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api_router, prefix="/api")

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "schulportal_bridge.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        access_log=False,
    )


if __name__ == "__main__":
    main()
