"""HTTP middleware stack for the CodesRock API."""

from fastapi import FastAPI

from codesrock.config import Settings
from codesrock.middleware.cors import setup_cors
from codesrock.middleware.error_handler import setup_error_handlers
from codesrock.middleware.logging import setup_logging
from codesrock.middleware.rate_limit import RateLimitMiddleware
from codesrock.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install logging, error envelopes and middleware on ``app``.

    Starlette runs the last added outermost, so CORS wraps the rate limiter
    and a 429 still reaches the teacher dashboard with CORS headers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
