"""Cross-origin access for the CodesRock teacher dashboard and admin console.

Only the verbs the API routes use are allowed. The request id and rate
limit headers are exposed so the frontends can show them on errors.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codesrock.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"],
    )
