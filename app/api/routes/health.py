from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check.

    Also reports whether the background rate limit ticker is running, since
    window resets depend on it between requests.
    """

    ticker = getattr(request.app.state, "rate_limit_ticker", None)
    return {
        "status": "ok",
        "rate_limit_ticker": "running" if ticker is not None and ticker.running else "stopped",
    }
