from __future__ import annotations

from fastapi import HTTPException

from clinic_stock.services.forms import SubmissionBlocked
from clinic_stock.services.upstream import UpstreamError


def blocked_to_http(exc: SubmissionBlocked) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={
            "message": exc.message,
            "errors": {str(i): msg for i, msg in sorted(exc.errors.items())},
        },
    )


def upstream_to_http(exc: UpstreamError) -> HTTPException:
    # document introuvable en amont => 404, le reste => 502
    if exc.status_code == 404:
        return HTTPException(status_code=404, detail=exc.message)
    return HTTPException(status_code=502, detail=f"Inventory API error: {exc.message}")
