from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response

from injection_rotation import __version__
from injection_rotation.core.db import check_db_health

router = APIRouter()

_start_time = datetime.now(timezone.utc)


def _uptime_seconds() -> float:
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


@router.api_route("/", methods=["GET", "HEAD"], summary="Liveness probe", response_model=None)
async def health(request: Request):
    if request.method == "HEAD":
        return Response(status_code=200)
    return {"ok": True}


@router.get("/full", summary="Full health check")
def full_health() -> dict:
    return {
        "ok": True,
        "uptime_seconds": _uptime_seconds(),
        "version": __version__,
        "storage": check_db_health(),
    }
