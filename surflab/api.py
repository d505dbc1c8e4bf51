# ABOUTME: JSON API routes for the surf report, history and admin/cron operations
# ABOUTME: Blocking orchestrator calls run in the default executor with an outer timeout

import asyncio
import logging
import time
from datetime import datetime, timezone
from functools import partial
from typing import Any, Optional

from fastapi import APIRouter, Body, Header, Query
from fastapi.responses import JSONResponse

from surflab.config import Config
from surflab.errors import (
    DuplicateReportId, NoDataAvailable, StoreUnavailable, SurfLabError, Unauthorized, UnknownLocation,
)
from surflab.orchestrator import ReportOrchestrator, ServedReport

log = logging.getLogger(__name__)

SERVICE_NAME = "Surf Lab"
SERVICE_VERSION = "2.0.0"

ERROR_STATUS = {
    Unauthorized: 401,
    UnknownLocation: 404,
    DuplicateReportId: 409,
    NoDataAvailable: 503,
    StoreUnavailable: 500,
}


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Pull the token out of an 'Authorization: Bearer <token>' header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def error_response(error: Exception) -> JSONResponse:
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(error, cls)), 500)
    if status >= 500:
        log.error(f"Request failed: {type(error).__name__}: {error}")
    return JSONResponse(
        status_code=status,
        content={
            "error": type(error).__name__,
            "details": str(error),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


async def _run(func, *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


async def serve_current_report(
    orchestrator: ReportOrchestrator, location: Optional[str] = None, timeout: Optional[float] = None,
) -> ServedReport:
    """
    Current report with an outer timeout; past it, whatever is stored.

    Raises:
        SurfLabError: see ReportOrchestrator.get_current_report and emergency_report
    """
    timeout = timeout if timeout is not None else Config.REQUEST_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(_run(orchestrator.get_current_report, location), timeout=timeout)
    except asyncio.TimeoutError:
        log.error(f"Report generation exceeded {timeout}s - serving emergency cache")
        return await _run(orchestrator.emergency_report, location)


def create_router(orchestrator: ReportOrchestrator, request_timeout: Optional[float] = None) -> APIRouter:
    """Build the API routes around one orchestrator instance."""
    timeout = request_timeout if request_timeout is not None else Config.REQUEST_TIMEOUT_SECONDS
    router = APIRouter(prefix="/api")

    @router.get("/surf-report")
    async def get_surf_report(location: Optional[str] = Query(None)):
        started = time.monotonic()
        try:
            served = await serve_current_report(orchestrator, location, timeout)
        except SurfLabError as e:
            return error_response(e)

        elapsed_ms = (time.monotonic() - started) * 1000
        return JSONResponse(
            content=served.to_dict(),
            headers={
                "X-Data-Source": served.source.value,
                "X-Report-Age-Hours": str(served.age_hours),
                "X-Cache-Valid-Until": served.report.cached_until.isoformat(),
                "X-Response-Time": f"{elapsed_ms:.0f}ms",
            },
        )

    @router.get("/surf-report/history")
    async def get_report_history(
        location: Optional[str] = Query(None),
        limit: int = Query(Config.HISTORY_DEFAULT_LIMIT, ge=1, le=Config.HISTORY_MAX_LIMIT),
    ):
        try:
            reports = await _run(orchestrator.get_history, location, limit)
        except SurfLabError as e:
            return error_response(e)
        return {"reports": [r.to_dict() for r in reports], "count": len(reports)}

    async def warm_cache(location: Optional[str], authorization: Optional[str]):
        try:
            result = await _run(orchestrator.warm_refresh, bearer_token(authorization), location)
            upcoming = orchestrator.upcoming_refreshes()
        except SurfLabError as e:
            return error_response(e)
        except Exception as e:
            log.exception("Warm refresh failed unexpectedly")
            return error_response(e)
        return {
            "success": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **result.to_dict(),
            "next_scheduled_runs": upcoming,
        }

    @router.get("/admin/warm-cache")
    async def warm_cache_get(location: Optional[str] = Query(None), authorization: Optional[str] = Header(None)):
        return await warm_cache(location, authorization)

    @router.post("/admin/warm-cache")
    async def warm_cache_post(location: Optional[str] = Query(None), authorization: Optional[str] = Header(None)):
        return await warm_cache(location, authorization)

    @router.post("/admin/clear-cache")
    async def clear_cache(location: Optional[str] = Query(None), authorization: Optional[str] = Header(None)):
        try:
            cleared = await _run(orchestrator.clear_cache, bearer_token(authorization), location)
        except SurfLabError as e:
            return error_response(e)
        return {
            "success": True,
            "cleared": cleared,
            "message": f"Cleared {cleared} cached surf reports",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @router.post("/admin/save-report")
    async def save_report(payload: dict[str, Any] = Body(...), authorization: Optional[str] = Header(None)):
        report_data = payload.get("report")
        try:
            orchestrator.check_auth(bearer_token(authorization))
            if not isinstance(report_data, dict):
                return JSONResponse(status_code=400, content={"error": "Missing report data"})
            report = await _run(orchestrator.save_report, bearer_token(authorization), report_data)
        except ValueError as e:
            return JSONResponse(status_code=400, content={"error": "Invalid report structure", "details": str(e)})
        except SurfLabError as e:
            return error_response(e)
        return {
            "success": True,
            "report_id": report.id,
            "cached_until": report.cached_until.isoformat(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @router.post("/cleanup")
    async def cleanup(location: Optional[str] = Query(None), authorization: Optional[str] = Header(None)):
        try:
            deleted = await _run(orchestrator.cleanup, bearer_token(authorization), location)
        except SurfLabError as e:
            return error_response(e)
        return {"deleted": deleted, "message": f"Cleaned up {deleted} old reports"}

    @router.get("/admin/monitor")
    async def monitor(location: Optional[str] = Query(None), authorization: Optional[str] = Header(None)):
        try:
            status = await _run(orchestrator.cache_status, bearer_token(authorization), location)
        except SurfLabError as e:
            return error_response(e)
        return {"timestamp": datetime.now(timezone.utc).isoformat(), "cache_status": status}

    @router.get("/health")
    async def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
        }

    return router
