"""Brand analysis endpoints: run analyses and manage the stored reports."""

import logging
from datetime import datetime, time as dt_time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from app.models.analysis import AnalysisRequest, BulkAnalysisRequest, LegacyAnalysisRequest
from app.models.report import ReportFilters
from app.security import require_api_key
from app.services.brand_service import BrandAnalysisService, get_brand_service
from app.services.rate_limit import enforce_rate_limit
from app.services.report_store import ReportStore, get_report_store

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(enforce_rate_limit), Depends(require_api_key)])


def _parse_date(value: Optional[str], name: str, end_of_day: bool = False) -> Optional[datetime]:
    """ISO date or datetime as naive local time; a bare upper-bound date covers the whole day."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail={"error": "Validation error", "message": f"{name} must be an ISO 8601 date or datetime"},
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    if end_of_day and "T" not in value and " " not in value.strip():
        parsed = datetime.combine(parsed.date(), dt_time.max)
    return parsed


@router.post("")
async def analyze_brand(
    request: LegacyAnalysisRequest,
    service: BrandAnalysisService = Depends(get_brand_service),
):
    """Run an analysis from the legacy body (brand name, website, priority)."""
    result = await service.analyze(request.to_analysis_request())
    return {"success": True, "result": result}


@router.post("/comprehensive")
async def analyze_brand_comprehensive(
    request: AnalysisRequest,
    service: BrandAnalysisService = Depends(get_brand_service),
):
    """Run an analysis with competitors, topics, personas and custom prompts."""
    result = await service.analyze(request)
    return {"success": True, "result": result}


@router.post("/bulk")
async def analyze_bulk(
    request: BulkAnalysisRequest,
    service: BrandAnalysisService = Depends(get_brand_service),
):
    """Analyze up to 10 brands sequentially."""
    data = await service.analyze_bulk(request.brands)
    return {"success": True, "data": data}


@router.get("/brands")
async def list_brands(store: ReportStore = Depends(get_report_store)):
    brands = store.list_brands()
    data = []
    for brand in brands:
        entry = brand.to_dict()
        entry.pop("folderPath")
        data.append(entry)
    return {"success": True, "data": data, "total": len(data)}


@router.get("/files")
@router.get("/reports")
async def list_files(
    brand_name: Optional[str] = Query(None, alias="brandName"),
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    store: ReportStore = Depends(get_report_store),
):
    """List reports, newest first, with brand and date filters."""
    filters = ReportFilters(
        brand_name=brand_name,
        from_date=_parse_date(from_date, "fromDate"),
        to_date=_parse_date(to_date, "toDate", end_of_day=True),
    )
    reports = store.list_reports(filters)
    page = reports[offset:offset + limit]
    return {
        "success": True,
        "data": [r.to_dict() for r in page],
        "pagination": {
            "total": len(reports),
            "limit": limit,
            "offset": offset,
            "hasMore": offset + limit < len(reports),
        },
    }


@router.get("/files/{file_name}")
async def get_file(
    file_name: str,
    brand_folder: Optional[str] = Query(None, alias="brandFolder"),
    store: ReportStore = Depends(get_report_store),
):
    report = store.locate(file_name, brand_folder)
    content = store.read(report.file_name, report.brand_folder)
    return {"success": True, "data": {**report.to_dict(), "content": content}}


@router.get("/files/{file_name}/download")
async def download_file(
    file_name: str,
    brand_folder: Optional[str] = Query(None, alias="brandFolder"),
    store: ReportStore = Depends(get_report_store),
):
    content = store.read(file_name, brand_folder)
    return PlainTextResponse(
        content,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.delete("/files/{file_name}")
async def delete_file(
    file_name: str,
    brand_folder: Optional[str] = Query(None, alias="brandFolder"),
    store: ReportStore = Depends(get_report_store),
):
    store.delete(file_name, brand_folder)
    return {"success": True, "message": "File deleted successfully", "fileName": file_name}


@router.get("/statistics")
async def get_statistics(store: ReportStore = Depends(get_report_store)):
    return {"success": True, "data": store.statistics()}


@router.get("/help")
async def get_help():
    """Describe the analysis endpoints."""
    return {
        "success": True,
        "service": "Brand visibility analysis",
        "authentication": "Authorization: Bearer <key> or x-api-key: <key>",
        "endpoints": {
            "POST /api/analysis": "Legacy analysis: brandName, websiteUrl, priority, includeHistory, metadata",
            "POST /api/analysis/comprehensive": (
                "Full analysis: brandName, websiteUrl, email, competitors (max 5), topics (max 4), "
                "prompts (max 4, 10-500 chars), personas (max 1000 chars), priority, metadata"
            ),
            "POST /api/analysis/bulk": "Analyze up to 10 brands sequentially: {brands: [...]}",
            "GET /api/analysis/brands": "Brand folders with file counts and sizes",
            "GET /api/analysis/files": "Reports; query brandName, fromDate, toDate, limit (1-500), offset",
            "GET /api/analysis/files/{fileName}": "Report metadata and content; query brandFolder",
            "GET /api/analysis/files/{fileName}/download": "Report as a text/plain attachment",
            "DELETE /api/analysis/files/{fileName}": "Delete a report; query brandFolder",
            "GET /api/analysis/statistics": "File and brand totals",
        },
    }
