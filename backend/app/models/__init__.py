from app.models.analysis import (
    AnalysisRequest,
    AnalysisResult,
    BulkAnalysisRequest,
    LegacyAnalysisRequest,
)
from app.models.report import BrandFolder, ReportFile, ReportFilters, ReportMetadata

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "BulkAnalysisRequest",
    "LegacyAnalysisRequest",
    "BrandFolder",
    "ReportFile",
    "ReportFilters",
    "ReportMetadata",
]
