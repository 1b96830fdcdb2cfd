"""Runs one brand analysis end to end: prompt, LLM call, saved report."""

import logging
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List

from fastapi import Request

from app.errors import UpstreamError
from app.models.analysis import AnalysisRequest
from app.models.report import ReportMetadata
from app.prompts.brand_prompt import render_prompt
from app.services.llm_provider import LLMProviderService
from app.services.report_store import ReportStore

logger = logging.getLogger(__name__)


class BrandAnalysisService:
    def __init__(self, llm: LLMProviderService, store: ReportStore, save_error_reports: bool = False):
        self.llm = llm
        self.store = store
        self.save_error_reports = save_error_reports

    async def analyze(self, request: AnalysisRequest) -> Dict[str, Any]:
        """Generate and store the report for one brand.

        Upstream errors propagate unchanged and no report file is written.
        """
        request_id = str(uuid.uuid4())
        started = time.perf_counter()
        logger.info(f"[Brand] Starting analysis {request_id} for '{request.brand_name}' (priority {request.priority})")

        prompt = render_prompt(request)
        try:
            result = await self.llm.generate(prompt)
        except UpstreamError as e:
            elapsed = int((time.perf_counter() - started) * 1000)
            logger.error(f"[Brand] Analysis {request_id} for '{request.brand_name}' failed after {elapsed}ms: {e}")
            if self.save_error_reports:
                self.store.save_error_report(request.brand_name, request_id, {
                    "requestId": request_id,
                    "brandName": request.brand_name,
                    "success": False,
                    "error": {
                        "message": e.message,
                        "type": e.kind,
                        "provider": e.provider,
                        "timestamp": datetime.now().isoformat(),
                    },
                    "metadata": {
                        "totalProcessingTime": elapsed,
                        "createdAt": datetime.now().isoformat(),
                        "priority": request.priority,
                        "metadata": request.metadata,
                    },
                })
            raise

        generated_at = datetime.now()
        metadata = ReportMetadata(
            request_id=request_id,
            generated_at=generated_at,
            model=result.model,
            processing_time_ms=result.processing_time_ms,
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            response_length=result.response_length,
            quality=result.quality,
            website_url=request.website_url,
            email=request.email,
            competitors=list(request.competitors),
            topics=list(request.topics),
            personas=request.personas,
            prompts=list(request.prompts),
        )
        path = self.store.save(request.brand_name, result.text, metadata)
        total_time = int((time.perf_counter() - started) * 1000)

        logger.info(
            f"[Brand] Analysis {request_id} for '{request.brand_name}' completed in {total_time}ms, "
            f"{result.total_tokens} tokens, saved as {path.name}"
        )
        return {
            "requestId": request_id,
            "brandName": request.brand_name,
            "brandFolder": path.parent.name,
            "fileName": path.name,
            "filePath": str(path),
            "websiteUrl": request.website_url,
            "email": request.email,
            "analysis": result.text,
            "metadata": {
                "model": result.model,
                "provider": result.provider,
                "inputTokens": result.input_tokens,
                "outputTokens": result.output_tokens,
                "tokensUsed": result.total_tokens,
                "processingTime": result.processing_time_ms,
                "totalProcessingTime": total_time,
                "responseLength": result.response_length,
                "stopReason": result.stop_reason,
                "completionRequested": result.completion_requested,
                "analysisQuality": result.quality,
                "createdAt": generated_at.isoformat(),
            },
        }

    async def analyze_bulk(self, brands: List[str]) -> Dict[str, Any]:
        """Analyze brands one after another; a failing brand does not stop the rest."""
        successful = []
        failed = []
        logger.info(f"[Brand] Bulk analysis of {len(brands)} brands")

        for brand_name in brands:
            try:
                result = await self.analyze(AnalysisRequest(brand_name=brand_name))
            except Exception as e:
                logger.warning(f"[Brand] Bulk item '{brand_name}' failed: {e}")
                failed.append({
                    "brandName": brand_name,
                    "error": getattr(e, "message", str(e)),
                    "type": getattr(e, "kind", type(e).__name__),
                })
            else:
                successful.append({
                    "brandName": brand_name,
                    "requestId": result["requestId"],
                    "fileName": result["fileName"],
                    "brandFolder": result["brandFolder"],
                    "tokensUsed": result["metadata"]["tokensUsed"],
                })

        logger.info(f"[Brand] Bulk analysis done: {len(successful)} succeeded, {len(failed)} failed")
        return {
            "successful": successful,
            "failed": failed,
            "summary": {
                "total": len(brands),
                "successful": len(successful),
                "failed": len(failed),
            },
        }


def get_brand_service(request: Request) -> BrandAnalysisService:
    """Dependency to get the analysis orchestrator built at startup."""
    return request.app.state.brand_service
