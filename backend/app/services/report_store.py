"""Plain-text report files organised in one folder per brand."""

import json
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Request

from app.errors import InvalidReportNameError, ReportNotFoundError, ReportStoreError
from app.models.report import BrandFolder, ReportFile, ReportFilters, ReportMetadata

logger = logging.getLogger(__name__)

MAX_TOKEN_LENGTH = 50
FALLBACK_TOKEN = "unnamed_brand"
LEGACY_BRAND = "Legacy"
REPORT_SUFFIX = ".txt"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
RULE = "=" * 80

_DISALLOWED = re.compile(r"[^a-zA-Z0-9\s_-]")
_WHITESPACE = re.compile(r"\s+")
_NAME_TIMESTAMP = re.compile(r"_(\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})_")


def _sanitize_token(name: str) -> str:
    cleaned = _DISALLOWED.sub("", name or "").strip()
    return _WHITESPACE.sub("_", cleaned).lower()[:MAX_TOKEN_LENGTH]


def sanitize_brand_name(brand_name: str) -> str:
    """Folder-safe token: ascii letters, digits, '_' and '-', lowercase, at most 50 chars."""
    return _sanitize_token(brand_name) or FALLBACK_TOKEN


def _check_name(name: str, what: str) -> None:
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise InvalidReportNameError(f"Invalid {what}: {name!r}")


def _created_from_name(file_name: str, fallback: datetime) -> datetime:
    match = _NAME_TIMESTAMP.search(file_name)
    if match:
        try:
            return datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
        except ValueError:
            pass
    return fallback


def _created_of(stat: os.stat_result) -> datetime:
    return datetime.fromtimestamp(getattr(stat, "st_birthtime", stat.st_ctime))


def _or_default(value, default: str) -> str:
    return value if value else default


class ReportStore:
    """Saves, lists, reads and deletes reports below one root directory.

    Nothing is indexed: every query walks the root again, one level deep.
    """

    def __init__(self, root: Path, app_name: str = "Geo Analysis Service", app_version: str = "1.0.0"):
        self.root = Path(root)
        self.app_name = app_name
        self.app_version = app_version

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def ensure_brand_folder(self, brand_name: str) -> Path:
        folder = self.root / sanitize_brand_name(brand_name)
        try:
            if folder.is_dir():
                logger.debug(f"[Reports] Using existing brand folder: {folder.name}")
            else:
                folder.mkdir(parents=True, exist_ok=True)
                logger.info(f"[Reports] Created brand folder: {folder.name}")
        except OSError as e:
            logger.error(f"[Reports] Failed to create brand folder for '{brand_name}': {e}")
            raise ReportStoreError(f"Failed to create brand folder: {e}") from e
        return folder

    @staticmethod
    def build_file_name(brand_name: str, request_id: str, when: datetime) -> str:
        short_id = request_id.split("-")[0]
        return f"{sanitize_brand_name(brand_name)}_analysis_{when.strftime(TIMESTAMP_FORMAT)}_{short_id}{REPORT_SUFFIX}"

    def render_report(self, brand_name: str, text: str, metadata: ReportMetadata) -> str:
        """Header, generated analysis and footer as one text blob."""
        generated = metadata.generated_at.strftime("%Y-%m-%d %H:%M:%S")
        website = _or_default(metadata.website_url, "Not provided")
        contact = _or_default(metadata.email, "Not provided")
        analysis_date = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        footer_contact = _or_default(metadata.email, "client")
        competitors = (
            f"- Competitors Analyzed: {', '.join(metadata.competitors)}"
            if metadata.competitors else "- Competitors: AI-Generated List"
        )
        personas = (
            f"- Target Personas: {metadata.personas}"
            if metadata.personas else "- Target Personas: AI-Generated"
        )
        topics = (
            f"- Key Topics: {', '.join(metadata.topics)}"
            if metadata.topics else "- Key Topics: AI-Generated"
        )
        prompts = (
            f"- Custom Prompts: {len(metadata.prompts)} provided"
            if metadata.prompts else "- Prompts: AI-Generated"
        )

        header = f"""AI/LLM BRAND VISIBILITY AUDIT REPORT
{RULE}

BRAND: {brand_name}
WEBSITE: {website}
CONTACT: {contact}
GENERATED: {generated}
REQUEST ID: {metadata.request_id}

ANALYSIS PARAMETERS:
- AI Model: {metadata.model}
- Processing Time: {metadata.processing_time_ms}ms
- Tokens Used: {metadata.tokens_used}
- Input Tokens: {metadata.input_tokens}
- Output Tokens: {metadata.output_tokens}
- Response Length: {metadata.response_length} characters
- Analysis Quality: {metadata.quality}

CLIENT SPECIFICATIONS:
{competitors}
{personas}
{topics}
{prompts}

{RULE}
COMPREHENSIVE ANALYSIS RESULTS
{RULE}

"""
        footer = f"""

{RULE}
END OF ANALYSIS
{RULE}

Report generated by {self.app_name}
For questions or clarifications, contact: {footer_contact}
Analysis Date: {analysis_date}
Service Version: {self.app_version}"""
        return header + text + footer

    def save(self, brand_name: str, text: str, metadata: ReportMetadata) -> Path:
        """Write a new report and return its path. Never overwrites an existing file."""
        folder = self.ensure_brand_folder(brand_name)
        file_name = self.build_file_name(brand_name, metadata.request_id, metadata.generated_at)
        path = folder / file_name
        content = self.render_report(brand_name, text, metadata)
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError as e:
            logger.error(f"[Reports] Refusing to overwrite existing report: {file_name}")
            raise ReportStoreError(f"Report file already exists: {file_name}") from e
        except OSError as e:
            logger.error(f"[Reports] Failed to save report {file_name} (request {metadata.request_id}): {e}")
            raise ReportStoreError(f"Failed to save report: {e}") from e

        logger.info(f"[Reports] Saved {file_name} to brand folder {folder.name} ({len(content)} chars)")
        return path

    def save_error_report(self, brand_name: str, request_id: str, payload: Dict[str, Any]) -> Optional[Path]:
        """Best effort JSON record of a failed analysis; write failures are only logged."""
        token = sanitize_brand_name(brand_name)
        when = datetime.now()
        file_name = f"ERROR_{token}_{when.strftime(TIMESTAMP_FORMAT)}_{request_id.split('-')[0]}.json"
        try:
            folder = self.ensure_brand_folder(brand_name)
            path = folder / file_name
            path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        except (OSError, ReportStoreError) as e:
            logger.error(f"[Reports] Failed to save error report for request {request_id}: {e}")
            return None
        logger.info(f"[Reports] Saved error report {file_name}")
        return path

    def _report_file(self, path: Path, brand_name: str, brand_folder: Optional[str]) -> Optional[ReportFile]:
        try:
            stat = path.stat()
        except OSError as e:
            logger.warning(f"[Reports] Failed to stat {path.name}: {e}")
            return None
        modified = datetime.fromtimestamp(stat.st_mtime)
        return ReportFile(
            file_name=path.name,
            file_path=path,
            brand_name=brand_name,
            brand_folder=brand_folder,
            size=stat.st_size,
            created=_created_from_name(path.name, modified),
            modified=modified,
        )

    def _folder_reports(self, folder: Path) -> List[ReportFile]:
        reports = []
        try:
            entries = sorted(folder.iterdir())
        except OSError as e:
            logger.error(f"[Reports] Failed to list brand folder {folder.name}: {e}")
            return reports
        for entry in entries:
            if entry.suffix == REPORT_SUFFIX and entry.is_file():
                report = self._report_file(entry, folder.name, folder.name)
                if report:
                    reports.append(report)
        return reports

    def _scan(self) -> List[ReportFile]:
        if not self.root.is_dir():
            return []
        reports = []
        for entry in sorted(self.root.iterdir()):
            if entry.is_dir():
                reports.extend(self._folder_reports(entry))
            elif entry.suffix == REPORT_SUFFIX and entry.is_file():
                report = self._report_file(entry, LEGACY_BRAND, None)
                if report:
                    reports.append(report)
        return reports

    @staticmethod
    def _matches_brand(report: ReportFile, needle: str) -> bool:
        lowered = needle.strip().lower()
        if lowered and lowered in report.brand_name.lower():
            return True
        token = _sanitize_token(needle)
        return bool(token) and report.brand_folder is not None and token in report.brand_folder

    def list_reports(self, filters: Optional[ReportFilters] = None) -> List[ReportFile]:
        """All reports, newest first, narrowed by brand and inclusive creation-date bounds."""
        reports = self._scan()
        if filters:
            if filters.brand_name:
                reports = [r for r in reports if self._matches_brand(r, filters.brand_name)]
            if filters.from_date:
                reports = [r for r in reports if r.created >= filters.from_date]
            if filters.to_date:
                reports = [r for r in reports if r.created <= filters.to_date]
        reports.sort(key=lambda r: r.created, reverse=True)
        return reports

    def list_brands(self) -> List[BrandFolder]:
        """Brand folders with aggregates, most recently modified first."""
        if not self.root.is_dir():
            return []
        brands = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir():
                continue
            try:
                stat = entry.stat()
            except OSError as e:
                logger.warning(f"[Reports] Failed to stat brand folder {entry.name}: {e}")
                continue
            reports = self._folder_reports(entry)
            last_modified = (
                max(r.modified for r in reports) if reports else datetime.fromtimestamp(stat.st_mtime)
            )
            brands.append(BrandFolder(
                brand_name=entry.name,
                folder_path=entry,
                file_count=len(reports),
                total_size=sum(r.size for r in reports),
                last_modified=last_modified,
                created=_created_of(stat),
            ))
        brands.sort(key=lambda b: b.last_modified, reverse=True)
        return brands

    def locate(self, file_name: str, brand_folder: Optional[str] = None) -> ReportFile:
        """Find one report; without a brand folder the first match of a full scan wins."""
        _check_name(file_name, "file name")
        if not file_name.endswith(REPORT_SUFFIX):
            raise InvalidReportNameError(f"Invalid file name: {file_name!r}")

        if brand_folder:
            _check_name(brand_folder, "brand folder")
            path = self.root / brand_folder / file_name
            report = self._report_file(path, brand_folder, brand_folder) if path.is_file() else None
            if report is None:
                raise ReportNotFoundError(file_name, brand_folder)
            return report

        for report in self._scan():
            if report.file_name == file_name:
                return report
        raise ReportNotFoundError(file_name)

    def read(self, file_name: str, brand_folder: Optional[str] = None) -> str:
        report = self.locate(file_name, brand_folder)
        try:
            return report.file_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ReportNotFoundError(file_name, brand_folder) from e

    def delete(self, file_name: str, brand_folder: Optional[str] = None) -> ReportFile:
        """Remove a report. An emptied brand folder is left in place."""
        report = self.locate(file_name, brand_folder)
        try:
            report.file_path.unlink()
        except FileNotFoundError as e:
            raise ReportNotFoundError(file_name, brand_folder) from e
        where = f" from brand {report.brand_folder}" if report.brand_folder else ""
        logger.info(f"[Reports] Deleted {file_name}{where}")
        return report

    def statistics(self) -> Dict[str, Any]:
        """Totals over the whole tree, recomputed on every call."""
        files = self.list_reports()
        brands = self.list_brands()
        total_size = sum(f.size for f in files)
        return {
            "totalFiles": len(files),
            "totalBrands": len(brands),
            "totalSize": total_size,
            "averageSize": round(total_size / len(files)) if files else 0,
            "latestFile": files[0].file_name if files else None,
            "oldestFile": files[-1].file_name if files else None,
            "brandBreakdown": [
                {"brandName": b.brand_name, "fileCount": b.file_count, "totalSize": b.total_size}
                for b in brands
            ],
        }


def get_report_store(request: Request) -> ReportStore:
    """Dependency to get the report store built at startup."""
    return request.app.state.report_store
