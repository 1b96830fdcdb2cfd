"""Report files on disk and the metadata rendered into them."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ReportFile:
    """One .txt report found while scanning the report root."""
    file_name: str
    file_path: Path
    brand_name: str
    brand_folder: Optional[str]  # None for legacy files in the root
    size: int
    created: datetime
    modified: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileName": self.file_name,
            "filePath": str(self.file_path),
            "brandName": self.brand_name,
            "brandFolder": self.brand_folder,
            "size": self.size,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
        }


@dataclass(frozen=True)
class BrandFolder:
    brand_name: str
    folder_path: Path
    file_count: int
    total_size: int
    last_modified: datetime
    created: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brandName": self.brand_name,
            "folderPath": str(self.folder_path),
            "fileCount": self.file_count,
            "totalSize": self.total_size,
            "lastModified": self.last_modified.isoformat(),
            "created": self.created.isoformat(),
        }


@dataclass
class ReportFilters:
    brand_name: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None


@dataclass
class ReportMetadata:
    """Everything the report header and footer print besides the brand name."""
    request_id: str
    generated_at: datetime
    model: str
    processing_time_ms: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    response_length: int = 0
    quality: str = "STANDARD"
    website_url: Optional[str] = None
    email: Optional[str] = None
    competitors: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    personas: str = ""
    prompts: List[str] = field(default_factory=list)

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens
