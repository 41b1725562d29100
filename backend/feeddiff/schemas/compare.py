from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional, Union
from datetime import datetime

from feeddiff.core.config import settings
from feeddiff.services.comparison import ComparisonReport, KeyComparison
from feeddiff.utils.json_diff import DiffStatus, sort_array_values
from feeddiff.utils.values import ABSENT, is_array


def _display(value: Any) -> Any:
    """Response value; arrays in canonical order so both sides line up."""
    if value is ABSENT:
        return None
    if is_array(value):
        return sort_array_values(value)
    return value


class CompareRequest(BaseModel):
    """Two responses for the same logical query."""
    left: Any
    right: Any
    ignored_keys: List[str] = Field(default_factory=list)
    key_paths: Optional[List[str]] = Field(
        None, description="Key paths to classify; defaults to every leaf path of both sides"
    )
    max_count: int = Field(
        default_factory=lambda: settings.DEFAULT_MAX_DIFF_COUNT, ge=1, le=100000
    )
    endpoint: Optional[str] = Field(
        None, min_length=1, max_length=500, description="When set, the comparison is logged"
    )
    timestamp: Optional[datetime] = None


class CompareFinding(BaseModel):
    """Classification of a single key path."""
    path: str
    status: DiffStatus
    left_value: Any = None
    right_value: Any = None
    left_present: bool
    right_present: bool

    @classmethod
    def from_comparison(cls, item: KeyComparison) -> "CompareFinding":
        return cls(
            path=item.path,
            status=item.status,
            left_value=_display(item.left_value),
            right_value=_display(item.right_value),
            left_present=item.left_value is not ABSENT,
            right_present=item.right_value is not ABSENT,
        )


class CompareResponse(BaseModel):
    """Response model for a tree comparison."""
    equal: bool
    difference_count: int
    capped: bool = Field(False, description="Counting stopped at max_count")
    findings: List[CompareFinding]
    summary: Dict[str, int] = Field(
        default_factory=lambda: {status.value: 0 for status in DiffStatus}
    )
    request_id: Optional[int] = None

    @classmethod
    def from_report(cls, report: ComparisonReport, request_id: Optional[int] = None) -> "CompareResponse":
        return cls(
            equal=report.equal,
            difference_count=report.difference_count,
            capped=report.capped,
            findings=[CompareFinding.from_comparison(item) for item in report.findings],
            summary=report.summary,
            request_id=request_id,
        )


class PathLookupRequest(BaseModel):
    tree: Any
    path: str = Field("", description="Path such as 'trip.stops[1].id'; empty for the root")
    strict: bool = Field(False, description="Answer 404 with the failing prefix when not present")


class PathLookupResponse(BaseModel):
    path: str
    tokens: List[Union[int, str]]
    present: bool
    value: Any = None
