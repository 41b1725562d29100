from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional
from datetime import datetime, timezone

from feeddiff.models.keylog import KeyLog, RequestLog
from feeddiff.services.keylog_store import FindingEntry, KeyFinding, decode_value
from feeddiff.utils.values import ABSENT


def _as_utc(v):
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class KeyFindingIn(BaseModel):
    """One tracked key path; an omitted value means "not present"."""

    path: str = Field(..., min_length=1, max_length=1000)
    left_value: Any = None
    right_value: Any = None

    def _value(self, name: str) -> Any:
        return getattr(self, name) if name in self.model_fields_set else ABSENT

    def to_finding(self) -> KeyFinding:
        return KeyFinding(self.path, self._value("left_value"), self._value("right_value"))

    def to_entry(self, timestamp: datetime, endpoint: str) -> FindingEntry:
        return FindingEntry(
            timestamp, endpoint, self.path, self._value("left_value"), self._value("right_value")
        )


class KeyLogBatchCreate(BaseModel):
    """Batch submission; both responses present means a request is logged too."""

    endpoint: str = Field(..., min_length=1, max_length=500)
    timestamp: datetime
    keys: List[KeyFindingIn]
    response_left: Any = None
    response_right: Any = None

    @property
    def has_responses(self) -> bool:
        return {"response_left", "response_right"} <= self.model_fields_set


class KeyLogBatchResponse(BaseModel):
    success: bool = True
    count: int
    request_id: Optional[int] = None


class KeyLogResponse(BaseModel):
    id: int
    request_id: Optional[int] = None
    timestamp: datetime
    endpoint: str
    key_path: str
    left_value: Any = None
    right_value: Any = None
    left_present: bool
    right_present: bool
    created_at: Optional[datetime] = None

    @field_validator("timestamp", "created_at")
    @classmethod
    def attach_utc(cls, v):
        return _as_utc(v)

    @classmethod
    def from_record(cls, record: KeyLog) -> "KeyLogResponse":
        left = decode_value(record.left_value)
        right = decode_value(record.right_value)
        return cls(
            id=record.id,
            request_id=record.request_id,
            timestamp=record.timestamp,
            endpoint=record.endpoint,
            key_path=record.key_path,
            left_value=None if left is ABSENT else left,
            right_value=None if right is ABSENT else right,
            left_present=left is not ABSENT,
            right_present=right is not ABSENT,
            created_at=record.created_at,
        )


class KeyLogListResponse(BaseModel):
    items: List[KeyLogResponse]
    count: int


class RequestLogResponse(BaseModel):
    id: int
    timestamp: datetime
    endpoint: str
    response_left: Any = None
    response_right: Any = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("timestamp", "created_at")
    @classmethod
    def attach_utc(cls, v):
        return _as_utc(v)

    @classmethod
    def from_record(cls, record: RequestLog) -> "RequestLogResponse":
        left = decode_value(record.response_left)
        right = decode_value(record.response_right)
        return cls(
            id=record.id,
            timestamp=record.timestamp,
            endpoint=record.endpoint,
            response_left=None if left is ABSENT else left,
            response_right=None if right is ABSENT else right,
            created_at=record.created_at,
        )


class EndpointListResponse(BaseModel):
    endpoints: List[str]


class KeyPathListResponse(BaseModel):
    endpoint: str
    key_paths: List[str]


class CountResponse(BaseModel):
    count: int


class PurgeResponse(BaseModel):
    success: bool = True
    deleted: int
