from pydantic import BaseModel, Field
from typing import Generic, List, TypeVar, Optional, Any, Dict

DataType = TypeVar("DataType")
T = TypeVar("T")

class APIResponse(BaseModel, Generic[DataType]):
    """Envelope returned by every ledger endpoint."""
    message: str = Field(..., description="A human-readable message about the response.")
    data: Optional[DataType] = Field(None, description="The payload, if any.")

class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    total: int
    skip: int
    limit: int
    has_next: bool

class ErrorDetail(BaseModel):
    code: str = Field(..., description="Machine-readable error code, e.g. INSUFFICIENT_FUNDS")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")

class ErrorResponse(BaseModel):
    error: ErrorDetail
    timestamp: str = Field(..., description="ISO 8601 timestamp of error")
    path: str = Field(..., description="Request path that caused the error")
    request_id: Optional[str] = Field(None, description="Request identifier, matches the X-Request-ID header")
