"""Audit trail schemas."""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AuditAction = Literal["create", "update", "delete"]
AuditResourceType = Literal["tag", "tagging"]


class AuditEvent(BaseModel):
    """A mutation to record."""

    organization_id: str
    user_id: Optional[str] = None
    action: AuditAction
    resource_type: AuditResourceType
    resource_id: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None


class AuditLogFilters(BaseModel):
    actions: Optional[List[AuditAction]] = None
    resource_types: Optional[List[AuditResourceType]] = None
    user_id: Optional[str] = None
    resource_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    created_at: datetime


class AuditLogPage(BaseModel):
    logs: List[AuditLogRead]
    total: int
    page: int
    limit: int = Field(..., ge=1)
