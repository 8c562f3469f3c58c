"""Tag and tagging endpoints."""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tagging_service.core.auth import Principal, get_current_principal
from tagging_service.core.errors import TagNotFoundError
from tagging_service.db.session import get_async_session
from tagging_service.repositories import TagRepository
from tagging_service.schemas import (
    AuditLogFilters,
    AuditLogPage,
    AuditLogRead,
    BulkTagging,
    PropagationOutcome,
    TagAnalytics,
    TaggableType,
    TagCreate,
    TagFilters,
    TaggingRead,
    TaggingRequest,
    TagNode,
    TagRead,
    TagSuggestion,
    TagUpdate,
    TagValidationRule,
    ValidationResult,
)
from tagging_service.schemas.audit import AuditAction, AuditResourceType
from tagging_service.schemas.tag import COLOR_PATTERN
from tagging_service.services import (
    AnalyticsService,
    AuditService,
    SuggestionService,
    TagService,
    ValidationService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tags")
resources_router = APIRouter(prefix="/resources")


class TagCreateRequest(BaseModel):
    """Tag creation payload; organization and author come from the token."""

    name: str = Field(..., min_length=1, max_length=100)
    parent_id: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    description: Optional[str] = Field(default=None, max_length=500)


class BulkTagRequest(BaseModel):
    tag_ids: List[str] = Field(..., min_length=1)
    taggable_type: TaggableType
    taggable_ids: List[str] = Field(..., min_length=1)


class SetResourceTagsRequest(BaseModel):
    tag_ids: List[str] = Field(default_factory=list)


class SuggestRequest(BaseModel):
    content: str
    taggable_type: TaggableType
    use_context: bool = True


class ValidateRequest(BaseModel):
    request: TaggingRequest
    rules: List[TagValidationRule]


class ResourceIdsResponse(BaseModel):
    taggable_type: TaggableType
    taggable_ids: List[str]


async def ensure_tag_in_organization(session: AsyncSession, tag_id: str, principal: Principal) -> None:
    """Hide tags of other organizations behind a 404."""
    if not await TagRepository(session).get_in_organization(tag_id, principal.organization_id):
        raise TagNotFoundError("Tag not found", details={"tag_id": tag_id})


@router.post("", response_model=TagRead, status_code=status.HTTP_201_CREATED)
async def create_tag(
    payload: TagCreateRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Create a tag in the caller's organization."""
    data = TagCreate(
        **payload.model_dump(),
        organization_id=principal.organization_id,
        created_by=principal.user_id,
    )
    return await TagService(session).create_tag(data)


@router.get("", response_model=List[TagNode])
async def get_tag_hierarchy(
    parent_id: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    include_children: bool = Query(default=False),
    include_usage: bool = Query(default=False),
    created_by: Optional[str] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """List one level of the tag forest (roots by default)."""
    filters = TagFilters(
        parent_id=parent_id,
        search=search,
        include_children=include_children,
        include_usage=include_usage,
        created_by=created_by,
    )
    return await TagService(session).get_tag_hierarchy(principal.organization_id, filters)


@router.post("/suggestions", response_model=List[TagSuggestion])
async def suggest_tags(
    payload: SuggestRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Suggest tags for a piece of content."""
    return await SuggestionService(session).suggest_tags(
        payload.content,
        payload.taggable_type,
        principal.organization_id,
        user_id=principal.user_id if payload.use_context else None,
    )


@router.post("/validate", response_model=ValidationResult)
async def validate_tagging(
    payload: ValidateRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Check a proposed tagging against organization rules."""
    await ensure_tag_in_organization(session, payload.request.tag_id, principal)
    return await ValidationService(session).validate_tagging(payload.request, payload.rules)


@router.post("/bulk/apply", response_model=List[TaggingRead])
async def bulk_apply_tags(
    payload: BulkTagRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Apply every tag to every resource; failed pairs are skipped."""
    allowed = await TagRepository(session).get_by_ids(payload.tag_ids, principal.organization_id)
    if not allowed:
        return []
    data = BulkTagging(
        tag_ids=[tag.id for tag in allowed],
        taggable_type=payload.taggable_type,
        taggable_ids=payload.taggable_ids,
        tagged_by=principal.user_id,
    )
    return await TagService(session).bulk_apply_tags(data)


@router.post("/bulk/remove", status_code=status.HTTP_204_NO_CONTENT)
async def bulk_remove_tags(
    payload: BulkTagRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Remove every tag from every resource; failed pairs are skipped."""
    allowed = await TagRepository(session).get_by_ids(payload.tag_ids, principal.organization_id)
    if allowed:
        data = BulkTagging(
            tag_ids=[tag.id for tag in allowed],
            taggable_type=payload.taggable_type,
            taggable_ids=payload.taggable_ids,
        )
        await TagService(session).bulk_remove_tags(data, user_id=principal.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/audit-logs", response_model=AuditLogPage)
async def get_audit_logs(
    actions: Optional[List[AuditAction]] = Query(default=None),
    resource_types: Optional[List[AuditResourceType]] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    resource_id: Optional[str] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Page through the organization's tag audit trail."""
    filters = AuditLogFilters(
        actions=actions,
        resource_types=resource_types,
        user_id=user_id,
        resource_id=resource_id,
        start_date=start_date,
        end_date=end_date,
    )
    return await AuditService(session).get_audit_logs(
        principal.organization_id, filters, page=page, limit=limit
    )


@router.get("/{tag_id}", response_model=TagRead)
async def get_tag(
    tag_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    tag = await TagRepository(session).get_in_organization(tag_id, principal.organization_id)
    if not tag:
        raise TagNotFoundError("Tag not found", details={"tag_id": tag_id})
    return tag


@router.patch("/{tag_id}", response_model=TagRead)
async def update_tag(
    tag_id: str,
    payload: TagUpdate,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Rename, recolor, describe or move a tag."""
    await ensure_tag_in_organization(session, tag_id, principal)
    return await TagService(session).update_tag(tag_id, payload, principal.user_id)


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Delete a tag without children or taggings."""
    await ensure_tag_in_organization(session, tag_id, principal)
    await TagService(session).delete_tag(tag_id, principal.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{tag_id}/path", response_model=List[TagRead])
async def get_tag_path(
    tag_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    await ensure_tag_in_organization(session, tag_id, principal)
    return await TagService(session).get_tag_path(tag_id)


@router.get("/{tag_id}/descendants", response_model=List[TagRead])
async def get_tag_descendants(
    tag_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    await ensure_tag_in_organization(session, tag_id, principal)
    return await TagService(session).get_tag_descendants(tag_id)


@router.get("/{tag_id}/history", response_model=List[AuditLogRead])
async def get_tag_change_history(
    tag_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Audit records of one tag, newest first."""
    await ensure_tag_in_organization(session, tag_id, principal)
    return await AuditService(session).get_tag_change_history(tag_id, limit=limit)


@router.post("/{tag_id}/history/{change_id}/rollback", response_model=TagRead)
async def rollback_tag_change(
    tag_id: str,
    change_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Undo one recorded update of a tag."""
    await ensure_tag_in_organization(session, tag_id, principal)
    return await TagService(session).rollback_tag_change(tag_id, change_id, principal.user_id)


@router.get("/{tag_id}/analytics", response_model=TagAnalytics)
async def get_tag_analytics(
    tag_id: str,
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Usage analytics; ``start`` and ``end`` must be given together."""
    await ensure_tag_in_organization(session, tag_id, principal)
    date_range = (start, end) if start and end else None
    return await AnalyticsService(session).get_tag_analytics(tag_id, date_range)


@resources_router.get("/{taggable_type}", response_model=ResourceIdsResponse)
async def get_resources_by_tags(
    taggable_type: TaggableType,
    tag_ids: List[str] = Query(...),
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Resources of one type carrying any of the given tags."""
    taggable_ids = await TagService(session).get_resources_by_tags(
        taggable_type, tag_ids, principal.organization_id
    )
    return ResourceIdsResponse(taggable_type=taggable_type, taggable_ids=taggable_ids)


@resources_router.get("/{taggable_type}/{taggable_id}/tags", response_model=List[TagRead])
async def get_resource_tags(
    taggable_type: TaggableType,
    taggable_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    tags = await TagService(session).get_resource_tags(taggable_type, taggable_id)
    return [tag for tag in tags if tag.organization_id == principal.organization_id]


@resources_router.put("/{taggable_type}/{taggable_id}/tags", response_model=List[TagRead])
async def set_resource_tags(
    taggable_type: TaggableType,
    taggable_id: str,
    payload: SetResourceTagsRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Replace the directly applied tags of a resource."""
    return await TagService(session).set_resource_tags(
        taggable_type,
        taggable_id,
        payload.tag_ids,
        principal.organization_id,
        user_id=principal.user_id,
    )


@resources_router.post(
    "/{taggable_type}/{taggable_id}/tags/{tag_id}",
    response_model=TaggingRead,
    status_code=status.HTTP_201_CREATED,
)
async def apply_tag(
    taggable_type: TaggableType,
    taggable_id: str,
    tag_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Apply a tag (and its ancestors) to a resource."""
    await ensure_tag_in_organization(session, tag_id, principal)
    return await TagService(session).apply_tag(tag_id, taggable_type, taggable_id, principal.user_id)


@resources_router.delete(
    "/{taggable_type}/{taggable_id}/tags/{tag_id}",
    response_model=List[PropagationOutcome],
)
async def remove_tag(
    taggable_type: TaggableType,
    taggable_id: str,
    tag_id: str,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_async_session),
):
    """Remove a tag from a resource; returns the pruning outcomes."""
    await ensure_tag_in_organization(session, tag_id, principal)
    return await TagService(session).remove_tag(tag_id, taggable_type, taggable_id, principal.user_id)
