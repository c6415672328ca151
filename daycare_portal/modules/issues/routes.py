from fastapi import APIRouter, Depends, Query
from daycare_portal.core.dependencies import get_current_user, get_user_service, require_issue_manager
from daycare_portal.database.supabase_client import get_supabase
from daycare_portal.modules.issues.schemas import (
    IssueCreate, IssueEnvelope, IssueListResponse
)
from daycare_portal.modules.issues.service import IssueService
from daycare_portal.modules.users.service import UserService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/issues", tags=["issues"])


def get_issue_service(supabase: Client = Depends(get_supabase)) -> IssueService:
    return IssueService(supabase)


@router.post("", response_model=IssueEnvelope, status_code=201)
async def report_issue(
    issue_data: IssueCreate,
    current_user: Dict = Depends(get_current_user),
    service: IssueService = Depends(get_issue_service),
    users: UserService = Depends(get_user_service)
):
    """Submit an IT ticket (any authenticated user)"""
    reporter = users.find_by_uid(current_user["uid"])
    issue = service.create_issue(issue_data, current_user["email"], reporter)
    return IssueEnvelope(message="Issue reported successfully", issue=issue)


@router.get("", response_model=IssueListResponse)
async def list_issues(
    include_resolved: bool = Query(False, alias="includeResolved"),
    user_data: Dict = Depends(require_issue_manager),
    service: IssueService = Depends(get_issue_service)
):
    """List open issues, or all issues with includeResolved=true (IT or Admin)"""
    issues = service.list_issues(include_resolved=include_resolved)
    return IssueListResponse(issues=issues, count=len(issues))


@router.put("/{issue_id}/resolve", response_model=IssueEnvelope)
async def resolve_issue(
    issue_id: int,
    user_data: Dict = Depends(require_issue_manager),
    service: IssueService = Depends(get_issue_service)
):
    """Mark an issue resolved (IT or Admin)"""
    issue = service.resolve_issue(issue_id, resolved_by=user_data["uid"])
    return IssueEnvelope(message="Issue resolved", issue=issue)
