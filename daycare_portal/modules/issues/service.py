import logging
from datetime import datetime, timezone
from supabase import Client
from daycare_portal.config.settings import settings
from daycare_portal.core.exceptions import NotFound, PortalError, UpstreamFailure
from daycare_portal.modules.issues.schemas import IssueCreate, IssueResponse
from daycare_portal.modules.users.schemas import UserProfile
from typing import List, Optional

logger = logging.getLogger(__name__)


def reporter_line(email: str, profile: Optional[UserProfile] = None) -> str:
    name = profile.display_name if profile and profile.display_name else None
    if name:
        return f"Reported by: {name} <{email}>"
    return f"Reported by: {email}"


class IssueService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.table = settings.issues_table

    def _execute(self, query, failure_message: str):
        try:
            return query.execute()
        except PortalError:
            raise
        except Exception as e:
            logger.error(f"{failure_message}: {e}")
            raise UpstreamFailure(failure_message, details=str(e))

    def create_issue(self, data: IssueCreate, reporter_email: str,
                     reporter_profile: Optional[UserProfile] = None) -> IssueResponse:
        """Create a ticket; the reporter's identity is appended to the description"""
        description = f"{data.description}\n\n{reporter_line(reporter_email, reporter_profile)}"
        result = self._execute(
            self.supabase.table(self.table).insert({
                "issue": data.issue,
                "description": description,
                "resolved": False,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }),
            "Failed to create issue",
        )
        if not result.data:
            raise UpstreamFailure("Failed to create issue")
        issue = IssueResponse(**result.data[0])
        logger.info(f"Issue {issue.id} reported by {reporter_email}")
        return issue

    def list_issues(self, include_resolved: bool = False) -> List[IssueResponse]:
        """List issues newest first, skipping rows with a blank title"""
        query = self.supabase.table(self.table)\
            .select("*")\
            .neq("issue", "")
        if not include_resolved:
            query = query.eq("resolved", False)
        result = self._execute(query.order("created_at", desc=True), "Failed to list issues")
        return [
            IssueResponse(**row)
            for row in result.data or []
            if (row.get("issue") or "").strip()
        ]

    def get_issue(self, issue_id: int) -> IssueResponse:
        result = self._execute(
            self.supabase.table(self.table)
                .select("*")
                .eq("id", issue_id)
                .limit(1),
            "Failed to retrieve issue",
        )
        if not result.data:
            raise NotFound("Issue not found")
        return IssueResponse(**result.data[0])

    def resolve_issue(self, issue_id: int, resolved_by: str) -> IssueResponse:
        """Mark an issue resolved. Already-resolved issues are returned unchanged."""
        issue = self.get_issue(issue_id)
        if issue.resolved:
            return issue
        result = self._execute(
            self.supabase.table(self.table)
                .update({"resolved": True})
                .eq("id", issue_id),
            "Failed to resolve issue",
        )
        if not result.data:
            raise NotFound("Issue not found")
        logger.info(f"Issue {issue_id} resolved by {resolved_by}")
        return IssueResponse(**result.data[0])
