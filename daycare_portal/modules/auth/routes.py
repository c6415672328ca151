from fastapi import APIRouter, Depends, Query, Request
from daycare_portal.config import settings
from daycare_portal.core.dependencies import get_admin_auth_service
from daycare_portal.core.rate_limit import limiter
from daycare_portal.modules.auth.schemas import EmailCheckResponse
from daycare_portal.modules.auth.service import AuthService

router = APIRouter(tags=["auth"])


@router.get("/check-email", response_model=EmailCheckResponse)
@limiter.limit(settings.check_email_rate_limit)
async def check_email(
    request: Request,
    email: str = Query(..., min_length=3),
    service: AuthService = Depends(get_admin_auth_service),
):
    """Pre-signup lookup: does an account exist for this email, and with which sign-in methods"""
    return service.check_email(email)
