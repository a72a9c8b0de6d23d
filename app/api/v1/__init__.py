"""
API v1 Router

Session endpoints live at the root of /api/v1; resource routers are
scoped to the organization carried by the session token.
"""

from fastapi import APIRouter

from . import apps, auth, organization_users, organizations, users

router = APIRouter()

router.include_router(auth.router, tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(organization_users.router, prefix="/organization_users", tags=["Organization users"])
router.include_router(apps.router, prefix="/apps", tags=["Apps"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/authenticate",
            "/switch/{organizationId}",
            "/signup",
            "/users",
            "/organizations",
            "/organization_users",
            "/apps",
        ],
    }
