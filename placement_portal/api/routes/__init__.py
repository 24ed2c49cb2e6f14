"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from placement_portal.api.routes.auth_routes import router as auth_router
from placement_portal.api.routes.drive_routes import router as drive_router
from placement_portal.api.routes.eligibility_routes import router as eligibility_router
from placement_portal.api.routes.registration_routes import router as registration_router
from placement_portal.api.routes.attendance_routes import router as attendance_router
from placement_portal.api.routes.analytics_routes import router as analytics_router
from placement_portal.api.routes.job_routes import router as job_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(drive_router)
api_router.include_router(eligibility_router)
api_router.include_router(registration_router)
api_router.include_router(attendance_router)
api_router.include_router(analytics_router)
api_router.include_router(job_router)
