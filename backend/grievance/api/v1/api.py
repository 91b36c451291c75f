from fastapi import APIRouter

from grievance.api.v1.endpoints import complaints, roles

# Create the main API router
router = APIRouter()

router.include_router(complaints.router, prefix="/complaints", tags=["complaints"])
router.include_router(roles.router, prefix="/roles", tags=["roles"])
