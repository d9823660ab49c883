"""Service status routes"""
from fastapi import APIRouter, Request

router = APIRouter(tags=["static"])


@router.get("/health")
async def health(request: Request):
    """Root endpoint to verify the app is running"""
    capabilities = request.app.state.style_writer.capabilities
    return {
        "message": "voicestyle API is running",
        "endpoints": ["/onboarding/business-type", "/onboarding/style/{email}"],
        "pending_style_migrations": capabilities.pending_migrations(),
    }
