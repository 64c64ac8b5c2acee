"""Voice profile endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..models.voice_profile import ProfileSampleRequest
from ..services.auth import JWTBearer, get_org_id
from ..services.voice_profile import VoiceProfileService

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


@router.post("/samples")
async def add_sample(
    request: ProfileSampleRequest,
    current_user: dict = Depends(JWTBearer()),
    org_id: Optional[str] = Depends(get_org_id),
):
    """Fold a writing sample into the caller's voice profile."""
    voice_service = VoiceProfileService()
    contribution = await voice_service.add_sample(current_user["id"], request, org_id)
    return contribution.model_dump(mode="json")


@router.get("/me")
async def get_my_profile(
    current_user: dict = Depends(JWTBearer()),
    org_id: Optional[str] = Depends(get_org_id),
):
    """Profile status and confidence for the caller."""
    voice_service = VoiceProfileService()
    status = await voice_service.get_status(current_user["id"], org_id)
    return status.model_dump(mode="json")
