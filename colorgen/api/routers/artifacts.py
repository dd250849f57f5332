"""
Artifacts Router
"""
from typing import Optional

from fastapi import APIRouter, Depends

from ...core.services.status_service import TaskStatusService
from ...schemas import ArtifactResponse
from ..dependencies import get_optional_account_id, get_status_service

router = APIRouter(prefix="/artifacts", tags=["artifacts"])


@router.get("/{artifact_id}", response_model=ArtifactResponse)
async def get_artifact(
    artifact_id: int,
    account_id: Optional[int] = Depends(get_optional_account_id),
    service: TaskStatusService = Depends(get_status_service)
):
    artifact = await service.get_artifact(artifact_id, requester_id=account_id)
    return ArtifactResponse.from_domain(artifact)
