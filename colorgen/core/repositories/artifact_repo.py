"""
Artifact Repository

Artifacts are write-once: there is no update method.
"""

from typing import Dict, Optional

from .base import BaseRepository
from ..domain.artifact import Artifact, ArtifactDraft, COLOR_VARIANT, DEFAULT_VARIANT
from ...models import Artifact as ArtifactModel


class ArtifactRepository(BaseRepository[Artifact]):
    """Repository cho Artifact"""

    async def get_by_id(self, id: int) -> Optional[Artifact]:
        orm_artifact = self.session.query(ArtifactModel).filter_by(id=id).first()
        return Artifact.from_orm(orm_artifact) if orm_artifact else None

    async def get_by_task_id(self, task_id: str) -> Optional[Artifact]:
        orm_artifact = self.session.query(ArtifactModel).filter_by(task_id=task_id).first()
        return Artifact.from_orm(orm_artifact) if orm_artifact else None

    async def create(
        self,
        owner_id: int,
        task_id: str,
        kind: str,
        draft: ArtifactDraft,
        urls: Dict[str, str],
        is_public: bool
    ) -> Artifact:
        """
        Record a published artifact

        Args:
            urls: public URL per variant, as returned by FileStorage.publish
        """
        orm_artifact = ArtifactModel(
            owner_id=owner_id,
            task_id=task_id,
            kind=kind,
            name=draft.name or task_id,
            title=draft.title,
            description=draft.description,
            default_url=urls[DEFAULT_VARIANT],
            color_url=urls[COLOR_VARIANT],
            tags=list(draft.tags),
            ratio=draft.ratio,
            size=draft.size,
            is_public=is_public,
            prompt=draft.prompt,
            source_reference=draft.source_reference,
            additional_info=dict(draft.additional_info)
        )
        self.session.add(orm_artifact)
        self.flush()  # Get auto-generated ID
        return Artifact.from_orm(orm_artifact)
