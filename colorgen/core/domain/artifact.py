"""
Artifact Domain Models

- ArtifactDraft: producer output whose files are staged but not yet public
- Artifact: immutable published result of a completed task
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_VARIANT = "default"
COLOR_VARIANT = "color"
REQUIRED_VARIANTS = (DEFAULT_VARIANT, COLOR_VARIANT)


@dataclass
class ArtifactDraft:
    """
    What a producer hands back on success

    staged maps variant name to a file in the storage staging area. Nothing
    here is visible to readers until the orchestrator publishes it.
    """
    title: str
    ratio: str
    staged: Dict[str, Path]
    description: str = ""
    tags: List[str] = field(default_factory=list)
    size: Optional[str] = None
    prompt: Optional[str] = None
    source_reference: Optional[str] = None
    name: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        missing = [v for v in REQUIRED_VARIANTS if v not in self.staged]
        if missing:
            raise ValueError(f"Draft is missing variants: {missing}")


@dataclass(frozen=True)
class Artifact:
    id: int
    owner_id: int
    task_id: str
    kind: str
    name: str
    title: str
    default_url: str
    color_url: str
    ratio: str
    is_public: bool
    description: str = ""
    tags: List[str] = field(default_factory=list)
    size: Optional[str] = None
    prompt: Optional[str] = None
    source_reference: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @staticmethod
    def from_orm(orm_artifact) -> 'Artifact':
        return Artifact(
            id=orm_artifact.id,
            owner_id=orm_artifact.owner_id,
            task_id=orm_artifact.task_id,
            kind=orm_artifact.kind,
            name=orm_artifact.name,
            title=orm_artifact.title,
            default_url=orm_artifact.default_url,
            color_url=orm_artifact.color_url,
            ratio=orm_artifact.ratio,
            is_public=bool(orm_artifact.is_public),
            description=orm_artifact.description or "",
            tags=list(orm_artifact.tags or []),
            size=orm_artifact.size,
            prompt=orm_artifact.prompt,
            source_reference=orm_artifact.source_reference,
            additional_info=dict(orm_artifact.additional_info or {}),
            created_at=orm_artifact.created_at
        )
