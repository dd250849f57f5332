"""
Artifact Producer interface

A producer turns a task payload into staged image files. It reports
progress through the callback it is given and must not publish anything:
the orchestrator decides whether the staged files become visible.
"""
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from ..domain.artifact import ArtifactDraft
from ..domain.task import GenerationInput, TaskKind

ProgressReporter = Callable[[int], Awaitable[None]]


async def _ignore_progress(progress: int):
    return None


class ArtifactProducer(ABC):
    """Abstract base class cho producers"""

    @abstractmethod
    async def produce(
        self,
        kind: TaskKind,
        payload: GenerationInput,
        report_progress: ProgressReporter = _ignore_progress,
        task_id: Optional[str] = None
    ) -> ArtifactDraft:
        """
        Generate the artifact for one task

        Args:
            kind: text-to-image or image-to-image
            payload: validated task input
            report_progress: awaited with increasing percentages below 100
            task_id: used to name staged files

        Raises:
            ProducerError: generation, decoding or storage failure
        """
        pass
