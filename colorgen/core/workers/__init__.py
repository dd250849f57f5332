from .base import BaseWorker
from .generation_worker import GenerationWorker
from .manager import WorkerManager

__all__ = [
    "BaseWorker",
    "GenerationWorker",
    "WorkerManager"
]
