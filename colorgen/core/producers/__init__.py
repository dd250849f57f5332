from .base import ArtifactProducer, ProgressReporter
from .mock_producer import MockArtifactProducer, PRESET_NAMES, RATIO_CANVAS

__all__ = [
    "ArtifactProducer",
    "ProgressReporter",
    "MockArtifactProducer",
    "PRESET_NAMES",
    "RATIO_CANVAS"
]
