"""
Mock Artifact Producer

Stands in for a real image model:
- text-to-image picks a preset outline/colour pair and fits it to the ratio
- image-to-image traces an outline from the uploaded picture with Pillow
  filters and posterizes it for the coloured variant

Pillow work runs in a worker thread so the event loop keeps serving polls.
"""
import asyncio
import io
import logging
import random
from pathlib import Path
from typing import Dict, List, Optional

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from .base import ArtifactProducer, ProgressReporter, _ignore_progress
from ..domain.artifact import ArtifactDraft, COLOR_VARIANT, DEFAULT_VARIANT
from ..domain.task import GenerationInput, TaskKind
from ..exceptions import ErrorCode, ProducerError, StorageError
from ..storage import FileStorage

logger = logging.getLogger(__name__)

PRESET_NAMES = ("spider-man", "cartoon", "cat", "mario", "flower", "robot")

# 512 px on the long edge
RATIO_CANVAS = {
    "1:1": (512, 512),
    "3:4": (384, 512),
    "4:3": (512, 384),
}

OUTLINE_THRESHOLD = 200
POSTERIZE_BITS = 3


def fit_to_ratio(image: Image.Image, ratio: str) -> Image.Image:
    """Letterbox an image onto the white canvas for ratio"""
    size = RATIO_CANVAS.get(ratio, RATIO_CANVAS["1:1"])
    image = image.convert("RGB")
    return ImageOps.pad(image, size, color=(255, 255, 255))


def trace_outline(image: Image.Image) -> Image.Image:
    """Black lines on white: grayscale, edge detect, invert, threshold"""
    gray = image.convert("L").filter(ImageFilter.SMOOTH)
    edges = gray.filter(ImageFilter.FIND_EDGES)
    inverted = ImageOps.invert(edges)
    return inverted.point(lambda p: 255 if p > OUTLINE_THRESHOLD else 0)


def posterize(image: Image.Image) -> Image.Image:
    return ImageOps.posterize(image.convert("RGB"), POSTERIZE_BITS)


def to_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def decode_image(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ProducerError(f"Reference image could not be decoded: {e}", ErrorCode.INVALID_IMAGE)
    return ImageOps.exif_transpose(image)


def prompt_tags(prompt: str, limit: int = 5) -> List[str]:
    return prompt.split()[:limit]


class MockArtifactProducer(ArtifactProducer):
    """
    Simulated generation backed by preset images and Pillow filters

    Args:
        storage: source of presets and references, target of staged files
        simulated_delay: seconds slept mid-generation
        rng: random source for preset choice (seed it in tests)
    """

    def __init__(
        self,
        storage: FileStorage,
        simulated_delay: float = 2.0,
        rng: Optional[random.Random] = None,
        presets=PRESET_NAMES
    ):
        self.storage = storage
        self.simulated_delay = simulated_delay
        self.rng = rng or random.Random()
        self.presets = tuple(presets)

    async def produce(
        self,
        kind: TaskKind,
        payload: GenerationInput,
        report_progress: ProgressReporter = _ignore_progress,
        task_id: Optional[str] = None
    ) -> ArtifactDraft:
        prefix = task_id or "artifact"
        if kind == TaskKind.TEXT_TO_IMAGE:
            return await self._text_to_image(payload, report_progress, prefix)
        if kind == TaskKind.IMAGE_TO_IMAGE:
            return await self._image_to_image(payload, report_progress, prefix)
        raise ProducerError(f"Unsupported task kind: {kind}")

    async def _text_to_image(
        self,
        payload: GenerationInput,
        report_progress: ProgressReporter,
        prefix: str
    ) -> ArtifactDraft:
        preset = self.rng.choice(self.presets)
        logger.info(f"[GENERATE] {prefix}: using preset '{preset}' for ratio {payload.ratio}")

        await report_progress(10)
        await asyncio.sleep(self.simulated_delay)
        await report_progress(50)

        rendered = await asyncio.to_thread(self._render_preset, preset, payload.ratio)

        await report_progress(90)
        staged = await self._stage(rendered, prefix)

        prompt = payload.prompt or ""
        width, height = RATIO_CANVAS.get(payload.ratio, RATIO_CANVAS["1:1"])
        return ArtifactDraft(
            title=f"AI generated: {prompt[:50]}",
            description=f"Coloring page generated from the prompt: {prompt}",
            tags=prompt_tags(prompt),
            ratio=payload.ratio,
            size=f"{width},{height}",
            prompt=prompt,
            name=f"{prefix}-{preset}",
            staged=staged,
            additional_info={"generatedBy": "mock", "preset": preset}
        )

    async def _image_to_image(
        self,
        payload: GenerationInput,
        report_progress: ProgressReporter,
        prefix: str
    ) -> ArtifactDraft:
        await report_progress(10)

        data = await asyncio.to_thread(self.storage.read_reference, payload.reference_image)
        source = await asyncio.to_thread(decode_image, data)

        await asyncio.sleep(self.simulated_delay)
        await report_progress(30)

        rendered = await asyncio.to_thread(self._render_conversion, source, payload.ratio)

        await report_progress(90)
        staged = await self._stage(rendered, prefix)

        width, height = RATIO_CANVAS.get(payload.ratio, RATIO_CANVAS["1:1"])
        return ArtifactDraft(
            title="Image conversion result",
            description="Coloring page converted from an uploaded picture",
            tags=["converted", "custom"],
            ratio=payload.ratio,
            size=f"{width},{height}",
            source_reference=payload.reference_name,
            name=f"{prefix}-converted",
            staged=staged,
            additional_info={"convertedBy": "mock", "method": "edge-detection"}
        )

    def _render_preset(self, preset: str, ratio: str) -> Dict[str, bytes]:
        rendered = {}
        for variant in (DEFAULT_VARIANT, COLOR_VARIANT):
            data = self.storage.read_preset(f"{preset}-{variant}.png")
            try:
                image = Image.open(io.BytesIO(data))
                image.load()
            except (UnidentifiedImageError, OSError) as e:
                raise StorageError(f"Preset {preset}-{variant}.png is unreadable: {e}")
            rendered[variant] = to_png(fit_to_ratio(image, ratio))
        return rendered

    def _render_conversion(self, source: Image.Image, ratio: str) -> Dict[str, bytes]:
        try:
            fitted = fit_to_ratio(source, ratio)
            return {
                DEFAULT_VARIANT: to_png(trace_outline(fitted)),
                COLOR_VARIANT: to_png(posterize(fitted)),
            }
        except (OSError, ValueError) as e:
            raise ProducerError(f"Image conversion failed: {e}", ErrorCode.IMAGE_CONVERSION_FAILED)

    async def _stage(self, rendered: Dict[str, bytes], prefix: str) -> Dict[str, Path]:
        """
        Stage files in a worker thread

        A cancelled caller (timeout, shutdown) cannot stop the thread, so the
        files it still writes are removed once it finishes.
        """
        work = asyncio.ensure_future(asyncio.to_thread(self._stage_all, rendered, prefix))
        try:
            return await asyncio.shield(work)
        except asyncio.CancelledError:
            outcome = (await asyncio.gather(work, return_exceptions=True))[0]
            if isinstance(outcome, dict):
                self.storage.discard(outcome.values())
                logger.info(f"[DISCARD] {prefix}: staged output of a cancelled run removed")
            raise

    def _stage_all(self, rendered: Dict[str, bytes], prefix: str) -> Dict[str, Path]:
        staged: Dict[str, Path] = {}
        try:
            for variant, data in rendered.items():
                staged[variant] = self.storage.stage(data, f"{prefix}-{variant}")
        except StorageError:
            self.storage.discard(staged.values())
            raise
        return staged
