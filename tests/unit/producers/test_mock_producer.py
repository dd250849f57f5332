"""
Unit tests for MockArtifactProducer
"""
import io
import random

import pytest
from PIL import Image

from colorgen.core.domain.task import GenerationInput, TaskKind
from colorgen.core.exceptions import ErrorCode, ProducerError, StorageError
from colorgen.core.producers.mock_producer import (
    MockArtifactProducer,
    RATIO_CANVAS,
    fit_to_ratio,
    prompt_tags,
    trace_outline
)


@pytest.fixture
def producer(storage):
    return MockArtifactProducer(storage, simulated_delay=0, rng=random.Random(7))


@pytest.fixture
def recorder():
    calls = []

    async def report(progress):
        calls.append(progress)

    report.calls = calls
    return report


def open_staged(path) -> Image.Image:
    with open(path, "rb") as f:
        image = Image.open(io.BytesIO(f.read()))
        image.load()
    return image


class TestHelpers:

    @pytest.mark.parametrize("ratio", ["1:1", "3:4", "4:3"])
    def test_fit_to_ratio(self, ratio):
        image = Image.new("RGB", (100, 37), (10, 10, 10))
        assert fit_to_ratio(image, ratio).size == RATIO_CANVAS[ratio]

    def test_trace_outline_is_black_and_white(self):
        image = Image.new("RGB", (64, 64), (255, 255, 255))
        image.paste((0, 0, 0), (16, 16, 48, 48))

        outline = trace_outline(image)

        assert outline.mode == "L"
        assert set(outline.getdata()) <= {0, 255}
        assert 0 in set(outline.getdata())

    def test_prompt_tags(self):
        assert prompt_tags("a big red barn on a hill") == ["a", "big", "red", "barn", "on"]
        assert prompt_tags("") == []


class TestTextToImage:

    @pytest.mark.asyncio
    async def test_produces_staged_pair(self, producer, storage, recorder):
        draft = await producer.produce(
            TaskKind.TEXT_TO_IMAGE,
            GenerationInput(prompt="a cute cat", ratio="3:4"),
            recorder,
            task_id="task_t1"
        )

        assert recorder.calls == [10, 50, 90]
        assert draft.title == "AI generated: a cute cat"
        assert draft.tags == ["a", "cute", "cat"]
        assert draft.prompt == "a cute cat"
        assert draft.size == "384,512"
        assert draft.additional_info["preset"] in producer.presets
        for path in draft.staged.values():
            assert path.parent == storage.staging_dir
            assert open_staged(path).size == (384, 512)
        assert list(storage.images_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_seeded_rng_is_deterministic(self, storage):
        prompt = GenerationInput(prompt="robot")
        first = MockArtifactProducer(storage, simulated_delay=0, rng=random.Random(3))
        second = MockArtifactProducer(storage, simulated_delay=0, rng=random.Random(3))

        a = await first.produce(TaskKind.TEXT_TO_IMAGE, prompt)
        b = await second.produce(TaskKind.TEXT_TO_IMAGE, prompt)

        assert a.additional_info["preset"] == b.additional_info["preset"]

    @pytest.mark.asyncio
    async def test_missing_preset_is_storage_error(self, storage):
        producer = MockArtifactProducer(storage, simulated_delay=0, presets=["unicorn"])

        with pytest.raises(StorageError):
            await producer.produce(TaskKind.TEXT_TO_IMAGE, GenerationInput(prompt="x"))

        assert list(storage.staging_dir.iterdir()) == []


class TestImageToImage:

    @pytest.mark.asyncio
    async def test_converts_reference(self, producer, storage, recorder, make_png):
        handle = storage.save_reference(make_png(size=(90, 60)), "photo.png")

        draft = await producer.produce(
            TaskKind.IMAGE_TO_IMAGE,
            GenerationInput(reference_image=handle, ratio="4:3", reference_name="photo.png"),
            recorder,
            task_id="task_i1"
        )

        assert recorder.calls == [10, 30, 90]
        assert draft.title == "Image conversion result"
        assert draft.tags == ["converted", "custom"]
        assert draft.source_reference == "photo.png"
        assert draft.additional_info == {"convertedBy": "mock", "method": "edge-detection"}
        assert open_staged(draft.staged["default"]).mode == "L"
        assert open_staged(draft.staged["color"]).size == (512, 384)

    @pytest.mark.asyncio
    async def test_corrupt_reference(self, producer, storage):
        handle = storage.save_reference(b"definitely not a png", "broken.png")

        with pytest.raises(ProducerError) as exc_info:
            await producer.produce(
                TaskKind.IMAGE_TO_IMAGE,
                GenerationInput(reference_image=handle)
            )

        assert exc_info.value.error_code == ErrorCode.INVALID_IMAGE

    @pytest.mark.asyncio
    async def test_missing_reference(self, producer):
        with pytest.raises(StorageError):
            await producer.produce(
                TaskKind.IMAGE_TO_IMAGE,
                GenerationInput(reference_image="ref_gone.png")
            )
