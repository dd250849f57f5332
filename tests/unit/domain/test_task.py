"""
Unit tests for generation task domain models
"""
import pytest
from datetime import datetime

from colorgen.core.domain.artifact import ArtifactDraft
from colorgen.core.domain.task import (
    ErrorDescriptor,
    GenerationInput,
    GenerationTask,
    TaskContext,
    TaskHandle,
    TaskKind,
    TaskPage,
    TaskState,
    TaskView,
    new_task_id
)
from colorgen.core.exceptions import InvalidInput


def make_task(**overrides) -> GenerationTask:
    values = dict(
        task_id="task_1",
        owner_id=1,
        kind=TaskKind.TEXT_TO_IMAGE,
        input=GenerationInput(prompt="a red fox"),
        cost=20
    )
    values.update(overrides)
    return GenerationTask(**values)


class TestTaskState:
    """Test state machine helpers"""

    def test_only_processing_is_not_terminal(self):
        assert not TaskState.PROCESSING.is_terminal()
        assert TaskState.COMPLETED.is_terminal()
        assert TaskState.FAILED.is_terminal()
        assert TaskState.CANCELLED.is_terminal()

    def test_refundable_states(self):
        assert TaskState.FAILED.is_refundable()
        assert TaskState.CANCELLED.is_refundable()
        assert not TaskState.COMPLETED.is_refundable()
        assert not TaskState.PROCESSING.is_refundable()


class TestGenerationInputValidation:
    """Test request payload validation"""

    def test_valid_text_input(self):
        GenerationInput(prompt="a red fox", ratio="1:1").validate(TaskKind.TEXT_TO_IMAGE)

    @pytest.mark.parametrize("prompt", [None, "", "   "])
    def test_empty_prompt_rejected(self, prompt):
        with pytest.raises(InvalidInput) as exc:
            GenerationInput(prompt=prompt).validate(TaskKind.TEXT_TO_IMAGE)
        assert exc.value.field == "prompt"

    def test_prompt_length_bound(self):
        GenerationInput(prompt="x" * 500).validate(TaskKind.TEXT_TO_IMAGE, max_prompt_length=500)
        with pytest.raises(InvalidInput, match="at most 500"):
            GenerationInput(prompt="x" * 501).validate(TaskKind.TEXT_TO_IMAGE, max_prompt_length=500)

    def test_image_kind_requires_reference(self):
        with pytest.raises(InvalidInput) as exc:
            GenerationInput(prompt="ignored").validate(TaskKind.IMAGE_TO_IMAGE)
        assert exc.value.field == "file"

    def test_image_kind_does_not_need_prompt(self):
        GenerationInput(reference_image="ref_abc.png").validate(TaskKind.IMAGE_TO_IMAGE)

    def test_ratio_must_be_allowed(self):
        with pytest.raises(InvalidInput) as exc:
            GenerationInput(prompt="a red fox", ratio="16:9").validate(TaskKind.TEXT_TO_IMAGE)
        assert exc.value.field == "ratio"
        assert exc.value.details == [{"field": "ratio", "message": str(exc.value)}]

    def test_custom_ratio_set(self):
        GenerationInput(prompt="a", ratio="16:9").validate(
            TaskKind.TEXT_TO_IMAGE, allowed_ratios=["16:9"]
        )


class TestGenerationTaskInvariants:
    """Test aggregate invariants"""

    def test_new_task_defaults(self):
        task = make_task()
        assert task.state == TaskState.PROCESSING
        assert task.progress == 0
        assert task.artifact_id is None
        assert task.error is None

    def test_string_enums_are_coerced(self):
        task = make_task(kind="image-to-image", state="processing",
                         input=GenerationInput(reference_image="ref.png"))
        assert task.kind == TaskKind.IMAGE_TO_IMAGE
        assert task.state == TaskState.PROCESSING

    def test_completed_requires_artifact(self):
        with pytest.raises(ValueError, match="artifact"):
            make_task(state=TaskState.COMPLETED, progress=100)
        task = make_task(state=TaskState.COMPLETED, progress=100, artifact_id=7)
        assert task.artifact_id == 7

    def test_artifact_only_when_completed(self):
        with pytest.raises(ValueError, match="artifact"):
            make_task(artifact_id=7)

    def test_failed_requires_error(self):
        with pytest.raises(ValueError, match="error"):
            make_task(state=TaskState.FAILED)
        task = make_task(state=TaskState.FAILED, error=ErrorDescriptor("STORAGE_ERROR", "disk full"))
        assert task.error.code == "STORAGE_ERROR"

    def test_error_only_when_failed(self):
        with pytest.raises(ValueError, match="error"):
            make_task(state=TaskState.CANCELLED, error=ErrorDescriptor("X", "y"))

    @pytest.mark.parametrize("progress", [-1, 101])
    def test_progress_bounds(self, progress):
        with pytest.raises(ValueError, match="Progress"):
            make_task(progress=progress)

    def test_cost_must_be_positive(self):
        with pytest.raises(ValueError, match="cost"):
            make_task(cost=0)

    def test_ownership(self):
        task = make_task(owner_id=5)
        assert task.is_owned_by(5)
        assert not task.is_owned_by(6)
        assert not task.is_owned_by(None)


class TestReadModels:
    def test_task_id_format(self):
        task_id = new_task_id()
        assert task_id.startswith("task_")
        assert len(task_id) == len("task_") + 36

    def test_context_requires_id(self):
        with pytest.raises(ValueError):
            TaskContext(task_id="", kind=TaskKind.TEXT_TO_IMAGE)

    def test_handle_from_task(self):
        created = datetime(2024, 1, 1)
        handle = TaskHandle.from_task(make_task(estimated_time=30, created_at=created))
        assert handle.state == TaskState.PROCESSING
        assert handle.progress == 0
        assert handle.estimated_time == 30
        assert handle.created_at == created

    def test_view_rejects_artifact_on_unfinished_task(self):
        from colorgen.core.domain.artifact import Artifact
        artifact = Artifact(
            id=1, owner_id=1, task_id="task_1", kind="text-to-image", name="n",
            title="t", default_url="/a", color_url="/b", ratio="1:1", is_public=False
        )
        with pytest.raises(ValueError):
            TaskView(task=make_task(), artifact=artifact)

    @pytest.mark.parametrize("total,limit,pages", [(0, 20, 0), (1, 20, 1), (20, 20, 1), (21, 20, 2)])
    def test_total_pages(self, total, limit, pages):
        assert TaskPage(items=[], page=1, limit=limit, total=total).total_pages == pages


class TestArtifactDraft:
    def test_requires_both_variants(self, tmp_path):
        with pytest.raises(ValueError, match="missing variants"):
            ArtifactDraft(title="t", ratio="1:1", staged={"default": tmp_path / "a.png"})
