"""
Generation Service - task orchestration

submit():  validate -> debit + create task (one transaction) -> enqueue
execute_task():  run producer -> publish + artifact + complete (one transaction)
                 or fail + refund (one transaction)
cancel():  cancel + refund (one transaction)

Refunds are tied to a transition that actually applied, so a completion
racing a cancellation never refunds twice.
"""
import asyncio
import logging
from typing import Callable, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from ..domain.account import LedgerReason
from ..domain.artifact import ArtifactDraft
from ..domain.task import (
    DEFAULT_RATIOS,
    ErrorDescriptor,
    GenerationInput,
    GenerationTask,
    TaskContext,
    TaskHandle,
    TaskKind,
    TransitionResult,
    new_task_id
)
from ..exceptions import (
    AccountDisabled,
    AccountNotFound,
    ErrorCode,
    InsufficientFunds,
    InvalidInput,
    NotTaskOwner,
    ProducerError,
    StorageError,
    TaskAlreadyTerminal,
    TaskNotFound,
    TaskQueueFull
)
from ..producers.base import ArtifactProducer
from ..repositories.account_repo import AccountRepository
from ..repositories.artifact_repo import ArtifactRepository
from ..repositories.task_repo import TaskRepository
from ..storage import FileStorage
from ..task_queue import TaskQueue
from ...database import session_scope

logger = logging.getLogger(__name__)

DEFAULT_COSTS = {TaskKind.TEXT_TO_IMAGE: 1, TaskKind.IMAGE_TO_IMAGE: 2}
DEFAULT_ESTIMATED_TIMES = {TaskKind.TEXT_TO_IMAGE: 30, TaskKind.IMAGE_TO_IMAGE: 45}

UNEXPECTED_FAILURE_CODES = {
    TaskKind.TEXT_TO_IMAGE: ErrorCode.GENERATION_FAILED,
    TaskKind.IMAGE_TO_IMAGE: ErrorCode.IMAGE_CONVERSION_FAILED,
}


class GenerationService:
    """Service điều phối generation tasks"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        producer: ArtifactProducer,
        storage: FileStorage,
        task_queue: TaskQueue,
        producer_timeout: Optional[float] = None,
        prompt_max_length: int = 500,
        allowed_ratios: Iterable[str] = DEFAULT_RATIOS,
        costs: Optional[Dict[TaskKind, int]] = None,
        estimated_times: Optional[Dict[TaskKind, int]] = None
    ):
        self.session_factory = session_factory
        self.producer = producer
        self.storage = storage
        self.task_queue = task_queue
        self.producer_timeout = producer_timeout
        self.prompt_max_length = prompt_max_length
        self.allowed_ratios = tuple(allowed_ratios)
        self.costs = dict(costs or DEFAULT_COSTS)
        self.estimated_times = dict(estimated_times or DEFAULT_ESTIMATED_TIMES)

    def cost_for(self, kind: TaskKind) -> int:
        return self.costs[TaskKind(kind)]

    def store_reference(self, data: bytes, filename: Optional[str] = None) -> str:
        """Keep an uploaded picture until its task finishes"""
        return self.storage.save_reference(data, filename)

    # ========== Submit ==========

    async def submit(
        self,
        owner_id: int,
        kind: TaskKind,
        payload: GenerationInput,
        cost: Optional[int] = None
    ) -> TaskHandle:
        """
        Accept a generation request

        Never waits for the producer. On any rejection the reference upload
        (if any) is deleted and no task exists.

        Raises:
            InvalidInput, InsufficientFunds, AccountNotFound, AccountDisabled,
            TaskQueueFull
        """
        try:
            try:
                kind = TaskKind(kind)
            except ValueError:
                raise InvalidInput(f"Unsupported task kind: {kind}", field="type")
            payload.validate(kind, self.prompt_max_length, self.allowed_ratios)
            if cost is None:
                cost = self.cost_for(kind)
            if not isinstance(cost, int) or isinstance(cost, bool) or cost <= 0:
                raise InvalidInput("cost must be a positive integer", field="cost")

            task = await self._debit_and_create(owner_id, kind, payload, cost)
        except Exception:
            self._discard_reference(payload.reference_image)
            raise

        logger.info(
            f"[SUBMIT] {task.task_id} ({kind.value}) for account #{owner_id}, cost {cost}"
        )

        try:
            self.task_queue.enqueue(TaskContext(task_id=task.task_id, kind=kind))
        except TaskQueueFull:
            await self._fail_and_refund(
                task,
                ErrorDescriptor(ErrorCode.QUEUE_FULL.value, "Generation queue is full")
            )
            self._discard_reference(payload.reference_image)
            raise

        return TaskHandle.from_task(task)

    async def _debit_and_create(
        self,
        owner_id: int,
        kind: TaskKind,
        payload: GenerationInput,
        cost: int
    ) -> GenerationTask:
        task_id = new_task_id()

        with session_scope(self.session_factory) as session:
            accounts = AccountRepository(session)
            tasks = TaskRepository(session)

            account = await accounts.get_by_id(owner_id)
            if account is None:
                raise AccountNotFound(f"Account {owner_id} not found")
            if not account.is_active:
                raise AccountDisabled()

            if not await accounts.debit(owner_id, cost, LedgerReason.DEBIT, task_id):
                balance = await accounts.get_balance(owner_id)
                logger.info(
                    f"[SUBMIT] Rejected for account #{owner_id}: balance {balance} < cost {cost}"
                )
                raise InsufficientFunds(required=cost, balance=balance)

            task = await tasks.create(GenerationTask(
                task_id=task_id,
                owner_id=owner_id,
                kind=kind,
                input=payload,
                cost=cost,
                estimated_time=self.estimated_times.get(kind)
            ))
            tasks.commit()

        return task

    # ========== Background execution ==========

    async def execute_task(self, ctx: TaskContext) -> Optional[TransitionResult]:
        """
        Run one task to a terminal state

        Returns:
            Outcome of the terminal transition this run attempted, or None
            if the task does not exist.
        """
        with session_scope(self.session_factory) as session:
            task = await TaskRepository(session).get_by_task_id(ctx.task_id)

        if task is None:
            logger.error(f"[GENERATE] {ctx.task_id} not found, dropping")
            return None

        if task.state.is_terminal():
            logger.info(f"[GENERATE] {task.task_id} already {task.state.value}, skipping")
            self._discard_reference(task.input.reference_image)
            return TransitionResult.ALREADY_TERMINAL

        logger.info(f"[GENERATE] Starting {task.task_id} ({task.kind.value})")

        descriptor: Optional[ErrorDescriptor] = None
        draft: Optional[ArtifactDraft] = None
        try:
            draft = await self._run_producer(task)
        except asyncio.TimeoutError:
            logger.error(f"[GENERATE] {task.task_id} timed out after {self.producer_timeout}s")
            descriptor = ErrorDescriptor(
                ErrorCode.PRODUCER_TIMEOUT.value,
                f"Generation did not finish within {self.producer_timeout:g} seconds"
            )
        except ProducerError as e:
            logger.error(f"[GENERATE] {task.task_id} failed: {e.error_code.value} {e.message}")
            descriptor = ErrorDescriptor(e.error_code.value, e.message)
        except Exception as e:
            logger.error(f"[GENERATE] {task.task_id} crashed: {e}", exc_info=True)
            code = UNEXPECTED_FAILURE_CODES[task.kind]
            descriptor = ErrorDescriptor(code.value, f"Generation failed: {e}")
        finally:
            self._discard_reference(task.input.reference_image)

        if descriptor is not None:
            # Partial output of a failed run is never published
            await asyncio.to_thread(self.storage.discard_prefix, f"{task.task_id}-")
            return await self._fail_and_refund(task, descriptor)
        return await self._apply_success(task, draft)

    async def _run_producer(self, task: GenerationTask) -> ArtifactDraft:
        async def report_progress(progress: int):
            with session_scope(self.session_factory) as session:
                repo = TaskRepository(session)
                if await repo.update_progress(task.task_id, progress):
                    repo.commit()
                    logger.debug(f"[PROGRESS] {task.task_id}: {progress}%")

        work = self.producer.produce(task.kind, task.input, report_progress, task_id=task.task_id)
        if self.producer_timeout:
            return await asyncio.wait_for(work, timeout=self.producer_timeout)
        return await work

    async def _apply_success(self, task: GenerationTask, draft: ArtifactDraft) -> TransitionResult:
        staged = list(draft.staged.values())

        # Skip publishing when the task was cancelled meanwhile
        with session_scope(self.session_factory) as session:
            current = await TaskRepository(session).get_by_task_id(task.task_id)
        if current is None or current.state.is_terminal():
            self.storage.discard(staged)
            logger.warning(
                f"[DISCARD] {task.task_id} finished after becoming "
                f"{current.state.value if current else 'missing'}, output dropped"
            )
            return TransitionResult.ALREADY_TERMINAL

        try:
            urls = self.storage.publish(draft.staged)
        except StorageError as e:
            self.storage.discard(staged)
            logger.error(f"[GENERATE] {task.task_id} publish failed: {e.message}")
            return await self._fail_and_refund(task, ErrorDescriptor(e.error_code.value, e.message))

        try:
            with session_scope(self.session_factory) as session:
                artifacts = ArtifactRepository(session)
                tasks = TaskRepository(session)

                artifact = await artifacts.create(
                    owner_id=task.owner_id,
                    task_id=task.task_id,
                    kind=task.kind.value,
                    draft=draft,
                    urls=urls,
                    is_public=task.input.is_public
                )
                result = await tasks.complete(task.task_id, artifact.id)
                if result == TransitionResult.APPLIED:
                    tasks.commit()
                else:
                    tasks.rollback()
        except Exception:
            self.storage.unpublish(urls.values())
            raise

        if result != TransitionResult.APPLIED:
            self.storage.unpublish(urls.values())
            logger.warning(f"[DISCARD] {task.task_id} completion lost the race ({result.value}), output removed")
            return result

        logger.info(f"[COMPLETE] {task.task_id} -> artifact #{artifact.id}")
        return result

    async def _fail_and_refund(self, task: GenerationTask, error: ErrorDescriptor) -> TransitionResult:
        with session_scope(self.session_factory) as session:
            tasks = TaskRepository(session)
            accounts = AccountRepository(session)

            result = await tasks.fail(task.task_id, error)
            if result == TransitionResult.APPLIED:
                balance = await accounts.credit(
                    task.owner_id, task.cost, LedgerReason.REFUND, task.task_id
                )
                tasks.commit()
                logger.info(
                    f"[REFUND] {task.task_id} failed ({error.code}), refunded {task.cost} "
                    f"to account #{task.owner_id} (balance {balance})"
                )
            else:
                logger.info(f"[GENERATE] {task.task_id} fail not applied: {result.value}")
        return result

    # ========== Cancel ==========

    async def cancel(self, task_id: str, owner_id: int) -> GenerationTask:
        """
        Cancel a processing task and refund its cost

        Raises:
            TaskNotFound, NotTaskOwner, TaskAlreadyTerminal
        """
        with session_scope(self.session_factory) as session:
            tasks = TaskRepository(session)
            accounts = AccountRepository(session)

            result = await tasks.cancel(task_id, owner_id)
            if result == TransitionResult.NOT_FOUND:
                raise TaskNotFound(f"Task {task_id} not found")
            if result == TransitionResult.NOT_OWNER:
                raise NotTaskOwner()
            if result == TransitionResult.ALREADY_TERMINAL:
                raise TaskAlreadyTerminal()

            task = await tasks.get_by_task_id(task_id)
            balance = await accounts.credit(owner_id, task.cost, LedgerReason.REFUND, task_id)
            tasks.commit()

        logger.info(
            f"[CANCEL] {task_id} cancelled by account #{owner_id}, "
            f"refunded {task.cost} (balance {balance})"
        )
        return task

    # ========== Recovery ==========

    async def recover_interrupted(self, cutoff_minutes: Optional[int] = None) -> int:
        """
        Fail and refund tasks left processing by a previous run

        Args:
            cutoff_minutes: only tasks not updated within this window;
                None takes every processing task (startup, empty queue)

        Returns:
            Number of tasks recovered
        """
        with session_scope(self.session_factory) as session:
            repo = TaskRepository(session)
            if cutoff_minutes is None:
                stuck = await repo.list_processing()
            else:
                stuck = await repo.get_stale(cutoff_minutes)

        if not stuck:
            return 0

        logger.warning(f"[RECOVER] Found {len(stuck)} interrupted tasks")
        descriptor = ErrorDescriptor(
            ErrorCode.INTERRUPTED.value,
            "Generation was interrupted before it finished"
        )
        recovered = 0
        for task in stuck:
            if await self._fail_and_refund(task, descriptor) == TransitionResult.APPLIED:
                self._discard_reference(task.input.reference_image)
                recovered += 1
        return recovered

    def _discard_reference(self, handle: Optional[str]):
        if not handle:
            return
        try:
            self.storage.delete_reference(handle)
        except StorageError as e:
            logger.warning(f"[STORAGE] Could not delete reference {handle}: {e.message}")
