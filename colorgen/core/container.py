"""
Dependency Injection Container

Single place where settings turn into engines, storage, services and
workers. Tests override the settings provider:

    container = Container()
    container.settings.override(providers.Object(test_settings))
"""

from dependency_injector import containers, providers

from ..config import get_settings
from ..database import create_db_engine, create_session_factory
from .domain.task import TaskKind
from .producers.mock_producer import MockArtifactProducer
from .services.account_service import AccountService
from .services.generation_service import GenerationService
from .services.status_service import TaskStatusService
from .storage import FileStorage
from .task_queue import TaskQueue
from .workers.manager import WorkerManager


class Container(containers.DeclarativeContainer):
    """Main DI Container"""

    # ========== Configuration ==========
    settings = providers.Singleton(get_settings)

    # ========== Database ==========
    engine = providers.Singleton(
        create_db_engine,
        database_url=settings.provided.database_url
    )

    session_factory = providers.Singleton(
        create_session_factory,
        engine=engine
    )

    # ========== Infrastructure ==========
    storage = providers.Singleton(
        FileStorage,
        root=settings.provided.storage_dir,
        presets_dir=settings.provided.presets_dir,
        public_url_prefix=settings.provided.public_url_prefix
    )

    producer = providers.Singleton(
        MockArtifactProducer,
        storage=storage,
        simulated_delay=settings.provided.simulated_delay_seconds
    )

    task_queue = providers.Singleton(
        TaskQueue,
        max_size=settings.provided.queue_max_size
    )

    # ========== Services ==========
    generation_service = providers.Singleton(
        GenerationService,
        session_factory=session_factory,
        producer=producer,
        storage=storage,
        task_queue=task_queue,
        producer_timeout=settings.provided.producer_timeout,
        prompt_max_length=settings.provided.prompt_max_length,
        allowed_ratios=settings.provided.allowed_ratios,
        costs=providers.Dict({
            TaskKind.TEXT_TO_IMAGE: settings.provided.text_to_image_cost,
            TaskKind.IMAGE_TO_IMAGE: settings.provided.image_to_image_cost,
        }),
        estimated_times=providers.Dict({
            TaskKind.TEXT_TO_IMAGE: settings.provided.text_to_image_estimated_seconds,
            TaskKind.IMAGE_TO_IMAGE: settings.provided.image_to_image_estimated_seconds,
        })
    )

    status_service = providers.Singleton(
        TaskStatusService,
        session_factory=session_factory,
        policy=settings.provided.status_read_policy
    )

    account_service = providers.Singleton(
        AccountService,
        session_factory=session_factory
    )

    # ========== Workers ==========
    worker_manager = providers.Singleton(
        WorkerManager,
        generation_service=generation_service,
        task_queue=task_queue,
        max_concurrent=settings.provided.worker_max_concurrent,
        poll_interval=settings.provided.worker_poll_interval
    )
