"""
Celery application configuration for background tasks

Each worker process owns one event loop. Async services (database engine,
classifier client, single-flight memo) are bound to it at process init and
every task runs its coroutine on that same loop.
"""
import asyncio
from typing import Any, Coroutine, Optional

from celery import Celery
from celery.signals import worker_process_init, worker_process_shutdown
import structlog

from packages.common.config import get_settings
from packages.common.database import sessionmanager
from packages.common.logging_setup import configure_logging

logger = structlog.get_logger()
settings = get_settings()

# Create Celery app
app = Celery(
    "grocery_budget_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Europe/Sofia",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes hard limit
    task_soft_time_limit=270,

    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour
    result_extended=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=200,

    # Task routing
    task_routes={
        "services.worker.tasks.process_receipt.*": {"queue": "receipts"},
    },
)

_loop: Optional[asyncio.AbstractEventLoop] = None


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine on this process's event loop"""
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_loop)
    return _loop.run_until_complete(coro)


# Import tasks explicitly to register them
from services.worker.tasks import process_receipt  # noqa: E402,F401


@worker_process_init.connect
def init_worker(**kwargs):
    """Initialize worker process"""
    configure_logging()
    logger.info("celery_worker_starting",
                concurrency=kwargs.get("concurrency", "unknown"))

    # Initialize database session manager for async tasks
    run_async(sessionmanager.init(settings.database_url))
    logger.info("celery_database_initialized")


@worker_process_shutdown.connect
def shutdown_worker(**kwargs):
    """Clean up worker process"""
    logger.info("celery_worker_shutting_down")

    try:
        run_async(sessionmanager.close())
        logger.info("celery_database_closed")
    except Exception as e:
        logger.error("celery_database_close_failed", error=str(e))
    finally:
        if _loop is not None:
            _loop.close()


if __name__ == "__main__":
    app.start()
