"""Task queue wrappers - API sends task names, never imports worker code."""
from typing import Any, Dict

from celery import Celery

from packages.common.config import get_settings

settings = get_settings()

celery_app = Celery('grocery_budget')
celery_app.conf.broker_url = settings.celery_broker_url
celery_app.conf.result_backend = settings.celery_result_backend

PROCESS_RECEIPT_TASK = 'services.worker.tasks.process_receipt.process_receipt_task'


def queue_receipt_processing(receipt: Dict[str, Any], user_id: str) -> str:
    """Queue a receipt (JSON-serialized ReceiptInput) for categorization and auto-processing."""
    task = celery_app.send_task(
        PROCESS_RECEIPT_TASK,
        args=[receipt, user_id],
    )
    return task.id
