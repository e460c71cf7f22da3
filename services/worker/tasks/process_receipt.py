"""
Receipt processing task

Flow:
1. Rebuild ReceiptInput from the JSON payload queued by the API
2. Open a transactional session on the worker process's event loop
3. Run the receipt pipeline: categorize, match catalog, validate,
   auto-process, update budget ledger
4. Commit, or roll back everything and let Celery retry on storage errors

Retries are safe: items are upserted by line number and ledger increments
are claimed per (receipt, category).
"""
from typing import Any, Dict

import structlog
from celery import Task

from packages.common.config import get_settings
from packages.common.database import sessionmanager
from packages.common.errors import PersistenceError, ReceiptNotFoundError
from packages.common.schemas.receipt import ReceiptInput
from packages.domain.receipt_processing import receipt_processing_service
from services.worker.celery_app import app, run_async

logger = structlog.get_logger()


class ProcessReceiptTask(Task):
    """Base task for receipt processing with retry logic"""
    autoretry_for = (PersistenceError,)
    retry_kwargs = {"max_retries": 5}
    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True


async def _process(receipt: ReceiptInput, user_id: str) -> Dict[str, Any]:
    # No-op after worker_process_init; needed for eager/solo runs
    await sessionmanager.init(get_settings().database_url)
    async with sessionmanager.session() as session:
        outcome = await receipt_processing_service.process(receipt, user_id, session)

    return {
        "success": True,
        "receipt_id": outcome.receipt_id,
        "outcome": outcome.processing.outcome,
        "validation_passed": outcome.validation.passed,
        "auto_saved": len(outcome.processing.auto_saved_items),
        "uncertain": len(outcome.processing.uncertain_items),
        "ledger_applied": sum(1 for delta in outcome.ledger if delta.applied),
        "summary": outcome.summary,
    }


@app.task(bind=True, base=ProcessReceiptTask, name="services.worker.tasks.process_receipt.process_receipt_task")
def process_receipt_task(self, receipt: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """
    Categorize and auto-process one receipt.

    Args:
        receipt: ReceiptInput as JSON
        user_id: Owner of the receipt

    Returns:
        Dict with processing results
    """
    parsed = ReceiptInput(**receipt)
    logger.info("receipt_task_started",
               receipt_id=parsed.receipt_id,
               user_id=user_id,
               attempt=self.request.retries + 1)

    try:
        result = run_async(_process(parsed, user_id))
    except ReceiptNotFoundError as e:
        logger.warning("receipt_task_receipt_missing", receipt_id=parsed.receipt_id)
        return {"success": False, "receipt_id": parsed.receipt_id, "error": str(e)}
    except PersistenceError as e:
        logger.warning("receipt_task_persistence_failed",
                      receipt_id=parsed.receipt_id,
                      operation=e.operation,
                      attempt=self.request.retries + 1)
        raise
    except Exception as e:
        logger.error("receipt_task_failed",
                    receipt_id=parsed.receipt_id,
                    error=str(e),
                    exc_info=True)
        raise

    logger.info("receipt_task_complete", **result)
    return result
