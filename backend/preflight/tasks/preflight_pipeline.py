from __future__ import annotations

import logging
from functools import lru_cache

from preflight.celery_app import celery_app
from preflight.constants.statuses import CheckStatus
from preflight.core.config import settings
from preflight.core.request_context import clear_context, set_context
from preflight.engine.errors import ConversionFailed
from preflight.engine.types import summarize_upload
from preflight.services.preflight_service import PROGRESS_DONE, PreflightService

logger = logging.getLogger("preflight.tasks.preflight_pipeline")


@lru_cache(maxsize=1)
def _get_service() -> PreflightService:
    return PreflightService.from_settings(settings)


def _report_progress(task, progress: int) -> None:
    logger.info("task.progress", extra={"progress": progress})
    # eager runs (tests, local calls) have no result backend to write to
    if not getattr(task.request, "is_eager", False):
        task.update_state(state="PROGRESS", meta={"progress": progress})


@celery_app.task(
    name="preflight.tasks.preflight_pipeline.preflight_file_task",
    bind=True,
    max_retries=0,
)
def preflight_file_task(
    self,
    item_id: str,
    file_path: str,
    tier: str,
    declared_mime: str | None = None,
    output_dir: str | None = None,
    upload_id: str | None = None,
):
    """
    One file, one pass:
      sniff -> (convert) -> checks -> thumbnail
    The whole pipeline is never retried; fallbacks live inside conversion.
    Artifacts stay in `output_dir` (or a fresh scratch dir) for the caller to persist.
    """
    set_context(task_id=getattr(self.request, "id", None), upload_id=upload_id, item_id=item_id)
    try:
        logger.info("task.start", extra={"task": "preflight_file_task", "tier": tier})
        run = _get_service().run(
            file_path,
            tier=tier,
            declared_mime=declared_mime,
            work_dir=output_dir,
            item_id=item_id,
            on_progress=lambda n: _report_progress(self, n),
        )
        out = run.result.to_dict()
        _report_progress(self, PROGRESS_DONE)
        logger.info("task.done", extra={"task": "preflight_file_task", "status": out["overall"]})
        return {
            "ok": True,
            "item_id": item_id,
            "status": out["overall"],
            "tier": run.policy.tier,
            "detected": run.detected.value,
            "checks": out["checks"],
            "thumbnailPath": out.get("thumbnailPath"),
            "convertedPath": out.get("convertedPath"),
        }

    except ConversionFailed as e:
        logger.warning("task.conversion_failed", extra={"task": "preflight_file_task", "error": str(e)})
        _report_progress(self, PROGRESS_DONE)
        return {
            "ok": False,
            "item_id": item_id,
            "status": CheckStatus.ERROR.value,
            "checks": [
                {
                    "name": "processing",
                    "status": CheckStatus.ERROR.value,
                    "message": "File could not be rendered; it may be corrupt",
                    "details": {"attempts": e.attempts, "lastError": str(e.last_error) if e.last_error else None},
                }
            ],
            "thumbnailPath": None,
            "convertedPath": None,
        }
    except Exception:
        logger.exception("task.failed", extra={"task": "preflight_file_task"})
        raise
    finally:
        clear_context()


@celery_app.task(
    name="preflight.tasks.preflight_pipeline.summarize_upload_task",
    bind=True,
    max_retries=0,
)
def summarize_upload_task(self, item_results: list, upload_id: str | None = None):
    """
    Chord callback over preflight_file_task results for one upload:

        chord(preflight_file_task.s(...) for each item)(summarize_upload_task.s(upload_id=...))

    Returns None while any item is still pending (no status yet).
    """
    set_context(task_id=getattr(self.request, "id", None), upload_id=upload_id)
    try:
        statuses = [r.get("status") if isinstance(r, dict) else r for r in item_results]
        summary = summarize_upload(statuses)
        if summary is None:
            logger.info("upload.pending", extra={"item_count": len(statuses)})
            return None
        logger.info(
            "upload.summarized",
            extra={"status": summary.status.value, "overall": summary.overall.value, "item_count": summary.item_count},
        )
        return {"upload_id": upload_id, **summary.to_dict()}
    finally:
        clear_context()
