"""
Request/Task context helpers.

We keep a small context (request_id, task_id, upload_id, item_id) in
ContextVars. Both the FastAPI middleware and Celery tasks set these values so
logs from one preflight run can be correlated across tool invocations.

No external dependencies.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Any, Dict, Optional


_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_task_id: ContextVar[Optional[str]] = ContextVar("task_id", default=None)
_upload_id: ContextVar[Optional[str]] = ContextVar("upload_id", default=None)
_item_id: ContextVar[Optional[str]] = ContextVar("item_id", default=None)


def set_context(
    *,
    request_id: Optional[str] = None,
    task_id: Optional[str] = None,
    upload_id: Optional[str] = None,
    item_id: Optional[str] = None,
) -> None:
    if request_id is not None:
        _request_id.set(request_id)
    if task_id is not None:
        _task_id.set(task_id)
    if upload_id is not None:
        _upload_id.set(upload_id)
    if item_id is not None:
        _item_id.set(item_id)


def clear_context() -> None:
    _request_id.set(None)
    _task_id.set(None)
    _upload_id.set(None)
    _item_id.set(None)


def get_context() -> Dict[str, Any]:
    ctx: Dict[str, Any] = {}
    rid = _request_id.get()
    tid = _task_id.get()
    uid = _upload_id.get()
    iid = _item_id.get()

    if rid:
        ctx["request_id"] = rid
    if tid:
        ctx["task_id"] = tid
    if uid:
        ctx["upload_id"] = uid
    if iid:
        ctx["item_id"] = iid
    return ctx
