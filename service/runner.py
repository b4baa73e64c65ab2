# service/runner.py
from __future__ import annotations

import importlib
import json
import logging
import os
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from service import logging_utils

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def now_iso() -> str:
    return datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")


def _maybe_bool(v: Any) -> Any:
    if isinstance(v, str):
        low = v.strip().lower()
        if low in ("true", "t", "yes", "y"):
            return True
        if low in ("false", "f", "no", "n"):
            return False
    return v


def _maybe_number(v: Any) -> Any:
    if not isinstance(v, str):
        return v
    s = v.strip()
    if s and (s.isdigit() or (s.startswith("-") and s[1:].isdigit())):
        return int(s)
    try:
        return float(s)
    except ValueError:
        return v


def _normalize_kwargs_types(kwargs: dict[str, object] | None) -> dict[str, object]:
    """
    Normalize job kwargs right before module.run(**kwargs):

      • Keys ending with "_env": the string value is an ENV VAR NAME
        (e.g. "ZENROWS_API_KEY"); it is replaced by os.getenv(<name>, "")
        and not coerced further. The key name is kept as-is.

      • Other string values: JSON if they look like an object/array,
        otherwise common bool/number spellings are coerced.

      • Non-strings are left unchanged.
    """
    if not kwargs:
        return {}

    normalized: dict[str, object] = {}
    for k, v in kwargs.items():
        if isinstance(k, str) and k.endswith("_env") and isinstance(v, str):
            normalized[k] = os.getenv(v.strip(), "")
            continue

        if isinstance(v, str):
            s = v.strip()
            if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
                try:
                    normalized[k] = json.loads(s)
                    continue
                except json.JSONDecodeError:
                    pass
            normalized[k] = _maybe_number(_maybe_bool(s))
        else:
            normalized[k] = v

    return normalized


def _resolve_callable(module_path: str) -> Callable[..., Any]:
    """Import module and return its `run` callable. Accepts 'job_crawl' or 'modules.job_crawl.main'."""
    candidates = [module_path]
    if not module_path.startswith("modules."):
        candidates.append(f"modules.{module_path}")
    candidates += [f"{c}.main" for c in list(candidates) if not c.endswith(".main")]

    last_err: Exception | None = None
    for path in candidates:
        try:
            mod = importlib.import_module(path)
        except ModuleNotFoundError as e:
            last_err = e
            continue
        run = getattr(mod, "run", None)
        if callable(run):
            return run
    if last_err is not None:
        raise ModuleNotFoundError(f"Module {module_path!r} could not be imported: {last_err}") from last_err
    raise AttributeError(f"Module {module_path!r} does not define a callable `run(**kwargs)`.")


def _emit_activity(record: dict[str, Any]) -> None:
    try:
        logging_utils.write_activity_log(record)
    except (OSError, TypeError, ValueError) as e:
        log.warning("write_activity_log failed: %s", e)


@dataclass
class RunResult:
    ok: bool
    message: str
    html: str | None = None
    meta: dict[str, Any] | None = None


def _coerce_result(value: Any) -> RunResult:
    """
    Normalize a module's return value.

    Acceptable shapes:
      - None            -> no output
      - str             -> HTML
      - (str, dict)     -> HTML + meta (may include 'message')
      - dict            -> meta only
    """
    if value is None:
        return RunResult(ok=True, message="OK")
    if isinstance(value, str):
        return RunResult(ok=True, message="OK", html=value)
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], str) and isinstance(value[1], dict):
        return RunResult(ok=True, message=value[1].get("message", "OK"), html=value[0], meta=value[1])
    if isinstance(value, dict):
        return RunResult(ok=True, message=value.get("message", "OK"), meta=value)
    raise TypeError("Module return must be one of: None, str, (str, dict) or dict")


def _meta_for_log(meta: dict[str, Any] | None) -> dict[str, Any]:
    # The full crawl report is written to its own file; keep log lines small.
    return {k: v for k, v in (meta or {}).items() if k != "report"}


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------
def run_module_once(
    module: str,
    kwargs: dict[str, object] | None = None,
    trigger_type: str = "scheduled",
    job_context: dict[str, object] | None = None,  # e.g. {"job_id": "...", "now_iso": "..."}
    timeout_sec: int | None = None,
) -> tuple[str | None, str, dict[str, Any]]:
    """
    Execute a module's run(**kwargs) once.

    Returns:
        (html_or_none, run_id, meta)
    Raises:
        Propagates exceptions from module execution (caller/CLI logs them).
        A run exceeding `timeout_sec` raises TimeoutError; the worker thread
        is abandoned, not killed.
    """
    run_id = uuid.uuid4().hex
    context: dict[str, Any] = {
        "run_id": run_id,
        "module": module,
        "trigger_type": trigger_type,
        "started_at": now_iso(),
    }
    if job_context:
        context.update({k: v for k, v in job_context.items() if k not in context})

    kw = _normalize_kwargs_types(kwargs)
    run_callable = _resolve_callable(module)

    exc: BaseException | None = None
    t0 = datetime.now()
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="runner")
    try:
        fut = pool.submit(lambda: run_callable(**kw))
        value = fut.result(timeout=timeout_sec) if timeout_sec else fut.result()
        result = _coerce_result(value)
    except FutureTimeout:
        exc = TimeoutError(f"Module run timed out after {timeout_sec}s")
        result = RunResult(ok=False, message=str(exc), meta={"timeout_sec": timeout_sec})
    except Exception as e:
        exc = e
        result = RunResult(ok=False, message=str(e), meta={"exception_type": type(e).__name__})
    finally:
        pool.shutdown(wait=exc is None, cancel_futures=True)
    duration_ms = int((datetime.now() - t0).total_seconds() * 1000)

    _emit_activity({
        "ts": now_iso(),
        "event": "module_run",
        "run_id": run_id,
        "module": module,
        "trigger_type": trigger_type,
        "ok": result.ok,
        "message": result.message,
        "duration_ms": duration_ms,
        "context": context,
        "kwargs": kw,
        "meta": _meta_for_log(result.meta),
    })

    if exc:
        raise exc

    return result.html, run_id, result.meta or {}
