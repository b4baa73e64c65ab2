# service/scheduler.py
from __future__ import annotations

import logging
import threading
import time as _time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, time, timezone
from typing import Any
from zoneinfo import ZoneInfo

import pytz
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from . import config_schema, runner
from .logging_utils import write_activity_log

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobSpec:
    id: str
    trigger: Any  # apscheduler.triggers.base.BaseTrigger
    module: str
    kwargs: dict[str, Any]
    timeout_sec: int | None
    max_instances: int
    coalesce: bool
    misfire_grace_time: int | None
    summary: str | None


class SchedulerController:
    """A small façade around APScheduler so the CLI can manage lifecycle cleanly."""

    def __init__(self, scheduler: BackgroundScheduler) -> None:
        self._scheduler = scheduler
        self._stopped_evt = threading.Event()

    def stop(self) -> None:
        if self._scheduler.running:
            LOG.info("Shutting down scheduler...")
            # In-flight crawls are allowed to finish on their worker threads.
            self._scheduler.shutdown(wait=False)
        self._stopped_evt.set()

    def join(self, timeout: float | None = None) -> bool:
        """Block until stop() has run (or timeout). True if stopped."""
        return self._stopped_evt.wait(timeout=timeout)

    def get_job_ids(self) -> Iterable[str]:
        return [job.id for job in self._scheduler.get_jobs()]


def start(config_path: str | None = None) -> SchedulerController:
    """
    Load configuration, schedule every job, start APScheduler.
    Jobs with a broken trigger are logged and skipped; the rest still run.
    """
    cfg = config_schema.load_config(config_path)
    tz = _resolve_timezone(cfg)

    job_defaults = {"coalesce": True, "max_instances": 1}
    scheduler = BackgroundScheduler(
        timezone=tz,
        job_defaults=job_defaults,
        executors={"default": ThreadPoolExecutor(_int_or(cfg.get("executor_workers"), 4))},
        jobstores={"default": MemoryJobStore()},
    )

    for raw in cfg.get("jobs", []):
        try:
            spec = _make_job_spec(raw, job_defaults, tz)
        except (KeyError, TypeError, ValueError):
            LOG.exception("Skipping job due to config error: %r", raw)
            continue
        _add_job(scheduler, spec)

    scheduler.start()
    LOG.info("Scheduler started with %d job(s).", len(scheduler.get_jobs()))
    return SchedulerController(scheduler)


# ---- Helpers ----------------------------------------------------------------


def _resolve_timezone(cfg: dict[str, Any]):
    """APScheduler 3.x expects a pytz timezone; unknown names fall back to UTC."""
    tz_name = cfg.get("timezone") or "UTC"
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        LOG.warning("Falling back to UTC timezone (unknown tz '%s')", tz_name)
        return pytz.UTC


def _make_job_spec(raw: dict[str, Any], job_defaults: dict[str, Any], tz) -> JobSpec:
    module = raw.get("module")
    if not module:
        raise ValueError("Missing required key: module")
    trigger_def = raw["trigger"] if "trigger" in raw else raw
    return JobSpec(
        id=str(raw.get("id") or raw.get("name") or module),
        trigger=_build_trigger(trigger_def, str(tz)),
        module=module,
        kwargs=dict(raw.get("kwargs") or {}),
        timeout_sec=_int_or(raw.get("timeout_sec"), None),
        max_instances=_int_or(raw.get("max_instances"), job_defaults["max_instances"]),
        coalesce=bool(raw.get("coalesce", job_defaults["coalesce"])),
        misfire_grace_time=_int_or(raw.get("misfire_grace_time"), None),
        summary=raw.get("summary") or raw.get("description"),
    )


def _build_trigger(trig_def: dict[str, Any], tz: str | None) -> Any:
    """
    Build an APScheduler trigger.

    Supported shapes:
      {"interval": {weeks|days|hours|minutes|seconds, jitter?}}
      {"cron": "*/15 * * * *"}  or  {"cron": {minute, hour, day_of_week, ...}}
      {"daily_time": "HH:MM"}  or  {"daily_time": {"time": "HH:MM" | [...], "day_of_week"?, "timezone"?}}

    A block's own 'timezone' wins over the scheduler timezone `tz`.
    """
    if not isinstance(trig_def, dict):
        raise ValueError("trigger spec must be a dict")

    present = [k for k in ("interval", "cron", "daily_time") if trig_def.get(k) is not None]
    if len(present) != 1:
        raise ValueError("exactly one of {'interval','cron','daily_time'} must be provided")
    kind = present[0]
    spec = trig_def[kind]
    default_tz = ZoneInfo(tz) if tz else None

    if kind == "interval":
        if not isinstance(spec, dict):
            raise ValueError("interval must be an object with time fields")
        unknown = set(spec) - {"weeks", "days", "hours", "minutes", "seconds", "jitter", "timezone"}
        if unknown:
            raise ValueError(f"interval has unknown field(s): {sorted(unknown)}")
        amounts = {k: int(spec[k]) for k in ("weeks", "days", "hours", "minutes", "seconds") if k in spec}
        if any(v < 0 for v in amounts.values()) or not any(amounts.values()):
            raise ValueError("interval must be greater than 0 with no negative fields")
        extra = {"jitter": int(spec["jitter"])} if spec.get("jitter") else {}
        tzinfo = ZoneInfo(spec["timezone"]) if spec.get("timezone") else default_tz
        return IntervalTrigger(timezone=tzinfo, **{k: v for k, v in amounts.items() if v}, **extra)

    if kind == "cron":
        if isinstance(spec, str):
            if len(spec.split()) != 5:
                raise ValueError(f"cron string must have 5 fields: {spec!r}")
            return CronTrigger.from_crontab(spec, timezone=default_tz)
        if not isinstance(spec, dict):
            raise ValueError("cron must be a crontab string or an object")
        allowed = {"second", "minute", "hour", "day", "day_of_week", "month", "timezone", "jitter"}
        unknown = set(spec) - allowed
        if unknown:
            raise ValueError(f"cron has unknown field(s): {sorted(unknown)}")
        return CronTrigger(
            second=spec.get("second", 0),
            minute=spec.get("minute", 0),
            hour=spec.get("hour", 0),
            day=spec.get("day"),
            day_of_week=spec.get("day_of_week"),
            month=spec.get("month"),
            jitter=spec.get("jitter"),
            timezone=ZoneInfo(spec["timezone"]) if spec.get("timezone") else default_tz,
        )

    # daily_time: sugar over one CronTrigger per distinct time of day
    if isinstance(spec, str):
        spec = {"time": spec}
    if not isinstance(spec, dict):
        raise ValueError("daily_time must be 'HH:MM' or an object")
    unknown = set(spec) - {"time", "day_of_week", "timezone"}
    if unknown:
        raise ValueError(f"daily_time has unknown field(s): {sorted(unknown)}")
    times = spec.get("time")
    if times is None:
        raise ValueError("daily_time requires 'time'")
    if isinstance(times, str):
        times = [times]
    tzinfo = ZoneInfo(spec["timezone"]) if spec.get("timezone") else default_tz

    triggers = [
        CronTrigger(hour=h, minute=m, second=s, day_of_week=spec.get("day_of_week"), timezone=tzinfo)
        for h, m, s in sorted({_parse_time(str(t)) for t in times})
    ]
    return triggers[0] if len(triggers) == 1 else OrTrigger(triggers)


def _parse_time(s: str) -> tuple[int, int, int]:
    parts = s.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"daily_time.time must be 'HH:MM' or 'HH:MM:SS', got {s!r}")
    hh, mm, ss = (int(p) for p in parts + ["0"] * (3 - len(parts)))
    time(hh, mm, ss)  # range check
    return hh, mm, ss


def _add_job(scheduler: BackgroundScheduler, spec: JobSpec) -> None:
    """Register `spec` with a wrapper that runs the module via runner and logs the outcome."""

    def _job_wrapper() -> None:
        started = _time.monotonic()
        LOG.info("Job[%s] starting (module=%s)", spec.id, spec.module)
        try:
            _, run_id, meta = runner.run_module_once(
                spec.module,
                kwargs=dict(spec.kwargs),
                trigger_type="scheduled",
                job_context={"job_id": spec.id, "now_iso": datetime.now(timezone.utc).isoformat()},
                timeout_sec=spec.timeout_sec,
            )
        except Exception:
            LOG.exception("Job[%s] raised an exception.", spec.id)
            _write_activity(spec, status="error", duration_s=_time.monotonic() - started)
            return

        duration = _time.monotonic() - started
        LOG.info("Job[%s] finished in %.3fs", spec.id, duration)
        _write_activity(spec, status="ok", duration_s=duration, run_id=run_id, message=meta.get("message"))

    scheduler.add_job(
        func=_job_wrapper,
        trigger=spec.trigger,
        id=spec.id,
        max_instances=spec.max_instances,
        coalesce=spec.coalesce,
        misfire_grace_time=spec.misfire_grace_time,
        replace_existing=True,
    )
    LOG.info("Registered job[%s] (module=%s, trigger=%s)", spec.id, spec.module, spec.trigger)


def _write_activity(spec: JobSpec, status: str, duration_s: float, **fields: Any) -> None:
    try:
        write_activity_log({
            "ts": datetime.now(timezone.utc).isoformat(),
            "source": "scheduler",
            "event": "job_run",
            "fields": {
                "job_id": spec.id,
                "module": spec.module,
                "status": status,
                "duration_ms": int(duration_s * 1000),
                "summary": spec.summary,
                **fields,
            },
        })
    except OSError:
        LOG.debug("write_activity_log failed for job[%s]", spec.id, exc_info=True)


def _int_or(v: Any, default: int | None) -> int | None:
    """Return int(v) or default if v is None/invalid (lenient for config)."""
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default
