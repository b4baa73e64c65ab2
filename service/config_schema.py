# service/config_schema.py
from __future__ import annotations

import json
import logging
import os
import re
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the config is invalid."""


_TRIGGER_FIELDS = ("cron", "interval", "daily_time")
_DAILY_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def load_config(path: str | None = None) -> dict[str, Any]:
    """
    Load the service configuration.

    Resolution order:
      1) Explicit `path` argument
      2) os.environ['CONFIG_PATH']
      3) Internal default (no jobs)

    Example (YAML):

        timezone: America/Chicago
        jobs:
          - id: nightly-crawl
            module: job_crawl
            daily_time: {time: "02:30"}
            timeout_sec: 3600
            kwargs:
              search_terms: ["data scientist", "devops engineer"]
              fetcher: proxy
              proxy_api_key_env: ZENROWS_API_KEY

    Returns:
        dict with {"timezone": str, "jobs": [normalized job dicts]}.
    """
    resolved_path = path or os.environ.get("CONFIG_PATH")
    if not resolved_path:
        logger.info("CONFIG_PATH not provided; using empty default config.")
        cfg: dict[str, Any] = {"jobs": []}
    else:
        cfg = _read_any(resolved_path)

    _apply_top_level_defaults(cfg)
    return cfg


def validate(cfg: dict[str, Any]) -> None:
    """Raise ConfigError on any problem. No prints, no sys.exit()."""
    if not isinstance(cfg, dict):
        raise ConfigError("Config must be a mapping.")

    jobs = cfg.get("jobs")
    if not isinstance(jobs, list):
        raise ConfigError("Missing required top-level 'jobs' list.")

    tz = cfg.get("timezone")
    if tz is not None and not isinstance(tz, str):
        raise ConfigError("'timezone' must be a string if provided.")

    seen_ids: set[str] = set()
    for idx, job in enumerate(jobs):
        if not isinstance(job, dict):
            raise ConfigError(f"Job at index {idx} must be an object.")

        module = job.get("module")
        if not isinstance(module, str) or not module.strip():
            raise ConfigError(f"Job {idx}: 'module' is required and must be a non-empty string.")

        job_id = _derive_job_id(job, idx)
        if job_id in seen_ids:
            raise ConfigError(f"Duplicate job id '{job_id}'.")
        seen_ids.add(job_id)

        trigger = _trigger_block(job, job_id)
        present = [k for k in _TRIGGER_FIELDS if k in trigger]
        if len(present) != 1:
            raise ConfigError(f"Job '{job_id}': exactly one trigger required among {', '.join(_TRIGGER_FIELDS)}.")
        kind = present[0]
        value = trigger[kind]
        if kind == "interval":
            if not isinstance(value, dict):
                raise ConfigError(f"Job '{job_id}': interval must be an object of time fields.")
            for k, v in value.items():
                _to_int(v, field=f"interval.{k}", job_id=job_id, allow_zero=True)
        elif kind == "cron" and not isinstance(value, (str, dict)):
            raise ConfigError(f"Job '{job_id}': cron must be a crontab string or an object.")
        elif kind == "daily_time":
            _validate_daily_time(value, job_id)

        if "kwargs" in job and not isinstance(job["kwargs"], dict):
            raise ConfigError(f"Job '{job_id}': 'kwargs' must be a mapping if provided.")
        if "coalesce" in job:
            _to_bool(job["coalesce"], field="coalesce", job_id=job_id)
        for name, allow_zero in (("timeout_sec", True), ("max_instances", False), ("misfire_grace_time", True)):
            if name in job:
                _to_int(job[name], field=name, job_id=job_id, allow_zero=allow_zero)
        for opt_str in ("summary", "description"):
            if opt_str in job and not isinstance(job[opt_str], str):
                raise ConfigError(f"Job '{job_id}': '{opt_str}' must be a string if provided.")


# ---- Internals ----------------------------------------------------------------


def _apply_top_level_defaults(cfg: dict[str, Any]) -> None:
    if not isinstance(cfg.get("jobs"), list):
        cfg["jobs"] = []

    tz = cfg.get("timezone")
    if not isinstance(tz, str) or not tz.strip():
        cfg["timezone"] = os.environ.get("TZ", "UTC")

    normalized: list[dict[str, Any]] = []
    for idx, job in enumerate(cfg["jobs"]):
        if not isinstance(job, dict):
            raise ConfigError(f"Job at index {idx} must be an object.")
        job_copy = dict(job)
        job_copy["id"] = _derive_job_id(job_copy, idx)
        if "coalesce" in job_copy:
            job_copy["coalesce"] = _to_bool(job_copy["coalesce"], field="coalesce", job_id=job_copy["id"])
        for name, allow_zero in (("timeout_sec", True), ("max_instances", False), ("misfire_grace_time", True)):
            if name in job_copy:
                job_copy[name] = _to_int(job_copy[name], field=name, job_id=job_copy["id"], allow_zero=allow_zero)
        normalized.append(job_copy)
    cfg["jobs"] = normalized


def _trigger_block(job: dict[str, Any], job_id: str) -> dict[str, Any]:
    """Triggers may sit at the job's top level or nested under 'trigger' (not both)."""
    if "trigger" not in job:
        return job
    nested = job["trigger"]
    if not isinstance(nested, dict):
        raise ConfigError(f"Job '{job_id}': 'trigger' must be an object when present.")
    mixed = [k for k in _TRIGGER_FIELDS if k in job]
    if mixed:
        raise ConfigError(f"Job '{job_id}': do not mix top-level triggers {mixed} with nested 'trigger'.")
    return nested


def _derive_job_id(job: dict[str, Any], idx: int) -> str:
    for key in ("id", "name", "module"):
        v = job.get(key)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return f"job_{idx}"


def _validate_daily_time(value: Any, job_id: str) -> None:
    times = value.get("time") if isinstance(value, dict) else value
    if isinstance(times, str):
        times = [times]
    if not isinstance(times, list) or not times:
        raise ConfigError(f"Job '{job_id}': 'daily_time' needs 'HH:MM' or a list of them.")
    for t in times:
        m = _DAILY_TIME_RE.match(str(t).strip())
        if not m:
            raise ConfigError(f"Job '{job_id}': 'daily_time' must match HH:MM[:SS] (got {t!r}).")
        hour, minute, second = int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)
        if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
            raise ConfigError(f"Job '{job_id}': 'daily_time' {t!r} out of range (00:00..23:59:59).")


def _to_bool(value: Any, *, field: str, job_id: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"Job '{job_id}': '{field}' must be a boolean (or boolean-like string).")


def _to_int(value: Any, *, field: str, job_id: str, allow_zero: bool) -> int:
    try:
        iv = int(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"Job '{job_id}': '{field}' must be an integer.") from err
    if iv < 0 or (iv == 0 and not allow_zero):
        raise ConfigError(f"Job '{job_id}': '{field}' must be >= {'0' if allow_zero else '1'} (got {iv}).")
    return iv


def _read_any(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {path}: {e}") from e

    if path.lower().endswith((".yml", ".yaml")):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level config in {path} must be a mapping/object.")
    return data
