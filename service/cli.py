# service/cli.py
"""
User-facing command-line entrypoints for the container.

Subcommands
-----------
serve
    - Starts the APScheduler service loop via service.scheduler.start()
    - Registers signal handlers for graceful shutdown

run MODULE [--kwargs k=v ...] [--print-html]
    - Executes a module ad-hoc via runner.run_module_once(...)
    - Displays a concise success/failure summary

crawl [--terms ...] [--site ...] [--fetcher ...] [limits] [--json]
    - Shortcut for `run job_crawl` with typed flags
    - Prints per-term posting counts (or the full report as JSON)

list-jobs
    - Loads config via config_schema.load_config() and prints configured jobs

validate-config
    - Loads/validates config and returns nonzero on error
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
import time
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from service import config_schema as _config_schema
from service import logging_utils as L
from service import runner as _runner
from service import scheduler as _scheduler

LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array) are parsed.
    - Otherwise keep as raw strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except json.JSONDecodeError:
            out[k] = v
    return out


def _print_table(rows: Iterable[tuple[str, str]], headers: tuple[str, str] = ("ID", "DETAILS")) -> None:
    """Very simple two-column table printer."""
    rows = list(rows)
    w0 = max(len(headers[0]), *(len(r[0]) for r in rows)) if rows else len(headers[0])
    w1 = max(len(headers[1]), *(len(r[1]) for r in rows)) if rows else len(headers[1])
    sep = f"+-{'-' * w0}-+-{'-' * w1}-+"
    print(sep)
    print(f"| {headers[0].ljust(w0)} | {headers[1].ljust(w1)} |")
    print(sep)
    for c0, c1 in rows:
        print(f"| {c0.ljust(w0)} | {c1.ljust(w1)} |")
    print(sep)


def _describe_trigger(job: dict[str, Any]) -> str:
    block = job.get("trigger") if isinstance(job.get("trigger"), dict) else job
    for kind in ("cron", "interval", "daily_time"):
        if kind in block:
            return f"{kind}={json.dumps(block[kind], default=str)}"
    return "no trigger"


def _extract_jobs_from_config(cfg: dict[str, Any]) -> list[tuple[str, str]]:
    out = []
    for idx, j in enumerate(cfg.get("jobs") or []):
        jid = str(j.get("id") or j.get("name") or idx)
        desc = j.get("summary") or j.get("description") or ""
        details = f"{j.get('module')} [{_describe_trigger(j)}]"
        out.append((jid, f"{details} {desc}".strip()))
    return out


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


# ------------------------------ Subcommands ----------------------------------
def cmd_validate_config(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
        _config_schema.validate(cfg)
        print("OK: configuration is valid.")
        return 0
    except KeyboardInterrupt:
        return 130
    except _config_schema.ConfigError as e:
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return 1


def cmd_list_jobs(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
    except KeyboardInterrupt:
        return 130
    except _config_schema.ConfigError as e:
        print(f"ERROR: failed to list jobs: {e}", file=sys.stderr)
        return 1

    rows = _extract_jobs_from_config(cfg)
    if not rows:
        print("No jobs found in config.")
        return 0
    _print_table(rows, headers=("JOB", "DETAILS"))
    return 0


def _run_adhoc(module: str, kwargs: dict[str, Any]) -> tuple[str | None, dict[str, Any]]:
    """Run `module` once through the runner and log the CLI invocation. Raises on failure."""
    start_time = time.monotonic()
    try:
        html, run_id, meta = _runner.run_module_once(module=module, kwargs=kwargs, trigger_type="adhoc")
    except Exception as e:
        L.write_error_log({
            "ts": _now_iso(),
            "where": "cli.run",
            "module": module,
            "kwargs": kwargs,
            "error": repr(e),
            "duration_ms": int((time.monotonic() - start_time) * 1000),
        })
        raise

    L.write_activity_log({
        "ts": _now_iso(),
        "event": "cli_run",
        "run_id": run_id,
        "module": module,
        "trigger_type": "adhoc",
        "kwargs": kwargs,
        "duration_ms": int((time.monotonic() - start_time) * 1000),
    })
    return html, meta


def cmd_run(args: argparse.Namespace) -> int:
    kwargs = _parse_kv_pairs(args.kwargs or [])
    LOG.debug("Run module %s with kwargs=%s", args.module, kwargs)

    try:
        html, meta = _run_adhoc(args.module, kwargs)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        print(f"FAILURE: {e}", file=sys.stderr)
        return 1

    if html and args.print_html:
        print("\n----- HTML OUTPUT -----\n")
        print(html)
    print(f"SUCCESS: {meta.get('message', 'Module run completed.')}")
    return 0


def _crawl_kwargs(args: argparse.Namespace) -> dict[str, Any]:
    flags = {
        "search_terms": args.terms,
        "terms_path": args.terms_path,
        "site": args.site,
        "fetcher": args.fetcher,
        "max_items_per_term": args.max_items,
        "page_size": args.page_size,
        "max_concurrent_detail_fetches": args.concurrency,
        "max_age_days": args.max_age_days,
        "inter_page_delay_ms": args.delay_ms,
        "report_dir": args.report_dir,
    }
    kwargs = {k: v for k, v in flags.items() if v is not None}
    if args.fetcher == "proxy":
        kwargs["proxy_api_key_env"] = args.api_key_env
    if args.skip_network:
        kwargs["skip_network"] = True
    return kwargs


def cmd_crawl(args: argparse.Namespace) -> int:
    kwargs = _crawl_kwargs(args)
    try:
        _, meta = _run_adhoc("job_crawl", kwargs)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        print(f"FAILURE: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(meta.get("report", {}), ensure_ascii=False, indent=2))
        return 0

    rows = [(term, str(count)) for term, count in (meta.get("jobs_by_term") or {}).items()]
    _print_table(rows, headers=("TERM", "POSTINGS"))
    print(meta.get("message", ""))
    if meta.get("report_path"):
        print(f"Report: {meta['report_path']}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the scheduler loop until a termination signal is received."""
    L.write_activity_log({"ts": _now_iso(), "event": "serve_start"})

    stop_event = threading.Event()
    controller: _scheduler.SchedulerController | None = None

    def _graceful_shutdown(signum=None, frame=None):
        LOG.info("Signal %s received; initiating shutdown...", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _graceful_shutdown)

    try:
        controller = _scheduler.start(config_path=args.config)
        LOG.info("Scheduler started with jobs: %s", ", ".join(controller.get_job_ids()) or "(none)")

        while not stop_event.is_set():
            time.sleep(0.3)
        return 0
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        LOG.exception("Fatal error in serve: %s", e)
        return 1
    finally:
        if controller is not None:
            controller.stop()
            controller.join(timeout=10.0)
        L.write_activity_log({"ts": _now_iso(), "event": "serve_stop"})


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job crawl service command-line tools",
    )
    p.add_argument(
        "--config",
        help="Path to config file (fallbacks to CONFIG_PATH env or an empty job list).",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # serve
    sp = sub.add_parser("serve", help="Run the main scheduler loop.")
    sp.set_defaults(func=cmd_serve)

    # run
    sp = sub.add_parser("run", help="Execute a module ad-hoc via runner.run_module_once().")
    sp.add_argument("module", help="Module name to run (e.g., job_crawl).")
    sp.add_argument(
        "--kwargs",
        metavar="k=v",
        nargs="*",
        help="Extra keyword arguments for the module (JSON values supported).",
    )
    sp.add_argument(
        "--print-html",
        action="store_true",
        help="If the module returns HTML, print it to stdout.",
    )
    sp.set_defaults(func=cmd_run)

    # crawl
    sp = sub.add_parser("crawl", help="Run one job crawl session now.")
    sp.add_argument("--terms", nargs="+", metavar="TERM", help="Search terms (default: built-in list).")
    sp.add_argument("--terms-path", help="JSON file holding a list of search terms.")
    sp.add_argument("--site", help="Extractor kind (default: linkedin).")
    sp.add_argument("--fetcher", choices=("direct", "proxy"), help="Page fetcher (default: direct).")
    sp.add_argument(
        "--api-key-env",
        default="ZENROWS_API_KEY",
        help="Env var holding the proxy API key (with --fetcher proxy).",
    )
    sp.add_argument("--max-items", type=int, help="Per-term cap on detail fetches.")
    sp.add_argument("--page-size", type=int, help="Listing offset step.")
    sp.add_argument("--concurrency", type=int, help="Max concurrent detail fetches.")
    sp.add_argument("--max-age-days", type=int, help="Recency window in days.")
    sp.add_argument("--delay-ms", type=int, help="Delay between listing pages.")
    sp.add_argument("--report-dir", help="Directory for the JSON report ('' disables it).")
    sp.add_argument("--skip-network", action="store_true", help="Validate and report without fetching.")
    sp.add_argument("--json", action="store_true", help="Print the full report as JSON.")
    sp.set_defaults(func=cmd_crawl)

    # list-jobs
    sp = sub.add_parser("list-jobs", help="Print all jobs from config.")
    sp.set_defaults(func=cmd_list_jobs)

    # validate-config
    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    sp.set_defaults(func=cmd_validate_config)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
