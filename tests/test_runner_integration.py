import glob
import json
import os
import re

import pytest


def _read_activity():
    records = []
    for path in glob.glob(os.path.join(os.environ["LOG_DIR"], "activity-test-*.jsonl")):
        with open(path, encoding="utf-8") as f:
            records += [json.loads(line) for line in f if line.strip()]
    return records


def test_runner_calls_module_and_returns_html(tmp_path):
    from service import runner

    html, run_id, meta = runner.run_module_once(
        module="job_crawl",
        kwargs={"search_terms": "qa engineer, technical writer", "skip_network": "true", "report_dir": str(tmp_path)},
        trigger_type="adhoc",
    )
    assert re.match(r"^[a-f0-9]+$", run_id)
    assert "<h3>qa engineer</h3>" in html
    assert meta["jobs_by_term"] == {"qa engineer": 0, "technical writer": 0}
    assert re.search(r"crawl-\d{8}T\d{6}Z\.json$", meta["report_path"])

    with open(meta["report_path"], encoding="utf-8") as f:
        saved = json.load(f)
    assert [t["term"] for t in saved["terms"]] == ["qa engineer", "technical writer"]

    runs = [r for r in _read_activity() if r.get("event") == "module_run"]
    assert runs and runs[-1]["ok"] is True
    assert "report" not in runs[-1]["meta"]


def test_runner_resolves_env_kwargs_and_redacts_them_in_logs(monkeypatch):
    from service import runner

    monkeypatch.setenv("ZENROWS_API_KEY", "zr-secret-value")
    _, _, meta = runner.run_module_once(
        module="modules.job_crawl.main",
        kwargs={
            "search_terms": ["qa engineer"],
            "fetcher": "proxy",
            "proxy_api_key_env": "ZENROWS_API_KEY",
            "skip_network": True,
            "report_dir": "",
        },
    )
    assert meta["report_path"] is None

    raw = ""
    for path in glob.glob(os.path.join(os.environ["LOG_DIR"], "*.jsonl")):
        with open(path, encoding="utf-8") as f:
            raw += f.read()
    assert "zr-secret-value" not in raw


def test_runner_propagates_config_errors_and_logs_failure():
    from modules.job_crawl.lib.config import ConfigError
    from service import runner

    with pytest.raises(ConfigError):
        runner.run_module_once(module="job_crawl", kwargs={"max_concurrent_detail_fetches": 0})

    runs = [r for r in _read_activity() if r.get("event") == "module_run"]
    assert runs[-1]["ok"] is False
    assert runs[-1]["meta"]["exception_type"] == "ConfigError"


def test_unknown_module_is_module_not_found():
    from service import runner

    with pytest.raises(ModuleNotFoundError):
        runner.run_module_once(module="does_not_exist")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("true", True),
        ("No", False),
        ("42", 42),
        ("2.5", 2.5),
        ('["a", "b"]', ["a", "b"]),
        ('{"k": 1}', {"k": 1}),
        ("python developer", "python developer"),
    ],
)
def test_kwargs_type_normalization(raw, expected):
    from service.runner import _normalize_kwargs_types

    assert _normalize_kwargs_types({"x": raw}) == {"x": expected}
