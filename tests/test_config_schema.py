import json

import pytest

from service import config_schema
from service.config_schema import ConfigError


@pytest.fixture
def write_config(tmp_path, monkeypatch):
    def _write(cfg, name="config.json"):
        p = tmp_path / name
        if name.endswith((".yml", ".yaml")):
            p.write_text(cfg, encoding="utf-8")
        else:
            p.write_text(json.dumps(cfg), encoding="utf-8")
        monkeypatch.setenv("CONFIG_PATH", str(p))
        return p

    return _write


def test_load_and_validate_min_config(write_config):
    write_config({
        "timezone": "America/Chicago",
        "jobs": [{"id": "nightly", "module": "job_crawl", "daily_time": "02:30", "kwargs": {"max_age_days": 7}}],
    })
    cfg = config_schema.load_config()
    config_schema.validate(cfg)
    assert cfg["timezone"] == "America/Chicago"
    assert cfg["jobs"][0]["id"] == "nightly"


def test_yaml_config(write_config):
    p = write_config(
        """
timezone: UTC
jobs:
  - module: job_crawl
    timeout_sec: "3600"
    cron: "0 */6 * * *"
    kwargs:
      search_terms: [data scientist, devops engineer]
      fetcher: proxy
      proxy_api_key_env: ZENROWS_API_KEY
""",
        name="config.yaml",
    )
    cfg = config_schema.load_config(str(p))
    config_schema.validate(cfg)
    job = cfg["jobs"][0]
    assert job["id"] == "job_crawl"
    assert job["timeout_sec"] == 3600
    assert job["kwargs"]["search_terms"] == ["data scientist", "devops engineer"]


def test_no_config_path_means_no_jobs():
    cfg = config_schema.load_config()
    assert cfg["jobs"] == []
    config_schema.validate(cfg)


def test_missing_file_is_config_error():
    with pytest.raises(ConfigError, match="not found"):
        config_schema.load_config("/nonexistent/config.json")


@pytest.mark.parametrize(
    "job",
    [
        {"module": "job_crawl"},  # no trigger
        {"module": "job_crawl", "cron": "* * * * *", "interval": {"minutes": 5}},
        {"module": "job_crawl", "interval": {"minutes": "often"}},
        {"module": "job_crawl", "daily_time": "25:00"},
        {"module": "job_crawl", "daily_time": "noon"},
        {"module": "job_crawl", "cron": 5},
        {"module": "job_crawl", "cron": "* * * * *", "kwargs": ["not", "a", "dict"]},
        {"module": "job_crawl", "cron": "* * * * *", "trigger": {"interval": {"minutes": 1}}},
        {"module": "", "cron": "* * * * *"},
    ],
)
def test_invalid_jobs(job):
    with pytest.raises(ConfigError):
        config_schema.validate({"jobs": [job]})


def test_duplicate_ids_rejected():
    jobs = [
        {"id": "crawl", "module": "job_crawl", "cron": "0 * * * *"},
        {"id": "crawl", "module": "job_crawl", "cron": "30 * * * *"},
    ]
    with pytest.raises(ConfigError, match="Duplicate"):
        config_schema.validate({"jobs": jobs})


def test_nested_trigger_and_daily_time_list_are_valid():
    cfg = {
        "jobs": [
            {"id": "a", "module": "job_crawl", "trigger": {"daily_time": {"time": ["08:00", "17:30:15"]}}},
            {"id": "b", "module": "job_crawl", "interval": {"hours": 6}},
        ]
    }
    config_schema.validate(cfg)
