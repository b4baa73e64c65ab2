import json

import pytest

from modules.job_crawl.lib.config import DEFAULT_SEARCH_TERMS, ConfigError, Settings


def test_defaults():
    s = Settings.from_env_and_kwargs({})
    assert s.search_terms == list(DEFAULT_SEARCH_TERMS)
    assert len(s.search_terms) == 20
    assert (s.max_items_per_term, s.page_size, s.max_concurrent_detail_fetches) == (200, 25, 5)
    assert s.max_age_days == 30
    assert s.inter_page_delay_s == 2.0
    assert s.site == "linkedin"
    assert s.fetcher == "direct"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (["a", "b"], ["a", "b"]),
        ('["a", "b"]', ["a", "b"]),
        ("a, b ,c", ["a", "b", "c"]),
        ("a,,b", ["a", "b"]),
    ],
)
def test_search_terms_shapes(raw, expected):
    assert Settings.from_env_and_kwargs({"search_terms": raw}).search_terms == expected


def test_terms_path_wins_over_search_terms(tmp_path):
    p = tmp_path / "terms.json"
    p.write_text(json.dumps(["site reliability engineer"]), encoding="utf-8")
    s = Settings.from_env_and_kwargs({"terms_path": str(p), "search_terms": ["ignored"]})
    assert s.search_terms == ["site reliability engineer"]


def test_terms_path_must_hold_a_list(tmp_path):
    p = tmp_path / "terms.json"
    p.write_text(json.dumps({"terms": ["x"]}), encoding="utf-8")
    with pytest.raises(ConfigError):
        Settings.from_env_and_kwargs({"terms_path": str(p)})


def test_missing_terms_file():
    with pytest.raises(ConfigError, match="not found"):
        Settings.from_env_and_kwargs({"terms_path": "/nonexistent/terms.json"})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"search_terms": []},
        {"search_terms": ["a", "a"]},
        {"search_terms": ["a", "  "]},
        {"max_items_per_term": 0},
        {"page_size": 0},
        {"max_concurrent_detail_fetches": 0},
        {"max_concurrent_detail_fetches": True},
        {"max_age_days": -1},
        {"inter_page_delay_ms": -5},
        {"request_timeout_sec": 0},
        {"fetcher": "carrier-pigeon"},
        {"page_size": "many"},
    ],
)
def test_invalid_settings(kwargs):
    with pytest.raises(ConfigError):
        Settings.from_env_and_kwargs(kwargs)


def test_proxy_requires_api_key_unless_skip_network():
    with pytest.raises(ConfigError):
        Settings.from_env_and_kwargs({"fetcher": "proxy"})
    s = Settings.from_env_and_kwargs({"fetcher": "proxy", "skip_network": True})
    assert s.fetcher == "proxy"


def test_proxy_api_key_from_resolved_env_kwarg_is_not_in_repr():
    s = Settings.from_env_and_kwargs({"fetcher": "proxy", "proxy_api_key_env": "sekrit-123"})
    assert s.proxy_api_key == "sekrit-123"
    assert "sekrit-123" not in repr(s)


def test_string_numbers_and_blank_report_dir():
    s = Settings.from_env_and_kwargs({"page_size": "10", "report_dir": "", "skip_network": "true"})
    assert s.page_size == 10
    assert s.report_dir == ""
    assert s.skip_network is True
