from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .utils import as_str_list, truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Defaults
# -----------------------------
DEFAULT_SEARCH_TERMS: tuple[str, ...] = (
    "full stack developer",
    "data scientist",
    "product manager",
    "software engineer",
    "machine learning engineer",
    "devops engineer",
    "frontend developer",
    "backend developer",
    "cybersecurity analyst",
    "cloud architect",
    "database administrator",
    "mobile app developer",
    "AI researcher",
    "UI/UX designer",
    "IT project manager",
    "business analyst",
    "network engineer",
    "systems administrator",
    "QA engineer",
    "technical writer",
)

DEFAULT_PROXY_ENDPOINT = "https://api.zenrows.com/v1/"
FETCHER_KINDS = ("direct", "proxy")


# -----------------------------
# Models
# -----------------------------
@dataclass
class Settings:
    """
    Canonical configuration for one 'job_crawl' session.

    Search terms come from `search_terms` (list / JSON array / comma string)
    or, when given, from a JSON list stored at `terms_path`.
    """

    search_terms: list[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_TERMS))

    # Crawl limits
    max_items_per_term: int = 200
    page_size: int = 25
    max_concurrent_detail_fetches: int = 5
    max_age_days: int = 30
    inter_page_delay_ms: int = 2000

    # Collaborators
    site: str = "linkedin"
    fetcher: str = "direct"
    proxy_endpoint: str = DEFAULT_PROXY_ENDPOINT
    proxy_api_key: str = field(default="", repr=False)
    request_timeout_sec: float = 30.0

    # Output / runtime behavior
    report_dir: str = "/app/local/reports"
    skip_network: bool = False

    @property
    def inter_page_delay_s(self) -> float:
        return self.inter_page_delay_ms / 1000.0

    def validate(self) -> None:
        """Raise ConfigError on any invalid limit. Called before any network activity."""
        _validate_settings(self)

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with validation.

        Expected kwargs (all optional):

            search_terms: list[str] | str        # default: built-in keyword list
            terms_path: str                      # JSON file with a list of terms (wins over search_terms)
            max_items_per_term: int = 200
            page_size: int = 25
            max_concurrent_detail_fetches: int = 5
            max_age_days: int = 30
            inter_page_delay_ms: int = 2000
            site: str = "linkedin"               # extractor kind (see extractors.registry)
            fetcher: "direct" | "proxy" = "direct"
            proxy_endpoint: str                  # rendering/anti-bot proxy URL
            proxy_api_key_env: str               # resolved to the key value by service.runner
            proxy_api_key: str                   # explicit key (tests/dev)
            request_timeout_sec: float = 30
            report_dir: str = "/app/local/reports"   # "" disables writing the JSON report
            skip_network: bool = false
        """
        kw = dict(kwargs or {})

        terms_path = str(kw.get("terms_path") or "").strip()
        if terms_path:
            search_terms = _load_terms_file(terms_path)
        elif kw.get("search_terms") is not None:
            search_terms = as_str_list(kw.get("search_terms"))
        else:
            search_terms = list(DEFAULT_SEARCH_TERMS)

        # Runner resolves *_env keys to their values already; accept both spellings.
        proxy_api_key = str(kw.get("proxy_api_key") or kw.get("proxy_api_key_env") or "").strip()

        settings = cls(
            search_terms=search_terms,
            max_items_per_term=_int(kw, "max_items_per_term", 200),
            page_size=_int(kw, "page_size", 25),
            max_concurrent_detail_fetches=_int(kw, "max_concurrent_detail_fetches", 5),
            max_age_days=_int(kw, "max_age_days", 30),
            inter_page_delay_ms=_int(kw, "inter_page_delay_ms", 2000),
            site=str(kw.get("site") or "linkedin").strip().lower(),
            fetcher=str(kw.get("fetcher") or "direct").strip().lower(),
            proxy_endpoint=str(kw.get("proxy_endpoint") or DEFAULT_PROXY_ENDPOINT).strip(),
            proxy_api_key=proxy_api_key,
            request_timeout_sec=_float(kw, "request_timeout_sec", 30.0),
            report_dir=str(kw.get("report_dir", "/app/local/reports") or "").strip(),
            skip_network=truthy(kw.get("skip_network")),
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _int(kw: Mapping[str, Any], name: str, default: int) -> int:
    raw = kw.get(name)
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        raise ConfigError(f"'{name}' must be an integer (got {raw!r}).")
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be an integer (got {raw!r}).") from e


def _float(kw: Mapping[str, Any], name: str, default: float) -> float:
    raw = kw.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be a number (got {raw!r}).") from e


def _load_terms_file(path: str) -> list[str]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"search terms file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"search terms file is invalid JSON: {path}") from e

    if not isinstance(data, list):
        raise ConfigError(f"search terms file must hold a JSON list: {path}")
    return [str(t).strip() for t in data]


def _validate_settings(s: Settings) -> None:
    if not s.search_terms:
        raise ConfigError("At least one search term is required.")
    seen: set[str] = set()
    for i, term in enumerate(s.search_terms):
        if not isinstance(term, str) or not term.strip():
            raise ConfigError(f"search_terms[{i}] must be a non-empty string.")
        if term in seen:
            raise ConfigError(f"Duplicate search term {term!r}.")
        seen.add(term)

    if s.max_items_per_term <= 0:
        raise ConfigError("'max_items_per_term' must be >= 1.")
    if s.page_size <= 0:
        raise ConfigError("'page_size' must be >= 1.")
    if s.max_concurrent_detail_fetches <= 0:
        raise ConfigError("'max_concurrent_detail_fetches' must be >= 1.")
    if s.max_age_days < 0:
        raise ConfigError("'max_age_days' must be >= 0.")
    if s.inter_page_delay_ms < 0:
        raise ConfigError("'inter_page_delay_ms' must be >= 0.")
    if s.request_timeout_sec <= 0:
        raise ConfigError("'request_timeout_sec' must be > 0.")

    if not s.site:
        raise ConfigError("'site' cannot be empty.")
    if s.fetcher not in FETCHER_KINDS:
        raise ConfigError(f"'fetcher' must be one of {', '.join(FETCHER_KINDS)} (got {s.fetcher!r}).")
    if s.fetcher == "proxy":
        if not s.proxy_endpoint:
            raise ConfigError("'proxy_endpoint' cannot be empty when fetcher='proxy'.")
        if not s.proxy_api_key and not s.skip_network:
            raise ConfigError("fetcher='proxy' requires an API key ('proxy_api_key_env' or 'proxy_api_key').")
