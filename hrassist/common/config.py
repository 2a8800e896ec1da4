"""
Configuration Management for HR Assist

Loads configuration from ~/.hrassist/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from typing import Dict
from dataclasses import dataclass, field

logger = logging.getLogger("hrassist.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".hrassist"
CONFIG_PATH = CONFIG_DIR / "config.json"

# Project paths (relative to this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = PROJECT_ROOT / "data"

MB = 1024 * 1024

DEFAULT_CATEGORY_TTLS = {
    "employees": 15 * 60,
    "relationships": 30 * 60,
    "shifts": 5 * 60,
    "tasks": 5 * 60,
    "jobs": 10 * 60,
    "candidates": 10 * 60,
    "recognition": 10 * 60,
    "query": 5 * 60,
}

DEFAULT_CATEGORY_SIZE_LIMITS = {
    "employees": 40 * MB,
    "candidates": 30 * MB,
    "jobs": 20 * MB,
    "shifts": 20 * MB,
    "tasks": 20 * MB,
    "recognition": 10 * MB,
    "query": 50 * MB,
    "relationships": 10 * MB,
}


@dataclass
class CacheConfig:
    """Tiered cache configuration (TTLs in seconds, sizes in bytes)"""
    default_ttl: float = 10 * 60
    max_size: int = 200 * MB
    category_ttls: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_TTLS))
    category_size_limits: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_SIZE_LIMITS))


@dataclass
class CoalescerConfig:
    """Request coalescing configuration"""
    window_ms: float = 50.0


@dataclass
class AnalyzerConfig:
    """Query analyzer thresholds"""
    assistant_switch_threshold: float = 0.6  # primary intent confidence that picks a domain outright
    domain_margin: float = 0.3  # weighted domain score lead required otherwise


@dataclass
class RetrievalConfig:
    """Retrieval orchestrator configuration"""
    contextual_limit: int = 10
    upcoming_shift_days: int = 7
    query_cache_ttl: float = 5 * 60


@dataclass
class BudgetConfig:
    """Context window budget configuration (token counts are estimates)"""
    max_context_tokens: int = 100000
    buffer_tokens: int = 10000
    system_budget: int = 4000
    data_budget: int = 5000
    tokens_per_char: float = 0.25
    role_tokens: int = 2
    message_overhead_tokens: int = 5
    keep_recent: int = 8
    system_share: float = 0.3
    summarize_after: int = 15
    summary_tail: int = 6
    optimize_threshold: float = 0.6
    summarize_threshold: float = 0.8

    @property
    def effective_limit(self) -> int:
        return self.max_context_tokens - self.buffer_tokens

    @property
    def history_budget(self) -> int:
        return self.effective_limit - self.system_budget - self.data_budget


@dataclass
class LLMConfig:
    """LLM provider configuration"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    max_tokens: int = 1024
    temperature: float = 0.7
    timeout: float = 60.0


@dataclass
class StoreConfig:
    """Record store configuration"""
    data_dir: str = str(DATA_DIR)


@dataclass
class AssistConfig:
    """Main HR Assist configuration"""
    cache: CacheConfig = field(default_factory=CacheConfig)
    coalescer: CoalescerConfig = field(default_factory=CoalescerConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    preload: bool = True
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_cache_config(data: dict) -> CacheConfig:
    """Parse cache section from config dict"""
    cache_data = data.get("cache", {})
    ttls = dict(DEFAULT_CATEGORY_TTLS)
    ttls.update(cache_data.get("category_ttls", {}))
    limits = dict(DEFAULT_CATEGORY_SIZE_LIMITS)
    limits.update(cache_data.get("category_size_limits", {}))
    return CacheConfig(
        default_ttl=cache_data.get("default_ttl", 10 * 60),
        max_size=cache_data.get("max_size", 200 * MB),
        category_ttls=ttls,
        category_size_limits=limits,
    )


def _parse_coalescer_config(data: dict) -> CoalescerConfig:
    """Parse coalescer section from config dict"""
    coalescer_data = data.get("coalescer", {})
    return CoalescerConfig(
        window_ms=coalescer_data.get("window_ms", 50.0),
    )


def _parse_analyzer_config(data: dict) -> AnalyzerConfig:
    """Parse analyzer section from config dict"""
    analyzer_data = data.get("analyzer", {})
    return AnalyzerConfig(
        assistant_switch_threshold=analyzer_data.get("assistant_switch_threshold", 0.6),
        domain_margin=analyzer_data.get("domain_margin", 0.3),
    )


def _parse_retrieval_config(data: dict) -> RetrievalConfig:
    """Parse retrieval section from config dict"""
    retrieval_data = data.get("retrieval", {})
    return RetrievalConfig(
        contextual_limit=retrieval_data.get("contextual_limit", 10),
        upcoming_shift_days=retrieval_data.get("upcoming_shift_days", 7),
        query_cache_ttl=retrieval_data.get("query_cache_ttl", 5 * 60),
    )


def _parse_budget_config(data: dict) -> BudgetConfig:
    """Parse budget section from config dict, unknown keys are ignored"""
    budget_data = data.get("budget", {})
    defaults = BudgetConfig()
    kwargs = {
        name: budget_data[name]
        for name in defaults.__dataclass_fields__
        if name in budget_data
    }
    return BudgetConfig(**kwargs)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse LLM section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "anthropic"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
        max_tokens=llm_data.get("max_tokens", 1024),
        temperature=llm_data.get("temperature", 0.7),
        timeout=llm_data.get("timeout", 60.0),
    )


def _parse_store_config(data: dict) -> StoreConfig:
    """Parse store section from config dict"""
    store_data = data.get("store", {})
    return StoreConfig(
        data_dir=store_data.get("data_dir", str(DATA_DIR)),
    )


def load_config() -> AssistConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.hrassist/config.json)
    3. Default values
    """
    config = AssistConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.cache = _parse_cache_config(data)
            config.coalescer = _parse_coalescer_config(data)
            config.analyzer = _parse_analyzer_config(data)
            config.retrieval = _parse_retrieval_config(data)
            config.budget = _parse_budget_config(data)
            config.llm = _parse_llm_config(data)
            config.store = _parse_store_config(data)
            config.preload = data.get("preload", True)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Environment variable overrides
    if os.getenv("HRASSIST_DATA_DIR"):
        config.store.data_dir = os.getenv("HRASSIST_DATA_DIR")
    if os.getenv("HRASSIST_BATCH_WINDOW_MS"):
        config.coalescer.window_ms = float(os.getenv("HRASSIST_BATCH_WINDOW_MS"))
    if os.getenv("HRASSIST_MAX_CONTEXT_TOKENS"):
        config.budget.max_context_tokens = int(os.getenv("HRASSIST_MAX_CONTEXT_TOKENS"))

    # LLM env var overrides (track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "HRASSIST_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    return config


def save_config(config: AssistConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "max_tokens": config.llm.max_tokens,
        "temperature": config.llm.temperature,
        "timeout": config.llm.timeout,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    budget = config.budget
    data = {
        "cache": {
            "default_ttl": config.cache.default_ttl,
            "max_size": config.cache.max_size,
            "category_ttls": config.cache.category_ttls,
            "category_size_limits": config.cache.category_size_limits,
        },
        "coalescer": {
            "window_ms": config.coalescer.window_ms,
        },
        "analyzer": {
            "assistant_switch_threshold": config.analyzer.assistant_switch_threshold,
            "domain_margin": config.analyzer.domain_margin,
        },
        "retrieval": {
            "contextual_limit": config.retrieval.contextual_limit,
            "upcoming_shift_days": config.retrieval.upcoming_shift_days,
            "query_cache_ttl": config.retrieval.query_cache_ttl,
        },
        "budget": {name: getattr(budget, name) for name in budget.__dataclass_fields__},
        "llm": llm_section,
        "store": {
            "data_dir": config.store.data_dir,
        },
        "preload": config.preload,
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
