"""Configuration management."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from scam_analyzer.core.backoff import RetryConfig
from scam_analyzer.core.errors import ConfigurationError
from scam_analyzer.core.interfaces import KeyValueStore

API_CONFIG_STORAGE_KEY = "apiConfig"
TRUSTED_DOMAINS_STORAGE_KEY = "trustedDomains"

DEFAULT_SYSTEM_PROMPT = """You are a cybersecurity expert specializing in scam and phishing detection. Analyze websites for scam indicators and provide accurate risk assessments.

Risk levels: SAFE, LOW, MEDIUM, HIGH, CRITICAL.
Always respond in valid JSON format. Confidence is a number between 0.0 and 1.0."""

DEFAULT_USER_PROMPT = """Analyze this website for scam indicators:

URL: {url}
Domain: {domain}
Title: {title}
Meta Description: {meta_description}
Meta Keywords: {meta_keywords}{url_patterns_info}{external_links_info}

Headings: {headings}

Links (sample): {links}{suspicious_links_info}

Forms: {forms}

Body text (first 1000 chars): {body_text}

Threat indicators: URGENCY, PRESSURE, TOO_GOOD_TO_BE_TRUE, POOR_GRAMMAR, SENSITIVE_DATA_REQ, FAKE_TRUST_SIGNALS, SUSPICIOUS_LINK, IMPERSONATION, SUSPICIOUS_DOMAIN

Respond in JSON format:
{{
  "riskLevel": "SAFE|LOW|MEDIUM|HIGH|CRITICAL",
  "threats": ["THREAT1", "THREAT2"],
  "explanation": "Brief explanation of findings",
  "confidence": 0.0-1.0,
  "suspiciousPassages": [{{"text": "verbatim text", "labels": ["THREAT1"], "confidence": 0.0-1.0, "reason": "short reason"}}]
}}"""


@dataclass
class ApiSettings:
    """Chat-completions endpoint settings."""
    endpoint: str = "https://openrouter.ai/api/v1/chat/completions"
    api_key: str = ""
    model: str = "openai/gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 500
    timeout: float = 30.0
    test_timeout: float = 10.0


@dataclass
class RetrySettings:
    """Per-call retry settings."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            backoff_multiplier=self.backoff_multiplier,
        )


@dataclass
class CacheSettings:
    """Result cache settings."""
    ttl: float = 24 * 60 * 60.0
    dynamic_ttl: float = 60 * 60.0
    dynamic_domains: list[str] = field(default_factory=list)
    max_entries: int = 500
    sweep_interval: float = 60 * 60.0
    content_sample_chars: int = 1000


@dataclass
class QueueSettings:
    """Admission queue settings."""
    min_interval: float = 2.0
    max_size: int = 10
    max_retries: int = 2


@dataclass
class RateLimitSettings:
    """Local caller protection."""
    max_requests: int = 10
    window: float = 60.0


@dataclass
class StorageSettings:
    """Files backing the two storage scopes."""
    sync_path: Path = Path("storage/sync.yaml")
    local_path: Path = Path("storage/local.yaml")


@dataclass
class PromptsConfig:
    """Prompts for LLM."""
    analysis: dict = field(default_factory=lambda: {
        "system": DEFAULT_SYSTEM_PROMPT,
        "user": DEFAULT_USER_PROMPT,
    })
    connection_test: str = 'Reply with exactly: "OK"'


@dataclass
class Settings:
    """Application settings."""

    api: ApiSettings = field(default_factory=ApiSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    queue: QueueSettings = field(default_factory=QueueSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    prompts: PromptsConfig = field(default_factory=PromptsConfig)
    trusted_domains: list[str] = field(default_factory=list)

    @property
    def retry_config(self) -> RetryConfig:
        return self.retry.to_retry_config()

    def with_api_config(self, config: "ApiConfig") -> "Settings":
        """Copy of these settings pointing at another endpoint/key/model."""
        api = replace(self.api, endpoint=config.endpoint, api_key=config.api_key, model=config.model)
        return replace(self, api=api)


@dataclass(frozen=True)
class ApiConfig:
    """Endpoint, key and model as kept in the synced storage scope."""
    endpoint: str
    api_key: str
    model: str

    def validate(self) -> None:
        missing = [name for name in ("endpoint", "api_key", "model") if not getattr(self, name)]
        if missing:
            raise ConfigurationError(
                f"Incomplete API configuration, missing: {', '.join(missing)}"
            )

    def to_storage(self) -> dict[str, str]:
        return {"apiEndpoint": self.endpoint, "apiKey": self.api_key, "model": self.model}

    @classmethod
    def from_storage(cls, data: dict[str, Any]) -> "ApiConfig":
        return cls(
            endpoint=data.get("apiEndpoint", ""),
            api_key=data.get("apiKey", ""),
            model=data.get("model", ""),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApiConfig":
        return cls(endpoint=settings.api.endpoint, api_key=settings.api.api_key, model=settings.api.model)


async def load_api_config(store: KeyValueStore) -> Optional[ApiConfig]:
    """Read the API configuration from the synced scope."""
    data = await store.get(API_CONFIG_STORAGE_KEY)
    if not isinstance(data, dict):
        return None
    return ApiConfig.from_storage(data)


async def save_api_config(store: KeyValueStore, config: ApiConfig) -> None:
    """Write the API configuration to the synced scope."""
    await store.set(API_CONFIG_STORAGE_KEY, config.to_storage())


async def load_trusted_domains(store: KeyValueStore) -> list[str]:
    """Read the user-managed trusted domains from the synced scope."""
    data = await store.get(TRUSTED_DOMAINS_STORAGE_KEY)
    if not isinstance(data, list):
        return []
    return [str(domain) for domain in data if domain]


async def save_trusted_domains(store: KeyValueStore, domains: list[str]) -> None:
    await store.set(TRUSTED_DOMAINS_STORAGE_KEY, list(domains))


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    config = load_config(config_path)
    settings = Settings()

    for section in ("api", "retry", "cache", "queue", "rate_limit"):
        for key, value in (config.get(section) or {}).items():
            setattr(getattr(settings, section), key, value)

    if "storage" in config:
        for key, value in config["storage"].items():
            setattr(settings.storage, key, Path(value))

    if "prompts" in config:
        settings.prompts = PromptsConfig(**config["prompts"])

    if "trusted_domains" in config:
        settings.trusted_domains = list(config["trusted_domains"] or [])

    # API key from environment only when the file does not set one
    if not settings.api.api_key:
        settings.api.api_key = os.getenv("SCAM_ANALYZER_API_KEY", "")

    return settings
