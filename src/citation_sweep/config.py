"""Configuration management using pydantic-settings."""

import tomllib
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.dispatcher import DEFAULT_SINK_WORKERS
from .domain.models import PROVIDER_PROFILES, Provider, ProviderProfile
from .domain.orchestrator import DEFAULT_LOOKUP_TIMEOUT, DEFAULT_STATE, default_max_workers
from .domain.registry import ConfigError

DEFAULT_TIMEOUT = 30.0
CONFIG_PATH = Path("~/.config/citation-sweep/config.toml").expanduser()


class BackendConfig(BaseSettings):
    """Fleet backend connection."""

    model_config = SettingsConfigDict(env_prefix="CITATION_SWEEP_BACKEND_")

    base_url: str = ""
    email: str = ""
    password: SecretStr = SecretStr("")
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0)

    @field_validator("base_url")
    @classmethod
    def check_scheme(cls, v: str) -> str:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid base_url scheme: {v}")
        return v


class RunConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CITATION_SWEEP_RUN_")

    max_workers: int = Field(default_factory=default_max_workers, ge=1)
    sink_workers: int = Field(DEFAULT_SINK_WORKERS, ge=1)
    lookup_timeout: float = Field(DEFAULT_LOOKUP_TIMEOUT, gt=0)
    default_state: str = DEFAULT_STATE

    @field_validator("default_state")
    @classmethod
    def upper_state(cls, v: str) -> str:
        return v.strip().upper()


class ProviderSettings(BaseSettings):
    """Per-provider overrides. Unset limits keep the built-in profile."""

    enabled: bool = True
    max_concurrency: int | None = Field(None, ge=1)
    min_delay: float | None = Field(None, ge=0)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CITATION_SWEEP_")

    backend: BackendConfig = BackendConfig()
    run: RunConfig = RunConfig()
    providers: dict[str, ProviderSettings] = {}


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from TOML file, falling back to defaults."""
    path = config_path or CONFIG_PATH

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)

        backend = BackendConfig(**data.get("backend", {}))
        run = RunConfig(**data.get("run", {}))
        providers = {
            name: ProviderSettings(**values) for name, values in data.get("providers", {}).items()
        }
        return Settings(backend=backend, run=run, providers=providers)

    return Settings()


def parse_provider(name: str) -> Provider:
    """Resolve a provider by value ("city-of-key-west") or enum name."""
    key = name.strip()
    for provider in Provider:
        if key.lower() == provider.value or key.upper().replace("-", "_") == provider.name:
            return provider
    raise ConfigError(f"Unknown provider: {name}")


def provider_profiles(settings: Settings) -> dict[Provider, ProviderProfile]:
    """Built-in profiles with configured limits applied."""
    profiles = dict(PROVIDER_PROFILES)
    for name, overrides in settings.providers.items():
        provider = parse_provider(name)
        base = profiles[provider]
        profiles[provider] = ProviderProfile(
            display_name=base.display_name,
            max_concurrency=overrides.max_concurrency or base.max_concurrency,
            min_delay=overrides.min_delay if overrides.min_delay is not None else base.min_delay,
            transport=base.transport,
            link=base.link,
        )
    return profiles


def enabled_providers(settings: Settings) -> list[Provider]:
    disabled = {parse_provider(name) for name, p in settings.providers.items() if not p.enabled}
    return [p for p in Provider if p not in disabled]
