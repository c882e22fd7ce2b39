"""Engine configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened: dict[str, Any] = {}
        if 'grammar_service' in data:
            section = data['grammar_service']
            flattened['grammar_service_url'] = section.get('url')
            flattened['grammar_language'] = section.get('language')
            flattened['grammar_timeout_seconds'] = section.get('timeout_seconds')
        if 'llm' in data:
            flattened['fluency_model'] = data['llm'].get('model')
            flattened['llm_timeout_seconds'] = data['llm'].get('timeout_seconds')
        if 'dictionary' in data:
            flattened['dictionary_path'] = data['dictionary'].get('path')
            flattened['dictionary_language'] = data['dictionary'].get('language')
        if 'cache' in data:
            flattened['nlp_cache_ttl_seconds'] = data['cache'].get('nlp_ttl_seconds')
            flattened['profile_cache_ttl_seconds'] = data['cache'].get('profile_ttl_seconds')
        if 'scoring' in data:
            scoring = data['scoring']
            flattened['total_timeout_seconds'] = scoring.get('total_timeout_seconds')
            flattened['critical_error_threshold'] = scoring.get('critical_error_threshold')
            flattened['strict_zero_grammar'] = scoring.get('strict_zero_grammar')
        if 'smoothing' in data:
            smoothing = data['smoothing']
            flattened['minimum_message_count_for_history'] = (
                smoothing.get('minimum_message_count_for_history')
            )
            flattened['minimum_historical_weight'] = smoothing.get('minimum_historical_weight')
            flattened['category_baselines'] = smoothing.get('category_baselines')

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Engine settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ACCURACY_",
        extra="ignore",
    )

    # Grammar-checking service (LanguageTool compatible)
    grammar_service_url: str = Field(default="http://localhost:8081/v2")
    grammar_language: str = Field(default="en-US")
    grammar_timeout_seconds: float = Field(default=5.0)

    # LLM fluency scorer (None disables the remote call)
    openai_api_key: str | None = Field(default=None)
    fluency_model: str = Field(default="gpt-4o-mini")
    llm_timeout_seconds: float = Field(default=10.0)

    # Spell-checker dictionary: bundled pyspellchecker language, or a word list replacing it
    dictionary_path: Path | None = Field(default=None)
    dictionary_language: str = Field(default="en")

    # Caching
    nlp_cache_ttl_seconds: int = Field(default=3600)
    profile_cache_ttl_seconds: int = Field(default=300)

    # Scoring
    total_timeout_seconds: float = Field(default=15.0)
    critical_error_threshold: int = Field(default=3)
    strict_zero_grammar: bool = Field(default=True)

    # Historical smoothing
    minimum_message_count_for_history: int = Field(default=3)
    minimum_historical_weight: float = Field(default=0.2)
    category_baselines: dict[str, float] = Field(default_factory=dict)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def wordlists_dir(self) -> Path:
        return self.project_root / "config" / "wordlists"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get engine settings singleton."""
    return Settings()
