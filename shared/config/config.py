"""Configuration management for the virtual trading application."""
from typing import Optional
from .settings import Settings
from ..exceptions.config import ConfigurationError


class Config:
    """Configuration manager for the application."""

    _instance: Optional['Config'] = None
    _settings: Optional[Settings] = None

    def __new__(cls) -> 'Config':
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize the configuration manager."""
        if self._settings is None:
            self._load_settings()

    def _load_settings(self) -> None:
        """Load settings from environment variables and defaults."""
        try:
            settings = Settings.from_env()
            settings.validate()
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        self._settings = settings

    @property
    def settings(self) -> Settings:
        """Get the current settings."""
        if self._settings is None:
            self._load_settings()
        assert self._settings is not None
        return self._settings

    def reload(self) -> None:
        """Reload configuration from environment."""
        self._settings = None
        self._load_settings()

    def update_settings(self, **kwargs) -> None:
        """Update specific settings programmatically.

        Nested settings use dotted keys, e.g.
        ``update_settings(**{'trading.minimum_investment_enabled': True})``.
        """
        if self._settings is None:
            self._load_settings()

        for key, value in kwargs.items():
            if hasattr(self._settings, key):
                setattr(self._settings, key, value)
            else:
                parts = key.split('.')
                if len(parts) == 2:
                    section, setting = parts
                    if hasattr(self._settings, section):
                        section_obj = getattr(self._settings, section)
                        if hasattr(section_obj, setting):
                            setattr(section_obj, setting, value)

        # Re-validate after updates
        if self._settings is not None:
            self._settings.validate()


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_settings() -> Settings:
    """Get the current settings."""
    return get_config().settings

