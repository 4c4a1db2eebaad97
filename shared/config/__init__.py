"""Configuration management module."""
from .config import Config, get_config
from .settings import Settings

# Convenience functions
def get_settings() -> Settings:
    """Get the current settings instance."""
    return get_config().settings

def setup_logging(**kwargs):
    """Setup logging from the configured settings, overridable by keyword."""
    from ..logging.logger import setup_logging as _setup_logging
    log_settings = get_settings().logging
    options = {
        'level': log_settings.log_level,
        'format_string': log_settings.format,
        'log_file': log_settings.file_path,
        'max_file_size': log_settings.max_file_size,
        'backup_count': log_settings.backup_count,
    }
    options.update(kwargs)
    return _setup_logging(**options)

__all__ = ['Config', 'get_config', 'Settings', 'get_settings', 'setup_logging']
