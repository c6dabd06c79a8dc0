"""設定管理モジュール"""

from lmsbridge.config.loader import (
    ConfigError,
    ConfigValidationError,
    EnvironmentVariableError,
    expand_env_vars,
    load_config,
    parse_name_list,
    parse_role_ids,
)
from lmsbridge.config.models import (
    BackgroundConfig,
    Config,
    DatabaseConfig,
    LoggingConfig,
    MattermostConfig,
    MoodleConfig,
    NamingConfig,
    RolesConfig,
    ServerConfig,
    SyncConfig,
)

__all__ = [
    "BackgroundConfig",
    "Config",
    "ConfigError",
    "ConfigValidationError",
    "DatabaseConfig",
    "EnvironmentVariableError",
    "LoggingConfig",
    "MattermostConfig",
    "MoodleConfig",
    "NamingConfig",
    "RolesConfig",
    "ServerConfig",
    "SyncConfig",
    "expand_env_vars",
    "load_config",
    "parse_name_list",
    "parse_role_ids",
]
