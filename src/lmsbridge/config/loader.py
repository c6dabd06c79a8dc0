"""YAML設定ファイルの読み込みと環境変数展開"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from lmsbridge.config.models import (
    AUTH_DATA_FIELDS,
    AUTH_SERVICES,
    DEFAULT_LOG_FORMAT,
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


class ConfigError(Exception):
    """設定関連の基底例外"""


class ConfigValidationError(ConfigError):
    """設定値のバリデーションエラー"""


class EnvironmentVariableError(ConfigError):
    """環境変数が見つからないエラー"""


# 環境変数パターン: ${VAR_NAME}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: str) -> str:
    """文字列中の ${VAR_NAME} を環境変数の値に置換する

    Args:
        value: 置換対象の文字列

    Returns:
        環境変数が展開された文字列

    Raises:
        EnvironmentVariableError: 環境変数が未設定
    """
    if not value:
        return value

    def replace_var(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise EnvironmentVariableError(
                f"Environment variable '{var_name}' is not set"
            )
        return env_value

    return ENV_VAR_PATTERN.sub(replace_var, value)


def _expand_recursive(data: Any) -> Any:
    """データ構造を再帰的に走査し、文字列中の環境変数を展開する"""
    if isinstance(data, dict):
        return {key: _expand_recursive(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_recursive(item) for item in data]
    elif isinstance(data, str):
        return expand_env_vars(data)
    else:
        return data


def _validate_required_field(data: dict[str, Any], field: str, parent: str = "") -> Any:
    """必須フィールドの存在を検証する

    空文字列も未設定として扱う。

    Args:
        data: 検証対象のdict
        field: フィールド名
        parent: 親フィールド名（エラーメッセージ用）

    Returns:
        フィールドの値

    Raises:
        ConfigValidationError: フィールドが存在しない
    """
    value = data.get(field)
    if value is None or value == "":
        full_path = f"{parent}.{field}" if parent else field
        raise ConfigValidationError(f"Required field '{full_path}' is missing")
    return value


def _validate_choice(value: str, choices: tuple[str, ...], path: str) -> str:
    """値が選択肢のいずれかであることを検証する"""
    normalized = str(value).lower()
    if normalized not in choices:
        raise ConfigValidationError(
            f"'{path}' must be one of {', '.join(choices)} (got '{value}')"
        )
    return normalized


def parse_role_ids(value: Any, path: str = "roles") -> frozenset[int]:
    """ロール ID の集合を解析する

    YAML のリスト、またはカンマ区切りの文字列（"3,4"）を受け付ける。
    空要素は無視する。

    Args:
        value: 解析対象の値
        path: エラーメッセージ用のフィールドパス

    Returns:
        ロール ID の集合

    Raises:
        ConfigValidationError: 整数に変換できない要素がある
    """
    if value is None:
        return frozenset()
    if isinstance(value, int):
        items: list[Any] = [value]
    elif isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)

    role_ids: set[int] = set()
    for item in items:
        text = str(item).strip()
        if not text:
            continue
        try:
            role_ids.add(int(text))
        except ValueError as e:
            raise ConfigValidationError(
                f"'{path}' contains an invalid role id: '{text}'"
            ) from e
    return frozenset(role_ids)


def parse_name_list(value: Any) -> frozenset[str]:
    """名前のリスト（またはカンマ区切り文字列）を集合に変換する"""
    if value is None:
        return frozenset()
    items = value.split(",") if isinstance(value, str) else list(value)
    return frozenset(str(item).strip() for item in items if str(item).strip())


def _build_mattermost_config(data: dict[str, Any]) -> MattermostConfig:
    auth_service = _validate_choice(
        data.get("auth_service", "ldap"), AUTH_SERVICES, "mattermost.auth_service"
    )
    auth_data = _validate_choice(
        data.get("auth_data", "email"), AUTH_DATA_FIELDS, "mattermost.auth_data"
    )
    return MattermostConfig(
        instance_url=str(
            _validate_required_field(data, "instance_url", "mattermost")
        ).rstrip("/"),
        secret=_validate_required_field(data, "secret", "mattermost"),
        team_slug=_validate_required_field(data, "team_slug", "mattermost"),
        auth_service=auth_service,
        auth_data=auth_data,
        create_user_if_not_exists=bool(data.get("create_user_if_not_exists", True)),
        timeout_seconds=float(data.get("timeout_seconds", 30.0)),
        page_size=int(data.get("page_size", 60)),
    )


def _build_moodle_config(data: dict[str, Any]) -> MoodleConfig:
    return MoodleConfig(
        base_url=str(_validate_required_field(data, "base_url", "moodle")).rstrip("/"),
        token=_validate_required_field(data, "token", "moodle"),
        site_shortname=data.get("site_shortname", ""),
        site_fullname=data.get("site_fullname", ""),
        timeout_seconds=float(data.get("timeout_seconds", 30.0)),
    )


def load_config(path: str | Path) -> Config:
    """設定ファイルを読み込む

    Args:
        path: config.yaml のパス

    Returns:
        Config オブジェクト

    Raises:
        FileNotFoundError: ファイルが存在しない
        ConfigValidationError: 必須項目が欠落
        EnvironmentVariableError: 環境変数が未設定
        yaml.YAMLError: YAML構文エラー
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        raw_data = yaml.safe_load(f) or {}

    # 環境変数を展開
    data = _expand_recursive(raw_data)

    # 必須セクションの検証
    mattermost = _build_mattermost_config(_validate_required_field(data, "mattermost"))
    moodle = _build_moodle_config(_validate_required_field(data, "moodle"))

    database_data = _validate_required_field(data, "database")
    database = DatabaseConfig(
        path=_validate_required_field(database_data, "path", "database"),
    )

    # NamingConfig (optional)
    naming = NamingConfig()
    naming_data = data.get("naming") or {}
    if naming_data:
        naming = NamingConfig(
            channel_name_format=naming_data.get(
                "channel_name_format", naming.channel_name_format
            ),
            group_channel_name_format=naming_data.get(
                "group_channel_name_format", naming.group_channel_name_format
            ),
            invalid_chars_pattern=naming_data.get(
                "invalid_chars_pattern", naming.invalid_chars_pattern
            ),
        )
    try:
        re.compile(naming.invalid_chars_pattern)
    except re.error as e:
        raise ConfigValidationError(
            f"'naming.invalid_chars_pattern' is not a valid regular expression: {e}"
        ) from e

    # RolesConfig (optional)
    roles_data = data.get("roles") or {}
    roles = RolesConfig(
        default_admin_roles=parse_role_ids(
            roles_data.get("default_admin_roles"), "roles.default_admin_roles"
        ),
        default_member_roles=parse_role_ids(
            roles_data.get("default_member_roles"), "roles.default_member_roles"
        ),
    )

    # BackgroundConfig (optional)
    background_data = data.get("background") or {}
    background = BackgroundConfig(
        enrolment_methods=parse_name_list(background_data.get("enrolment_methods")),
        add_instance=bool(background_data.get("add_instance", True)),
        synchronize=bool(background_data.get("synchronize", True)),
        user_update=bool(background_data.get("user_update", True)),
    )

    server_data = data.get("server") or {}
    server = ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=int(server_data.get("port", 8080)),
        token=str(server_data.get("token") or ""),
    )

    sync_data = data.get("sync") or {}
    sync = SyncConfig(
        resync_interval_seconds=int(sync_data.get("resync_interval_seconds", 3600)),
    )

    # LoggingConfig (optional)
    logging_config: LoggingConfig | None = None
    logging_data = data.get("logging")
    if logging_data:
        logging_config = LoggingConfig(
            level=logging_data.get("level", "INFO"),
            format=logging_data.get("format", DEFAULT_LOG_FORMAT),
            loggers=logging_data.get("loggers"),
        )

    return Config(
        mattermost=mattermost,
        moodle=moodle,
        database=database,
        naming=naming,
        roles=roles,
        background=background,
        server=server,
        sync=sync,
        logging=logging_config,
    )
