"""設定データクラス"""

from dataclasses import dataclass, field

DEFAULT_CHANNEL_NAME_FORMAT = "{$a->moodleid}_{$a->courseshortname}_{$a->moduleid}"
DEFAULT_GROUP_CHANNEL_NAME_FORMAT = "{$a->courseshortname}_{$a->groupname}"
DEFAULT_INVALID_CHARS_PATTERN = r"[^0-9a-zA-Z\-_.]"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

AUTH_SERVICES = ("ldap", "saml")
AUTH_DATA_FIELDS = ("email", "username")


@dataclass
class MattermostConfig:
    """Mattermost 接続設定

    Attributes:
        instance_url: Mattermost サーバーの URL
        secret: LMS 同期プラグインの共有シークレット
        team_slug: チャンネルを作成するチームのスラッグ名
        auth_service: ユーザー作成時の認証サービス（ldap / saml）
        auth_data: 認証データに使うフィールド（email / username）
        create_user_if_not_exists: 未登録ユーザーを作成するか
        timeout_seconds: HTTP リクエストのタイムアウト秒数
        page_size: メンバー一覧取得時の 1 ページの件数
    """

    instance_url: str
    secret: str
    team_slug: str
    auth_service: str = "ldap"
    auth_data: str = "email"
    create_user_if_not_exists: bool = True
    timeout_seconds: float = 30.0
    page_size: int = 60


@dataclass
class MoodleConfig:
    """Moodle Web サービス接続設定"""

    base_url: str
    token: str
    site_shortname: str = ""
    site_fullname: str = ""
    timeout_seconds: float = 30.0


@dataclass
class NamingConfig:
    """チャンネル名の書式設定"""

    channel_name_format: str = DEFAULT_CHANNEL_NAME_FORMAT
    group_channel_name_format: str = DEFAULT_GROUP_CHANNEL_NAME_FORMAT
    invalid_chars_pattern: str = DEFAULT_INVALID_CHARS_PATTERN


@dataclass
class RolesConfig:
    """新規インスタンスに適用するデフォルトのロール設定

    Attributes:
        default_admin_roles: チャンネル管理者となる Moodle ロール ID
        default_member_roles: 一般メンバーとなる Moodle ロール ID
    """

    default_admin_roles: frozenset[int] = field(default_factory=frozenset)
    default_member_roles: frozenset[int] = field(default_factory=frozenset)


@dataclass
class BackgroundConfig:
    """バックグラウンド実行設定

    Attributes:
        enrolment_methods: ロール変更をバックグラウンドで処理する登録方法
            （例: enrol_cohort, enrol_flatfile）
        add_instance: インスタンス作成時の初回同期をバックグラウンドで行うか
        synchronize: グループ変更・ごみ箱復元時の同期をバックグラウンドで行うか
        user_update: ユーザー情報更新時の同期をバックグラウンドで行うか
    """

    enrolment_methods: frozenset[str] = field(default_factory=frozenset)
    add_instance: bool = True
    synchronize: bool = True
    user_update: bool = True


@dataclass
class DatabaseConfig:
    """データベース設定"""

    path: str


@dataclass
class ServerConfig:
    """HTTP サーバー設定

    Attributes:
        host: 待ち受けアドレス
        port: 待ち受けポート
        token: /events と /admin の Bearer トークン（空の場合は認証なし）
    """

    host: str = "0.0.0.0"
    port: int = 8080
    token: str = ""


@dataclass
class SyncConfig:
    """定期再同期設定"""

    resync_interval_seconds: int = 3600


@dataclass
class LoggingConfig:
    """ログ設定"""

    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT
    loggers: dict[str, str] | None = None


@dataclass
class Config:
    """アプリケーション設定"""

    mattermost: MattermostConfig
    moodle: MoodleConfig
    database: DatabaseConfig
    naming: NamingConfig = field(default_factory=NamingConfig)
    roles: RolesConfig = field(default_factory=RolesConfig)
    background: BackgroundConfig = field(default_factory=BackgroundConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig | None = None
