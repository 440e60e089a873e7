from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # App
    app_env: str = Field(default="development")
    log_level: str = Field(default="info")

    # Supabase
    supabase_url: str = Field(default="")
    supabase_key: str = Field(default="")

    # Provider HTTP
    http_user_agent: str = Field(default="contest-scout/1.0")
    http_timeout_seconds: float = Field(default=15.0)
    http_retry_attempts: int = Field(default=3)
    http_retry_delay_seconds: float = Field(default=1.0)

    # Codeforces
    codeforces_enabled: bool = Field(default=True)
    codeforces_api_url: str = Field(default="https://codeforces.com/api")
    codeforces_timeout_seconds: float = Field(default=10.0)

    # CodeChef
    codechef_enabled: bool = Field(default=True)
    codechef_api_url: str = Field(default="https://www.codechef.com/api")
    codechef_timeout_seconds: float = Field(default=15.0)
    codechef_past_contest_limit: int = Field(default=20)

    # AtCoder (kenkoooo mirror)
    atcoder_enabled: bool = Field(default=True)
    atcoder_api_url: str = Field(default="https://kenkoooo.com/atcoder/resources")
    atcoder_timeout_seconds: float = Field(default=15.0)
    atcoder_recent_days: int = Field(default=30)

    # LeetCode
    leetcode_enabled: bool = Field(default=True)
    leetcode_graphql_url: str = Field(default="https://leetcode.com/graphql")
    leetcode_timeout_seconds: float = Field(default=15.0)

    # Contest sync / cleanup jobs
    contest_sync_enabled: bool = Field(default=True)
    contest_sync_cron: str = Field(default="0 */6 * * *")
    contest_cleanup_enabled: bool = Field(default=True)
    contest_cleanup_days: int = Field(default=90)

    # Notifications
    notifications_enabled: bool = Field(default=True)
    notification_window_hours: int = Field(default=24)
    upcoming_scan_interval_minutes: int = Field(default=30)
    dedup_window_hours: int = Field(default=12)
    daily_digest_hours: int = Field(default=24)
    weekly_digest_hours: int = Field(default=168)
    digest_hour_utc: int = Field(default=8)
    notification_retention_days: int = Field(default=90)

    # Channels
    channel_timeout_seconds: float = Field(default=10.0)
    resend_api_key: str = Field(default="")
    email_from: str = Field(default="Contest Scout <noreply@contestscout.dev>")
    whatsapp_api_key: str = Field(default="")
    whatsapp_phone_id: str = Field(default="")
    whatsapp_api_version: str = Field(default="v18.0")
    fcm_server_key: str = Field(default="")

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


settings = Settings()
