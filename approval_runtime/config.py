from __future__ import annotations

from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()


class Settings(BaseModel):
    signing_secret: str = os.getenv("APPROVE_LINKS_SECRET", "")
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
    link_path: str = os.getenv("LINK_PATH", "/link")
    max_link_length: int = int(os.getenv("MAX_LINK_LENGTH", "2000"))
    callback_adapter: str = os.getenv("CALLBACK_ADAPTER", "real")
    callback_timeout_ms: int = int(os.getenv("CALLBACK_TIMEOUT_MS", "10000"))
    callback_follow_redirects: bool = os.getenv("CALLBACK_FOLLOW_REDIRECTS", "false").lower() == "true"
    callback_verify_tls: bool = os.getenv("CALLBACK_VERIFY_TLS", "true").lower() == "true"
    identity_header: str = os.getenv("IDENTITY_HEADER", "X-Remote-User")
    admin_token: str = os.getenv("ADMIN_TOKEN", "")
    throttle_max_attempts: int = int(os.getenv("THROTTLE_MAX_ATTEMPTS", "10"))
    throttle_window_sec: int = int(os.getenv("THROTTLE_WINDOW_SEC", "300"))
    throttle_client_header: str = os.getenv("THROTTLE_CLIENT_HEADER", "")
    audit_log_path: str = os.getenv("AUDIT_LOG_PATH", "results/audit.jsonl")
    metrics_enabled: bool = os.getenv("METRICS_ENABLED", "true").lower() == "true"
    metrics_path: str = os.getenv("METRICS_PATH", "/metrics")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    admin_config_path: str = os.getenv("ADMIN_CONFIG_PATH", "")

    def link_base(self) -> str:
        return self.public_base_url.rstrip("/") + "/" + self.link_path.lstrip("/")


settings = Settings()
