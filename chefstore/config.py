import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:3000",
)


def _int_from_env(name: str, default: int, minimum: int = 0) -> int:
    raw_value = os.getenv(name, "")
    try:
        return max(minimum, int(raw_value))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and passed around."""

    mongo_uri: str = "mongodb://localhost:27017/chefstore"
    jwt_secret_key: str = "change-me-in-production"
    resend_api_key: str = ""
    email_sender: str = "no-reply@mistresschef.shop"
    store_name: str = "MistressChef"
    frontend_url: str = "http://localhost:5173"
    paystack_secret_key: str = ""
    paystack_base_url: str = "https://api.paystack.co"
    paystack_timeout_seconds: int = 15
    upload_folder: Optional[str] = None
    max_upload_mb: int = 5
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    trusted_proxy_hops: int = 1
    admin_email: str = "admin@shop.com"
    admin_password: str = "admin123"
    bcrypt_rounds: int = 10
    log_level: str = "INFO"
    port: int = 5900

    session_token_ttl: timedelta = field(default=timedelta(minutes=20))
    admin_token_ttl: timedelta = field(default=timedelta(days=1))
    verification_token_ttl: timedelta = field(default=timedelta(days=7))
    resent_verification_token_ttl: timedelta = field(default=timedelta(minutes=15))

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        cors_origins = list(DEFAULT_CORS_ORIGINS)
        frontend_url = (os.getenv("FRONTEND_URL") or cls.frontend_url).strip()
        if frontend_url:
            cors_origins.append(frontend_url)
        for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(","):
            trimmed = origin.strip()
            if trimmed:
                cors_origins.append(trimmed)

        return cls(
            mongo_uri=os.getenv("MONGO_URI", cls.mongo_uri),
            jwt_secret_key=os.getenv("JWT_SECRET_KEY", cls.jwt_secret_key),
            resend_api_key=(os.getenv("RESEND_API_KEY") or "").strip(),
            email_sender=(os.getenv("EMAIL_SENDER") or cls.email_sender).strip(),
            store_name=(os.getenv("STORE_NAME") or cls.store_name).strip(),
            frontend_url=frontend_url.rstrip("/"),
            paystack_secret_key=(os.getenv("PAYSTACK_SECRET_KEY") or "").strip(),
            paystack_base_url=(
                os.getenv("PAYSTACK_BASE_URL") or cls.paystack_base_url
            ).rstrip("/"),
            paystack_timeout_seconds=_int_from_env(
                "PAYSTACK_TIMEOUT_SECONDS", cls.paystack_timeout_seconds, 1
            ),
            upload_folder=os.getenv("UPLOAD_FOLDER") or None,
            max_upload_mb=_int_from_env("MAX_UPLOAD_SIZE_MB", cls.max_upload_mb, 1),
            cors_origins=tuple(dict.fromkeys(cors_origins)),
            trusted_proxy_hops=_int_from_env(
                "TRUSTED_PROXY_HOPS", cls.trusted_proxy_hops
            ),
            admin_email=(os.getenv("ADMIN_EMAIL") or cls.admin_email).strip().lower(),
            admin_password=os.getenv("ADMIN_PASSWORD") or cls.admin_password,
            bcrypt_rounds=_int_from_env("BCRYPT_ROUNDS", cls.bcrypt_rounds, 4),
            log_level=(os.getenv("LOG_LEVEL") or cls.log_level).upper(),
            port=_int_from_env("PORT", cls.port, 1),
        )
