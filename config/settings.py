import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "off", "no"}


@dataclass(frozen=True)
class Settings:
    SECRET_KEY: str
    DATABASE_URL: str | None
    AWS_ACCESS_KEY_ID: str | None
    AWS_SECRET_ACCESS_KEY: str | None
    AWS_REGION: str | None
    AWS_S3_BUCKET_NAME: str | None
    PRESIGNED_URL_TTL_SECONDS: int
    MAX_VIDEO_UPLOAD_MB: int
    MAX_ATTACHMENT_MB: int
    PROGRESS_SYNC_SECONDS: int
    DEMO_ACCOUNTS_PATH: str | None
    LOG_LEVEL: str
    SESSION_COOKIE_SECURE: bool


def get_settings() -> Settings:
    return Settings(
        SECRET_KEY=os.getenv("SECRET_KEY", "dev-insecure-key"),
        DATABASE_URL=os.getenv("DATABASE_URL"),
        AWS_ACCESS_KEY_ID=os.getenv("AWS_ACCESS_KEY_ID"),
        AWS_SECRET_ACCESS_KEY=os.getenv("AWS_SECRET_ACCESS_KEY"),
        AWS_REGION=os.getenv("AWS_REGION"),
        AWS_S3_BUCKET_NAME=os.getenv("AWS_S3_BUCKET_NAME"),
        PRESIGNED_URL_TTL_SECONDS=int(os.getenv("PRESIGNED_URL_TTL_SECONDS", "3600")),
        MAX_VIDEO_UPLOAD_MB=int(os.getenv("MAX_VIDEO_UPLOAD_MB", "500")),
        MAX_ATTACHMENT_MB=int(os.getenv("MAX_ATTACHMENT_MB", "25")),
        PROGRESS_SYNC_SECONDS=int(os.getenv("PROGRESS_SYNC_SECONDS", "5")),
        DEMO_ACCOUNTS_PATH=os.getenv("DEMO_ACCOUNTS_PATH"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").upper(),
        SESSION_COOKIE_SECURE=_env_bool("SESSION_COOKIE_SECURE", True),
    )
