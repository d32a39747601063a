from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Callable

import pytest

from app import create_app
from app.security import hash_password
from models import create_user, reset_engine

DEFAULT_PASSWORD = "secret123"


@pytest.fixture()
def app(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("SESSION_COOKIE_SECURE", "false")
    monkeypatch.delenv("DEMO_ACCOUNTS_PATH", raising=False)
    monkeypatch.delenv("AWS_S3_BUCKET_NAME", raising=False)
    monkeypatch.delenv("PROGRESS_SYNC_SECONDS", raising=False)

    reset_engine()

    application = create_app()
    application.config.update(TESTING=True)

    yield application

    reset_engine()


@pytest.fixture()
def client(app) -> Iterator:
    with app.test_client() as client:
        yield client


@pytest.fixture()
def app_context(app):
    with app.app_context():
        yield


@pytest.fixture()
def make_user(app_context) -> Callable[..., Any]:
    def _make_user(role: str, email: str, name: str | None = None):
        return create_user(
            name=name or email.split("@", 1)[0].title(),
            email=email,
            password_hash=hash_password(DEFAULT_PASSWORD),
            role=role,
        )

    return _make_user


@pytest.fixture()
def login(client) -> Callable[..., Any]:
    def _login(email: str, password: str = DEFAULT_PASSWORD):
        response = client.post("/login", data={"email": email, "password": password})
        assert response.status_code == 302
        return response

    return _login


class FakeS3Client:
    def __init__(self) -> None:
        self.uploads: list[dict[str, Any]] = []
        self.deleted: list[tuple[str, str]] = []

    def upload_fileobj(self, fileobj, bucket: str, key: str, ExtraArgs=None) -> None:
        self.uploads.append(
            {
                "bucket": bucket,
                "key": key,
                "body": fileobj.read(),
                "content_type": (ExtraArgs or {}).get("ContentType"),
            }
        )

    def generate_presigned_url(self, operation: str, Params=None, ExpiresIn=None) -> str:
        assert operation == "get_object"
        return f"https://{Params['Bucket']}.s3.test/{Params['Key']}?expires={ExpiresIn}"

    def delete_object(self, Bucket: str, Key: str) -> None:
        self.deleted.append((Bucket, Key))


@pytest.fixture()
def fake_s3(monkeypatch: pytest.MonkeyPatch) -> FakeS3Client:
    fake = FakeS3Client()

    def fake_boto_client(service_name: str, **kwargs):
        if service_name == "s3":
            return fake
        raise AssertionError(f"Unsupported service: {service_name}")

    monkeypatch.setenv("AWS_S3_BUCKET_NAME", "test-bucket")
    monkeypatch.setattr("boto3.client", fake_boto_client)
    return fake
