"""Tests for application settings."""

import pydantic
import pytest

from clearance.core.config import Settings


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("NOTIFICATION_BACKEND", "Celery")
    monkeypatch.setenv("WRITE_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings()
    assert settings.notification_backend == "celery"
    assert settings.write_retry_attempts == 5
    assert settings.log_level == "DEBUG"


def test_celery_falls_back_to_redis():
    settings = Settings(redis_url="redis://cache:6379/2", celery_broker_url=None, celery_result_backend=None)
    assert settings.celery_broker == "redis://cache:6379/2"
    assert settings.celery_backend == "redis://cache:6379/2"

    explicit = Settings(celery_broker_url="amqp://broker//")
    assert explicit.celery_broker == "amqp://broker//"


def test_cors_origins_list():
    settings = Settings(cors_origins="https://a.example.edu, ,https://b.example.edu")
    assert settings.cors_origins_list == ["https://a.example.edu", "https://b.example.edu"]


@pytest.mark.parametrize("field,value", [
    ("notification_backend", "email"),
    ("write_retry_attempts", 0),
    ("webhook_max_retries", 0),
    ("webhook_retry_backoff", -1),
    ("webhook_workers", 0),
])
def test_invalid_values(field, value):
    with pytest.raises(pydantic.ValidationError):
        Settings(**{field: value})
