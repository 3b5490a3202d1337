import pytest

from signfast.core.config import Settings

OPTIONAL_KEYS = [
    "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SES_SENDER_EMAIL", "S3_BUCKET_NAME",
    "STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET", "STRIPE_METERED_PRICE_ID",
    "STRIPE_UNLIMITED_PRICE_ID", "STRIPE_METER_EVENT_NAME",
]


def test_settings_load_without_aws_or_stripe(monkeypatch):
    for key in OPTIONAL_KEYS:
        monkeypatch.delenv(key, raising=False)

    settings = Settings(_env_file=None)

    assert settings.stripe_secret_key is None
    assert settings.stripe_meter_event_name is None
    assert settings.aws_ses_sender_email is None
    assert settings.s3_bucket_name is None
    assert settings.aws_region == "us-east-1"


@pytest.mark.parametrize("override,expected", [
    (None, "mysql+asyncmy://signfast:@localhost:3306/signfast"),
    ("sqlite+aiosqlite://", "sqlite+aiosqlite://"),
])
def test_async_db_url(monkeypatch, override, expected):
    for key in ("DB_HOST", "DB_USER", "DB_PASSWORD", "DB_DATABASE", "DB_PORT", "DATABASE_URL"):
        monkeypatch.delenv(key, raising=False)

    settings = Settings(_env_file=None, database_url=override)

    assert settings.async_db_url == expected
