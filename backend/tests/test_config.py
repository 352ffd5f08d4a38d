"""Tests for application settings."""

from safe_download.config import Settings


def test_defaults_fail_closed(monkeypatch) -> None:
    monkeypatch.delenv("READINESS_TIMEOUT_ACTION", raising=False)
    monkeypatch.delenv("REVOCATION_UNAVAILABLE_ACTION", raising=False)

    settings = Settings(_env_file=None)

    assert settings.readiness_timeout_action == "cancel"
    assert settings.revocation_unavailable_action == "reject"
    assert settings.policy_retry_delay_seconds == 1.0


def test_policy_and_revocation_urls_are_joined(monkeypatch) -> None:
    monkeypatch.setenv("POLICY_BASE_URL", "https://ca.example.com/")
    monkeypatch.setenv("REVOCATION_BASE_URL", "https://ca.example.com")
    monkeypatch.setenv("REVOCATION_PATH", "/api/validate_signature.php")

    settings = Settings(_env_file=None)

    assert settings.policy_url == "https://ca.example.com/download_settings.php"
    assert settings.revocation_url == "https://ca.example.com/api/validate_signature.php"


def test_revocation_token_env_override(monkeypatch) -> None:
    monkeypatch.setenv("REVOCATION_API_TOKEN", "secret-token")

    settings = Settings(_env_file=None)

    assert settings.revocation_api_token == "secret-token"


def test_invalid_poll_interval_and_chunk_size_are_corrected(monkeypatch) -> None:
    monkeypatch.setenv("READINESS_POLL_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("HASH_CHUNK_SIZE_BYTES", "-1")

    settings = Settings(_env_file=None)

    assert settings.readiness_poll_interval_seconds == 0.5
    assert settings.hash_chunk_size_bytes == 1024 * 1024


def test_cors_origins_list() -> None:
    settings = Settings(_env_file=None, cors_origins="http://a.test, http://b.test")

    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]
