"""Tests for configuration settings."""

from gestao_contas.config.settings import get_settings


def test_settings_loads_from_env():
    """Test that settings loads from environment variables."""
    # Clear the cache to force reload
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.backend_anon_key.get_secret_value() == "anon-key-test"
    assert settings.backend_email == "test@example.com"
    assert settings.backend_password.get_secret_value() == "testpassword"


def test_settings_has_defaults():
    """Test that settings has sensible defaults."""
    get_settings.cache_clear()
    settings = get_settings()

    assert settings.backend_url == "http://localhost:54321"
    assert settings.backend_timeout == 30.0
    assert settings.backend_max_retries == 3
    assert settings.attachments_bucket == "attachments"
    assert settings.generated_bills_bucket == "generated-bills"
    assert settings.generated_reports_bucket == "generated-reports"
    assert settings.pdf_image_width_mm == 180.0
    assert settings.postal_code_api_url == "https://viacep.com.br/ws"


def test_settings_are_cached():
    """Test that get_settings returns cached instance."""
    get_settings.cache_clear()

    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2
