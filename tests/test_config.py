from datetime import timedelta

import pytest

from license_webhooks.config import Settings, WebhookOptions
from license_webhooks.utils.webhook_signature import DEFAULT_TIMESTAMP_TOLERANCE


@pytest.mark.unit
class TestSettings:
    def test_webhook_settings_from_environment(self, monkeypatch):
        """Webhook settings are read from LICENSE_MANAGEMENT_* variables."""
        monkeypatch.setenv("LICENSE_MANAGEMENT_WEBHOOK_SECRET", "whsec_env")
        monkeypatch.setenv("LICENSE_MANAGEMENT_WEBHOOK_SECONDARY_SECRET", "whsec_old")
        monkeypatch.setenv("LICENSE_MANAGEMENT_WEBHOOK_TIMESTAMP_TOLERANCE", "PT2M")

        options = Settings(_env_file=None).webhook_options()

        assert options.secret == "whsec_env"
        assert options.secondary_secret == "whsec_old"
        assert options.tolerance == timedelta(minutes=2)

    def test_defaults(self, monkeypatch):
        for name in ("WEBHOOK_SECRET", "WEBHOOK_SECONDARY_SECRET", "WEBHOOK_TIMESTAMP_TOLERANCE"):
            monkeypatch.delenv(f"LICENSE_MANAGEMENT_{name}", raising=False)

        options = Settings(_env_file=None).webhook_options()

        assert options.secret == ""
        assert options.secondary_secret is None
        assert options.tolerance == DEFAULT_TIMESTAMP_TOLERANCE

    def test_blank_secondary_secret_disables_rotation(self, monkeypatch):
        monkeypatch.setenv("LICENSE_MANAGEMENT_WEBHOOK_SECONDARY_SECRET", "")

        assert Settings(_env_file=None).webhook_options().secondary_secret is None


@pytest.mark.unit
class TestWebhookOptions:
    def test_default_tolerance_is_five_minutes(self):
        assert WebhookOptions(secret="s").tolerance == timedelta(minutes=5)

    def test_explicit_tolerance(self):
        assert WebhookOptions(secret="s", timestamp_tolerance=timedelta(seconds=30)).tolerance == timedelta(seconds=30)

    def test_options_are_immutable(self):
        options = WebhookOptions(secret="s")
        with pytest.raises(AttributeError):
            options.secret = "other"
