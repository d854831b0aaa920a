"""
Tests for application settings.
"""

import pytest
from pydantic import ValidationError

from contactmanager.config import Settings, get_settings


class TestSettings:
    def test_declared_defaults(self) -> None:
        # environment variables may override runtime values, so check the field defaults
        fields = Settings.model_fields
        assert fields["repository_batch_size"].default == 100
        assert fields["minimum_contact_age"].default == 0
        assert fields["csv_encoding"].default == "utf-8-sig"
        assert fields["create_schema_on_startup"].default is True

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./contacts.db")
        monkeypatch.setenv("REPOSITORY_BATCH_SIZE", "25")
        monkeypatch.setenv("MINIMUM_CONTACT_AGE", "18")

        settings = get_settings()

        assert settings.database_url == "sqlite+aiosqlite:///./contacts.db"
        assert settings.repository_batch_size == 25
        assert settings.minimum_contact_age == 18

    def test_log_level_normalized(self) -> None:
        assert Settings(log_level=" debug ").log_level == "DEBUG"

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(repository_batch_size=0)

    def test_cors_origins_list(self) -> None:
        settings = Settings(cors_origins="http://a.example, http://b.example,,")

        assert settings.cors_origins_list == ["http://a.example", "http://b.example"]
