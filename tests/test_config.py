from airline_booking.config import Settings, load_settings


def test_defaults_without_environment():
    assert load_settings({}) == Settings()


def test_environment_overrides():
    settings = load_settings(
        {
            "AIRLINE_BOOKING_DB_URL": "sqlite+pysqlite:///:memory:",
            "AIRLINE_BOOKING_ECHO_SQL": "yes",
            "AIRLINE_BOOKING_LOG_LEVEL": "debug",
            "AIRLINE_BOOKING_SQLITE_TIMEOUT": "2.5",
        }
    )
    assert settings.db_url.endswith(":memory:")
    assert settings.echo_sql is True
    assert settings.log_level == "DEBUG"
    assert settings.sqlite_timeout == 2.5
