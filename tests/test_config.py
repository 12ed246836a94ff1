import pytest
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings, parse_cors_origins
from app.core.database import connect_args_for, normalize_database_url, pool_options_for, session_scope
from app.models import Tenant


def test_parse_cors_origins_csv():
    value = "http://localhost:5173, https://console.mnetifi.example"
    assert parse_cors_origins(value) == [
        "http://localhost:5173",
        "https://console.mnetifi.example",
    ]


def test_parse_cors_origins_json_list():
    value = '["https://portal.mnetifi.example", "http://localhost:3000"]'
    assert parse_cors_origins(value) == [
        "https://portal.mnetifi.example",
        "http://localhost:3000",
    ]


def test_parse_cors_origins_deduplicates_and_skips_blanks():
    assert parse_cors_origins("http://a.example,, http://a.example ,") == ["http://a.example"]
    assert parse_cors_origins("") == []
    assert parse_cors_origins("[not json") == []


def test_settings_mount_api_under_api_prefix():
    settings = get_settings()
    assert settings.api_v1_prefix == "/api"
    assert settings.trial_hours == 24
    assert settings.loyalty_kes_per_point == 10
    assert settings.rate_limit_enabled is False
    assert settings.db_connect_timeout == 10


def test_database_url_normalization_and_connect_args():
    assert normalize_database_url("sqlite://") == "sqlite://"
    assert normalize_database_url("postgres://u:p@db/mnetifi").startswith("postgresql")
    assert connect_args_for("sqlite:///./local.db") == {"check_same_thread": False}
    assert "sslmode" not in connect_args_for("postgresql://u:p@localhost/mnetifi")
    assert connect_args_for("postgresql://u:p@db.example.com/mnetifi")["sslmode"] == "require"
    assert connect_args_for("postgresql://u:p@localhost/mnetifi", 10)["connect_timeout"] == 10
    assert "connect_timeout" not in connect_args_for("sqlite:///./local.db", 10)


def test_pool_options_raise_small_pools():
    settings = get_settings().model_copy(update={"db_pool_size": 1, "db_max_overflow": 0, "db_pool_timeout": 2})
    options = pool_options_for("postgresql://u:p@db/mnetifi", settings)
    assert (options["pool_size"], options["max_overflow"], options["pool_timeout"]) == (5, 5, 8)
    assert pool_options_for("sqlite://", settings)["poolclass"] is StaticPool
    assert pool_options_for("sqlite:///./local.db", settings) == {}


def test_session_scope_commits_and_rolls_back(db, make_tenant):
    tenant = make_tenant()
    with session_scope() as scoped:
        scoped.query(Tenant).filter(Tenant.id == tenant.id).one().name = "Renamed"
    with pytest.raises(RuntimeError):
        with session_scope() as scoped:
            scoped.query(Tenant).filter(Tenant.id == tenant.id).one().name = "Lost"
            raise RuntimeError("boom")
    db.expire_all()
    assert db.query(Tenant).filter(Tenant.id == tenant.id).one().name == "Renamed"
