"""Tests for configuration defaults and serialization."""

from zonehealth.config import LDAPConfig, ZoneHealthConfig, get_config, set_config


def test_defaults():
    config = ZoneHealthConfig()
    assert config.ldap.port == 389
    assert config.support.core_years == 3
    assert config.support.extended_years == 5
    assert config.analysis.expired_after_days == 60
    assert config.cache.cache_dir == "cache"


def test_ssl_port():
    assert LDAPConfig(use_ssl=True).port == 636


def test_credentials_from_environment(monkeypatch):
    monkeypatch.setenv("ZONEHEALTH_USERNAME", "CORP\\auditor")
    monkeypatch.setenv("ZONEHEALTH_PASSWORD", "secret")

    ldap = LDAPConfig()

    assert ldap.username == "CORP\\auditor"
    assert ldap.password == "secret"


def test_from_dict_and_to_dict_hides_password():
    config = ZoneHealthConfig.from_dict({
        "ldap": {"username": "u", "password": "p"},
        "support": {"matrix_file": "releases.json"},
        "verbose": True,
    })

    assert config.support.matrix_file == "releases.json"
    assert config.verbose

    data = config.to_dict()
    assert data["ldap"]["username"] == "u"
    assert data["ldap"]["password"] is None


def test_ensure_directories(tmp_path):
    config = ZoneHealthConfig.from_dict({
        "cache": {"cache_dir": str(tmp_path / "c")},
        "output": {"output_dir": str(tmp_path / "o"), "log_dir": str(tmp_path / "l")},
    })
    config.ensure_directories()
    assert all((tmp_path / d).is_dir() for d in ("c", "o", "l"))


def test_global_config():
    original = get_config()
    try:
        custom = ZoneHealthConfig(verbose=True)
        set_config(custom)
        assert get_config() is custom
    finally:
        set_config(original)
