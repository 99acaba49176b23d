"""Tests for configuration models."""

import pytest
from pydantic import ValidationError

from querycore.config.models import ConnectionConfig, EnvironmentSettings, QueryCoreConfig
from querycore.exceptions import ConfigurationError


class TestConnectionConfig:
    """Test per-connection settings."""

    def test_defaults(self):
        config = ConnectionConfig(dsn='sqlite://')
        assert config.charset == 'utf8mb4'
        assert config.timeout_seconds == 5
        assert config.persistent is False
        assert config.driver_options == {}
        assert config.statement_cache_size == 128

    def test_short_aliases(self):
        config = ConnectionConfig.from_mapping({
            'dsn': 'mysql+pymysql://db/app',
            'user': 'app',
            'pass': 'secret',
            'timeout': 10,
            'options': {'ssl': {'ca': '/etc/ca.pem'}},
        })
        assert config.username == 'app'
        assert config.password == 'secret'
        assert config.timeout_seconds == 10
        assert config.driver_options == {'ssl': {'ca': '/etc/ca.pem'}}

    def test_negative_timeout_floored(self):
        assert ConnectionConfig(dsn='sqlite://', timeout_seconds=-3).timeout_seconds == 0

    @pytest.mark.parametrize("data", [{}, {'dsn': ''}, {'dsn': '   '}, {'dsn': 'x', 'statement_cache_size': -1}])
    def test_invalid(self, data):
        with pytest.raises(ConfigurationError):
            ConnectionConfig.from_mapping(data)

    def test_immutable(self):
        config = ConnectionConfig(dsn='sqlite://')
        with pytest.raises(ValidationError):
            config.dsn = 'sqlite:///other.db'

    def test_password_not_in_repr(self):
        assert 'hunter2' not in repr(ConnectionConfig(dsn='sqlite://', password='hunter2'))

    def test_safe_for_logs(self):
        config = ConnectionConfig(dsn='postgresql://app:hunter2@db/app', password='hunter2')
        safe = config.safe_for_logs()
        assert 'password' not in safe
        assert 'hunter2' not in safe['dsn']
        assert safe['dsn'] == 'postgresql://app:***@db/app'

    @pytest.mark.parametrize("charset,safe", [('utf8mb4', True), ('latin1', True), ('utf8; DROP', False), ('', False)])
    def test_charset_is_safe(self, charset, safe):
        assert ConnectionConfig(dsn='sqlite://', charset=charset).charset_is_safe() is safe


class TestQueryCoreConfig:
    """Test the top-level configuration model."""

    def test_default_connection_is_first(self):
        config = QueryCoreConfig(connections={'primary': {'dsn': 'sqlite://'}, 'replica': {'dsn': 'sqlite://'}})
        assert config.default_connection == 'primary'
        assert config.error_mode == 'exception'
        assert config.debug_max_log == 200

    def test_unknown_default_connection(self):
        with pytest.raises(ValidationError):
            QueryCoreConfig(connections={'a': {'dsn': 'sqlite://'}}, default_connection='b')

    def test_invalid_error_mode(self):
        with pytest.raises(ValidationError):
            QueryCoreConfig(connections={'a': {'dsn': 'sqlite://'}}, error_mode='quiet')

    def test_blank_connection_name(self):
        with pytest.raises(ValidationError):
            QueryCoreConfig(connections={' ': {'dsn': 'sqlite://'}})


class TestEnvironmentSettings:

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv('QUERYCORE_LOG_LEVEL', 'DEBUG')
        monkeypatch.setenv('QUERYCORE_CONFIG_FILE', '/etc/querycore.yaml')

        settings = EnvironmentSettings()

        assert settings.log_level == 'DEBUG'
        assert settings.config_file == '/etc/querycore.yaml'

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv('QUERYCORE_LOG_LEVEL', raising=False)
        monkeypatch.delenv('QUERYCORE_CONFIG_FILE', raising=False)
        settings = EnvironmentSettings()
        assert settings.log_level == 'WARNING'
        assert settings.config_file is None
