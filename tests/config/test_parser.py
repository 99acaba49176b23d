"""Tests for YAML configuration loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from querycore.config.parser import ConfigParser, expand_env, load_config
from querycore.exceptions import ConfigurationError

CONFIG = {
    'connections': {
        'primary': {
            'dsn': 'postgresql://${DB_HOST:-localhost}/app',
            'username': 'app',
            'password': '${DB_PASSWORD}',
            'timeout_seconds': 3,
        },
        'cache': {'dsn': 'sqlite:///cache.db', 'statement_cache_size': 0},
    },
    'default_connection': 'primary',
    'debug': True,
    'error_mode': 'safe',
}


def write_config(directory: Path, data, name: str = 'querycore.yaml') -> Path:
    path = directory / name
    with open(path, 'w', encoding='utf-8') as file:
        yaml.safe_dump(data, file)
    return path


class TestConfigParser:
    """Test loading, validation and environment substitution."""

    def test_load_with_env_vars(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, CONFIG)
        monkeypatch.setenv('DB_PASSWORD', 's3cret')
        monkeypatch.delenv('DB_HOST', raising=False)

        config = load_config(path)

        primary = config.connections['primary']
        assert primary.dsn == 'postgresql://localhost/app'
        assert primary.password == 's3cret'
        assert primary.timeout_seconds == 3
        assert config.connections['cache'].statement_cache_size == 0
        assert config.debug is True
        assert config.error_mode == 'safe'

    def test_env_var_overrides_default(self, tmp_path):
        path = write_config(tmp_path, CONFIG)
        with patch.dict(os.environ, {'DB_PASSWORD': 'x', 'DB_HOST': 'db.internal'}):
            config = ConfigParser().load_config(path)
        assert config.connections['primary'].dsn == 'postgresql://db.internal/app'

    def test_missing_required_env_var(self, tmp_path):
        path = write_config(tmp_path, CONFIG)
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError, match='DB_PASSWORD'):
                load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match='not found'):
            load_config(tmp_path / 'nope.yaml')

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'querycore.yaml'
        path.write_text('')
        with pytest.raises(ConfigurationError, match='empty'):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'querycore.yaml'
        path.write_text('connections: [unclosed')
        with pytest.raises(ConfigurationError, match='Invalid YAML'):
            load_config(path)

    def test_validation_failure(self, tmp_path):
        path = write_config(tmp_path, {'connections': {'a': {'dsn': 'sqlite://'}}, 'error_mode': 'loud'})
        with pytest.raises(ConfigurationError, match='validation failed'):
            load_config(path)

    def test_load_mapping_requires_dict(self):
        with pytest.raises(ConfigurationError):
            ConfigParser().load_mapping(['not', 'a', 'mapping'])

    def test_default_location(self, tmp_path, monkeypatch):
        (tmp_path / 'config').mkdir()
        write_config(tmp_path / 'config', {'connections': {'local': {'dsn': 'sqlite://'}}})
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv('QUERYCORE_CONFIG_FILE', raising=False)

        assert load_config().default_connection == 'local'

    def test_config_file_from_environment(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, {'connections': {'env': {'dsn': 'sqlite://'}}}, 'custom.yaml')
        monkeypatch.setenv('QUERYCORE_CONFIG_FILE', str(path))
        monkeypatch.chdir(tmp_path)

        assert load_config().default_connection == 'env'

    def test_no_config_anywhere(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv('QUERYCORE_CONFIG_FILE', raising=False)
        with pytest.raises(ConfigurationError, match='No configuration file found'):
            load_config()


class TestExpandEnv:

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv('REGION', 'eu')
        monkeypatch.delenv('ZONE', raising=False)

        expanded = expand_env({'hosts': ['db-${REGION}', {'zone': '${ZONE:-a}'}], 'port': 5432})

        assert expanded == {'hosts': ['db-eu', {'zone': 'a'}], 'port': 5432}

    def test_text_without_references_unchanged(self):
        assert expand_env('$HOME and ${ not a ref') == '$HOME and ${ not a ref'

    def test_missing_variable_details(self, monkeypatch):
        monkeypatch.delenv('QC_MISSING', raising=False)
        with pytest.raises(ConfigurationError) as exc_info:
            expand_env('${QC_MISSING}')
        assert exc_info.value.details == {'variable': 'QC_MISSING'}
