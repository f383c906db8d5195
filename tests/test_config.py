"""Unit tests for config.py - Configuration management."""

import os
import pytest
from unittest.mock import patch

import config
from config import (
    APIConfig,
    AWSConfig,
    Config,
    DatabaseConfig,
    PluginConfig,
    RetryConfig,
    get_config,
    load_config,
    reset_config,
)


class TestDatabaseConfig:
    """Tests for DatabaseConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        cfg = DatabaseConfig()
        assert cfg.host == "localhost"
        assert cfg.port == 5432
        assert cfg.database == "awsprov"
        assert cfg.user == "awsprov"
        assert cfg.password == ""
        assert cfg.min_pool_size == 2
        assert cfg.max_pool_size == 10

    def test_from_env(self):
        """Test loading configuration from environment variables."""
        env_vars = {
            "DB_HOST": "envhost",
            "DB_PORT": "5434",
            "DB_NAME": "envdb",
            "DB_USER": "envuser",
            "DB_PASSWORD": "envpassword",
            "DB_MIN_POOL_SIZE": "3",
            "DB_MAX_POOL_SIZE": "15",
        }
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = DatabaseConfig.from_env()
            assert cfg.host == "envhost"
            assert cfg.port == 5434
            assert cfg.database == "envdb"
            assert cfg.user == "envuser"
            assert cfg.password == "envpassword"
            assert cfg.min_pool_size == 3
            assert cfg.max_pool_size == 15

    def test_from_env_missing_password_raises(self):
        """Test that missing password raises ValueError."""
        with patch.dict(os.environ, {"DB_HOST": "localhost"}, clear=True):
            with pytest.raises(ValueError, match="DB_PASSWORD"):
                DatabaseConfig.from_env()

    def test_password_not_in_repr(self):
        """Test that password is not exposed in repr."""
        cfg = DatabaseConfig(password="supersecret")
        assert "supersecret" not in repr(cfg)


class TestAWSConfig:
    """Tests for AWSConfig class."""

    def test_from_env_defaults(self):
        """Test defaults with an empty environment."""
        with patch.dict(os.environ, {}, clear=True):
            cfg = AWSConfig.from_env()
            assert cfg.region == "us-east-1"
            assert cfg.profile is None
            assert cfg.endpoint_url is None
            assert cfg.max_attempts == 5

    def test_from_env(self):
        env_vars = {
            "AWS_REGION": "eu-central-1",
            "AWS_PROFILE": "ops",
            "AWS_ENDPOINT_URL": "http://localhost:4566",
            "AWS_MAX_ATTEMPTS": "2",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = AWSConfig.from_env()
            assert cfg.region == "eu-central-1"
            assert cfg.profile == "ops"
            assert cfg.endpoint_url == "http://localhost:4566"
            assert cfg.max_attempts == 2

    def test_default_region_fallback(self):
        """Test AWS_DEFAULT_REGION is used when AWS_REGION is unset."""
        with patch.dict(os.environ, {"AWS_DEFAULT_REGION": "ap-south-1"}, clear=True):
            assert AWSConfig.from_env().region == "ap-south-1"

    def test_secrets_not_in_repr(self):
        cfg = AWSConfig(access_key_id="AKIAEXAMPLE", secret_access_key="shh")
        assert "AKIAEXAMPLE" not in repr(cfg)
        assert "shh" not in repr(cfg)


class TestRetryConfig:
    """Tests for RetryConfig class."""

    def test_default_values(self):
        cfg = RetryConfig()
        assert cfg.create_timeout == 240.0
        assert cfg.min_delay == 1.0
        assert cfg.max_delay == 10.0

    def test_from_env(self):
        env_vars = {
            "CREATE_RETRY_TIMEOUT": "60",
            "CREATE_RETRY_MIN_DELAY": "0.5",
            "CREATE_RETRY_MAX_DELAY": "5",
        }
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = RetryConfig.from_env()
            assert cfg.create_timeout == 60.0
            assert cfg.min_delay == 0.5
            assert cfg.max_delay == 5.0


class TestAPIConfig:
    """Tests for APIConfig class."""

    def test_default_values(self):
        cfg = APIConfig()
        assert cfg.host == "0.0.0.0"
        assert cfg.port == 8000
        assert cfg.log_level == "INFO"

    def test_from_env(self):
        env_vars = {"API_HOST": "127.0.0.1", "API_PORT": "9000", "LOG_LEVEL": "DEBUG"}
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = APIConfig.from_env()
            assert cfg.host == "127.0.0.1"
            assert cfg.port == 9000
            assert cfg.log_level == "DEBUG"


class TestPluginConfig:
    """Tests for PluginConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        cfg = PluginConfig()
        assert cfg.enabled_resource_plugins == []
        assert cfg.enabled_input_plugins == []
        assert cfg.plugin_configs == {}

    def test_from_env(self):
        """Test loading configuration from environment variables."""
        env_vars = {
            "ENABLED_RESOURCE_PLUGINS": "aws_lb_target_group_registration,aws_macie2_custom_data_identifier",
            "ENABLED_INPUT_PLUGINS": "http",
            "PLUGIN_CONFIGS": '{"aws_lb_target_group_registration": {"settle": true}}',
        }
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = PluginConfig.from_env()
            assert cfg.enabled_resource_plugins == [
                "aws_lb_target_group_registration",
                "aws_macie2_custom_data_identifier",
            ]
            assert cfg.enabled_input_plugins == ["http"]
            assert cfg.plugin_configs == {
                "aws_lb_target_group_registration": {"settle": True}
            }

    def test_from_env_empty_plugins(self):
        """Test empty plugin lists."""
        with patch.dict(os.environ, {}, clear=True):
            cfg = PluginConfig.from_env()
            assert cfg.enabled_resource_plugins == []
            assert cfg.enabled_input_plugins == []

    def test_from_env_invalid_json(self):
        """Test that invalid JSON in PLUGIN_CONFIGS is ignored."""
        with patch.dict(os.environ, {"PLUGIN_CONFIGS": "not valid json"}, clear=False):
            cfg = PluginConfig.from_env()
            assert cfg.plugin_configs == {}

    def test_get_plugin_config(self):
        """Test get_plugin_config method."""
        cfg = PluginConfig(plugin_configs={"http": {"port": 8080}})
        assert cfg.get_plugin_config("http") == {"port": 8080}
        assert cfg.get_plugin_config("nonexistent") == {}

    def test_from_env_whitespace_handling(self):
        """Test that whitespace in plugin lists is handled."""
        env_vars = {"ENABLED_INPUT_PLUGINS": " http , , grpc "}
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = PluginConfig.from_env()
            assert cfg.enabled_input_plugins == ["http", "grpc"]


class TestConfig:
    """Tests for main Config class."""

    def test_default(self):
        """Test default configuration."""
        cfg = Config.default()
        assert isinstance(cfg.database, DatabaseConfig)
        assert isinstance(cfg.aws, AWSConfig)
        assert isinstance(cfg.retry, RetryConfig)
        assert isinstance(cfg.api, APIConfig)
        assert isinstance(cfg.plugins, PluginConfig)

    def test_from_env(self):
        """Test loading full configuration from environment."""
        env_vars = {
            "DB_HOST": "testhost",
            "DB_PASSWORD": "testpass",
            "AWS_REGION": "us-west-2",
            "CREATE_RETRY_TIMEOUT": "30",
            "API_PORT": "9000",
            "ENABLED_INPUT_PLUGINS": "http",
        }
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = Config.from_env()
            assert cfg.database.host == "testhost"
            assert cfg.aws.region == "us-west-2"
            assert cfg.retry.create_timeout == 30.0
            assert cfg.api.port == 9000
            assert cfg.plugins.enabled_input_plugins == ["http"]


class TestConfigSingleton:
    """Tests for config singleton functions."""

    def setup_method(self):
        """Reset config before each test."""
        reset_config()

    def teardown_method(self):
        """Reset config after each test."""
        reset_config()

    def test_singleton_returns_same_instance(self):
        """Test that singleton returns same instance."""
        with patch.dict(os.environ, {"DB_PASSWORD": "testpass"}, clear=False):
            cfg1 = load_config()
            cfg2 = get_config()
            assert isinstance(cfg1, Config)
            assert cfg1 is cfg2

    def test_reset_config(self):
        """Test reset_config clears the singleton."""
        with patch.dict(os.environ, {"DB_PASSWORD": "testpass"}, clear=False):
            cfg1 = load_config()
            reset_config()
            assert config.config is None
            cfg2 = load_config()
            # After reset, should be a new instance
            assert cfg1 is not cfg2
