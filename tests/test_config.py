"""Tests for configuration loading and environment settings."""

import base64
import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from tabdelta.core.config import TabDeltaConfig
from tabdelta.exceptions import ValidationError
from tabdelta.models.settings import ExtractionConfig
from tabdelta.utils.yaml_parser import load_extraction_config, load_yaml, save_yaml, substitute_env_vars


class TestExtractionConfig:
    """Test ExtractionConfig validation."""

    def test_defaults(self):
        config = ExtractionConfig(server="db01", database="SM")
        assert config.mode == "blacklist"
        assert config.password_encoding == "plain"
        assert config.delta_bound == "inclusive"
        assert config.catalog_errors == "fail"
        assert config.large_binary_types == ["image"]
        assert config.binary_placeholder == "{img}"
        assert config.flush_every_row is True
        assert config.workers is None

    def test_requires_server_or_connection(self):
        with pytest.raises(PydanticValidationError):
            ExtractionConfig(database="SM")

    def test_requires_database(self):
        with pytest.raises(PydanticValidationError):
            ExtractionConfig(server="db01")

    def test_invalid_mode(self):
        with pytest.raises(PydanticValidationError):
            ExtractionConfig(server="db01", database="SM", mode="greylist")

    def test_unknown_key_rejected(self):
        with pytest.raises(PydanticValidationError):
            ExtractionConfig(server="db01", database="SM", threads=4)

    def test_repeated_whitelist_entry_rejected(self):
        with pytest.raises(PydanticValidationError, match="Incidents"):
            ExtractionConfig(
                server="db01", database="SM", mode="whitelist", whitelist=["incidents", "Incidents"]
            )

    def test_workers_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            ExtractionConfig(server="db01", database="SM", workers=0)

    def test_base64_password(self):
        encoded = base64.b64encode(b"s3cret").decode()
        config = ExtractionConfig(
            server="db01", database="SM", password=encoded, password_encoding="base64"
        )
        assert config.decoded_password == "s3cret"

    def test_plain_password(self):
        config = ExtractionConfig(server="db01", database="SM", password="s3cret")
        assert config.decoded_password == "s3cret"

    def test_invalid_base64_password(self):
        with pytest.raises(PydanticValidationError):
            ExtractionConfig(
                server="db01", database="SM", password="not base64!", password_encoding="base64"
            )

    def test_server_instance(self):
        assert ExtractionConfig(server="db01", database="SM").server_instance == "db01"
        config = ExtractionConfig(server="db01", instance="SM", database="SM")
        assert config.server_instance == "db01\\SM"

    def test_name_sets_are_case_folded(self):
        config = ExtractionConfig(
            server="db01",
            database="SM",
            type2=["CUSTOMERS"],
            timestamps=["LastModified"],
            large_binary_types=["IMAGE", "VarBinary"],
        )
        assert config.type2_names == {"customers"}
        assert config.timestamp_names == {"lastmodified"}
        assert config.binary_type_names == {"image", "varbinary"}

    def test_redacted(self):
        config = ExtractionConfig(server="db01", database="SM", password="s3cret")
        assert config.redacted()["password"] == "***"
        assert config.password == "s3cret"


class TestSubstituteEnvVars:
    """Test environment variable substitution."""

    def test_nested(self, monkeypatch):
        monkeypatch.setenv("TD_HOST", "db01")
        data = {"server": "${TD_HOST}", "lists": ["${TD_HOST}-a", 3]}
        assert substitute_env_vars(data) == {"server": "db01", "lists": ["db01-a", 3]}

    def test_default(self, monkeypatch):
        monkeypatch.delenv("TD_MISSING", raising=False)
        assert substitute_env_vars("${TD_MISSING:-fallback}") == "fallback"
        assert substitute_env_vars("${TD_MISSING:-}") == ""

    def test_missing_without_default(self, monkeypatch):
        monkeypatch.delenv("TD_MISSING", raising=False)
        with pytest.raises(ValidationError):
            substitute_env_vars("${TD_MISSING}")


class TestLoadExtractionConfig:
    """Test configuration file loading."""

    def test_yaml_with_capitalized_keys(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TD_PASSWORD", base64.b64encode(b"pw").decode())
        path = tmp_path / "tabdelta.yaml"
        path.write_text(
            "Server: db01\n"
            "Instance: SM\n"
            "Username: reader\n"
            "Password: ${TD_PASSWORD}\n"
            "Password_Encoding: base64\n"
            "Database: ServiceManager\n"
            "Crypto: disable\n"
            "Mode: whitelist\n"
            "Whitelist: [Incidents, Changes]\n"
            "Type2: [CUSTOMERS]\n"
            "Timestamps: [LASTMODIFIED]\n"
        )

        config = load_extraction_config(path)

        assert config.server_instance == "db01\\SM"
        assert config.decoded_password == "pw"
        assert config.mode == "whitelist"
        assert config.whitelist == ["Incidents", "Changes"]
        assert config.type2 == ["CUSTOMERS"]

    def test_json_file(self, tmp_path):
        path = tmp_path / "tabdelta.json"
        path.write_text(json.dumps({"connection": "sqlite:///x.db", "database": "main", "workers": 2}))
        config = load_extraction_config(path)
        assert config.connection == "sqlite:///x.db"
        assert config.workers == 2

    def test_substituted_number(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TD_WORKERS", raising=False)
        path = tmp_path / "tabdelta.yaml"
        path.write_text("server: db01\ndatabase: SM\nworkers: ${TD_WORKERS:-4}\n")
        assert load_extraction_config(path).workers == 4

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "tabdelta.yaml"
        path.write_text("server: db01\ndatabase: SM\nmode: greylist\n")
        with pytest.raises(ValidationError, match="mode"):
            load_extraction_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError):
            load_extraction_config(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValidationError):
            load_yaml(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValidationError):
            load_yaml(path)

    def test_syntax_error(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("server: [db01\n")
        with pytest.raises(ValidationError):
            load_yaml(path)

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "tabdelta.yaml"
        save_yaml({"server": "db01", "database": "SM", "type2": ["A"]}, path)
        assert load_extraction_config(path).type2 == ["A"]


class TestTabDeltaConfig:
    """Test environment settings."""

    def test_defaults(self, monkeypatch):
        for key in (
            "TABDELTA_OUTPUT_DIR",
            "TABDELTA_LOG_LEVEL",
            "TABDELTA_LOG_FORMAT",
            "TABDELTA_MAX_WORKERS",
            "TABDELTA_DISPATCH_INTERVAL",
        ):
            monkeypatch.delenv(key, raising=False)

        settings = TabDeltaConfig()

        assert settings.log_level == "INFO"
        assert settings.log_format == "text"
        assert settings.max_workers == 10
        assert settings.dispatch_interval == 0.1
        assert settings.get_output_dir().name == "results"
        assert settings.get_output_dir().is_absolute()

    def test_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TABDELTA_OUTPUT_DIR", str(tmp_path))
        monkeypatch.setenv("TABDELTA_LOG_LEVEL", "debug")
        monkeypatch.setenv("TABDELTA_MAX_WORKERS", "4")
        monkeypatch.setenv("TABDELTA_DISPATCH_INTERVAL", "0")

        settings = TabDeltaConfig()

        assert settings.get_output_dir() == tmp_path
        assert settings.log_level == "DEBUG"
        assert settings.max_workers == 4
        assert settings.dispatch_interval == 0.0
        assert settings.as_dict()["max_workers"] == 4

    def test_unparseable_number_uses_default(self, monkeypatch):
        monkeypatch.setenv("TABDELTA_MAX_WORKERS", "many")
        assert TabDeltaConfig().max_workers == 10

    def test_invalid_values(self, monkeypatch):
        monkeypatch.setenv("TABDELTA_LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError):
            TabDeltaConfig()

        monkeypatch.setenv("TABDELTA_LOG_LEVEL", "INFO")
        monkeypatch.setenv("TABDELTA_MAX_WORKERS", "0")
        with pytest.raises(ValueError):
            TabDeltaConfig()
