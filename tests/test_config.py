"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from core_prune.config import ConfigurationError, PruneConfig, load_config


def write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_loads_original_json_layout(self, tmp_path):
        path = write(
            tmp_path / "config.json",
            json.dumps(
                {
                    "default": {"companyId": "default", "companyName": "Default", "retentionDays": "7"},
                    "companies": [
                        {"companyId": "acme", "companyName": "Acme", "retentionDays": "30"},
                        {"companyId": "globex", "companyName": "Globex", "retentionDays": 90},
                    ],
                }
            ),
        )

        config = load_config(path)
        policies = config.policy_map()

        assert set(policies) == {"default", "acme", "globex"}
        assert policies["acme"].retention_days == "30"
        assert policies["globex"].retention_days == "90"
        assert config.sweep_root is None
        assert config.scheduler is None

    def test_loads_yaml_with_scheduler(self, tmp_path):
        path = write(
            tmp_path / "core-prune.yaml",
            """
sweep_root: ~/data
default:
  companyId: default
  retentionDays: "abc"
scheduler:
  cron: "0 3 * * *"
  timezone: Europe/Berlin
""",
        )

        config = load_config(path)

        assert config.sweep_root == Path("~/data").expanduser()
        assert config.default.retention_days == "abc"
        assert config.scheduler.cron == "0 3 * * *"
        assert config.scheduler.run_on_startup is True

    def test_company_named_default_replaces_default(self):
        config = PruneConfig.model_validate(
            {
                "default": {"companyId": "default", "retentionDays": "7"},
                "companies": [{"companyId": "default", "retentionDays": "1"}],
            }
        )

        assert config.policy_map()["default"].retention_days == "1"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_default_policy(self, tmp_path):
        path = write(tmp_path / "config.yaml", "companies: []\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_duplicate_company(self, tmp_path):
        path = write(
            tmp_path / "config.yaml",
            """
default: {companyId: default, retentionDays: "7"}
companies:
  - {companyId: acme, retentionDays: "1"}
  - {companyId: acme, retentionDays: "2"}
""",
        )

        with pytest.raises(ConfigurationError, match="more than once"):
            load_config(path)

    def test_bad_cron(self, tmp_path):
        path = write(
            tmp_path / "config.yaml",
            """
default: {companyId: default, retentionDays: "7"}
scheduler: {cron: "every tuesday"}
""",
        )

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_unparseable_yaml(self, tmp_path):
        path = write(tmp_path / "config.yaml", "default: [unclosed\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_non_mapping_document(self, tmp_path):
        path = write(tmp_path / "config.yaml", "- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)

    @pytest.mark.parametrize("entry", [{"companyId": "acme"}, {"companyId": "acme", "retentionDays": None}])
    def test_missing_retention_loads_as_empty(self, tmp_path, entry):
        path = write(
            tmp_path / "config.json",
            json.dumps({"default": {"companyId": "default", "retentionDays": "7"}, "companies": [entry]}),
        )

        config = load_config(path)

        assert config.policy_map()["acme"].retention_days == ""
