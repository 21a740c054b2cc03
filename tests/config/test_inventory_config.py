"""Configuration loading, validation and the bridges into kernel policy."""

import pytest
import yaml

from inventory_config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    InventoryConfig,
    get_active_config,
    resolve_config_path,
)
from inventory_config.bridges import build_audit_policy, build_ledger_policy
from inventory_config.loader import compute_checksum, load_config, parse_config
from inventory_config.schema import AuditConfig, LedgerConfig
from inventory_kernel.domain.actor import Role
from inventory_kernel.domain.movements import (
    NEGATIVE_ADJUSTMENT_REASONS,
    POSITIVE_ADJUSTMENT_REASONS,
    ReasonCode,
)
from inventory_kernel.domain.policy import AuditPolicy, LedgerPolicy


@pytest.fixture
def write_config(tmp_path):
    def _write(data: dict, name: str = "inventory.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestLoader:

    def test_packaged_defaults(self):
        config = load_config(DEFAULT_CONFIG_PATH)

        assert config.ledger.archive_inactivity_months == 12
        assert set(config.ledger.elevated_roles) == {"admin", "system"}
        assert config.logging.level == "INFO"
        assert len(config.checksum) == 64

    def test_missing_sections_take_defaults(self):
        config = parse_config({"ledger": {"archive_inactivity_months": 6}})

        assert config.ledger.archive_inactivity_months == 6
        assert config.audit == AuditConfig()

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown configuration sections"):
            parse_config({"billing": {}})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown keys in 'ledger'"):
            parse_config({"ledger": {"archive_after": 3}})

    @pytest.mark.parametrize(
        "data",
        [
            {"ledger": {"archive_inactivity_months": -1}},
            {"ledger": {"elevated_roles": []}},
            {"ledger": {"elevated_roles": ["owner"]}},
            {"audit": {"period_pattern": "("}},
            {"audit": {"positive_reason_codes": ["bonus"]}},
            {"logging": {"level": "LOUD"}},
            {"database": {"pool_size": 0}},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(ValueError):
            parse_config(data)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_checksum_is_key_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


class TestActiveConfig:

    def test_resolution_order(self, monkeypatch, tmp_path):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert resolve_config_path() == DEFAULT_CONFIG_PATH

        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "env.yaml"))
        assert resolve_config_path() == tmp_path / "env.yaml"
        assert resolve_config_path(tmp_path / "explicit.yaml") == tmp_path / "explicit.yaml"

    def test_env_var_file_is_loaded(self, monkeypatch, write_config):
        path = write_config({"ledger": {"archive_inactivity_months": 3}})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        config = get_active_config()

        assert config.ledger.archive_inactivity_months == 3
        assert config.source == str(path)

    def test_trace_is_logged(self, captured_logs, write_config):
        config = get_active_config(write_config({}))

        [trace] = [r for r in captured_logs() if r["message"] == "INVENTORY_CONFIG_TRACE"]
        assert trace["checksum"] == config.checksum
        assert trace["config_source"] == config.source


class TestBridges:

    def test_defaults_match_kernel_defaults(self):
        config = InventoryConfig()

        assert build_ledger_policy(config) == LedgerPolicy.with_defaults()
        assert build_audit_policy(config) == AuditPolicy.with_defaults()

    def test_roles_and_reasons_are_converted(self):
        config = InventoryConfig(
            ledger=LedgerConfig(archive_inactivity_months=18, elevated_roles=("manager",)),
            audit=AuditConfig(
                positive_reason_codes=("found_stock",),
                negative_reason_codes=("missing_stock",),
            ),
        )

        ledger = build_ledger_policy(config)
        audit = build_audit_policy(config)

        assert ledger.archive_inactivity_months == 18
        assert ledger.elevated_roles == frozenset({Role.MANAGER})
        assert audit.positive_reason_codes == frozenset({ReasonCode.FOUND_STOCK})
        assert audit.negative_reason_codes == frozenset({ReasonCode.MISSING_STOCK})

    def test_reason_under_the_wrong_direction(self):
        config = InventoryConfig(
            audit=AuditConfig(
                positive_reason_codes=("audit_shortage",),
                negative_reason_codes=("missing_stock",),
            )
        )
        with pytest.raises(ValueError, match="against their adjustment direction"):
            build_audit_policy(config)

    def test_reason_in_both_directions(self):
        config = InventoryConfig(
            audit=AuditConfig(
                positive_reason_codes=("found_stock",),
                negative_reason_codes=("found_stock",),
            )
        )
        with pytest.raises(ValueError, match="both positive and negative"):
            build_audit_policy(config)


def test_default_reason_sets_cover_every_adjustment_reason():
    config = load_config(DEFAULT_CONFIG_PATH)
    audit = build_audit_policy(config)
    assert audit.positive_reason_codes == POSITIVE_ADJUSTMENT_REASONS
    assert audit.negative_reason_codes == NEGATIVE_ADJUSTMENT_REASONS
