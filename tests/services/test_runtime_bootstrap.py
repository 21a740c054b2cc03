"""Process wiring: configuration to engine to a committed unit of work."""

import pytest

from inventory_config import DatabaseConfig, InventoryConfig
from inventory_kernel.db import engine as engine_module
from inventory_kernel.domain.movements import MovementCategory, ReasonCode
from inventory_kernel.exceptions import InvalidQuantityError
from inventory_kernel.models.references import Outlet
from inventory_services.runtime import bootstrap, inventory_scope


@pytest.fixture
def file_config(tmp_path, monkeypatch):
    # bootstrap replaces the process-wide engine; restore the suite's afterwards
    monkeypatch.setattr(engine_module, "_engine", None)
    monkeypatch.setattr(engine_module, "_SessionFactory", None)
    config = InventoryConfig(
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'inventory.db'}")
    )
    yield bootstrap(config)
    engine_module.get_engine().dispose()


@pytest.fixture
def outlet_id(file_config, operator):
    with engine_module.session_scope() as session:
        outlet = Outlet(code="OUT-RT", name="Runtime kitchen", created_by_id=operator.actor_id)
        session.add(outlet)
        session.flush()
        return outlet.id


def test_scope_commits_on_clean_exit(file_config, outlet_id, operator):
    with inventory_scope(file_config) as inventory:
        item = inventory.create_item(
            outlet_id=outlet_id,
            name="Dinner plate",
            category="plate",
            actor=operator,
            initial_quantity=12,
        )

    with inventory_scope(file_config) as inventory:
        assert inventory.get_item(item.id).total_quantity == 12


def test_scope_rolls_back_on_error(file_config, outlet_id, operator):
    with inventory_scope(file_config) as inventory:
        item = inventory.create_item(
            outlet_id=outlet_id, name="Cup", category="cup", actor=operator
        )

    with pytest.raises(InvalidQuantityError):
        with inventory_scope(file_config) as inventory:
            inventory.record_movement(
                item_id=item.id,
                outlet_id=outlet_id,
                category=MovementCategory.INFLOW,
                quantity=5,
                actor=operator,
                reason_code=ReasonCode.NEW_PURCHASE,
            )
            inventory.record_movement(
                item_id=item.id,
                outlet_id=outlet_id,
                category=MovementCategory.INFLOW,
                quantity=0,
                actor=operator,
            )

    with inventory_scope(file_config) as inventory:
        assert inventory.get_item(item.id).total_quantity == 0
