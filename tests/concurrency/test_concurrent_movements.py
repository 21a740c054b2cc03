"""
Concurrent dispatch against one item.

Each worker runs in its own session and commits for real, so the row lock
on the item is what keeps the pools from going negative.  PostgreSQL only:
SQLite serializes writers and ignores FOR UPDATE.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier
from uuid import uuid4

import pytest

from inventory_kernel.domain.actor import Actor, Role
from inventory_kernel.domain.movements import MovementCategory, Reference
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.models.references import Outlet, Subscription
from inventory_services import InventoryService

pytestmark = pytest.mark.postgres

WORKERS = 12
STOCK = 8


@pytest.fixture
def seeded(pg_session_factory):
    actor = Actor(uuid4(), Role.OPERATOR)
    session = pg_session_factory()
    outlet = Outlet(code=f"OUT-{uuid4().hex[:8]}", name="Race kitchen", created_by_id=actor.actor_id)
    session.add(outlet)
    session.flush()
    subscription = Subscription(outlet_id=outlet.id, created_by_id=actor.actor_id)
    session.add(subscription)
    session.commit()

    service = InventoryService(session)
    item = service.create_item(
        outlet_id=outlet.id,
        name="Dinner plate",
        category="plate",
        actor=actor,
        initial_quantity=STOCK,
    )
    service.activate_item(item.id, actor)
    return actor, item, Reference.subscription(subscription.id)


def test_concurrent_outflows_never_oversell(pg_session_factory, seeded):
    actor, item, reference = seeded
    barrier = Barrier(WORKERS)

    def dispatch_one() -> str:
        service = InventoryService(pg_session_factory())
        barrier.wait()
        try:
            service.record_movement(
                item_id=item.id,
                outlet_id=item.outlet_id,
                category=MovementCategory.OUTFLOW,
                quantity=1,
                actor=actor,
                reference=reference,
            )
        except InsufficientStockError:
            return "rejected"
        return "dispatched"

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        outcomes = list(pool.map(lambda _: dispatch_one(), range(WORKERS)))

    assert outcomes.count("dispatched") == STOCK
    assert outcomes.count("rejected") == WORKERS - STOCK

    service = InventoryService(pg_session_factory())
    info = service.get_item(item.id)
    assert info.available_quantity == 0
    assert info.allocated_quantity == STOCK
    assert service.outstanding_for(item.id, reference) == STOCK

    sequences = [m.sequence for m in service.movement_history(item.id)]
    assert len(sequences) == len(set(sequences)) == STOCK + 1
    assert service.verify_item(item.id).is_clean
