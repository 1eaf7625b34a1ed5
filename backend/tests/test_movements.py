import threading
from datetime import timedelta

import pytest

from app.exceptions import InventoryValidationError, ProductNotFound
from app.models.stock_movement import Polarity, ReasonType
from app.services.inventory_service import InventoryService, apply_movement, fold_quantity


def _product(svc, quantity=0, **extra):
    fields = {"name": "Widget", "category": "parts", "quantity": quantity}
    fields.update(extra)
    return svc.create_product(fields)


def test_increase_and_decrease(inventory):
    p = _product(inventory, quantity=4)
    inventory.record_movement(p.id, "increase", "purchase", 6)
    assert inventory.get_product(p.id).quantity == 10
    inventory.record_movement(p.id, Polarity.DECREASE, ReasonType.SALE, 3)
    assert inventory.get_product(p.id).quantity == 7


def test_movement_fields(inventory):
    p = _product(inventory, quantity=10)
    m = inventory.record_movement(
        p.id, "decrease", "sale", 2, unit_price=150, reference="INV-1", reason="counter sale"
    )
    assert m.id
    assert m.product_id == p.id
    assert m.polarity is Polarity.DECREASE
    assert m.reason_type is ReasonType.SALE
    assert m.unit_price == 150
    assert m.total_price == 300
    assert m.reference == "INV-1"
    assert m.timestamp.tzinfo is not None

    plain = inventory.record_movement(p.id, "increase", "purchase", 1)
    assert plain.unit_price is None
    assert plain.total_price is None


def test_movement_refreshes_last_modified(inventory):
    p = _product(inventory, quantity=1)
    inventory.record_movement(p.id, "increase", "purchase", 1)
    assert inventory.get_product(p.id).last_modified > p.last_modified


def test_scenario_a_exact_zero_removes_product(inventory):
    p = _product(inventory, quantity=10, minStock=5)
    m = inventory.record_movement(p.id, "decrease", "sale", 10)
    with pytest.raises(ProductNotFound):
        inventory.get_product(p.id)
    # the movement survives its product
    assert inventory.list_movements()[0].id == m.id


def test_scenario_b_clamped_decrease_removes_product(inventory):
    p = _product(inventory, quantity=5)
    inventory.record_movement(p.id, "decrease", "sale", 8)
    with pytest.raises(ProductNotFound):
        inventory.get_product(p.id)


def test_scenario_c_clamped_trace_without_auto_removal(storage):
    svc = InventoryService(storage, auto_remove_on_zero=False)
    p = _product(svc, quantity=0)
    trace = [svc.get_product(p.id).quantity]
    for polarity, qty in (("increase", 10), ("decrease", 4), ("decrease", 20)):
        svc.record_movement(p.id, polarity, "adjustment", qty)
        trace.append(svc.get_product(p.id).quantity)
    assert trace == [0, 10, 6, 0]


def test_increase_to_zero_never_removes(inventory):
    # only a decrease landing on zero triggers removal
    p = _product(inventory, quantity=0)
    inventory.record_movement(p.id, "increase", "purchase", 2)
    assert inventory.get_product(p.id).quantity == 2


def test_auto_removal_disabled_keeps_product_at_zero(storage):
    svc = InventoryService(storage, auto_remove_on_zero=False)
    p = _product(svc, quantity=3)
    svc.record_movement(p.id, "decrease", "sale", 3)
    assert svc.get_product(p.id).quantity == 0


def test_fold_law_is_not_a_plain_sum(storage):
    svc = InventoryService(storage, auto_remove_on_zero=False)
    p = _product(svc, quantity=2)
    steps = [("decrease", 5), ("increase", 4), ("decrease", 1), ("increase", 3)]
    for polarity, qty in steps:
        svc.record_movement(p.id, polarity, "adjustment", qty)

    deltas = [qty if pol == "increase" else -qty for pol, qty in steps]
    expected = 2
    for d in deltas:
        expected = max(0, expected + d)
    assert svc.get_product(p.id).quantity == expected == 6
    assert max(0, 2 + sum(deltas)) == 3
    assert svc.replay_quantity(p.id, start=2) == 6


def test_apply_and_fold_helpers(inventory):
    assert apply_movement(3, Polarity.DECREASE, 5) == 0
    assert apply_movement(3, Polarity.INCREASE, 5) == 8
    assert fold_quantity(0, []) == 0


def test_unknown_product_movement_is_recorded_without_effect(inventory, storage):
    p = _product(inventory, quantity=5)
    before = storage.calls["save_products"]
    m = inventory.record_movement("ghost", "decrease", "sale", 3)
    assert m.product_id == "ghost"
    assert inventory.list_movements()[0].id == m.id
    assert inventory.get_product(p.id).quantity == 5
    assert storage.calls["save_products"] == before
    assert storage.movements[-1]["productId"] == "ghost"


@pytest.mark.parametrize(
    "args",
    [
        ("p", "increase", "purchase", 0),
        ("p", "increase", "purchase", -3),
        ("p", "increase", "purchase", 1.5),
        ("p", "increase", "purchase", True),
        ("p", "sideways", "purchase", 1),
        ("p", "increase", "gift", 1),
        ("", "increase", "purchase", 1),
    ],
)
def test_invalid_movements_change_nothing(inventory, storage, args):
    with pytest.raises(InventoryValidationError):
        inventory.record_movement(*args)
    assert inventory.list_movements() == []
    assert storage.movements == []


def test_negative_unit_price_rejected(inventory):
    p = _product(inventory, quantity=1)
    with pytest.raises(InventoryValidationError):
        inventory.record_movement(p.id, "increase", "purchase", 1, unit_price=-1)


@pytest.mark.parametrize("metadata", [{"reference": 123}, {"reason": ["not", "text"]}])
def test_bad_metadata_rejected_before_any_change(inventory, storage, metadata):
    p = _product(inventory, quantity=5)
    with pytest.raises(InventoryValidationError):
        inventory.record_movement(p.id, "decrease", "sale", 5, **metadata)
    assert inventory.get_product(p.id).quantity == 5
    assert inventory.list_movements() == []
    assert storage.products[0]["quantity"] == 5
    assert storage.movements == []


def test_list_movements_newest_first_and_filters(inventory):
    a = _product(inventory, quantity=50, name="Alpha")
    b = _product(inventory, quantity=50, name="Beta")
    m1 = inventory.record_movement(a.id, "decrease", "sale", 1, reference="INV-9")
    m2 = inventory.record_movement(b.id, "increase", "purchase", 2)
    m3 = inventory.record_movement(a.id, "increase", "return", 1)

    assert [m.id for m in inventory.list_movements()] == [m3.id, m2.id, m1.id]
    assert [m.id for m in inventory.list_movements(product_id=a.id)] == [m3.id, m1.id]
    assert [m.id for m in inventory.list_movements(reason_type="purchase")] == [m2.id]
    assert [m.id for m in inventory.list_movements(polarity="decrease")] == [m1.id]
    assert [m.id for m in inventory.list_movements(q="inv-9")] == [m1.id]
    assert [m.id for m in inventory.list_movements(q="beta")] == [m2.id]
    assert [m.id for m in inventory.list_movements(since=m2.timestamp)] == [m3.id, m2.id]
    assert [m.id for m in inventory.list_movements(until=m2.timestamp)] == [m2.id, m1.id]


def test_timestamps_strictly_increase_with_frozen_clock(storage):
    from datetime import datetime, timezone

    fixed = datetime(2026, 1, 1, tzinfo=timezone.utc)
    svc = InventoryService(storage, clock=lambda: fixed)
    p = _product(svc, quantity=10)
    ms = [svc.record_movement(p.id, "decrease", "sale", 1) for _ in range(3)]
    stamps = [m.timestamp for m in ms]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 3
    assert stamps[1] - stamps[0] == timedelta(microseconds=1)


def test_concurrent_movements_serialize(storage):
    svc = InventoryService(storage, auto_remove_on_zero=False)
    p = _product(svc, quantity=0)

    def worker(polarity):
        for _ in range(25):
            svc.record_movement(p.id, polarity, "adjustment", 1)

    threads = [threading.Thread(target=worker, args=("increase",)) for _ in range(4)]
    threads += [threading.Thread(target=worker, args=("decrease",)) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(svc.list_movements(product_id=p.id)) == 150
    # whatever the interleaving, the stored quantity is the fold of the log
    assert svc.get_product(p.id).quantity == svc.replay_quantity(p.id, start=0)
    assert svc.get_product(p.id).quantity >= 0


# -- HTTP ------------------------------------------------------------------


def test_post_movement_canonical(client):
    p = client.post("/api/products", json={"name": "Tea", "category": "g", "quantity": 5}).json()
    res = client.post(
        "/api/stock-movements",
        json={"productId": p["id"], "polarity": "increase", "reasonType": "purchase",
              "quantity": 3, "unitPrice": 250},
    )
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["polarity"] == "increase"
    assert body["reasonType"] == "purchase"
    assert body["totalPrice"] == 750
    assert client.get(f"/api/products/{p['id']}").json()["quantity"] == 8


def test_post_movement_typed_sale_auto_removes(client):
    p = client.post("/api/products", json={"name": "Tea", "category": "g", "quantity": 2}).json()
    res = client.post(
        "/api/stock-movements", json={"productId": p["id"], "type": "sale", "quantity": 2}
    )
    assert res.status_code == 201
    assert res.json()["polarity"] == "decrease"
    assert client.get(f"/api/products/{p['id']}").status_code == 404
    listed = client.get("/api/stock-movements").json()
    assert listed[0]["productId"] == p["id"]


def test_post_movement_rejects_bad_bodies(client):
    bad = [
        {"productId": "x", "type": "teleport", "quantity": 1},
        {"productId": "x", "type": "sale", "reasonType": "purchase", "quantity": 1},
        {"productId": "x", "polarity": "up", "quantity": 1},
        {"productId": "x", "polarity": "increase", "quantity": 0},
        {"productId": "x", "quantity": 1},
        {"type": "sale", "quantity": 1},
    ]
    for body in bad:
        res = client.post("/api/stock-movements", json=body)
        assert res.status_code == 422, body
    assert client.get("/api/stock-movements").json() == []


def test_post_movement_unknown_product_is_recorded(client):
    res = client.post(
        "/api/stock-movements", json={"productId": "gone", "type": "purchase", "quantity": 4}
    )
    assert res.status_code == 201
    assert client.get("/api/stock-movements").json()[0]["productId"] == "gone"
    assert client.get("/api/products").json() == []


def test_list_movements_query_filters(client):
    p = client.post("/api/products", json={"name": "Tea", "category": "g", "quantity": 9}).json()
    client.post("/api/stock-movements", json={"productId": p["id"], "type": "sale", "quantity": 1})
    client.post("/api/stock-movements", json={"productId": p["id"], "type": "purchase", "quantity": 1})
    res = client.get("/api/stock-movements", params={"reason_type": "sale"})
    assert [m["reasonType"] for m in res.json()] == ["sale"]
    assert client.get("/api/stock-movements", params={"polarity": "nope"}).status_code == 400
