from datetime import datetime, timedelta, timezone

from app.services.alert_service import AlertService
from app.services.inventory_service import InventoryService
from app.services.report_service import ReportService
from app.services.stats_service import StatsService


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def _seed(svc, quantities, **extra):
    return [
        svc.create_product({"name": f"P{i}", "category": "c", "quantity": q, **extra})
        for i, q in enumerate(quantities)
    ]


def test_stats_counts(inventory):
    _seed(inventory, [0, 3, 10])
    stats = StatsService(inventory).get_stats()
    assert stats.total_products == 3
    assert stats.total_stock == 13
    assert stats.low_stock == 1
    assert stats.out_of_stock == 1


def test_low_stock_is_inclusive_of_threshold(inventory):
    _seed(inventory, [5, 6], minStock=5)
    assert StatsService(inventory).get_stats().low_stock == 1


def test_recent_movements_window(storage):
    clock = Clock(datetime(2026, 3, 1, 12, tzinfo=timezone.utc))
    svc = InventoryService(storage, auto_remove_on_zero=False, clock=clock)
    (p,) = _seed(svc, [100])

    svc.record_movement(p.id, "decrease", "sale", 1)  # 30h before evaluation
    clock.now += timedelta(hours=10)
    svc.record_movement(p.id, "decrease", "sale", 1)  # 20h before
    clock.now += timedelta(hours=19)
    svc.record_movement(p.id, "decrease", "sale", 1)  # 1h before
    clock.now += timedelta(hours=1)

    stats = StatsService(svc).get_stats()
    assert stats.recent_movements == 2
    assert StatsService(svc, window_hours=48).get_stats().recent_movements == 3


def test_recent_movements_with_frozen_clock(storage):
    clock = Clock(datetime(2026, 3, 1, 12, tzinfo=timezone.utc))
    svc = InventoryService(storage, auto_remove_on_zero=False, clock=clock)
    (p,) = _seed(svc, [10])
    for _ in range(3):
        svc.record_movement(p.id, "increase", "purchase", 1)

    # stamps run ahead of the stuck clock; they still count as recent
    assert svc.now() == svc.list_movements()[0].timestamp
    assert StatsService(svc).get_stats().recent_movements == 3
    assert ReportService(svc).movements().total_movements == 3


def test_stats_endpoint(client, inventory):
    _seed(inventory, [0, 3, 10])
    body = client.get("/api/stats").json()
    assert body == {
        "totalProducts": 3,
        "totalStock": 13,
        "lowStock": 1,
        "outOfStock": 1,
        "recentMovements": 0,
    }


def test_low_stock_report(client, inventory):
    _seed(inventory, [0, 4, 2, 9])
    body = client.get("/api/reports/low-stock").json()
    assert [p["quantity"] for p in body["outOfStock"]] == [0]
    assert [p["quantity"] for p in body["critical"]] == [2, 4]
    report = ReportService(inventory).low_stock()
    assert len(report.critical) == 2


def test_movement_report(storage):
    clock = Clock(datetime(2026, 3, 1, tzinfo=timezone.utc))
    svc = InventoryService(storage, auto_remove_on_zero=True, clock=clock)
    keep, gone = _seed(svc, [50, 2])

    svc.record_movement(keep.id, "decrease", "sale", 3, unit_price=100)
    svc.record_movement(keep.id, "increase", "purchase", 10, unit_price=40)
    svc.record_movement(gone.id, "decrease", "sale", 2, unit_price=500)
    svc.record_movement(keep.id, "increase", "return", 1, unit_price=100)
    svc.record_movement(keep.id, "decrease", "adjustment", 1)
    clock.now += timedelta(days=1)

    report = ReportService(svc).movements()
    assert report.total_movements == 5
    assert report.by_reason["sale"].count == 2
    assert report.by_reason["sale"].value == 1300
    assert report.by_reason["purchase"].value == 400
    assert report.by_reason["return"].count == 1
    assert report.by_reason["adjustment"].value == 0

    top = report.top_products
    assert top[0].name == "Deleted product"
    assert top[0].total_value == 1000
    assert top[1].product_id == keep.id
    assert top[1].sold == 3
    assert top[1].purchased == 10

    clock.now += timedelta(days=30)
    assert ReportService(svc).movements().total_movements == 0


def test_movement_report_endpoint_rejects_inverted_range(client):
    res = client.get(
        "/api/reports/movements",
        params={"since": "2026-02-01T00:00:00Z", "until": "2026-01-01T00:00:00Z"},
    )
    assert res.status_code == 400
    res = client.get("/api/reports/movements")
    assert res.status_code == 200
    assert set(res.json()["byReason"]) == {"sale", "purchase", "adjustment", "return"}


def test_alert_scan(inventory):
    _seed(inventory, [0, 3, 10])
    flagged = AlertService(inventory).scan()
    assert sorted(p.quantity for p in flagged) == [0, 3]


def test_alerts_and_report_follow_stock_level(inventory):
    _seed(inventory, [0], minStock=0)
    _seed(inventory, [5, 6], minStock=5)
    flagged = {p.id for p in AlertService(inventory).scan()}
    report = ReportService(inventory).low_stock()
    reported = {p.id for p in report.out_of_stock + report.critical}
    by_level = {p.id for p in inventory.list_products() if p.stock_level() != "normal"}
    assert flagged == reported == by_level
    assert len(by_level) == 2
