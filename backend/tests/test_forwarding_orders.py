"""Tests for the forwarding-order workflow."""

from datetime import date, datetime

import pytest

from models.forwarding_order import ForwardingOrder
from schemas.forwarding_order import (
    Address, DriverInfo, ForwardingOrderCreate, ForwardingOrderEdit, ForwardingResponse,
    GoodsDescription, MergeRequest,
)
from services import forwarding_orders as service
from utils.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from utils.mailer import FORWARDING_RESPONSE


def _create(db, actor, **overrides):
    data = dict(location="Magazyn Białystok", delivery_date=date(2026, 11, 20))
    data.update(overrides)
    return service.create_order(db, actor, ForwardingOrderCreate(**data))


def _reload(db, order_id) -> ForwardingOrder:
    db.expire_all()
    return db.query(ForwardingOrder).filter(ForwardingOrder.id == order_id).one()


# ── Creation and reading ─────────────────────────────────────────

def test_create_sets_creator_and_status(db, sales):
    order = _create(db, sales, mpk="501-01-01")
    assert order.status == "new"
    assert order.created_by_email == sales.email
    assert order.created_by == sales.display_name
    assert order.responsible_email == sales.email
    assert order.mpk == "501-01-01"


def test_producer_address_only_stored_for_producer_location(db, sales):
    address = Address(city="Łódź", postal_code="90-001", street="Piotrkowska 1")
    from_warehouse = _create(db, sales, producer_address=address)
    from_producer = _create(db, sales, location="Producent", producer_address=address)

    assert from_warehouse.location_data is None
    out = service.get_order(db, from_producer.id)
    assert out.location_data == {"city": "Łódź", "postal_code": "90-001", "street": "Piotrkowska 1"}


def test_structured_fields_are_decoded(db, sales):
    order = _create(db, sales, goods_description=GoodsDescription(description="Kable", weight="2t"))
    out = service.get_order(db, order.id)
    assert out.goods_description == {"description": "Kable", "weight": "2t"}


def test_undecodable_field_is_returned_raw(db, sales):
    order = _create(db, sales)
    order.delivery_data = "{broken"
    db.commit()
    assert service.get_order(db, order.id).delivery_data == "{broken"


def test_list_filters_by_status_newest_first(db, sales, admin):
    first = _create(db, sales)
    second = _create(db, sales)
    service.complete_order(db, admin, first.id)

    all_orders = service.list_orders(db)
    assert [o.id for o in all_orders] == [second.id, first.id]
    assert [o.id for o in service.list_orders(db, "completed")] == [first.id]
    assert [o.id for o in service.list_orders(db, "new")] == [second.id]


def test_get_missing_order(db):
    with pytest.raises(NotFoundError):
        service.get_order(db, 404)


# ── Editing ──────────────────────────────────────────────────────

def test_creator_can_edit(db, sales):
    order = _create(db, sales)
    edited = service.edit_order(db, sales, order.id, ForwardingOrderEdit(notes="Rozładunek od 7:00"))
    assert edited.notes == "Rozładunek od 7:00"


def test_other_user_cannot_edit(db, sales, other_sales):
    order = _create(db, sales)
    with pytest.raises(ForbiddenError):
        service.edit_order(db, other_sales, order.id, ForwardingOrderEdit(notes="x"))


def test_answered_order_cannot_be_edited(db, sales, warehouse, notifier):
    order = _create(db, sales)
    service.record_response(db, warehouse, order.id, ForwardingResponse(driver_name="Adam"), notifier)
    with pytest.raises(ValidationError):
        service.edit_order(db, sales, order.id, ForwardingOrderEdit(notes="x"))


def test_switching_away_from_producer_clears_address(db, sales):
    order = _create(db, sales, location="Producent", producer_address=Address(city="Łódź"))
    edited = service.edit_order(db, sales, order.id, ForwardingOrderEdit(location="Magazyn Zielonka"))
    assert edited.location_data is None


# ── Responses ────────────────────────────────────────────────────

def test_response_is_stored_without_changing_status(db, sales, warehouse, notifier):
    order = _create(db, sales)
    response = ForwardingResponse(driver_name="Adam", driver_surname="Nowak", vehicle_number="BI 12345",
                                  delivery_price=400, distance_km=100)

    stored, notification = service.record_response(db, warehouse, order.id, response, notifier)

    assert notification.success
    assert stored.status == "new"
    assert stored.distance_km == 100
    data = service.get_order(db, order.id).response_data
    assert data["driverName"] == "Adam"
    assert data["sourceTransportId"] == order.id
    assert data["pricePerKm"] == "4.00"
    assert notifier.sent[0][0] == FORWARDING_RESPONSE


def test_response_requires_capability(db, sales, notifier):
    order = _create(db, sales)
    with pytest.raises(ForbiddenError):
        service.record_response(db, sales, order.id, ForwardingResponse(driver_name="Adam"), notifier)


def test_response_to_missing_order(db, warehouse, notifier):
    with pytest.raises(NotFoundError):
        service.record_response(db, warehouse, 999, ForwardingResponse(driver_name="Adam"), notifier)


# ── Propagation to connected orders ──────────────────────────────

def test_propagation_outcomes(db, sales, warehouse, notifier):
    main = _create(db, sales, distance_km=120)
    with_distance = _create(db, sales, distance_km=50)
    without_distance = _create(db, sales)
    answered = _create(db, sales, distance_km=80)
    service.record_response(db, warehouse, answered.id, ForwardingResponse(driver_name="Ewa"), notifier)

    main_response = ForwardingResponse(driver_name="Adam", driver_phone="600100200",
                                       delivery_price=600, cost_per_transport=200)
    service.record_response(db, warehouse, main.id, main_response, notifier)
    outcomes = service.propagate_to_connected(
        db, [with_distance.id, without_distance.id, answered.id, 999], main.id, main_response
    )

    assert {o.order_id: o.outcome for o in outcomes} == {
        with_distance.id: "updated",
        without_distance.id: "updated",
        answered.id: "skipped",
        999: "not_found",
    }

    derived = service.get_order(db, with_distance.id).response_data
    assert derived["driverName"] == "Adam"
    assert derived["driverPhone"] == "600100200"
    assert derived["deliveryPrice"] == 200
    assert derived["distanceKm"] == 50
    assert derived["pricePerKm"] == "4.00"
    assert derived["isAutoGenerated"] is True
    assert derived["sourceOrderId"] == main.id

    assert service.get_order(db, without_distance.id).response_data["pricePerKm"] == 0
    # Existing response untouched
    assert service.get_order(db, answered.id).response_data["driverName"] == "Ewa"


def test_propagation_falls_back_to_delivery_price(db, sales):
    main = _create(db, sales)
    target = _create(db, sales, distance_km=40)
    outcomes = service.propagate_to_connected(
        db, [target.id], main.id, ForwardingResponse(delivery_price=100)
    )
    assert outcomes[0].outcome == "updated"
    assert service.get_order(db, target.id).response_data["pricePerKm"] == "2.50"


def test_propagation_carries_date_change(db, sales):
    main = _create(db, sales)
    target = _create(db, sales, delivery_date=date(2026, 11, 25))
    main_response = ForwardingResponse(driver_name="Adam", date_changed=True,
                                       new_delivery_date=date(2026, 11, 27))
    service.propagate_to_connected(db, [target.id], main.id, main_response)

    derived = service.get_order(db, target.id).response_data
    assert derived["dateChanged"] is True
    assert derived["newDeliveryDate"] == "2026-11-27"
    assert derived["originalDeliveryDate"] == "2026-11-25"


def test_propagation_skips_source_order(db, sales):
    main = _create(db, sales)
    outcomes = service.propagate_to_connected(db, [main.id], main.id, ForwardingResponse(driver_name="A"))
    assert outcomes[0].outcome == "skipped"
    assert _reload(db, main.id).response_data is None


def test_propagation_failure_is_isolated(db, sales, monkeypatch):
    main = _create(db, sales)
    broken = _create(db, sales, distance_km=10)
    fine = _create(db, sales, distance_km=20)
    original = service.derive_connected_response

    def flaky(main_response, main_order_id, target):
        if target.id == broken.id:
            raise RuntimeError("boom")
        return original(main_response, main_order_id, target)

    monkeypatch.setattr(service, "derive_connected_response", flaky)
    outcomes = service.propagate_to_connected(
        db, [broken.id, fine.id], main.id, ForwardingResponse(delivery_price=100)
    )

    assert [o.outcome for o in outcomes] == ["failed", "updated"]
    assert _reload(db, broken.id).response_data is None
    assert _reload(db, fine.id).response_data is not None


def test_zero_distance_gives_zero_price_per_km(db, sales):
    main = _create(db, sales)
    near = _create(db, sales, distance_km=250)
    zero = _create(db, sales, distance_km=0)
    service.propagate_to_connected(db, [near.id, zero.id], main.id, ForwardingResponse(cost_per_transport=1000))

    assert service.get_order(db, near.id).response_data["pricePerKm"] == "4.00"
    assert service.get_order(db, zero.id).response_data["pricePerKm"] == 0


def test_skipped_target_is_left_byte_for_byte(db, sales, warehouse, notifier):
    main = _create(db, sales)
    answered = _create(db, sales, distance_km=30)
    service.record_response(db, warehouse, answered.id, ForwardingResponse(driver_name="Ewa", admin_notes="Ręcznie"),
                            notifier)
    before = _reload(db, answered.id).response_data

    service.propagate_to_connected(db, [answered.id], main.id, ForwardingResponse(delivery_price=999))
    assert _reload(db, answered.id).response_data == before


# ── Merged responses ─────────────────────────────────────────────

def _merge_payload(ids, **overrides):
    data = dict(
        transport_ids=ids,
        driver_info=DriverInfo(name="Adam Nowak", phone="600100200", vehicle_number="BI 12345"),
        total_price=600,
        transport_date=date(2026, 11, 22),
        vehicle_type="solo",
        transport_type="krajowy",
    )
    data.update(overrides)
    return MergeRequest(**data)


def test_merge_answers_group_with_one_carrier(db, sales, warehouse, notifier):
    first, second, third = (_create(db, sales) for _ in range(3))
    breakdown = {str(first.id): 300, str(second.id): 200, str(third.id): 100}
    payload = _merge_payload([first.id, second.id, third.id], price_breakdown=breakdown,
                             total_distance=300, notes="Rozładunek HDS")

    main, secondary, notification = service.merge_orders(db, warehouse, payload, notifier,
                                                         now=datetime(2026, 11, 18, 9, 0))

    assert notification.success
    assert main.id == first.id
    assert [o.id for o in secondary] == [second.id, third.id]

    out = service.get_order(db, first.id)
    assert out.status == "new"
    assert out.distance_km == 300
    assert out.merged_transports == {
        "isMain": True, "mergedTransportIds": [first.id, second.id, third.id],
        "mergedAt": "2026-11-18T09:00:00",
    }
    data = out.response_data
    assert data["driverName"] == "Adam Nowak"
    assert data["deliveryPrice"] == 300
    assert data["totalDeliveryPrice"] == 600
    assert data["pricePerKm"] == "2.00"
    assert data["isMainMerged"] is True
    assert data["mergedTransportIds"] == [first.id, second.id, third.id]
    assert data["newDeliveryDate"] == "2026-11-22"
    assert data["vehicleType"] == "solo"

    other = service.get_order(db, third.id)
    assert other.status == "new"
    assert other.merged_transports["isSecondary"] is True
    assert other.merged_transports["mainTransportId"] == first.id
    assert other.response_data["deliveryPrice"] == 100
    assert other.response_data["isSecondaryMerged"] is True
    assert other.response_data["notes"] == f"Transport połączony z #{first.id}. Rozładunek HDS"
    assert other.response_data["originalDeliveryDate"] == "2026-11-20"
    assert [kind for kind, _ in notifier.sent] == [FORWARDING_RESPONSE]


def test_merge_splits_price_evenly_without_breakdown(db, sales, warehouse, notifier):
    first, second = _create(db, sales), _create(db, sales)
    service.merge_orders(db, warehouse, _merge_payload([first.id, second.id], total_price=301), notifier)

    assert service.get_order(db, first.id).response_data["deliveryPrice"] == 150.5
    assert service.get_order(db, second.id).response_data["deliveryPrice"] == 150.5


def test_single_order_merge_is_plain_response(db, sales, warehouse, notifier):
    order = _create(db, sales)
    payload = _merge_payload([order.id], transport_date=date(2026, 11, 20))
    main, secondary, _ = service.merge_orders(db, warehouse, payload, notifier)

    assert secondary == []
    out = service.get_order(db, main.id)
    assert out.merged_transports is None
    assert out.response_data["isMerged"] is False
    assert out.response_data["deliveryPrice"] == 600
    assert out.response_data["dateChanged"] is False
    assert "newDeliveryDate" not in out.response_data


def test_merge_rejects_orders_already_answered(db, sales, warehouse, notifier):
    free = _create(db, sales)
    answered = _create(db, sales)
    service.record_response(db, warehouse, answered.id, ForwardingResponse(driver_name="Ewa"), notifier)

    with pytest.raises(ConflictError):
        service.merge_orders(db, warehouse, _merge_payload([free.id, answered.id]), notifier)
    assert _reload(db, free.id).response_data is None


def test_merge_rejects_orders_already_merged(db, sales, warehouse, notifier):
    first, second, third = (_create(db, sales) for _ in range(3))
    service.merge_orders(db, warehouse, _merge_payload([first.id, second.id]), notifier)

    with pytest.raises(ConflictError):
        service.merge_orders(db, warehouse, _merge_payload([third.id, second.id]), notifier)
    assert _reload(db, third.id).merged_transports is None


def test_merge_missing_order(db, sales, warehouse, notifier):
    order = _create(db, sales)
    with pytest.raises(NotFoundError):
        service.merge_orders(db, warehouse, _merge_payload([order.id, 999]), notifier)


@pytest.mark.parametrize("overrides", [
    {"transport_ids": []},
    {"driver_info": None},
    {"driver_info": DriverInfo(name="Adam")},
    {"total_price": 0},
    {"transport_date": None},
    {"vehicle_type": None},
    {"transport_type": ""},
])
def test_merge_validation(db, sales, warehouse, notifier, overrides):
    order = _create(db, sales)
    with pytest.raises(ValidationError):
        service.merge_orders(db, warehouse, _merge_payload([order.id], **overrides), notifier)


def test_merge_requires_capability(db, sales, notifier):
    order = _create(db, sales)
    with pytest.raises(ForbiddenError):
        service.merge_orders(db, sales, _merge_payload([order.id]), notifier)


def test_unmerge_releases_whole_group(db, sales, warehouse, admin, notifier):
    first, second, third = (_create(db, sales) for _ in range(3))
    numbers = [o.order_number for o in (first, second, third)]
    service.merge_orders(db, warehouse, _merge_payload([first.id, second.id, third.id]), notifier)

    # Any member of the group identifies it
    restored = service.unmerge_order(db, admin, third.id, now=datetime(2026, 11, 19, 14, 30))

    assert [o.id for o in restored] == [first.id, second.id, third.id]
    for order, number in zip(restored, numbers):
        stored = _reload(db, order.id)
        assert stored.order_number == number
        assert stored.status == "new"
        assert stored.merged_transports is None
        assert stored.response_data is None
    assert "przywrócony jako osobne zlecenie" in _reload(db, first.id).notes
    assert f"połączony z {numbers[0]}" in _reload(db, second.id).notes
    assert "19.11.2026 14:30" in _reload(db, second.id).notes

    edited = service.edit_order(db, sales, second.id, ForwardingOrderEdit(notes="Nowa trasa"))
    assert edited.notes == "Nowa trasa"


def test_unmerge_order_that_is_not_merged(db, sales, admin):
    order = _create(db, sales)
    with pytest.raises(ValidationError):
        service.unmerge_order(db, admin, order.id)


def test_unmerge_requires_admin(db, sales, warehouse, notifier):
    first, second = _create(db, sales), _create(db, sales)
    service.merge_orders(db, warehouse, _merge_payload([first.id, second.id]), notifier)
    with pytest.raises(ForbiddenError):
        service.unmerge_order(db, warehouse, first.id)


def test_unmerge_refuses_completed_group(db, sales, warehouse, admin, notifier):
    first, second = _create(db, sales), _create(db, sales)
    service.merge_orders(db, warehouse, _merge_payload([first.id, second.id]), notifier)
    service.complete_order(db, admin, second.id)

    with pytest.raises(ConflictError):
        service.unmerge_order(db, admin, first.id)
    assert _reload(db, first.id).merged_transports is not None


# ── Completion and deletion ──────────────────────────────────────

def test_admin_completes_order(db, sales, admin, warehouse, notifier):
    order = _create(db, sales)
    service.record_response(db, warehouse, order.id, ForwardingResponse(driver_name="Adam"), notifier)
    completed = service.complete_order(db, admin, order.id, now=datetime(2026, 11, 21, 12, 0))

    assert completed.status == "completed"
    assert completed.completed_by == admin.email
    data = service.get_order(db, order.id).response_data
    assert data["driverName"] == "Adam"
    assert data["completedManually"] is True
    assert data["completedBy"] == admin.display_name


def test_only_admin_completes(db, sales, warehouse):
    order = _create(db, sales)
    with pytest.raises(ForbiddenError):
        service.complete_order(db, warehouse, order.id)


def test_delete(db, sales, admin):
    order = _create(db, sales)
    service.delete_order(db, admin, order.id)
    assert db.query(ForwardingOrder).count() == 0
    with pytest.raises(NotFoundError):
        service.delete_order(db, admin, order.id)


def test_only_admin_deletes(db, sales):
    order = _create(db, sales)
    with pytest.raises(ForbiddenError):
        service.delete_order(db, sales, order.id)
