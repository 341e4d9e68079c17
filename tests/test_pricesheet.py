from __future__ import annotations

import asyncio

import pytest

from bidboard.cache import LocalCache
from bidboard.errors import NotFoundError, RemoteError, SyncInProgressError, ValidationError
from bidboard.events import EventBus, EventRecorder
from bidboard.models import PriceItem
from bidboard.pricesheet import (
    EDITING,
    VIEWING,
    PriceSheet,
    format_price,
    generate_list_text,
    parse_list_text,
    validate_fields,
)


def test_validate_fields_accepts_trimmed_values() -> None:
    assert validate_fields(" Desk ", "10.50") == ("Desk", 10.5)
    assert validate_fields("Desk", 0) == ("Desk", 0.0)


@pytest.mark.parametrize(
    "name, price, message",
    [
        ("", "10", "Name is required"),
        ("   ", "10", "Name is required"),
        ("Desk", "", "Price is required"),
        ("Desk", "-1", "Price must be a valid positive number"),
        ("Desk", "ten", "Price must be a valid positive number"),
        ("Desk", "nan", "Price must be a valid positive number"),
    ],
)
def test_validate_fields_rejects(name: str, price: str, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        validate_fields(name, price)


def test_list_text_round_trip_formatting() -> None:
    items = parse_list_text("Desk - $1,234.50\n\n - $3\nChair - $abc\n", id_factory=iter("xyz").__next__)

    assert [(i.id, i.name, i.price) for i in items] == [
        ("x", "Desk", 1234.5),
        ("y", "Item 2", 3.0),
        ("z", "Chair", 0.0),
    ]
    assert generate_list_text(items[:1]) == "Desk - $1,234.50"
    assert format_price(1234.5) == "$1,234.50"


def _sheet(cache: LocalCache, events: EventBus, id_factory, remote=None) -> PriceSheet:
    return PriceSheet(cache, remote, events=events, id_factory=id_factory)


def test_add_and_commit_locally(price_cache: LocalCache, events: EventBus, recorder: EventRecorder, id_factory) -> None:
    sheet = _sheet(price_cache, events, id_factory)

    sheet.add_item()
    assert sheet.mode == EDITING
    sheet.update_draft(name="Desk", price="10.50")
    item = sheet.commit_edit()

    assert item == PriceItem(id="local-1", name="Desk", price=10.5)
    assert sheet.mode == VIEWING
    assert price_cache.read() == [item.to_record()]
    assert recorder.kinds() == ["created"]


def test_invalid_commit_keeps_edit_open(price_cache: LocalCache, events: EventBus, recorder: EventRecorder, id_factory) -> None:
    sheet = _sheet(price_cache, events, id_factory)
    sheet.add_item()
    sheet.update_draft(name="Desk", price="-1")

    with pytest.raises(ValidationError):
        sheet.commit_edit()

    assert sheet.mode == EDITING
    assert sheet.items == []
    assert price_cache.read() == []
    assert recorder.events == []


def test_switching_rows_autosaves_open_edit(price_cache: LocalCache, events: EventBus, recorder: EventRecorder, id_factory) -> None:
    price_cache.write(
        [
            PriceItem(id="a", name="Desk", price=10.0).to_record(),
            PriceItem(id="b", name="Chair", price=5.0).to_record(),
        ]
    )
    sheet = _sheet(price_cache, events, id_factory)

    sheet.begin_edit("a")
    sheet.update_draft(price="12")
    session = sheet.begin_edit("b")

    assert session.item_id == "b"
    assert sheet.get("a").price == 12.0
    assert recorder.kinds() == ["updated"]


def test_switching_refused_when_open_edit_is_invalid(price_cache: LocalCache, events: EventBus, id_factory) -> None:
    price_cache.write(
        [
            PriceItem(id="a", name="Desk", price=10.0).to_record(),
            PriceItem(id="b", name="Chair", price=5.0).to_record(),
        ]
    )
    sheet = _sheet(price_cache, events, id_factory)
    sheet.begin_edit("a")
    sheet.update_draft(name="")

    with pytest.raises(ValidationError):
        sheet.begin_edit("b")

    assert sheet.session.item_id == "a"
    assert sheet.get("a").name == "Desk"


def test_untouched_new_row_is_discarded(price_cache: LocalCache, events: EventBus, recorder: EventRecorder, id_factory) -> None:
    price_cache.write([PriceItem(id="a", name="Desk", price=10.0).to_record()])
    sheet = _sheet(price_cache, events, id_factory)

    sheet.add_item()
    sheet.begin_edit("a")

    assert [item.id for item in sheet.items] == ["a"]
    assert recorder.events == []


def test_begin_edit_unknown_id(price_cache: LocalCache, events: EventBus, id_factory) -> None:
    with pytest.raises(NotFoundError):
        _sheet(price_cache, events, id_factory).begin_edit("missing")


def test_save_edit_stores_server_version(price_cache: LocalCache, events: EventBus, recorder: EventRecorder, id_factory, catalog_factory) -> None:
    catalog = catalog_factory()
    sheet = _sheet(price_cache, events, id_factory, catalog)
    sheet.add_item()
    sheet.update_draft(name="Desk", price="10.50", category="Furniture")

    saved = asyncio.run(sheet.save_edit())

    assert saved.id == "srv-1"
    assert [item.id for item in sheet.items] == ["srv-1"]
    assert price_cache.read()[0]["category"] == "Furniture"
    assert recorder.kinds() == ["created"]


def test_save_edit_remote_failure_keeps_edit(price_cache: LocalCache, events: EventBus, id_factory, catalog_factory) -> None:
    catalog = catalog_factory()
    catalog.fail_on["create"] = 1
    sheet = _sheet(price_cache, events, id_factory, catalog)
    sheet.add_item()
    sheet.update_draft(name="Desk", price="10")

    with pytest.raises(RemoteError):
        asyncio.run(sheet.save_edit())

    assert sheet.mode == EDITING
    assert sheet.session.name == "Desk"
    assert price_cache.read() == []


def test_delete_survives_remote_failure(price_cache: LocalCache, events: EventBus, recorder: EventRecorder, id_factory, catalog_factory) -> None:
    item = PriceItem(id="srv-1", name="Desk", price=10.0)
    catalog = catalog_factory(item)
    catalog.fail_on["delete"] = 1
    price_cache.write([item.to_record()])
    sheet = _sheet(price_cache, events, id_factory, catalog)

    outcome = asyncio.run(sheet.delete("srv-1"))

    assert outcome.local_only
    assert outcome.item == item
    assert price_cache.read() == []
    assert recorder.events[-1].kind == "deleted"
    assert recorder.events[-1].detail["local_only"] is True


def test_delete_after_failed_sync_removes_assigned_server_record(
    price_cache: LocalCache, events: EventBus, id_factory, catalog_factory
) -> None:
    catalog = catalog_factory(PriceItem(id="srv-b", name="Beam", price=100.0))
    price_cache.write(
        [
            PriceItem(id="local-a", name="Anchor", price=5.0).to_record(),
            PriceItem(id="srv-b", name="Beam", price=120.0).to_record(),
        ]
    )
    catalog.fail_on["update"] = 1
    sheet = _sheet(price_cache, events, id_factory, catalog)

    result = asyncio.run(sheet.sync())
    assert not result.success
    assert sheet.reconciler.assigned_ids == {"local-a": "srv-1"}

    outcome = asyncio.run(sheet.delete("local-a"))

    assert not outcome.local_only
    assert [item.id for item in asyncio.run(catalog.list())] == ["srv-b"]
    assert sheet.reconciler.assigned_ids == {}
    assert [raw["id"] for raw in price_cache.read()] == ["srv-b"]


def test_delete_unknown_id(price_cache: LocalCache, events: EventBus, id_factory) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(_sheet(price_cache, events, id_factory).delete("missing"))


def test_mutations_rejected_while_syncing(price_cache: LocalCache, events: EventBus, id_factory) -> None:
    price_cache.write([PriceItem(id="a", name="Desk", price=10.0).to_record()])
    sheet = _sheet(price_cache, events, id_factory)

    with price_cache.sync_guard():
        with pytest.raises(SyncInProgressError):
            asyncio.run(sheet.delete("a"))
        with pytest.raises(SyncInProgressError):
            sheet.add_item()

    assert [item.id for item in sheet.items] == ["a"]


def test_load_falls_back_to_cache(price_cache: LocalCache, events: EventBus, recorder: EventRecorder, id_factory, catalog_factory) -> None:
    cached = PriceItem(id="a", name="Desk", price=10.0)
    price_cache.write([cached.to_record()])
    catalog = catalog_factory(PriceItem(id="srv-1", name="Chair", price=5.0))
    catalog.fail_on["list"] = 1
    sheet = _sheet(price_cache, events, id_factory, catalog)

    assert asyncio.run(sheet.load()) == [cached]
    assert recorder.kinds() == ["load-failed"]

    assert asyncio.run(sheet.load()) == [PriceItem(id="srv-1", name="Chair", price=5.0)]
    assert price_cache.read()[0]["id"] == "srv-1"


def test_sync_commits_open_edit_first(price_cache: LocalCache, events: EventBus, recorder: EventRecorder, id_factory, catalog_factory) -> None:
    catalog = catalog_factory()
    sheet = _sheet(price_cache, events, id_factory, catalog)
    sheet.add_item()
    sheet.update_draft(name="Desk", price="7")

    result = asyncio.run(sheet.sync())

    assert result.success
    assert [(item.id, item.name) for item in sheet.items] == [("srv-1", "Desk")]
    assert recorder.kinds() == ["created", "sync-complete"]


def test_replace_all_validates_every_row(price_cache: LocalCache, events: EventBus, id_factory) -> None:
    sheet = _sheet(price_cache, events, id_factory)
    with pytest.raises(ValidationError):
        sheet.replace_all([PriceItem(id="a", name="", price=1.0)])
    sheet.replace_all(parse_list_text("Desk - $10", id_factory=id_factory))
    assert [item.name for item in sheet.items] == ["Desk"]
