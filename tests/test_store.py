from pathlib import Path
from unittest.mock import MagicMock

import pytest

from notehub.errors import StoreError
from notehub.sheets import SheetsRowStore
from notehub.store import SqliteRowStore


@pytest.fixture
def store(tmp_path: Path):
    rows = SqliteRowStore(str(tmp_path / "nested" / "rows.db"))
    yield rows
    rows.dispose()


def test_ensure_sheet_writes_header_once(store):
    store.ensure_sheet("S", ["A", "B"])
    store.append_rows("S", [["1", "2"]])
    store.ensure_sheet("S", ["A", "B", "C"])

    assert store.read_all_rows("S") == [["A", "B", "C"], ["1", "2"]]


def test_sheets_are_independent(store):
    store.ensure_sheet("one", ["X"])
    store.ensure_sheet("two", ["Y"])
    store.append_rows("one", [["a"], ["b"]])

    assert store.read_all_rows("two") == [["Y"]]
    assert store.get_last_row("one") == ["b"]
    assert store.get_last_row("two") is None


def test_update_and_delete_use_data_row_index(store):
    store.ensure_sheet("S", ["V"])
    store.append_rows("S", [["a"], ["b"], ["c"]])

    store.update_row("S", 1, ["B"])
    store.delete_row("S", 0)

    assert store.read_all_rows("S") == [["V"], ["B"], ["c"]]


def test_out_of_range_and_missing_sheet_raise(store):
    store.ensure_sheet("S", ["V"])
    with pytest.raises(StoreError):
        store.update_row("S", 0, ["x"])
    with pytest.raises(StoreError):
        store.delete_row("S", -1)
    with pytest.raises(StoreError):
        store.append_rows("missing", [["x"]])
    store.append_rows("missing", [])


def test_values_keep_their_text_form(store):
    store.ensure_sheet("S", ["Timestamp"])
    store.append_rows("S", [["1700000000.000100"]])

    assert store.read_all_rows("S")[1] == ["1700000000.000100"]


def _sheets_service(titles=("Articles",)):
    svc = MagicMock()
    svc.spreadsheets.return_value.get.return_value.execute.return_value = {
        "sheets": [
            {"properties": {"title": title, "sheetId": 10 + i}}
            for i, title in enumerate(titles)
        ]
    }
    return svc


def test_sheets_store_appends_raw_values():
    svc = _sheets_service()
    store = SheetsRowStore(None, "sheet-1", service=svc)

    store.append_rows("Slack Messages", [["1700000000.000100", "U1"]])

    kwargs = svc.spreadsheets.return_value.values.return_value.append.call_args.kwargs
    assert kwargs["range"] == "'Slack Messages'!A:A"
    assert kwargs["valueInputOption"] == "RAW"
    assert kwargs["body"] == {"values": [["1700000000.000100", "U1"]]}


def test_sheets_store_adds_missing_tab_before_header():
    svc = _sheets_service(titles=())
    store = SheetsRowStore(None, "sheet-1", service=svc)

    store.ensure_sheet("Articles", ["ID", "Title"])

    body = svc.spreadsheets.return_value.batchUpdate.call_args.kwargs["body"]
    assert body["requests"][0]["addSheet"]["properties"]["title"] == "Articles"
    update = svc.spreadsheets.return_value.values.return_value.update.call_args.kwargs
    assert update["range"] == "'Articles'!A1"
    assert update["body"] == {"values": [["ID", "Title"]]}


def test_sheets_store_row_addressing():
    svc = _sheets_service()
    store = SheetsRowStore(None, "sheet-1", service=svc)

    store.update_row("Articles", 0, ["a"])
    store.delete_row("Articles", 2)

    update = svc.spreadsheets.return_value.values.return_value.update.call_args.kwargs
    assert update["range"] == "'Articles'!A2"
    rng = svc.spreadsheets.return_value.batchUpdate.call_args.kwargs["body"]["requests"][0][
        "deleteDimension"
    ]["range"]
    assert (rng["sheetId"], rng["startIndex"], rng["endIndex"]) == (10, 3, 4)
    with pytest.raises(StoreError):
        store.delete_row("Nope", 0)
