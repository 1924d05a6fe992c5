from typing import Any, List, Optional, Sequence

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from .errors import StoreError


def _service(creds: Credentials):
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


def _quoted(name: str) -> str:
    return "'" + name.replace("'", "''") + "'"


class SheetsRowStore:
    """Row store over one Google spreadsheet, one tab per sheet name.

    Values are written RAW so Slack timestamps stay strings instead of being
    parsed into (lossy) numbers.
    """

    def __init__(self, creds: Credentials, spreadsheet_id: str, service=None) -> None:
        self.spreadsheet_id = spreadsheet_id
        self._svc = service or _service(creds)

    def _values(self):
        return self._svc.spreadsheets().values()

    def _sheet_ids(self) -> dict[str, int]:
        meta = (
            self._svc.spreadsheets()
            .get(spreadsheetId=self.spreadsheet_id, fields="sheets.properties")
            .execute()
        )
        return {
            s["properties"]["title"]: s["properties"]["sheetId"]
            for s in meta.get("sheets", [])
        }

    def ensure_sheet(self, name: str, headers: Sequence[str]) -> None:
        if name not in self._sheet_ids():
            body = {"requests": [{"addSheet": {"properties": {"title": name}}}]}
            self._svc.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id, body=body
            ).execute()
        # only the header row is rewritten; existing data stays
        self._values().update(
            spreadsheetId=self.spreadsheet_id,
            range=f"{_quoted(name)}!A1",
            valueInputOption="RAW",
            body={"values": [list(headers)]},
        ).execute()

    def read_all_rows(self, name: str) -> List[List[Any]]:
        res = (
            self._values()
            .get(spreadsheetId=self.spreadsheet_id, range=_quoted(name))
            .execute()
        )
        return res.get("values", [])

    def get_last_row(self, name: str) -> Optional[List[Any]]:
        values = self.read_all_rows(name)
        if len(values) < 2:
            return None
        return values[-1]

    def append_rows(self, name: str, rows: Sequence[Sequence[Any]]) -> None:
        if not rows:
            return
        body = {"values": [list(r) for r in rows]}
        self._values().append(
            spreadsheetId=self.spreadsheet_id,
            range=f"{_quoted(name)}!A:A",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body=body,
        ).execute()

    def update_row(self, name: str, index: int, values: Sequence[Any]) -> None:
        row_number = index + 2
        self._values().update(
            spreadsheetId=self.spreadsheet_id,
            range=f"{_quoted(name)}!A{row_number}",
            valueInputOption="RAW",
            body={"values": [list(values)]},
        ).execute()

    def delete_row(self, name: str, index: int) -> None:
        sheet_id = self._sheet_ids().get(name)
        if sheet_id is None:
            raise StoreError(f"sheet {name!r} does not exist")
        start = index + 1
        body = {
            "requests": [
                {
                    "deleteDimension": {
                        "range": {
                            "sheetId": sheet_id,
                            "dimension": "ROWS",
                            "startIndex": start,
                            "endIndex": start + 1,
                        }
                    }
                }
            ]
        }
        self._svc.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id, body=body
        ).execute()
