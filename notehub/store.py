from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

from sqlalchemy import JSON, Column, String
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine, delete, select

from .errors import StoreError

Matrix = list[list[Any]]


class RowStore(Protocol):
    """Row-oriented storage addressed by sheet name.

    ``index`` arguments count data rows from 0; the header row is not counted.
    """

    def ensure_sheet(self, name: str, headers: Sequence[str]) -> None: ...

    def read_all_rows(self, name: str) -> Matrix: ...

    def get_last_row(self, name: str) -> Optional[list[Any]]: ...

    def append_rows(self, name: str, rows: Sequence[Sequence[Any]]) -> None: ...

    def update_row(self, name: str, index: int, values: Sequence[Any]) -> None: ...

    def delete_row(self, name: str, index: int) -> None: ...


class SheetRow(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    sheet: str = Field(sa_column=Column(String, nullable=False, index=True))
    cells: list[Any] = Field(sa_column=Column(JSON, nullable=False))


class SqliteRowStore:
    """Local stand-in for the spreadsheet; row 0 of each sheet is its header."""

    def __init__(self, db_path: str) -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.engine: Engine = create_engine(f"sqlite:///{path}", echo=False)
        SQLModel.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    def _rows(self, session: Session, name: str) -> list[SheetRow]:
        stmt = select(SheetRow).where(SheetRow.sheet == name).order_by(SheetRow.id)
        return list(session.exec(stmt))

    def _data_row(self, session: Session, name: str, index: int) -> SheetRow:
        rows = self._rows(session, name)
        # rows[0] is the header
        if index < 0 or index + 1 >= len(rows):
            raise StoreError(f"row {index} out of range for sheet {name!r}")
        return rows[index + 1]

    def ensure_sheet(self, name: str, headers: Sequence[str]) -> None:
        with Session(self.engine) as session:
            rows = self._rows(session, name)
            if rows:
                rows[0].cells = list(headers)
                session.add(rows[0])
            else:
                session.add(SheetRow(sheet=name, cells=list(headers)))
            session.commit()

    def read_all_rows(self, name: str) -> Matrix:
        with Session(self.engine) as session:
            return [list(row.cells) for row in self._rows(session, name)]

    def get_last_row(self, name: str) -> Optional[list[Any]]:
        with Session(self.engine) as session:
            rows = self._rows(session, name)
            if len(rows) < 2:
                return None
            return list(rows[-1].cells)

    def append_rows(self, name: str, rows: Sequence[Sequence[Any]]) -> None:
        if not rows:
            return
        with Session(self.engine) as session:
            if not self._rows(session, name):
                raise StoreError(f"sheet {name!r} does not exist")
            for values in rows:
                session.add(SheetRow(sheet=name, cells=list(values)))
            session.commit()

    def update_row(self, name: str, index: int, values: Sequence[Any]) -> None:
        with Session(self.engine) as session:
            row = self._data_row(session, name, index)
            row.cells = list(values)
            session.add(row)
            session.commit()

    def delete_row(self, name: str, index: int) -> None:
        with Session(self.engine) as session:
            row = self._data_row(session, name, index)
            session.exec(delete(SheetRow).where(SheetRow.id == row.id))
            session.commit()
