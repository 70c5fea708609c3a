import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, UTC
from pathlib import Path
from typing import Iterator, Optional

import pandas as pd

from scoutwatch.domain.models import Form, FormType, Item, Record
from scoutwatch.exceptions import StoreOperationFailed, StoreUnavailable


_TRUE_TOKENS = {"1", "true", "yes", "y", "t"}
_FALSE_TOKENS = {"0", "false", "no", "n", "f"}


class StoreSession:
    """
    One open connection, used for a single form's writes.
    Every call commits on its own, the way the tablet-era stored procedures did.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert_report(self, form: Form) -> int:
        """Header insert; returns the generated report id."""
        try:
            cur = self.conn.execute(
                """
                INSERT INTO reports
                    (form_type, tablet_num, scout_name, team_num, match_num, flag, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, 'pending', ?)
                """,
                (
                    int(form.form_type),
                    form.tablet_num,
                    form.scout_name,
                    form.team_num,
                    form.match_num,
                    None if form.flag is None else int(form.flag),
                    datetime.now(UTC).isoformat(),
                ),
            )
        except (sqlite3.Error, OverflowError) as exc:
            raise StoreOperationFailed("insert_report", str(exc)) from exc
        return cur.lastrowid

    def insert_record(self, value: str, form_id: int, item_id: int) -> None:
        try:
            self.conn.execute(
                "INSERT INTO records (report_id, item_id, value) VALUES (?, ?, ?)",
                (form_id, item_id, value),
            )
        except (sqlite3.Error, OverflowError) as exc:
            raise StoreOperationFailed("insert_record", str(exc)) from exc

    def mark_report(self, form_id: int, status: str) -> None:
        try:
            self.conn.execute("UPDATE reports SET status = ? WHERE id = ?", (status, form_id))
        except (sqlite3.Error, OverflowError) as exc:
            raise StoreOperationFailed("mark_report", str(exc)) from exc


class Database:
    """
    Thin wrapper over sqlite3 for scouting persistence.
    Keeps schema creation, the write session and the review queries in one place.
    """

    def __init__(self, db_path: Path, timeout: float = 5.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot open store at {self.db_path}: {exc}") from exc
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        """Fresh connection per unit of work, closed on every exit path."""
        with closing(self._connect()) as conn:
            yield StoreSession(conn)

    def _ensure_schema(self):
        with closing(self._connect()) as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS reports (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    form_type INTEGER NOT NULL,
                    tablet_num INTEGER,
                    scout_name TEXT,
                    team_num INTEGER NOT NULL,
                    match_num INTEGER,
                    flag INTEGER,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TEXT
                );
                """
            )
            # No foreign key on item_id: ingestion never checks the item catalog.
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    report_id INTEGER NOT NULL,
                    item_id INTEGER NOT NULL,
                    value TEXT,
                    FOREIGN KEY (report_id) REFERENCES reports(id)
                );
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS items (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    datatype TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_reports_team_type ON reports (team_num, form_type);")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_records_report ON records (report_id);")

    @contextmanager
    def _reading(self, operation: str) -> Iterator[sqlite3.Connection]:
        with closing(self._connect()) as conn:
            try:
                yield conn
            except (sqlite3.Error, pd.errors.DatabaseError) as exc:
                raise StoreOperationFailed(operation, str(exc)) from exc

    def register_item(self, item: Item) -> None:
        with self._reading("register_item") as conn:
            conn.execute(
                """
                INSERT INTO items (id, name, datatype, active) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name,
                    datatype = excluded.datatype, active = excluded.active
                """,
                (item.id, item.name, item.datatype, int(item.active)),
            )

    def active_items(self) -> list[Item]:
        with self._reading("query_active_items") as conn:
            rows = conn.execute(
                "SELECT id, name, datatype, active FROM items WHERE active = 1 ORDER BY id"
            ).fetchall()
        return [Item(id=r[0], name=r[1], datatype=r[2], active=bool(r[3])) for r in rows]

    def latest_report(self, team_num: int, form_type: FormType) -> Optional[Form]:
        """Most recent header row for a team and form type, without its records."""
        with self._reading("query_header") as conn:
            row = conn.execute(
                """
                SELECT id, form_type, tablet_num, scout_name, team_num, match_num, flag
                FROM reports
                WHERE team_num = ? AND form_type = ?
                ORDER BY id DESC
                LIMIT 1
                """,
                (team_num, int(form_type)),
            ).fetchone()
        if not row:
            return None
        return Form(
            form_id=row[0],
            form_type=FormType(row[1]),
            tablet_num=row[2],
            scout_name=row[3] or "",
            team_num=row[4],
            match_num=row[5] if row[5] is not None else -1,
            flag=None if row[6] is None else bool(row[6]),
        )

    def records_for_report(self, form_id: int) -> list[Record]:
        with self._reading("query_records") as conn:
            rows = conn.execute(
                "SELECT item_id, value FROM records WHERE report_id = ? ORDER BY id",
                (form_id,),
            ).fetchall()
        return [Record(item_id=r[0], value=r[1] or "") for r in rows]

    def report_status(self, form_id: int) -> Optional[str]:
        with self._reading("query_header") as conn:
            row = conn.execute("SELECT status FROM reports WHERE id = ?", (form_id,)).fetchone()
        return row[0] if row else None

    def _team_values(self, operation: str, team_num: int, datatype: str) -> pd.DataFrame:
        query = """
        SELECT r.item_id, r.value
        FROM records r
        JOIN reports p ON r.report_id = p.id
        JOIN items i ON i.id = r.item_id
        WHERE p.team_num = ? AND i.active = 1 AND i.datatype = ?
        ORDER BY p.id, r.id
        """
        with self._reading(operation) as conn:
            return pd.read_sql_query(query, conn, params=[team_num, datatype])

    def aggregate_averages(self, team_num: int) -> pd.DataFrame:
        """
        Per numeric item: mean, sample standard deviation and sample size.
        Values that are not numbers are left out of the sample.
        """
        df = self._team_values("aggregate_averages", team_num, "numeric")
        columns = ["item_id", "mean", "std", "count"]
        if df.empty:
            return pd.DataFrame(columns=columns)
        df["num"] = pd.to_numeric(df["value"], errors="coerce")
        df = df.dropna(subset=["num"])
        if df.empty:
            return pd.DataFrame(columns=columns)
        grouped = df.groupby("item_id")["num"].agg(["mean", "std", "count"]).reset_index()
        grouped["std"] = grouped["std"].fillna(0.0)
        return grouped[columns]

    def aggregate_proportions(self, team_num: int) -> pd.DataFrame:
        """Per boolean item: number of successes, sample size and success rate."""
        df = self._team_values("aggregate_proportions", team_num, "boolean")
        columns = ["item_id", "sum", "count", "rate"]
        if df.empty:
            return pd.DataFrame(columns=columns)
        df["hit"] = df["value"].map(self._as_flag).astype(float)
        df = df.dropna(subset=["hit"])
        if df.empty:
            return pd.DataFrame(columns=columns)
        grouped = df.groupby("item_id")["hit"].agg(["sum", "count"]).reset_index()
        grouped["rate"] = grouped["sum"] / grouped["count"]
        return grouped[columns]

    def comments(self, team_num: int) -> list[str]:
        df = self._team_values("query_comments", team_num, "text")
        if df.empty:
            return []
        return [str(v) for v in df["value"].tolist() if v is not None and str(v).strip()]

    @staticmethod
    def _as_flag(value) -> Optional[float]:
        if value is None:
            return None
        token = str(value).strip().lower()
        if token in _TRUE_TOKENS:
            return 1.0
        if token in _FALSE_TOKENS:
            return 0.0
        return None
