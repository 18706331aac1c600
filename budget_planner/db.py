from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .config import DB_PATH, ensure_data_directories
from .errors import PersistenceFailure
from .models import Budget, Category, Fingerprint, RECURRING, Source, Transaction

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    parent_id INTEGER
);

CREATE TABLE IF NOT EXISTS sources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL,
    value REAL NOT NULL,
    date TEXT NOT NULL,
    source_id INTEGER,
    group_id INTEGER,
    subgroup_id INTEGER,
    payment_method TEXT,
    installments INTEGER,
    installment_number INTEGER,
    note TEXT
);

CREATE TABLE IF NOT EXISTS budgets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    year INTEGER NOT NULL,
    month INTEGER NOT NULL,
    type TEXT NOT NULL,
    source_id INTEGER,
    group_id INTEGER,
    subgroup_id INTEGER,
    amount REAL NOT NULL,
    mode TEXT NOT NULL DEFAULT 'unique',
    installments INTEGER,
    installment_number INTEGER,
    is_fixed_cost INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS budget_suppressions (
    year INTEGER NOT NULL,
    month INTEGER NOT NULL,
    type TEXT NOT NULL,
    source_id INTEGER,
    group_id INTEGER,
    subgroup_id INTEGER
);

-- NULL keys never compare equal in a plain UNIQUE index, hence IFNULL
CREATE UNIQUE INDEX IF NOT EXISTS ux_budget_fingerprint
ON budgets (year, month, type, IFNULL(source_id, -1), IFNULL(group_id, -1), IFNULL(subgroup_id, -1));

CREATE UNIQUE INDEX IF NOT EXISTS ux_suppression_fingerprint
ON budget_suppressions (year, month, type, IFNULL(source_id, -1), IFNULL(group_id, -1), IFNULL(subgroup_id, -1));

CREATE INDEX IF NOT EXISTS ix_budget_period ON budgets (year, month);
CREATE INDEX IF NOT EXISTS ix_txn_date ON transactions (date);
"""

BUDGET_COLUMNS = (
    'id', 'year', 'month', 'type', 'source_id', 'group_id', 'subgroup_id',
    'amount', 'mode', 'installments', 'installment_number', 'is_fixed_cost',
)

TRANSACTION_COLUMNS = (
    'id', 'type', 'value', 'date', 'source_id', 'group_id', 'subgroup_id',
    'payment_method', 'installments', 'installment_number', 'note',
)

_FINGERPRINT_MATCH = "type = ? AND source_id IS ? AND group_id IS ? AND subgroup_id IS ?"


def _row_to_budget(row: sqlite3.Row) -> Budget:
    data = dict(row)
    data['is_fixed_cost'] = bool(data['is_fixed_cost'])
    return Budget(**data)


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction.from_dict(dict(row))


class BudgetStore:
    """SQLite-backed collection of categories, sources, transactions and budgets.

    Every public method opens its own connection. Any ``sqlite3.Error`` is
    re-raised as :class:`PersistenceFailure`.
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        if db_path is None:
            ensure_data_directories()
            db_path = DB_PATH
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(db_path)
        self.init_db()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path, isolation_level=None)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise PersistenceFailure(f"Database error in {self.db_path}: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction holding the database write lock from the first statement."""
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)

    # ------------------------------------------------------------------
    # Categories and sources
    # ------------------------------------------------------------------

    def add_category(self, name: str, parent_id: Optional[int] = None) -> Category:
        with self.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO categories (name, parent_id) VALUES (?, ?)", (name, parent_id)
            )
            return Category(cur.lastrowid, name, parent_id)

    def fetch_categories(self) -> List[Category]:
        with self.connect() as conn:
            rows = conn.execute("SELECT id, name, parent_id FROM categories ORDER BY id").fetchall()
        return [Category(**dict(row)) for row in rows]

    def add_source(self, name: str) -> Source:
        with self.transaction() as conn:
            cur = conn.execute("INSERT INTO sources (name) VALUES (?)", (name,))
            return Source(cur.lastrowid, name)

    def fetch_sources(self) -> List[Source]:
        with self.connect() as conn:
            rows = conn.execute("SELECT id, name FROM sources ORDER BY id").fetchall()
        return [Source(**dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def add_transactions(self, transactions: Iterable[Transaction]) -> List[Transaction]:
        """Insert transactions and return them with their assigned ids."""
        sql = (
            "INSERT INTO transactions (type, value, date, source_id, group_id, subgroup_id, "
            "payment_method, installments, installment_number, note) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
        )
        saved: List[Transaction] = []
        with self.transaction() as conn:
            for t in transactions:
                cur = conn.execute(sql, (
                    t.type, t.value, t.date.isoformat(), t.source_id, t.group_id,
                    t.subgroup_id, t.payment_method, t.installments,
                    t.installment_number, t.note,
                ))
                saved.append(replace(t, id=cur.lastrowid))
        return saved

    def add_transaction(self, transaction: Transaction) -> Transaction:
        return self.add_transactions([transaction])[0]

    def fetch_transactions(self, year: Optional[int] = None, month: Optional[int] = None) -> List[Transaction]:
        where: List[str] = []
        params: List[Any] = []
        if year is not None:
            where.append("substr(date, 1, 4) = ?")
            params.append(f"{year:04d}")
        if month is not None:
            where.append("substr(date, 6, 2) = ?")
            params.append(f"{month:02d}")

        sql = f"SELECT {', '.join(TRANSACTION_COLUMNS)} FROM transactions"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY date ASC, id ASC"

        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_transaction(row) for row in rows]

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def _insert_budget(self, conn: sqlite3.Connection, budget: Budget, ignore: bool = False) -> Optional[Budget]:
        verb = "INSERT OR IGNORE" if ignore else "INSERT"
        cur = conn.execute(
            f"{verb} INTO budgets (year, month, type, source_id, group_id, subgroup_id, amount, "
            "mode, installments, installment_number, is_fixed_cost) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                budget.year, budget.month, budget.type, budget.source_id, budget.group_id,
                budget.subgroup_id, budget.amount, budget.mode, budget.installments,
                budget.installment_number, int(budget.is_fixed_cost),
            ),
        )
        if cur.rowcount == 0:
            return None
        return replace(budget, id=cur.lastrowid)

    def add_budgets(self, budgets: Sequence[Budget]) -> List[Budget]:
        """Insert budgets in one transaction.

        Raises:
            PersistenceFailure: If any budget duplicates a fingerprint already
                present in its month; nothing is written in that case
        """
        with self.transaction() as conn:
            return [self._insert_budget(conn, b) for b in budgets]

    def add_budget(self, budget: Budget) -> Budget:
        return self.add_budgets([budget])[0]

    def insert_budgets_if_absent(self, budgets: Sequence[Budget]) -> List[Budget]:
        """Insert each budget whose fingerprint is free and unsuppressed in its month.

        The existence check is repeated under the write lock right before each
        insert; the unique index turns any remaining race into a no-op.

        Returns:
            The budgets actually created, with ids
        """
        created: List[Budget] = []
        with self.transaction() as conn:
            for budget in budgets:
                if self._has_fingerprint(conn, budget.year, budget.month, budget.fingerprint):
                    continue
                if self._is_suppressed(conn, budget.year, budget.month, budget.fingerprint):
                    logger.debug("Skipping suppressed budget %s in %d-%02d",
                                 budget.fingerprint, budget.year, budget.month)
                    continue
                saved = self._insert_budget(conn, budget, ignore=True)
                if saved is not None:
                    created.append(saved)
        return created

    def _has_fingerprint(self, conn: sqlite3.Connection, year: int, month: int, fingerprint: Fingerprint) -> bool:
        row = conn.execute(
            f"SELECT 1 FROM budgets WHERE year = ? AND month = ? AND {_FINGERPRINT_MATCH} LIMIT 1",
            (year, month, *fingerprint),
        ).fetchone()
        return row is not None

    def _is_suppressed(self, conn: sqlite3.Connection, year: int, month: int, fingerprint: Fingerprint) -> bool:
        row = conn.execute(
            f"SELECT 1 FROM budget_suppressions WHERE year = ? AND month = ? AND {_FINGERPRINT_MATCH} LIMIT 1",
            (year, month, *fingerprint),
        ).fetchone()
        return row is not None

    def is_suppressed(self, year: int, month: int, fingerprint: Fingerprint) -> bool:
        with self.connect() as conn:
            return self._is_suppressed(conn, year, month, fingerprint)

    def fetch_budgets(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        mode: Optional[str] = None,
    ) -> List[Budget]:
        where: List[str] = []
        params: List[Any] = []
        if year is not None:
            where.append("year = ?")
            params.append(year)
        if month is not None:
            where.append("month = ?")
            params.append(month)
        if mode is not None:
            where.append("mode = ?")
            params.append(mode)

        sql = f"SELECT {', '.join(BUDGET_COLUMNS)} FROM budgets"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY year ASC, month ASC, id ASC"

        with self.connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_budget(row) for row in rows]

    def get_budget(self, budget_id: int) -> Optional[Budget]:
        with self.connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(BUDGET_COLUMNS)} FROM budgets WHERE id = ?", (budget_id,)
            ).fetchone()
        return _row_to_budget(row) if row else None

    def latest_recurring_periods(self) -> List[Tuple[Budget, int]]:
        """Latest budget of every recurring fingerprint with its linear month index."""
        sql = f"""
        SELECT {', '.join('b.' + c for c in BUDGET_COLUMNS)}, b.year * 12 + b.month AS month_number
        FROM budgets b
        WHERE b.mode = ?
          AND b.year * 12 + b.month = (
              SELECT MAX(o.year * 12 + o.month) FROM budgets o
              WHERE o.mode = b.mode AND o.type = b.type
                AND o.source_id IS b.source_id AND o.group_id IS b.group_id
                AND o.subgroup_id IS b.subgroup_id
          )
        ORDER BY b.id
        """
        with self.connect() as conn:
            rows = conn.execute(sql, (RECURRING,)).fetchall()
        results = []
        for row in rows:
            data = dict(row)
            number = data.pop('month_number')
            data['is_fixed_cost'] = bool(data['is_fixed_cost'])
            results.append((Budget(**data), number))
        return results

    def update_budget_amount(self, budget_id: int, amount: float) -> bool:
        """Update a budget's amount. Returns True if a row was changed."""
        with self.transaction() as conn:
            cur = conn.execute("UPDATE budgets SET amount = ? WHERE id = ?", (amount, budget_id))
            return cur.rowcount > 0

    def delete_budget(self, budget_id: int, suppress: bool = False) -> bool:
        """Delete a budget.

        Args:
            budget_id: Id of the budget row
            suppress: Also record a suppression marker so recurrence never
                recreates this fingerprint in the same month

        Returns:
            True if a budget was deleted
        """
        with self.transaction() as conn:
            row = conn.execute(
                f"SELECT {', '.join(BUDGET_COLUMNS)} FROM budgets WHERE id = ?", (budget_id,)
            ).fetchone()
            if row is None:
                return False
            budget = _row_to_budget(row)
            conn.execute("DELETE FROM budgets WHERE id = ?", (budget_id,))
            if suppress:
                conn.execute(
                    "INSERT OR IGNORE INTO budget_suppressions "
                    "(year, month, type, source_id, group_id, subgroup_id) VALUES (?, ?, ?, ?, ?, ?)",
                    (budget.year, budget.month, *budget.fingerprint),
                )
                logger.info("Suppressed %s budget %s for %d-%02d",
                            budget.mode, budget.fingerprint, budget.year, budget.month)
        return True

    def clear_suppression(self, year: int, month: int, fingerprint: Fingerprint) -> bool:
        with self.transaction() as conn:
            cur = conn.execute(
                f"DELETE FROM budget_suppressions WHERE year = ? AND month = ? AND {_FINGERPRINT_MATCH}",
                (year, month, *fingerprint),
            )
            return cur.rowcount > 0

    def budgets_frame(self, year: Optional[int] = None) -> pd.DataFrame:
        """Budgets as a DataFrame, optionally limited to one year."""
        sql = f"SELECT {', '.join(BUDGET_COLUMNS)} FROM budgets"
        params: List[Any] = []
        if year is not None:
            sql += " WHERE year = ?"
            params.append(year)
        sql += " ORDER BY year ASC, month ASC, id ASC"
        with self.connect() as conn:
            return pd.read_sql_query(sql, conn, params=params)
