"""SQLite implementation of the ledger repository."""
import os
import sqlite3
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Any

from domain.repositories.ledger_repository import ILedgerRepository, LedgerUpdate
from domain.entities.account import Account, Wallet
from domain.entities.portfolio import Holding, Transaction, TransactionType
from shared.config import get_settings
from shared.logging import get_logger
from shared.exceptions.data import (
    StoreUnavailable,
    ConcurrentModificationError,
    DuplicateOperationError,
)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SqliteLedgerRepository(ILedgerRepository):
    """SQLite implementation of the ledger store.

    Money is stored as TEXT so Decimal values round-trip exactly. Each trade
    runs inside one ``BEGIN IMMEDIATE`` transaction; any failure rolls back
    all three writes.
    """

    def __init__(self, db_path: Optional[str] = None, timeout: Optional[int] = None):
        self.settings = get_settings()
        self.db_path = db_path or self.settings.database.path
        self.timeout = timeout if timeout is not None else self.settings.database.timeout
        self.logger = get_logger(__name__)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _ensure_tables(self):
        """Create ledger tables if they don't exist."""
        db_dir = os.path.dirname(os.path.abspath(self.db_path))
        os.makedirs(db_dir, exist_ok=True)

        conn = self._connect()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS accounts (
                    user_id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL,
                    initial_balance TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS wallets (
                    user_id TEXT PRIMARY KEY REFERENCES accounts(user_id),
                    balance TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT
                );

                CREATE TABLE IF NOT EXISTS holdings (
                    user_id TEXT NOT NULL REFERENCES accounts(user_id),
                    symbol TEXT NOT NULL,
                    name TEXT NOT NULL,
                    quantity INTEGER NOT NULL CHECK (quantity > 0),
                    avg_price TEXT NOT NULL,
                    updated_at TEXT,
                    PRIMARY KEY (user_id, symbol)
                );

                CREATE TABLE IF NOT EXISTS transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL REFERENCES accounts(user_id),
                    operation_id TEXT,
                    transaction_type TEXT NOT NULL CHECK (transaction_type IN ('buy', 'sell')),
                    symbol TEXT NOT NULL,
                    name TEXT NOT NULL,
                    quantity INTEGER NOT NULL CHECK (quantity > 0),
                    price TEXT NOT NULL,
                    total TEXT NOT NULL,
                    avg_cost TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    UNIQUE (user_id, operation_id)
                );

                CREATE INDEX IF NOT EXISTS idx_transactions_user ON transactions(user_id, id);
                CREATE INDEX IF NOT EXISTS idx_transactions_symbol ON transactions(user_id, symbol);
            """)
        finally:
            conn.close()

    @asynccontextmanager
    async def _get_connection(self, operation: str):
        """Get a connection; sqlite failures surface as StoreUnavailable."""
        conn = None
        try:
            conn = self._connect()
            yield conn
        except sqlite3.Error as e:
            self.logger.error(f"Ledger store failed during {operation}: {e}")
            raise StoreUnavailable(
                f"Ledger store failed during {operation}", {'operation': operation}
            ) from e
        finally:
            if conn is not None:
                conn.close()

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            user_id=row['user_id'],
            display_name=row['display_name'],
            initial_balance=Decimal(row['initial_balance']),
            created_at=_parse_ts(row['created_at'])
        )

    def _row_to_wallet(self, row: sqlite3.Row) -> Wallet:
        return Wallet(
            user_id=row['user_id'],
            balance=Decimal(row['balance']),
            version=row['version'],
            updated_at=_parse_ts(row['updated_at'])
        )

    def _row_to_holding(self, row: sqlite3.Row) -> Holding:
        return Holding(
            user_id=row['user_id'],
            symbol=row['symbol'],
            name=row['name'],
            quantity=row['quantity'],
            avg_price=Decimal(row['avg_price']),
            updated_at=_parse_ts(row['updated_at'])
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row['id'],
            user_id=row['user_id'],
            transaction_type=TransactionType(row['transaction_type']),
            symbol=row['symbol'],
            name=row['name'],
            quantity=row['quantity'],
            price=Decimal(row['price']),
            total=Decimal(row['total']),
            avg_cost=Decimal(row['avg_cost']),
            timestamp=_parse_ts(row['timestamp']),
            operation_id=row['operation_id']
        )

    # Account Operations
    async def create_account(self, account: Account) -> Account:
        """Create the account and its funded wallet, or return the existing one."""
        async with self._get_connection("create_account") as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    "SELECT * FROM accounts WHERE user_id = ?", (account.user_id,)
                ).fetchone()
                if row:
                    conn.execute("ROLLBACK")
                    return self._row_to_account(row)

                created_at = account.created_at.isoformat()
                conn.execute(
                    """INSERT INTO accounts (user_id, display_name, initial_balance, created_at)
                       VALUES (?, ?, ?, ?)""",
                    (account.user_id, account.display_name, str(account.initial_balance), created_at)
                )
                conn.execute(
                    "INSERT INTO wallets (user_id, balance, version, updated_at) VALUES (?, ?, 0, ?)",
                    (account.user_id, str(account.initial_balance), created_at)
                )
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise

            self.logger.info(f"Created account {account.user_id} with balance {account.initial_balance}")
            return account

    async def get_account(self, user_id: str) -> Optional[Account]:
        async with self._get_connection("get_account") as conn:
            row = conn.execute("SELECT * FROM accounts WHERE user_id = ?", (user_id,)).fetchone()
            return self._row_to_account(row) if row else None

    async def get_wallet(self, user_id: str) -> Optional[Wallet]:
        async with self._get_connection("get_wallet") as conn:
            row = conn.execute("SELECT * FROM wallets WHERE user_id = ?", (user_id,)).fetchone()
            return self._row_to_wallet(row) if row else None

    # Holdings Operations
    async def get_holdings(self, user_id: str) -> List[Holding]:
        async with self._get_connection("get_holdings") as conn:
            cursor = conn.execute(
                "SELECT * FROM holdings WHERE user_id = ? ORDER BY symbol", (user_id,)
            )
            return [self._row_to_holding(row) for row in cursor.fetchall()]

    async def get_holding(self, user_id: str, symbol: str) -> Optional[Holding]:
        async with self._get_connection("get_holding") as conn:
            row = conn.execute(
                "SELECT * FROM holdings WHERE user_id = ? AND symbol = ?",
                (user_id, symbol.upper())
            ).fetchone()
            return self._row_to_holding(row) if row else None

    # Trade Operations
    def _update_wallet(self, conn: sqlite3.Connection, update: LedgerUpdate, now: str) -> None:
        cursor = conn.execute(
            """UPDATE wallets SET balance = ?, version = version + 1, updated_at = ?
               WHERE user_id = ? AND version = ?""",
            (str(update.new_balance), now, update.user_id, update.expected_version)
        )
        if cursor.rowcount == 0:
            raise ConcurrentModificationError(
                "Wallet version changed",
                {'user_id': update.user_id, 'expected_version': update.expected_version}
            )

    def _apply_holding(self, conn: sqlite3.Connection, update: LedgerUpdate, now: str) -> None:
        params = {'user_id': update.user_id, 'symbol': update.symbol}
        if update.creates_holding:
            try:
                conn.execute(
                    """INSERT INTO holdings (user_id, symbol, name, quantity, avg_price, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (update.user_id, update.symbol, update.name, update.quantity_delta,
                     str(update.new_avg_price), now)
                )
            except sqlite3.IntegrityError as e:
                raise ConcurrentModificationError("Holding was created concurrently", params) from e
            return

        if update.deletes_holding:
            cursor = conn.execute(
                "DELETE FROM holdings WHERE user_id = ? AND symbol = ? AND quantity = ?",
                (update.user_id, update.symbol, -update.quantity_delta)
            )
        else:
            try:
                cursor = conn.execute(
                    """UPDATE holdings SET quantity = quantity + ?,
                       avg_price = COALESCE(?, avg_price), updated_at = ?
                       WHERE user_id = ? AND symbol = ?""",
                    (update.quantity_delta,
                     str(update.new_avg_price) if update.new_avg_price is not None else None,
                     now, update.user_id, update.symbol)
                )
            except sqlite3.IntegrityError as e:
                raise ConcurrentModificationError("Holding quantity changed concurrently", params) from e

        if cursor.rowcount == 0:
            raise ConcurrentModificationError("Holding changed concurrently", params)

    def _insert_transaction(self, conn: sqlite3.Connection, transaction: Transaction) -> int:
        try:
            cursor = conn.execute(
                """INSERT INTO transactions
                   (user_id, operation_id, transaction_type, symbol, name, quantity,
                    price, total, avg_cost, timestamp)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (transaction.user_id, transaction.operation_id, transaction.transaction_type.value,
                 transaction.symbol, transaction.name, transaction.quantity,
                 str(transaction.price), str(transaction.total), str(transaction.avg_cost),
                 transaction.timestamp.isoformat())
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateOperationError(
                "Operation already applied",
                {'user_id': transaction.user_id, 'operation_id': transaction.operation_id}
            ) from e
        return cursor.lastrowid

    async def apply_trade(self, update: LedgerUpdate) -> Transaction:
        """Apply wallet, holding and transaction writes in one SQLite transaction."""
        now = update.transaction.timestamp.isoformat()
        async with self._get_connection("apply_trade") as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                self._update_wallet(conn, update, now)
                self._apply_holding(conn, update, now)
                transaction_id = self._insert_transaction(conn, update.transaction)
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise

        transaction = replace(update.transaction, id=transaction_id)
        self.logger.debug(
            f"Applied {transaction.transaction_type.value} {transaction.quantity} {transaction.symbol} "
            f"for {update.user_id} as transaction {transaction_id}"
        )
        return transaction

    # Transaction Operations
    async def get_transaction_by_operation_id(
        self, user_id: str, operation_id: str
    ) -> Optional[Transaction]:
        async with self._get_connection("get_transaction_by_operation_id") as conn:
            row = conn.execute(
                "SELECT * FROM transactions WHERE user_id = ? AND operation_id = ?",
                (user_id, operation_id)
            ).fetchone()
            return self._row_to_transaction(row) if row else None

    async def get_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
        symbol: Optional[str] = None,
        transaction_type: Optional[TransactionType] = None,
        oldest_first: bool = False
    ) -> List[Transaction]:
        """Get transactions with optional filters, ordered by creation."""
        query = "SELECT * FROM transactions WHERE user_id = ?"
        params: List[Any] = [user_id]

        if symbol:
            query += " AND symbol = ?"
            params.append(symbol.upper())

        if transaction_type:
            query += " AND transaction_type = ?"
            params.append(transaction_type.value)

        query += " ORDER BY id ASC" if oldest_first else " ORDER BY id DESC"

        if limit:
            query += " LIMIT ?"
            params.append(limit)

        async with self._get_connection("get_transactions") as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_transaction(row) for row in cursor.fetchall()]
