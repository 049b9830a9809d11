"""
钱包记录的本地持久化（SQLite）。

表结构与旧版桌面端保持一致：
  wallets(id TEXT PRIMARY KEY, name, address UNIQUE, network, encrypted_key, created_at INTEGER ms)
encrypted_key 原样存取，不做任何转换。
"""

import logging
import secrets
import sqlite3
import string
from pathlib import Path
from typing import Dict, List, Optional, Union

from config import MAX_WALLET_NAME_LENGTH, MAX_WALLETS, Network
from errors import StorageError, ValidationError, unsupported_network, wallet_exists, wallet_limit_reached
from models import WalletRecord, now_ms

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS wallets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    address TEXT NOT NULL UNIQUE,
    network TEXT NOT NULL,
    encrypted_key TEXT NOT NULL,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_network ON wallets(network);
CREATE INDEX IF NOT EXISTS idx_created_at ON wallets(created_at);
"""

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _new_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"wallet_{now_ms()}_{suffix}"


def _row_to_record(row: sqlite3.Row) -> WalletRecord:
    return WalletRecord(
        id=row["id"],
        name=row["name"],
        address=row["address"],
        network=row["network"],
        encrypted_key=row["encrypted_key"],
        created_at=int(row["created_at"]),
    )


class WalletStore:
    """SQLite 钱包仓库；地址唯一，总数不超过 max_wallets。"""

    def __init__(self, path: Union[str, Path] = ":memory:", max_wallets: int = MAX_WALLETS):
        self.path = str(path)
        self.max_wallets = max_wallets
        self._conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> "WalletStore":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def initialize(self) -> None:
        """打开连接并建表，可重复调用。"""
        if self._conn is not None:
            return
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self.path)
            conn.row_factory = sqlite3.Row
            if self.path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise StorageError(f"Database initialization failed: {exc}", "数据库初始化失败") from exc
        self._conn = conn
        logger.info("Wallet store ready at %s", self.path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("Database is not initialized", "数据库未初始化", "DATABASE_NOT_READY")
        return self._conn

    # ------------------------- 写入 ------------------------- #
    def insert(self, wallet: Dict[str, str]) -> str:
        """
        写入一条钱包记录并返回新 id。

        :param wallet: {name, address, network, encrypted_key}
        """
        name = self._check_name(wallet.get("name", ""))
        address = (wallet.get("address") or "").strip()
        encrypted_key = wallet.get("encrypted_key") or ""
        if not address or not encrypted_key:
            raise ValidationError("address and encrypted_key are required", "钱包数据不完整", "RECORD_INVALID")
        try:
            network = Network.parse(wallet.get("network", "")).value
        except ValueError as exc:
            raise unsupported_network(wallet.get("network")) from exc

        if self.has_address(address):
            raise wallet_exists()
        if self.count() >= self.max_wallets:
            raise wallet_limit_reached(self.max_wallets)

        wallet_id = _new_id()
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT INTO wallets (id, name, address, network, encrypted_key, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (wallet_id, name, address, network, encrypted_key, now_ms()),
                )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise wallet_exists() from exc
            raise StorageError(f"Insert failed: {exc}", "数据操作失败", "DATABASE_ERROR") from exc
        except sqlite3.Error as exc:
            raise StorageError(f"Insert failed: {exc}", "数据操作失败", "DATABASE_ERROR") from exc
        logger.info("Wallet %s stored (%s)", wallet_id, network)
        return wallet_id

    def update_name(self, wallet_id: str, name: str) -> bool:
        name = self._check_name(name)
        with self.conn:
            cur = self.conn.execute("UPDATE wallets SET name = ? WHERE id = ?", (name, wallet_id))
        return cur.rowcount > 0

    def delete(self, wallet_id: str) -> bool:
        with self.conn:
            cur = self.conn.execute("DELETE FROM wallets WHERE id = ?", (wallet_id,))
        return cur.rowcount > 0

    def clear(self) -> int:
        """删除全部记录，返回删除条数。"""
        with self.conn:
            cur = self.conn.execute("DELETE FROM wallets")
        logger.warning("All wallet records cleared (%d)", cur.rowcount)
        return cur.rowcount

    # ------------------------- 查询 ------------------------- #
    def get_by_id(self, wallet_id: str) -> Optional[WalletRecord]:
        row = self.conn.execute("SELECT * FROM wallets WHERE id = ?", (wallet_id,)).fetchone()
        return _row_to_record(row) if row else None

    def get_by_address(self, address: str) -> Optional[WalletRecord]:
        row = self.conn.execute("SELECT * FROM wallets WHERE address = ?", (address.strip(),)).fetchone()
        return _row_to_record(row) if row else None

    def has_address(self, address: str) -> bool:
        return self.get_by_address(address) is not None

    def list_all(self) -> List[WalletRecord]:
        """按创建时间倒序返回全部记录。"""
        rows = self.conn.execute("SELECT * FROM wallets ORDER BY created_at DESC, rowid DESC").fetchall()
        return [_row_to_record(r) for r in rows]

    def list_by_network(self, network: Union[Network, str]) -> List[WalletRecord]:
        net = Network.parse(network).value
        rows = self.conn.execute(
            "SELECT * FROM wallets WHERE network = ? ORDER BY created_at DESC, rowid DESC", (net,)
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def count(self) -> int:
        return int(self.conn.execute("SELECT COUNT(*) FROM wallets").fetchone()[0])

    def remaining_capacity(self) -> int:
        return max(0, self.max_wallets - self.count())

    @staticmethod
    def _check_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Wallet name is required", "钱包名称不能为空", "NAME_REQUIRED")
        if len(name) > MAX_WALLET_NAME_LENGTH:
            raise ValidationError(
                f"Wallet name longer than {MAX_WALLET_NAME_LENGTH}",
                f"钱包名称不能超过 {MAX_WALLET_NAME_LENGTH} 个字符",
                "NAME_TOO_LONG",
            )
        return name
