# src/staking_rewards/runtime/sqlite_db.py
from __future__ import annotations

import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, Mapping

from staking_rewards.ledger.pool import RewardPool
from staking_rewards.ledger.position import StakePosition
from staking_rewards.runtime.codec import (
    decode_pool,
    decode_position,
    dumps_json,
    encode_pool,
    encode_position,
    loads_json,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for the rewards engine.

    Design goals:
      - single durable DB file for the pool and all of its positions
      - cross-thread safe by never sharing connections

    SQLite allows only one writer at a time; write_tx() retries BEGIN IMMEDIATE
    with bounded backoff when another writer holds the lock.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """Return a safe PRAGMA synchronous value.

        Defaults:
          - prod        -> FULL
          - dev/testnet -> NORMAL

        Override with STAKING_REWARDS_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("STAKING_REWARDS_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("STAKING_REWARDS_SQLITE_SYNCHRONOUS") or default).strip().upper()

        allowed = {"OFF", "NORMAL", "FULL", "EXTRA"}
        if raw not in allowed:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        p = Path(self.path)
        p.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("STAKING_REWARDS_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        allow_non_wal = (os.environ.get("STAKING_REWARDS_SQLITE_ALLOW_NON_WAL") or "").strip() in {"1", "true", "TRUE"}
        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        mode = str(row[0]).strip().lower() if row is not None else ""
        if mode and mode != "wal" and not allow_non_wal:
            con.close()
            raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA foreign_keys=ON;")
        con.execute("PRAGMA temp_store=MEMORY;")

        busy_ms = _env_int("STAKING_REWARDS_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000))
        con.execute(f"PRAGMA busy_timeout={max(0, int(busy_ms))};")

        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS reward_pools (
                  pool_id TEXT PRIMARY KEY,
                  pool_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS positions (
                  pool_id TEXT NOT NULL REFERENCES reward_pools(pool_id),
                  owner TEXT NOT NULL,
                  position_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL,
                  PRIMARY KEY (pool_id, owner)
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except Exception:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE until a deadline
          - exponential backoff with jitter
          - then raise if the lock cannot be acquired within the deadline
        """
        deadline_ms = max(250, _env_int("STAKING_REWARDS_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        base_sleep = max(0.001, float(_env_int("STAKING_REWARDS_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("STAKING_REWARDS_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
                    time.sleep(sleep_s * (0.5 + random.random()))
                    attempt += 1

            try:
                yield con
                con.execute("COMMIT;")
            except BaseException:
                con.execute("ROLLBACK;")
                raise


class SqliteRewardsStore:
    """Pool + positions persisted in SQLite, one row each.

    save() writes the pool, every dirty position and every closed position's
    deletion inside one write transaction, so a crash never persists half of
    an operation.
    """

    def __init__(self, *, db: SqliteDB, pool_id: str) -> None:
        self._db = db
        self._db.init_schema()
        self.pool_id = str(pool_id)

    def exists(self) -> bool:
        with self._db.connection() as con:
            row = con.execute("SELECT 1 FROM reward_pools WHERE pool_id=?;", (self.pool_id,)).fetchone()
            return row is not None

    def read_pool(self) -> RewardPool:
        with self._db.connection() as con:
            row = con.execute("SELECT pool_json FROM reward_pools WHERE pool_id=?;", (self.pool_id,)).fetchone()
        if row is None:
            raise FileNotFoundError(f"reward pool {self.pool_id!r} is missing")
        return decode_pool(loads_json(str(row["pool_json"])))

    def read_positions(self) -> Dict[str, StakePosition]:
        with self._db.connection() as con:
            rows = con.execute(
                "SELECT owner, position_json FROM positions WHERE pool_id=? ORDER BY owner;",
                (self.pool_id,),
            ).fetchall()
        return {str(r["owner"]): decode_position(loads_json(str(r["position_json"]))) for r in rows}

    def save(
        self,
        pool: RewardPool,
        positions: Mapping[str, StakePosition],
        removed: Iterable[str] = (),
    ) -> None:
        now = _now_ms()
        pool_payload = dumps_json(encode_pool(pool))
        rows = [(self.pool_id, owner, dumps_json(encode_position(p)), now) for owner, p in sorted(positions.items())]
        gone = [(self.pool_id, str(owner)) for owner in removed]

        with self._db.write_tx() as con:
            con.execute(
                """
                INSERT INTO reward_pools(pool_id, pool_json, updated_ts_ms)
                VALUES(?, ?, ?)
                ON CONFLICT(pool_id) DO UPDATE SET
                  pool_json=excluded.pool_json,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (self.pool_id, pool_payload, now),
            )
            if rows:
                con.executemany(
                    """
                    INSERT INTO positions(pool_id, owner, position_json, updated_ts_ms)
                    VALUES(?, ?, ?, ?)
                    ON CONFLICT(pool_id, owner) DO UPDATE SET
                      position_json=excluded.position_json,
                      updated_ts_ms=excluded.updated_ts_ms;
                    """,
                    rows,
                )
            if gone:
                con.executemany("DELETE FROM positions WHERE pool_id=? AND owner=?;", gone)
