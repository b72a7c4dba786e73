from __future__ import annotations

import json
import os
import re
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

import httpx
from pydantic import ValidationError

from cibot.errors import ConfigError, StoreError
from cibot.models import InferenceRecord
from cibot.settings import Settings


_TABLE_NAME_RE = re.compile(r"^[a-zA-Z0-9_.]+$")


class InferenceStore(ABC):
    """
    Keyed log of follow-up PR -> inference associations.

    Write-once per follow-up PR; read back by exact pull_request_id only.
    """

    @abstractmethod
    async def insert(self, record: InferenceRecord) -> None:
        ...

    @abstractmethod
    async def find_by_pull_request(self, pull_request_id: int) -> List[InferenceRecord]:
        """All records for the follow-up PR; [] when there are none."""

    async def close(self) -> None:
        return None


def validate_table_name(table: str | None) -> str:
    t = (table or "").strip()
    if not t:
        raise ConfigError("ClickHouse table name is required; provide one via CIBOT_CLICKHOUSE_TABLE.")
    if not _TABLE_NAME_RE.match(t):
        raise ConfigError("ClickHouse table name must contain only alphanumeric characters, underscores, or dots.")
    return t


class ClickHouseInferenceStore(InferenceStore):
    """
    ClickHouse over its HTTP interface.

    url: http[s]://[user:password@]host:port[/database]
    Credentials are sent as basic auth and never appear in error messages.
    """

    def __init__(
        self,
        *,
        url: str,
        table: str | None,
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        raw = (url or "").strip()
        if not raw:
            raise ConfigError("ClickHouse URL is required; provide one via CIBOT_CLICKHOUSE_URL.")
        self.table = validate_table_name(table)
        u = httpx.URL(raw)
        port = f":{u.port}" if u.port else ""
        self.endpoint = f"{u.scheme}://{u.host}{port}/"
        self.database = u.path.strip("/") or None
        self._auth = (u.username, u.password) if u.username else None
        self._timeout_s = timeout_s
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport, auth=self._auth)

    def _params(self, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if self.database:
            params["database"] = self.database
        return params

    async def _post(self, *, params: dict[str, str], content: str) -> httpx.Response:
        try:
            async with self._client() as c:
                r = await c.post(self.endpoint, params=params, content=content.encode("utf-8"))
        except httpx.HTTPError as e:
            raise StoreError(f"clickhouse_transport_error ({self.endpoint}): {type(e).__name__}") from None
        if not r.is_success:
            raise StoreError(f"clickhouse_http_{r.status_code} ({self.endpoint}): {r.text[:500]}")
        return r

    async def insert(self, record: InferenceRecord) -> None:
        row = {
            "pull_request_id": record.pull_request_id,
            "inference_id": record.inference_id,
            "original_pull_request_url": record.original_pull_request_url,
        }
        await self._post(
            params=self._params(query=f"INSERT INTO {self.table} FORMAT JSONEachRow"),
            content=json.dumps(row) + "\n",
        )

    async def find_by_pull_request(self, pull_request_id: int) -> List[InferenceRecord]:
        query = (
            "SELECT inference_id, pull_request_id, created_at, original_pull_request_url "
            f"FROM {self.table} WHERE pull_request_id = {{pull_request_id:UInt64}} FORMAT JSONEachRow"
        )
        r = await self._post(params=self._params(param_pull_request_id=str(int(pull_request_id))), content=query)
        out: List[InferenceRecord] = []
        for line in r.text.splitlines():
            if not line.strip():
                continue
            try:
                out.append(InferenceRecord.model_validate(json.loads(line)))
            except (ValueError, ValidationError) as e:
                raise StoreError(f"clickhouse_row_parse_error: {e}") from e
        return out


class SqliteInferenceStore(InferenceStore):
    """
    Local SQLite variant, for running the bot without ClickHouse.
    """

    def __init__(self, *, db_path: str) -> None:
        self.db_path = db_path
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(self.db_path, timeout=10.0)
        con.row_factory = sqlite3.Row
        return con

    def _init_db(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS pull_request_inferences (
                    pull_request_id INTEGER NOT NULL,
                    inference_id TEXT NOT NULL,
                    original_pull_request_url TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            con.execute(
                "CREATE INDEX IF NOT EXISTS idx_pri_pull_request ON pull_request_inferences(pull_request_id)"
            )
            con.commit()

    async def insert(self, record: InferenceRecord) -> None:
        try:
            with self._connect() as con:
                con.execute(
                    """
                    INSERT INTO pull_request_inferences
                        (pull_request_id, inference_id, original_pull_request_url, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        record.pull_request_id,
                        record.inference_id,
                        record.original_pull_request_url,
                        record.created_at.isoformat(),
                    ),
                )
                con.commit()
        except sqlite3.Error as e:
            raise StoreError(f"sqlite_insert_failed: {e}") from e

    async def find_by_pull_request(self, pull_request_id: int) -> List[InferenceRecord]:
        with self._connect() as con:
            rows = con.execute(
                """
                SELECT pull_request_id, inference_id, original_pull_request_url, created_at
                FROM pull_request_inferences
                WHERE pull_request_id = ?
                ORDER BY created_at
                """,
                (int(pull_request_id),),
            ).fetchall()
        return [
            InferenceRecord(
                pull_request_id=int(r["pull_request_id"]),
                inference_id=str(r["inference_id"]),
                original_pull_request_url=str(r["original_pull_request_url"]),
                created_at=datetime.fromisoformat(r["created_at"]) if r["created_at"] else datetime.now(timezone.utc),
            )
            for r in rows
        ]


def build_inference_store(settings: Settings) -> Optional[InferenceStore]:
    if settings.clickhouse_url:
        return ClickHouseInferenceStore(
            url=settings.clickhouse_url,
            table=settings.clickhouse_table,
            timeout_s=settings.http_timeout_s,
        )
    if settings.sqlite_store_path:
        return SqliteInferenceStore(db_path=settings.sqlite_store_path)
    return None
