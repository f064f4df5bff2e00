"""
Ledger Store
============
Redis persistence for per-repository ledgers and test-execution history.

Keys:
    {owner}-{repo}                              RepositoryLedger as a JSON string
    test_executions:{owner}:{repo}:{sessionId}  one detailed execution record
    test_executions_list:{owner}:{repo}         JSON list of execution summaries

Storage Rules:
    - The ledger is read and written as a whole snapshot.
    - Every save sets a TTL (LEDGER_TTL_SECONDS, 30 days by default).
    - A ledger stored in the legacy hash format (field ``bugs``) is migrated
      to the JSON-string format on first read.
    - Any other key type is left alone and reported as a LedgerError.

Failure Contract:
    Load failures RAISE LedgerError instead of returning an empty ledger, so
    a failed read can never be followed by a write that wipes the stored
    bugs. A failed save leaves the previous snapshot in place (single SET).
"""
import json
import logging
from typing import Any, Optional

import redis
from pydantic import ValidationError

from shipcheck.core.config import (
    LEDGER_TTL_SECONDS,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_URL,
)
from shipcheck.models.ledger import RepositoryLedger

logger = logging.getLogger(__name__)

# Summaries kept per repository in the execution list
MAX_EXECUTION_HISTORY = 100


class LedgerError(RuntimeError):
    """Raised when the ledger cannot be read or written."""


def create_redis_client() -> redis.Redis:
    """Build a Redis client from REDIS_URL, else host / port / password."""
    if REDIS_URL:
        return redis.Redis.from_url(REDIS_URL, decode_responses=True)
    return redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        username="default" if REDIS_PASSWORD else None,
        password=REDIS_PASSWORD,
        decode_responses=True,
    )


def ledger_key(owner: str, repo: str) -> str:
    return f"{owner}-{repo}"


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class RedisLedgerStore:
    """Ledger and execution-history persistence over one Redis client."""

    def __init__(self, client: Optional[redis.Redis] = None, ttl_seconds: int = LEDGER_TTL_SECONDS) -> None:
        self._client = client
        self.ttl_seconds = ttl_seconds

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = create_redis_client()
        return self._client

    # -----------------------------------------------------------------------
    # Ledger
    # -----------------------------------------------------------------------
    def exists(self, owner: str, repo: str) -> bool:
        try:
            return bool(self.client.exists(ledger_key(owner, repo)))
        except redis.RedisError as e:
            raise LedgerError(f"Could not reach ledger store: {e}") from e

    def load(self, owner: str, repo: str) -> RepositoryLedger:
        """
        Read the ledger for ``owner/repo``.

        Returns
        -------
        RepositoryLedger
            An empty ledger when the key does not exist.

        Raises
        ------
        LedgerError
            Store unreachable, unexpected key type or unparsable content.
        """
        key = ledger_key(owner, repo)
        try:
            key_type = _text(self.client.type(key))
            if key_type == "none":
                return RepositoryLedger()
            if key_type == "string":
                raw = _text(self.client.get(key))
            elif key_type == "hash":
                return self._migrate_hash(key)
            else:
                raise LedgerError(f"Ledger key {key} holds unexpected type {key_type!r}")
        except redis.RedisError as e:
            raise LedgerError(f"Could not read ledger {key}: {e}") from e

        if not raw:
            return RepositoryLedger()
        return self._parse(key, raw)

    def _parse(self, key: str, raw: str) -> RepositoryLedger:
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise LedgerError(f"Ledger {key} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise LedgerError(f"Ledger {key} is not a JSON object")
        data["bugs"] = data.get("bugs") if isinstance(data.get("bugs"), list) else []
        data["tasks"] = data.get("tasks") if isinstance(data.get("tasks"), list) else []
        try:
            return RepositoryLedger.model_validate(data)
        except ValidationError as e:
            raise LedgerError(f"Ledger {key} has an invalid shape: {e}") from e

    def _migrate_hash(self, key: str) -> RepositoryLedger:
        raw_bugs = _text(self.client.hget(key, "bugs"))
        try:
            bugs = json.loads(raw_bugs) if raw_bugs else []
        except ValueError as e:
            raise LedgerError(f"Legacy ledger {key} has unparsable bugs: {e}") from e
        ledger = self._parse(key, json.dumps({"bugs": bugs, "tasks": []}))
        logger.info("[LEDGER] Migrating legacy hash ledger %s (%d bugs)", key, len(ledger.bugs))
        pipe = self.client.pipeline(transaction=True)
        pipe.delete(key)
        pipe.set(key, json.dumps(ledger.to_wire()), ex=self.ttl_seconds)
        pipe.execute()
        return ledger

    def save(self, owner: str, repo: str, ledger: RepositoryLedger) -> None:
        """Write the whole ledger snapshot and refresh its TTL."""
        key = ledger_key(owner, repo)
        payload = json.dumps(ledger.to_wire())
        try:
            self.client.set(key, payload, ex=self.ttl_seconds)
        except redis.RedisError as e:
            raise LedgerError(f"Could not save ledger {key}: {e}") from e
        logger.info(
            "[LEDGER] Saved %d bugs and %d tasks for %s/%s",
            len(ledger.bugs), len(ledger.tasks), owner, repo,
        )

    # -----------------------------------------------------------------------
    # Test-execution history
    # -----------------------------------------------------------------------
    def record_execution(self, owner: str, repo: str, detail: dict) -> None:
        """Store one execution record and prepend its summary to the list."""
        session_id = detail["sessionId"]
        detail_key = f"test_executions:{owner}:{repo}:{session_id}"
        list_key = f"test_executions_list:{owner}:{repo}"
        summary = {
            "id": session_id,
            "executedAt": detail["executedAt"],
            "totalErrors": detail.get("totalErrors", 0),
            "totalWarnings": detail.get("totalWarnings", 0),
            "totalDuration": detail.get("totalDuration", 0),
            "stage": detail.get("stage", "default"),
        }
        try:
            existing = self._read_list(list_key)
            existing = [s for s in existing if s.get("id") != session_id]
            summaries = ([summary] + existing)[:MAX_EXECUTION_HISTORY]
            pipe = self.client.pipeline(transaction=True)
            pipe.set(detail_key, json.dumps(detail), ex=self.ttl_seconds)
            pipe.set(list_key, json.dumps(summaries), ex=self.ttl_seconds)
            pipe.execute()
        except redis.RedisError as e:
            raise LedgerError(f"Could not record test execution for {owner}/{repo}: {e}") from e

    def _read_list(self, list_key: str) -> list[dict]:
        raw = _text(self.client.get(list_key))
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("[LEDGER] Discarding unparsable execution list %s", list_key)
            return []
        return [d for d in data if isinstance(d, dict)] if isinstance(data, list) else []

    def list_executions(self, owner: str, repo: str, detailed: bool = False) -> list[dict]:
        """Execution summaries (or full records when ``detailed``), newest first."""
        try:
            if not detailed:
                executions = self._read_list(f"test_executions_list:{owner}:{repo}")
            else:
                executions = []
                for key in self.client.scan_iter(match=f"test_executions:{owner}:{repo}:*"):
                    raw = _text(self.client.get(key))
                    if not raw:
                        continue
                    try:
                        executions.append(json.loads(raw))
                    except ValueError:
                        logger.warning("[LEDGER] Skipping unparsable execution %s", _text(key))
        except redis.RedisError as e:
            raise LedgerError(f"Could not read test executions for {owner}/{repo}: {e}") from e

        executions.sort(key=lambda e: e.get("executedAt", ""), reverse=True)
        return executions

    def clear_executions(self, owner: str, repo: str) -> int:
        """Delete every execution record for the repository; returns how many."""
        try:
            keys = list(self.client.scan_iter(match=f"test_executions:{owner}:{repo}:*"))
            if keys:
                self.client.delete(*keys)
            self.client.delete(f"test_executions_list:{owner}:{repo}")
        except redis.RedisError as e:
            raise LedgerError(f"Could not clear test executions for {owner}/{repo}: {e}") from e
        return len(keys)
