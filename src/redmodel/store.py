"""Store context: the shared redis connection, its pipeline mutex, and scripts.

A :class:`Store` is the single process-wide channel to the key-value store. It
is passed explicitly to every Session; there is no module-level connection.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, ContextManager
from urllib.parse import urlparse

import redis
from redis.exceptions import NoScriptError, RedisError

from redmodel.config import RedmodelConfig
from redmodel.errors import StorageBackendError

logger = logging.getLogger(__name__)

Command = Sequence[Any]


@dataclass(frozen=True)
class Script:
    """A server-side routine addressed by the SHA1 fingerprint of its body."""

    name: str
    body: str
    digest: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "digest", hashlib.sha1(self.body.encode()).hexdigest())


class Store:
    """Batched command channel plus atomic routine execution.

    ``commit`` runs a batch as one MULTI/EXEC pipeline while holding the mutex,
    so commands queued by one caller are never interleaved with another
    caller's batch, and a batch is applied either completely or not at all.
    Independent batches from different callers are not ordered.
    """

    def __init__(
        self,
        client: redis.Redis,
        *,
        mutex: ContextManager[Any] | None = None,
        enable_evalsha: bool = True,
    ) -> None:
        self.client = client
        self.mutex = mutex if mutex is not None else threading.Lock()
        self.enable_evalsha = enable_evalsha

    @classmethod
    def from_config(cls, config: RedmodelConfig) -> Store:
        parse_store_url(config.url)
        client = redis.Redis.from_url(config.url, socket_timeout=config.socket_timeout_s)
        return cls(client, enable_evalsha=config.enable_evalsha)

    def call(self, *args: Any) -> Any:
        """Run a single command outside of any batch."""
        try:
            return self.client.execute_command(*args)
        except RedisError as e:
            raise StorageBackendError(str(args[0]), str(e)) from e

    def commit(self, commands: Iterable[Command]) -> list[Any]:
        """Queue ``commands`` and flush them as one atomic batch."""
        queued = [tuple(c) for c in commands]
        if not queued:
            return []
        with self.mutex, self.client.pipeline(transaction=True) as pipe:
            for command in queued:
                pipe.execute_command(*command)
            try:
                results = pipe.execute()
            except RedisError as e:
                raise StorageBackendError("commit", str(e)) from e
        logger.debug("Committed batch of %d command(s)", len(queued))
        return results

    def run_script(self, script: Script, keys: Sequence[str], args: Sequence[Any]) -> Any:
        """Execute ``script`` atomically on the server.

        Tries the cached fingerprint first (EVALSHA). When the server reports
        the fingerprint unknown (cold script cache, restart, SCRIPT FLUSH) the
        full body is submitted with EVAL, which also re-caches it server-side.
        """
        if self.enable_evalsha:
            try:
                return self.client.evalsha(script.digest, len(keys), *keys, *args)
            except NoScriptError:
                logger.debug("Script %s (%s) not cached; sending body", script.name, script.digest)
            except RedisError as e:
                raise StorageBackendError(f"evalsha:{script.name}", str(e)) from e
        try:
            return self.client.eval(script.body, len(keys), *keys, *args)
        except RedisError as e:
            raise StorageBackendError(f"eval:{script.name}", str(e)) from e

    def scan(self, match: str) -> list[str]:
        """Every key matching the glob ``match`` (incremental SCAN, not KEYS)."""
        try:
            keys = self.client.scan_iter(match=match)
            return sorted(k.decode() if isinstance(k, bytes) else k for k in keys)
        except RedisError as e:
            raise StorageBackendError("scan", str(e)) from e

    def close(self) -> None:
        self.client.close()


@dataclass(frozen=True)
class StoreTarget:
    """Resolved store location from a redis URL."""

    scheme: str
    host: str | None
    port: int | None
    db: int


def parse_store_url(url: str) -> StoreTarget:
    """Validate a redis URL (``redis://``, ``rediss://`` or ``unix://``)."""
    parsed = urlparse(url)
    if parsed.scheme not in ("redis", "rediss", "unix"):
        raise StorageBackendError(
            "parse_store_url", f"Unsupported store URL scheme '{parsed.scheme}' for '{url}'"
        )
    if parsed.scheme != "unix" and not parsed.hostname:
        raise StorageBackendError("parse_store_url", f"Missing host in store URL '{url}'")

    db = 0
    path = parsed.path.lstrip("/")
    if parsed.scheme != "unix" and path:
        if not path.isdigit():
            raise StorageBackendError("parse_store_url", f"Invalid database number in '{url}'")
        db = int(path)
    return StoreTarget(
        scheme=parsed.scheme,
        host=parsed.hostname,
        port=parsed.port,
        db=db,
    )


def open_store(url: str | None = None, *, config: RedmodelConfig | None = None) -> Store:
    """Open a Store from a URL or a config (URL wins when both are given)."""
    config = config or RedmodelConfig()
    if url is not None:
        config = RedmodelConfig(**{**config.__dict__, "url": url})
    return Store.from_config(config)
