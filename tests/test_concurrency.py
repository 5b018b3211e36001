"""Tests for compare-and-set saves of serial attributes."""

from __future__ import annotations

import threading

import pytest

from redmodel.codec import pack, unpack
from redmodel.concurrency import ConcurrencyGuard
from redmodel.errors import CasViolationError
from tests.models import Account


class TestAtomicUpdate:
    def test_first_write_sets_token_one(self, store, client):
        guard = ConcurrencyGuard(store)
        assert guard.atomic_update("Account:a", None, pack({"balance": 1})) == 1
        assert client.hget("Account:a", "_cas") == b"1"
        assert unpack(client.hget("Account:a", "_sdata")) == {"balance": 1}

    def test_token_increments_by_one(self, store):
        guard = ConcurrencyGuard(store)
        token = guard.atomic_update("Account:a", None, pack({"balance": 1}))
        token = guard.atomic_update("Account:a", token, pack({"balance": 2}))
        assert token == 2

    def test_stale_token_raises(self, store, client):
        guard = ConcurrencyGuard(store)
        guard.atomic_update("Account:a", None, pack({"balance": 1}))
        guard.atomic_update("Account:a", 1, pack({"balance": 2}))
        with pytest.raises(CasViolationError) as exc_info:
            guard.atomic_update("Account:a", 1, pack({"balance": 99}))
        assert exc_info.value.token == 1
        assert unpack(client.hget("Account:a", "_sdata")) == {"balance": 2}
        assert client.hget("Account:a", "_cas") == b"2"

    def test_missing_token_conflicts_once_one_exists(self, store):
        guard = ConcurrencyGuard(store)
        guard.atomic_update("Account:a", None, pack({"balance": 1}))
        with pytest.raises(CasViolationError):
            guard.atomic_update("Account:a", None, pack({"balance": 2}))

    def test_plain_payload_written_with_serial(self, store, client):
        guard = ConcurrencyGuard(store)
        guard.atomic_update("Account:a", None, pack({"balance": 1}), pack({"owner": "o"}))
        assert unpack(client.hget("Account:a", "_ndata")) == {"owner": "o"}

    def test_plain_payload_untouched_on_conflict(self, store, client):
        guard = ConcurrencyGuard(store)
        guard.atomic_update("Account:a", None, pack({"balance": 1}), pack({"owner": "o"}))
        with pytest.raises(CasViolationError):
            guard.atomic_update("Account:a", 7, pack({"balance": 2}), pack({"owner": "x"}))
        assert unpack(client.hget("Account:a", "_ndata")) == {"owner": "o"}

    def test_works_after_script_flush(self, store, client):
        guard = ConcurrencyGuard(store)
        guard.atomic_update("Account:a", None, pack({"balance": 1}))
        client.script_flush()
        assert guard.atomic_update("Account:a", 1, pack({"balance": 2})) == 2


class TestSerialSave:
    def test_save_assigns_token(self, session):
        account = session.create(Account, id="a", owner="o", balance=10)
        assert account.cas_token == 1
        assert session.get(Account, "a").cas_token == 1

    def test_plain_only_save_keeps_token(self, session, client):
        account = session.create(Account, id="a", owner="o", balance=10)
        loaded = session.get(Account, "a")
        loaded.owner = "p"
        session.save(loaded)
        assert client.hget("Account:a", "_cas") == b"1"
        assert session.get(Account, "a").owner == "p"
        assert account.cas_token == 1

    def test_stale_object_cannot_overwrite(self, session):
        session.create(Account, id="a", balance=10)
        first = session.get(Account, "a")
        second = session.get(Account, "a")

        first.balance += 5
        session.save(first)
        second.balance += 1
        with pytest.raises(CasViolationError):
            session.save(second)

        assert session.get(Account, "a").balance == 15

    def test_retry_after_reload(self, session):
        session.create(Account, id="a", balance=10)
        first = session.get(Account, "a")
        second = session.get(Account, "a")
        first.update(balance=first.balance + 5)

        with pytest.raises(CasViolationError):
            second.update(balance=second.balance + 1)
        second.reload()
        second.update(balance=second.balance + 1)

        fresh = session.get(Account, "a")
        assert fresh.balance == 16
        assert fresh.cas_token == 3

    def test_new_instance_over_existing_object_conflicts(self, session):
        session.create(Account, id="a", balance=10)
        with pytest.raises(CasViolationError):
            session.create(Account, id="a", balance=0)


def test_concurrent_updates_are_linearizable(make_session):
    """Writers sharing a starting token: exactly one wins each round."""
    setup = make_session()
    setup.create(Account, id="shared", balance=0)

    writers = 8
    barrier = threading.Barrier(writers)
    outcomes: list[str] = []
    lock = threading.Lock()

    def writer() -> None:
        session = make_session()
        account = session.get(Account, "shared")
        account.balance = account.balance + 1
        barrier.wait()
        try:
            session.save(account)
            result = "ok"
        except CasViolationError:
            result = "conflict"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=writer) for _ in range(writers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == writers - 1
    final = setup.get(Account, "shared")
    assert final.balance == 1
    assert final.cas_token == 2
