"""Example 03: Optimistic Concurrency and Error Handling.

This example demonstrates:
- Serial attributes guarded by a compare-and-set token
- CasViolationError and the reload-and-retry loop owned by the caller
- MissingIDError and IndexNotFoundError

Requires a Redis server; uses database 15 at localhost unless REDMODEL_URL is set.
"""

import os

from redmodel import (
    CasViolationError,
    Field,
    IndexNotFoundError,
    MissingIDError,
    Model,
    Session,
)


class Wallet(Model):
    owner: Field[str | None] = Field(index=True)
    balance: Field[int | None] = Field(default=0, serial=True)


def deposit(session: Session, wallet_id: str, amount: int, attempts: int = 5) -> Wallet:
    """Add ``amount`` to a wallet, retrying on concurrent modification."""
    wallet = session.get(Wallet, wallet_id)
    for _ in range(attempts):
        try:
            wallet.balance += amount
            return session.save(wallet)
        except CasViolationError:
            session.reload(wallet)
    raise RuntimeError(f"Gave up on wallet {wallet_id} after {attempts} attempts")


def main():
    print("=" * 80)
    print("EXAMPLE 03: OPTIMISTIC CONCURRENCY AND ERRORS")
    print("=" * 80)

    url = os.environ.get("REDMODEL_URL", "redis://localhost:6379/15")
    with Session(url, models=[Wallet]) as session:
        session.create(Wallet, id="w1", owner="alice", balance=100)

        print("\n1. Two readers of the same token:")
        first = session.get(Wallet, "w1")
        second = session.get(Wallet, "w1")
        first.balance += 10
        session.save(first)
        print(f"  ✓ first save succeeded, token now {first.cas_token}")
        try:
            second.balance += 5
            session.save(second)
        except CasViolationError as e:
            print(f"  ✗ second save rejected: {e}")

        print("\n2. Retry loop:")
        wallet = deposit(session, "w1", 5)
        print(f"  ✓ balance {wallet.balance}, token {wallet.cas_token}")

        print("\n3. Other errors:")
        try:
            session.create(Wallet, owner="nobody")
        except MissingIDError as e:
            print(f"  ✗ {e}")
        try:
            session.find(Wallet, balance=115)
        except IndexNotFoundError as e:
            print(f"  ✗ {e}")

        session.delete(session.get(Wallet, "w1"))


if __name__ == "__main__":
    main()
