"""Example 01: Basic Usage - redmodel Fundamentals.

This example demonstrates the fundamental operations:
- Declaring models with Field[T] annotations and indexed fields
- Saving objects with explicit and automatic ids
- Looking objects up by id and by indexed value
- Counters stored outside the attribute blob
- Deleting an object together with its index memberships

Requires a Redis server; uses database 15 at localhost unless REDMODEL_URL is set.
"""

import os

from redmodel import Counter, Field, Model, Session, computed_index


class Person(Model, auto_id=True, index_all=True):
    """A person in our system."""

    name: Field[str | None] = Field(index=True)
    email: Field[str | None] = Field(index=True)
    city: Field[str | None] = Field(index=True)
    age: Field[int | None]
    logins = Counter()

    @computed_index
    def initial(self):
        return self.name[:1].upper() if self.name else None


def main():
    """Run the basic usage example."""
    print("=" * 80)
    print("REDMODEL BASIC USAGE EXAMPLE")
    print("=" * 80)

    url = os.environ.get("REDMODEL_URL", "redis://localhost:6379/15")
    with Session(url, models=[Person]) as session:
        print(f"\n✓ Session opened: {url}")

        print("\nAdding people...")
        alice = session.create(Person, name="Alice", email="alice@example.com", city="Paris", age=32)
        bob = session.create(Person, name="Bob", email="bob@example.com", city="Paris", age=27)
        carol = session.create(Person, name="Carol", email="carol@example.com", city="Oslo")
        print(f"  ✓ Created ids {alice.id}, {bob.id}, {carol.id}")

        print("\nLookups:")
        print(f"  get(Person, {alice.id}) -> {session.get(Person, alice.id)}")
        print(f"  everyone in Paris -> {sorted(p.name for p in session.find(Person, city='Paris'))}")
        print(f"  name starts with C -> {[p.name for p in session.find(Person, initial='C')]}")
        print(f"  total people -> {session.all(Person).size()}")

        print("\nUpdating Bob's city (index sets follow):")
        session.update(bob, city="Oslo")
        print(f"  Paris -> {[p.name for p in session.find(Person, city='Paris')]}")
        print(f"  Oslo  -> {sorted(p.name for p in session.find(Person, city='Oslo'))}")

        print("\nCounters:")
        alice.incr("logins")
        alice.incr("logins", 2)
        print(f"  alice.logins -> {alice.logins}")

        print("\nCleaning up...")
        for person in session.all(Person).to_list():
            session.delete(person)
        print(f"  ✓ Remaining people: {session.all(Person).size()}")


if __name__ == "__main__":
    main()
