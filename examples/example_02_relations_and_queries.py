"""Example 02: Relations and Set-Algebra Queries.

This example demonstrates:
- SetOf / ListOf relations owned by an object
- Reference and Collection for one-to-many links
- Chaining find / union / except_ / combine on index sets

Requires a Redis server; uses database 15 at localhost unless REDMODEL_URL is set.
"""

import os

from redmodel import Collection, Field, ListOf, Model, Reference, Session, SetOf


class Author(Model, auto_id=True, index_all=True):
    name: Field[str | None] = Field(index=True)
    country: Field[str | None] = Field(index=True)
    favourites = SetOf("Book")
    reading = ListOf("Book")
    books = Collection("Book", reference="author")


class Book(Model, auto_id=True, index_all=True):
    title: Field[str | None]
    genre: Field[str | None] = Field(index=True)
    tags: Field[list[str] | None] = Field(index=True, multi=True)
    author = Reference("Author")


def main():
    print("=" * 80)
    print("EXAMPLE 02: RELATIONS AND QUERIES")
    print("=" * 80)

    url = os.environ.get("REDMODEL_URL", "redis://localhost:6379/15")
    with Session(url, models=[Author, Book]) as session:
        le_guin = session.create(Author, name="Ursula K. Le Guin", country="US")
        lem = session.create(Author, name="Stanislaw Lem", country="PL")

        books = [
            session.create(
                Book, title="The Dispossessed", genre="scifi", tags=["anarchism", "classic"], author=le_guin
            ),
            session.create(
                Book, title="Earthsea", genre="fantasy", tags=["magic", "classic"], author=le_guin
            ),
            session.create(Book, title="Solaris", genre="scifi", tags=["ocean", "classic"], author=lem),
            session.create(Book, title="The Cyberiad", genre="scifi", tags=["robots"], author=lem),
        ]

        print("\nCollections and references:")
        print(f"  Le Guin wrote: {sorted(b.title for b in le_guin.books)}")
        print(f"  Solaris author: {books[2].author.name}")

        print("\nSet algebra:")
        scifi = session.find(Book, genre="scifi")
        print(f"  scifi: {sorted(b.title for b in scifi)}")
        print(f"  scifi except classic: {[b.title for b in scifi.except_(tags='classic')]}")
        print(f"  scifi plus fantasy: {len(scifi.union(genre='fantasy'))} books")
        classics = session.find(Book, tags="classic").combine(tags=["magic", "ocean"])
        print(f"  classics tagged magic or ocean: {sorted(b.title for b in classics)}")

        print("\nOwned relations:")
        lem.favourites.add(books[0])
        lem.reading.push(books[1])
        lem.reading.unshift(books[0])
        print(f"  Lem's favourites: {[b.title for b in lem.favourites]}")
        print(f"  Lem's reading list: {[b.title for b in lem.reading]}")
        print(f"  scifi favourites: {[b.title for b in lem.favourites.find(genre='scifi')]}")

        for author in (le_guin, lem):
            session.delete(author)
        for book in books:
            session.delete(book)
        print("\n✓ Cleaned up")


if __name__ == "__main__":
    main()
