"""
Library example: writers and books committed through one unit of work.
"""

from __future__ import annotations

from typing import Any, Dict, List

from unitwork import EntityMapping, SQLiteBackend, TypeOrderPolicy, UnitOfWorkFactory

from .models import Book, Writer

SCHEMA = (
    'CREATE TABLE IF NOT EXISTS "writer" ('
    '"id" INTEGER PRIMARY KEY, "name" TEXT NOT NULL, "country" TEXT)',
    'CREATE TABLE IF NOT EXISTS "book" ('
    '"isbn" TEXT PRIMARY KEY, "title" TEXT NOT NULL, '
    '"writer_id" INTEGER NOT NULL REFERENCES "writer" ("id"), "published" BOOLEAN NOT NULL DEFAULT 0)',
)


def bootstrap_backend(dsn: str = "sqlite:///:memory:") -> SQLiteBackend:
    backend = SQLiteBackend(dsn)
    for statement in SCHEMA:
        backend.execute(statement)
    return backend


def bootstrap_factory(backend: SQLiteBackend) -> UnitOfWorkFactory:
    return UnitOfWorkFactory(
        backend,
        [
            EntityMapping(Writer),
            EntityMapping(Book, key="isbn", factory=_build_book),
        ],
        ordering_policy=TypeOrderPolicy([Writer, Book]),
    )


def _build_book(values: Dict[str, Any]) -> Book:
    values["published"] = bool(values.get("published"))
    return Book(**values)


def seed_sample_data(factory: UnitOfWorkFactory) -> Dict[str, List[Dict[str, Any]]]:
    writers = [
        Writer(id=1, name="Octavia Butler", country="USA"),
        Writer(id=2, name="Haruki Murakami", country="Japan"),
    ]
    books = [
        Book(isbn="978-0807083697", title="Kindred", writer_id=1, published=True),
        Book(isbn="978-1400079278", title="Kafka on the Shore", writer_id=2, published=True),
        Book(isbn="000-draft", title="Untitled Draft", writer_id=2),
    ]
    with factory() as uow:
        # Books first: the ordering policy still writes the writers before them.
        for book in books:
            uow.book.add(book)
        for writer in writers:
            uow.writer.add(writer)
        uow.commit()

    return {
        "writers": [vars(writer) for writer in writers],
        "books": [vars(book) for book in books],
    }


def publish_and_prune(factory: UnitOfWorkFactory, publish: str, prune: str) -> None:
    """
    Publish one book and drop another in a single atomic commit.
    """

    with factory() as uow:
        book = uow.book.get(publish)
        if book is not None:
            book.published = True
        doomed = uow.book.get(prune)
        if doomed is not None:
            uow.book.remove(doomed)
        uow.commit()


def fetch_books_with_authors(backend: SQLiteBackend) -> List[Dict[str, Any]]:
    cursor = backend.execute(
        'SELECT b."title", b."published", w."name" FROM "book" b '
        'JOIN "writer" w ON w."id" = b."writer_id" ORDER BY b."title"'
    )
    return [
        {"title": row["title"], "author": row["name"], "published": bool(row["published"])}
        for row in cursor.fetchall()
    ]


def run_demo(dsn: str = "sqlite:///:memory:") -> List[Dict[str, Any]]:
    backend = bootstrap_backend(dsn)
    try:
        factory = bootstrap_factory(backend)
        seed_sample_data(factory)
        publish_and_prune(factory, publish="978-1400079278", prune="000-draft")
        return fetch_books_with_authors(backend)
    finally:
        backend.close()


if __name__ == "__main__":
    for entry in run_demo():
        print(entry)
