from examples.library_app import (
    bootstrap_backend,
    bootstrap_factory,
    fetch_books_with_authors,
    publish_and_prune,
    run_demo,
    seed_sample_data,
)


def test_library_example_bootstrap_and_seed(tmp_path):
    backend = bootstrap_backend(dsn=f"sqlite:///{tmp_path / 'library_example.db'}")
    try:
        factory = bootstrap_factory(backend)
        seeded = seed_sample_data(factory)
        assert len(seeded["writers"]) == 2
        assert len(seeded["books"]) == 3

        books = fetch_books_with_authors(backend)
        assert len(books) == 3
        assert {"title", "author", "published"} <= books[0].keys()

        publish_and_prune(factory, publish="000-draft", prune="978-0807083697")
        titles = {book["title"]: book["published"] for book in fetch_books_with_authors(backend)}
        assert titles == {"Kafka on the Shore": True, "Untitled Draft": True}
    finally:
        backend.close()


def test_run_library_demo_returns_feed():
    feed = run_demo()
    assert [entry["title"] for entry in feed] == ["Kafka on the Shore", "Kindred"]
    assert all(entry["published"] for entry in feed)
