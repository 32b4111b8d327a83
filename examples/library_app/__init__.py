from .demo import (  # noqa: F401
    bootstrap_backend,
    bootstrap_factory,
    fetch_books_with_authors,
    publish_and_prune,
    run_demo,
    seed_sample_data,
)

__all__ = [
    "bootstrap_backend",
    "bootstrap_factory",
    "seed_sample_data",
    "publish_and_prune",
    "fetch_books_with_authors",
    "run_demo",
]
