from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Writer:
    id: int
    name: str
    country: Optional[str] = None


@dataclass
class Book:
    isbn: str
    title: str
    writer_id: int
    published: bool = False
