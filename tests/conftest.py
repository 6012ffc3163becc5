"""Pytest configuration and fixtures for test suite."""

import asyncio
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

# Add src directory to path for imports
SRC_PATH = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_PATH))

from citeshelf.adapters import BibLaTeXEntry, CSLEntry  # noqa: E402
from citeshelf.models import Entry  # noqa: E402
from citeshelf.utils import CancellationToken  # noqa: E402

SAMPLE_CSL = [
    {
        "id": "smith2020",
        "type": "article-journal",
        "title": "Neural Networks for Citation Parsing",
        "author": [{"given": "John", "family": "Smith"}],
        "issued": {"date-parts": [[2020, 5, 17]]},
        "container-title": "Journal of Tests",
        "DOI": "10.1000/xyz123",
    },
    {
        "id": "doe2019",
        "type": "book",
        "title": "Reference Management",
        "author": [{"given": "Jane", "family": "Doe"}, {"literal": "Acme Corporation"}],
        "issued": {"date-parts": [["2019"]]},
    },
]

SAMPLE_BIB = """\
@article{smith2020,
  author = {Smith, John},
  title = {Graph Methods in Bibliometrics},
  journaltitle = {Scientometrics},
  date = {2020-03-01},
}

@book{knuth1984,
  author = {Knuth, Donald E.},
  title = {The {TeX}book},
  year = {1984},
  publisher = {Addison-Wesley},
}
"""


@pytest.fixture
def make_csl_entry() -> Callable[..., CSLEntry]:
    """Factory for CSL entries with minimal boilerplate."""

    def _factory(citekey: str = "key", title: str | None = None, **data: Any) -> CSLEntry:
        record: dict[str, Any] = {"id": citekey, "type": "article-journal", **data}
        if title is not None:
            record["title"] = title
        return CSLEntry(record)

    return _factory


@pytest.fixture
def make_bib_entry() -> Callable[..., BibLaTeXEntry]:
    """Factory for BibLaTeX entries from plain field values."""

    def _factory(
        citekey: str = "key",
        entry_type: str = "article",
        creators: dict[str, list[dict[str, str]]] | None = None,
        **fields: str | list[str],
    ) -> BibLaTeXEntry:
        return BibLaTeXEntry(
            {
                "key": citekey,
                "type": entry_type,
                "fields": {k: v if isinstance(v, list) else [v] for k, v in fields.items()},
                "creators": creators or {},
            }
        )

    return _factory


@pytest.fixture
def csl_file(tmp_path: Path) -> Path:
    """CSL-JSON database on disk."""
    path = tmp_path / "library.json"
    path.write_text(json.dumps(SAMPLE_CSL), encoding="utf-8")
    return path


@pytest.fixture
def bib_file(tmp_path: Path) -> Path:
    """BibLaTeX database on disk."""
    path = tmp_path / "library.bib"
    path.write_text(SAMPLE_BIB, encoding="utf-8")
    return path


class FakeSource:
    """In-memory data source with scripted load behavior.

    ``outcome`` is a list of entries, an exception instance to raise, or
    ``"hang"`` to block until the token fires.
    """

    def __init__(self, id: str, name: str, outcome: Any, delay: float = 0.0) -> None:
        self.id = id
        self.name = name
        self.outcome = outcome
        self.delay = delay
        self.load_calls = 0
        self.watch_callbacks: list[Callable[[], object]] = []
        self.disposed = False

    async def load(self, token: CancellationToken | None = None) -> list[Entry]:
        self.load_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcome == "hang":
            assert token is not None
            await token.wait()
            token.raise_if_cancelled()
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return list(self.outcome)

    @property
    def watching(self) -> bool:
        return bool(self.watch_callbacks)

    def watch(self, callback: Callable[[], object]) -> None:
        self.watch_callbacks.append(callback)

    def dispose(self) -> None:
        self.disposed = True
        self.watch_callbacks.clear()

    def fire(self) -> None:
        for callback in list(self.watch_callbacks):
            callback()


@pytest.fixture
def fake_source_factory() -> Callable[[dict[str, Any]], Callable[..., FakeSource]]:
    """Build a ``source_factory`` serving scripted outcomes by database name.

    Outcomes may be callables taking the load number, so a database can fail
    first and succeed later. Created sources are recorded in ``created``.
    """

    def _make(outcomes: dict[str, Any], delay: float = 0.0) -> Callable[..., FakeSource]:
        created: list[FakeSource] = []

        def factory(source_id: str, db: Any) -> FakeSource:
            outcome = outcomes[db.name]
            if callable(outcome):
                outcome = outcome(sum(1 for s in created if s.name == db.name))
            source = FakeSource(source_id, db.name, outcome, delay=delay)
            created.append(source)
            return source

        factory.created = created  # type: ignore[attr-defined]
        return factory

    return _make

