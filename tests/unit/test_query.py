"""Tests for classdocs_server.lookup.query."""
from pathlib import Path
from typing import Callable

import pytest

from classdocs_server.bundle.errors import (
    DocumentBodyMissing,
    EmptyName,
    EmptyQuery,
    IndexMissing,
    NameNotFound,
)
from classdocs_server.lookup.query import MAX_SEARCH_RESULTS, QueryEngine
from fixtures.conftest import make_lookup, write_bundle


@pytest.fixture
def shared_path_bundle(docs_dir: Path) -> Path:
    """a.Foo and a.Baz share one documentation file."""
    lookup = make_lookup(
        {
            "a.Foo": ("f1", "class"),
            "a.Bar": ("f2", "interface"),
            "a.Baz": ("f1", "enum"),
        }
    )
    return write_bundle(docs_dir, lookup, {"f1": "foo body", "f2": "bar body"})


class TestSearch:
    """Tests for QueryEngine.search."""

    def test_case_insensitive_substring(self, installed_bundle: Path, make_engine: Callable) -> None:
        hits = make_engine(installed_bundle).search("BA")

        assert [h.name for h in hits] == ["com.example.Bar", "com.example.Baz"]
        assert [h.kind.value for h in hits] == ["interface", "enum"]

    def test_index_order_and_path_dedup(self, shared_path_bundle: Path, make_engine: Callable) -> None:
        engine = make_engine(shared_path_bundle)

        assert [h.name for h in engine.search("ba")] == ["a.Bar", "a.Baz"]
        # a.Baz shares f1 with a.Foo, which comes first
        assert [h.name for h in engine.search("a.")] == ["a.Foo", "a.Bar"]

    def test_query_is_trimmed(self, installed_bundle: Path, make_engine: Callable) -> None:
        hits = make_engine(installed_bundle).search("  foo  ")
        assert [h.name for h in hits] == ["com.example.Foo"]

    def test_no_matches_is_empty(self, installed_bundle: Path, make_engine: Callable) -> None:
        assert make_engine(installed_bundle).search("zzz") == []

    @pytest.mark.parametrize("query", ["", "   ", "\t\n"])
    def test_empty_query_rejected(self, query: str, installed_bundle: Path, make_engine: Callable) -> None:
        with pytest.raises(EmptyQuery):
            make_engine(installed_bundle).search(query)

    def test_cap_without_truncation_marker(self, docs_dir: Path, make_engine: Callable) -> None:
        names = {f"pkg.Widget{i:03d}": (f"w{i}.md", "class") for i in range(100)}
        docs = {f"w{i}.md": f"widget {i}" for i in range(100)}
        write_bundle(docs_dir, make_lookup(names), docs)

        hits = make_engine(docs_dir).search("widget")

        assert len(hits) == MAX_SEARCH_RESULTS == 25
        assert [h.name for h in hits] == list(names)[:25]

    def test_custom_cap(self, installed_bundle: Path, make_engine: Callable) -> None:
        hits = make_engine(installed_bundle, max_results=1).search("example")
        assert len(hits) == 1

    def test_index_error_propagates(self, docs_dir: Path, make_engine: Callable) -> None:
        with pytest.raises(IndexMissing):
            make_engine(docs_dir).search("foo")


class TestRetrieve:
    """Tests for QueryEngine.retrieve."""

    def test_exact_match(self, installed_bundle: Path, make_engine: Callable, sample_docs: dict) -> None:
        content = make_engine(installed_bundle).retrieve("com.example.Foo")
        assert content == sample_docs["com/example/Foo.md"]

    def test_case_insensitive_fallback(self, installed_bundle: Path, make_engine: Callable) -> None:
        engine = make_engine(installed_bundle)
        assert engine.retrieve("COM.EXAMPLE.FOO") == engine.retrieve("com.example.Foo")

    def test_name_is_trimmed(self, installed_bundle: Path, make_engine: Callable) -> None:
        assert make_engine(installed_bundle).retrieve("  com.example.Bar\n").startswith("# Bar")

    @pytest.mark.parametrize("name", ["", "  "])
    def test_empty_name(self, name: str, installed_bundle: Path, make_engine: Callable) -> None:
        with pytest.raises(EmptyName):
            make_engine(installed_bundle).retrieve(name)

    def test_unknown_name(self, installed_bundle: Path, make_engine: Callable) -> None:
        with pytest.raises(NameNotFound):
            make_engine(installed_bundle).retrieve("com.example.Nope")

    def test_deleted_file_is_distinct_error(self, installed_bundle: Path, make_engine: Callable) -> None:
        """Known name whose file is gone is not reported as unknown."""
        engine = make_engine(installed_bundle)
        (installed_bundle / "com/example/Baz.md").unlink()

        with pytest.raises(DocumentBodyMissing):
            engine.retrieve("com.example.Baz")

    def test_directory_in_place_of_file(self, installed_bundle: Path, make_engine: Callable) -> None:
        target = installed_bundle / "com/example/Baz.md"
        target.unlink()
        target.mkdir()

        with pytest.raises(DocumentBodyMissing):
            make_engine(installed_bundle).retrieve("com.example.Baz")

    def test_undecodable_file(self, installed_bundle: Path, make_engine: Callable) -> None:
        (installed_bundle / "com/example/Baz.md").write_bytes(b"\xff\xfe\xfa")

        with pytest.raises(DocumentBodyMissing):
            make_engine(installed_bundle).retrieve("com.example.Baz")

    def test_body_reread_each_call(self, installed_bundle: Path, make_engine: Callable) -> None:
        engine = make_engine(installed_bundle)
        engine.retrieve("com.example.Foo")
        (installed_bundle / "com/example/Foo.md").write_text("updated")

        assert engine.retrieve("com.example.Foo") == "updated"
