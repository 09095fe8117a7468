"""Shared test fixtures."""
import io
import json
import zipfile
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest

from classdocs_server.bundle.store import BundleStore
from classdocs_server.lookup.index import IndexCell
from classdocs_server.lookup.query import QueryEngine


SAMPLE_DOCS = {
    "com/example/Foo.md": "# Foo\n\nThe Foo class.\n",
    "com/example/Bar.md": "# Bar\n\nThe Bar interface.\n",
    "com/example/Baz.md": "# Baz\n\nThe Baz enum.\n",
}


def make_lookup(names: Dict[str, tuple]) -> dict:
    """Build an index mapping from ``{name: (path, type)}``."""
    return {
        name: {
            "full_name": name,
            "path": path,
            "type": kind,
            "package": name.rsplit(".", 1)[0],
        }
        for name, (path, kind) in names.items()
    }


def write_bundle(root: Path, lookup: dict, docs: Dict[str, str]) -> Path:
    """Write an installed bundle to disk."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "class_lookup.json").write_text(json.dumps(lookup))
    for rel_path, content in docs.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def zip_bundle(
    lookup: Optional[dict],
    docs: Dict[str, str],
    prefix: str = "",
) -> bytes:
    """Build a bundle archive in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        if lookup is not None:
            zf.writestr(prefix + "class_lookup.json", json.dumps(lookup))
        for rel_path, content in docs.items():
            zf.writestr(prefix + rel_path, content)
    return buffer.getvalue()


@pytest.fixture
def sample_lookup() -> dict:
    """Return index data for the sample bundle."""
    return make_lookup(
        {
            "com.example.Foo": ("com/example/Foo.md", "class"),
            "com.example.Bar": ("com/example/Bar.md", "interface"),
            "com.example.Baz": ("com/example/Baz.md", "enum"),
        }
    )


@pytest.fixture
def sample_docs() -> Dict[str, str]:
    """Return documentation bodies for the sample bundle."""
    return dict(SAMPLE_DOCS)


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """Return a not yet existing bundle root."""
    return tmp_path / "docs"


@pytest.fixture
def installed_bundle(docs_dir: Path, sample_lookup: dict, sample_docs: dict) -> Path:
    """Write the sample bundle to docs_dir."""
    return write_bundle(docs_dir, sample_lookup, sample_docs)


@pytest.fixture
def sample_archive(sample_lookup: dict, sample_docs: dict) -> bytes:
    """Return the sample bundle as zip bytes."""
    return zip_bundle(sample_lookup, sample_docs)


@pytest.fixture
def make_engine() -> Callable[..., QueryEngine]:
    """Return a factory building a query engine over a bundle root."""

    def factory(root: Path, **kwargs) -> QueryEngine:
        store = BundleStore(root)
        return QueryEngine(IndexCell(store.index_file), store, **kwargs)

    return factory


def snapshot(root: Path) -> Dict[str, bytes]:
    """Map every file under root to its bytes."""
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }
