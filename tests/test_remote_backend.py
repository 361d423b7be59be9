from __future__ import annotations

import pytest

from ghas_dismisser.errors import FatalError
from ghas_dismisser.resolution.models import Alert
from ghas_dismisser.resolution.models import RepositoryDescriptor
from ghas_dismisser.resolution.models import TreeEntry
from ghas_dismisser.resolution.models import TreeListing
from ghas_dismisser.resolution.remote import RemoteBackend
from ghas_dismisser.resolution.tree_cache import TreeCache


class _FakeFetcher:
    def __init__(self, listings: dict[str, TreeListing]) -> None:
        self.listings = listings
        self.calls: list[str] = []

    def fetch_tree(self, repo_id: int, tree_ref: str, recursive: bool) -> TreeListing:
        self.calls.append(tree_ref)
        return self.listings[tree_ref]


def _repo() -> RepositoryDescriptor:
    return RepositoryDescriptor(owner="octo", name="demo", repo_id=1)


def _alert(path: str, ref: str | None = "refs/heads/main") -> Alert:
    return Alert(number=1, rule_id="py/sql-injection", path=path, ref=ref)


def _backend(listings: dict[str, TreeListing], recursive: bool = True) -> tuple[RemoteBackend, _FakeFetcher]:
    fetcher = _FakeFetcher(listings)
    return RemoteBackend(tree_cache=TreeCache(fetcher=fetcher, recursive=recursive)), fetcher


def _complete_tree() -> TreeListing:
    return TreeListing(
        entries=[
            TreeEntry(path="src", kind="directory", subtree_ref="s1"),
            TreeEntry(path="src/a.py", kind="file"),
            TreeEntry(path="src/b.py", kind="file"),
        ],
        truncated=False,
    )


def test_present_path_in_complete_tree_needs_no_extra_fetch() -> None:
    backend, fetcher = _backend({"refs/heads/main": _complete_tree()})
    assert backend.exists(_repo(), _alert("src/a.py"))
    assert backend.exists(_repo(), _alert("src/b.py"))
    assert fetcher.calls == ["refs/heads/main"]


def test_missing_path_in_complete_tree_is_dismissed_without_fetch() -> None:
    backend, fetcher = _backend({"refs/heads/main": _complete_tree()})
    assert not backend.exists(_repo(), _alert("src/missing.py"))
    assert fetcher.calls == ["refs/heads/main"]


def test_truncated_tree_fetches_subtree_once() -> None:
    backend, fetcher = _backend(
        {
            "refs/heads/main": TreeListing(
                entries=[TreeEntry(path="src", kind="directory", subtree_ref="s1")],
                truncated=True,
            ),
            "s1": TreeListing(entries=[TreeEntry(path="c.py", kind="file")]),
        }
    )
    assert backend.exists(_repo(), _alert("src/c.py"))
    assert fetcher.calls == ["refs/heads/main", "s1"]


def test_truncated_tree_missing_after_fetch_is_not_found() -> None:
    backend, fetcher = _backend(
        {
            "refs/heads/main": TreeListing(
                entries=[TreeEntry(path="src", kind="directory", subtree_ref="s1")],
                truncated=True,
            ),
            "s1": TreeListing(entries=[TreeEntry(path="c.py", kind="file")]),
        }
    )
    assert not backend.exists(_repo(), _alert("src/gone.py"))
    assert not backend.exists(_repo(), _alert("src/other.py"))
    assert fetcher.calls == ["refs/heads/main", "s1"]


def test_walk_descends_through_non_recursive_fetches() -> None:
    backend, fetcher = _backend(
        {
            "refs/heads/main": TreeListing(entries=[TreeEntry(path="src", kind="directory", subtree_ref="s1")]),
            "s1": TreeListing(entries=[TreeEntry(path="pkg", kind="directory", subtree_ref="s2")]),
            "s2": TreeListing(entries=[TreeEntry(path="mod.py", kind="file")]),
        },
        recursive=False,
    )
    assert backend.exists(_repo(), _alert("src/pkg/mod.py"))
    assert fetcher.calls == ["refs/heads/main", "s1", "s2"]


def test_unknown_first_component_is_not_found() -> None:
    backend, fetcher = _backend(
        {"refs/heads/main": TreeListing(entries=[TreeEntry(path="src", kind="directory", subtree_ref="s1")], truncated=True)}
    )
    assert not backend.exists(_repo(), _alert("docs/readme.md"))
    assert fetcher.calls == ["refs/heads/main"]


def test_file_in_the_middle_of_the_path_is_not_found() -> None:
    backend, _ = _backend(
        {"refs/heads/main": TreeListing(entries=[TreeEntry(path="src", kind="file")], truncated=True)}
    )
    assert not backend.exists(_repo(), _alert("src/a.py"))


def test_repeated_subtree_merge_keeps_same_answer() -> None:
    listings = {
        "refs/heads/main": TreeListing(entries=[TreeEntry(path="src", kind="directory", subtree_ref="s1")], truncated=True),
        "s1": TreeListing(entries=[TreeEntry(path="c.py", kind="file")]),
    }
    fetcher = _FakeFetcher(listings)
    cache = TreeCache(fetcher=fetcher)
    backend = RemoteBackend(tree_cache=cache)
    repo = _repo()
    assert backend.exists(repo, _alert("src/c.py"))
    cache.extend(repo, "refs/heads/main", listings["s1"].entries, prefix="src")
    assert backend.exists(repo, _alert("src/c.py"))
    assert not backend.exists(repo, _alert("src/d.py"))


def test_alert_without_ref_aborts() -> None:
    backend, _ = _backend({"refs/heads/main": _complete_tree()})
    with pytest.raises(FatalError):
        backend.exists(_repo(), _alert("src/a.py", ref=None))


def test_trees_are_cached_per_ref() -> None:
    backend, fetcher = _backend(
        {
            "refs/heads/main": _complete_tree(),
            "refs/heads/dev": TreeListing(entries=[TreeEntry(path="new.py", kind="file")]),
        }
    )
    assert not backend.exists(_repo(), _alert("new.py"))
    assert backend.exists(_repo(), _alert("new.py", ref="refs/heads/dev"))
    assert backend.exists(_repo(), _alert("src/a.py"))
    assert fetcher.calls == ["refs/heads/main", "refs/heads/dev"]


def test_path_ending_on_directory_is_not_found() -> None:
    backend, fetcher = _backend(
        {
            "refs/heads/main": TreeListing(
                entries=[TreeEntry(path="src", kind="directory", subtree_ref="s1")],
                truncated=True,
            ),
            "s1": TreeListing(entries=[TreeEntry(path="pkg", kind="directory", subtree_ref="s2")]),
        }
    )
    assert not backend.exists(_repo(), _alert("src/pkg"))
    assert not backend.exists(_repo(), _alert("src/pkg"))
    assert not backend.exists(_repo(), _alert("src"))
    assert fetcher.calls == ["refs/heads/main", "s1"]
