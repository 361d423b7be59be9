from __future__ import annotations

import subprocess

import pytest

from ghas_dismisser.errors import FatalError
from ghas_dismisser.resolution.local import GitCliWorkingCopy
from ghas_dismisser.resolution.local import LocalBackend
from ghas_dismisser.resolution.models import Alert
from ghas_dismisser.resolution.models import LocalTarget
from ghas_dismisser.resolution.models import RepositoryDescriptor
from ghas_dismisser.resolution.models import SnapshotTarget


class _FakeWorkingCopy:
    def __init__(self, revision: str, files: set[str], untracked: set[str]) -> None:
        self.revision = revision
        self.files = files
        self.untracked = untracked
        self.revision_calls = 0
        self.untracked_calls = 0

    def current_revision(self, root: str) -> str:
        self.revision_calls += 1
        return self.revision

    def list_untracked(self, root: str) -> list[str]:
        self.untracked_calls += 1
        return sorted(self.untracked)

    def file_exists(self, root: str, path: str) -> bool:
        return path in self.files


def _repo() -> RepositoryDescriptor:
    return RepositoryDescriptor(owner="octo", name="demo", repo_id=1, target=LocalTarget(local_path="/src/demo"))


def _alert(path: str, ref: str | None = "refs/heads/main") -> Alert:
    return Alert(number=7, rule_id="js/xss", path=path, ref=ref)


def _working_copy() -> _FakeWorkingCopy:
    return _FakeWorkingCopy(
        revision="refs/heads/main",
        files={"app/index.js", "app/scratch.js"},
        untracked={"app/scratch.js"},
    )


def test_tracked_file_exists() -> None:
    backend = LocalBackend(working_copy=_working_copy())
    assert backend.exists(_repo(), _alert("app/index.js"))


def test_untracked_file_is_treated_as_missing() -> None:
    backend = LocalBackend(working_copy=_working_copy())
    assert not backend.exists(_repo(), _alert("app/scratch.js"))


def test_absent_file_is_missing() -> None:
    working_copy = _working_copy()
    backend = LocalBackend(working_copy=working_copy)
    assert not backend.exists(_repo(), _alert("app/deleted.js"))
    assert working_copy.untracked_calls == 0


def test_revision_and_untracked_are_cached() -> None:
    working_copy = _working_copy()
    backend = LocalBackend(working_copy=working_copy)
    backend.exists(_repo(), _alert("app/index.js"))
    backend.exists(_repo(), _alert("app/scratch.js"))
    assert working_copy.revision_calls == 1
    assert working_copy.untracked_calls == 1


def test_mismatched_ref_aborts() -> None:
    backend = LocalBackend(working_copy=_working_copy())
    with pytest.raises(FatalError):
        backend.exists(_repo(), _alert("app/index.js", ref="refs/heads/feature"))


def test_missing_ref_skips_revision_check() -> None:
    backend = LocalBackend(working_copy=_working_copy())
    assert backend.exists(_repo(), _alert("app/index.js", ref=None))


def test_remote_descriptor_is_rejected() -> None:
    backend = LocalBackend(working_copy=_working_copy())
    with pytest.raises(ValueError):
        backend.exists(RepositoryDescriptor(owner="octo", name="demo", repo_id=1), _alert("app/index.js"))


def test_snapshot_descriptor_with_checkout_is_accepted() -> None:
    backend = LocalBackend(working_copy=_working_copy())
    repo = RepositoryDescriptor(
        owner="octo",
        name="demo",
        repo_id=1,
        target=SnapshotTarget(sarif_path="/tmp/results.sarif", local_path="/src/demo"),
    )
    assert backend.exists(repo, _alert("app/index.js", ref=None))
    assert not backend.exists(repo, _alert("app/scratch.js", ref=None))


def test_git_untracked_listing_keeps_non_ascii_paths(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[list[str]] = []

    def _fake_run(cmd: list[str], cwd: str, capture_output: bool, text: bool) -> subprocess.CompletedProcess[str]:
        seen.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="café.py\0docs/naïve.md\0", stderr="")

    monkeypatch.setattr("ghas_dismisser.resolution.local.subprocess.run", _fake_run)
    assert GitCliWorkingCopy().list_untracked("/src/demo") == ["café.py", "docs/naïve.md"]
    assert seen == [["git", "ls-files", "--others", "-z"]]
