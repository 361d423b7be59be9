"""
Local Backend：用本地 checkout 判断 alert 的文件是否存在。

规则：
- alert 的 ref 必须与 checkout 当前的 ref 一致（不一致直接终止）
- 文件不在磁盘上 -> 不存在
- 文件在磁盘上但是 untracked -> 也视为不存在（没有被提交过）
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Protocol

from ghas_dismisser.errors import FatalError
from ghas_dismisser.resolution.models import Alert
from ghas_dismisser.resolution.models import RepositoryDescriptor
from ghas_dismisser.resolution.models import working_copy_path

logger = logging.getLogger(__name__)


class WorkingCopy(Protocol):
    """本地 working copy 的最小接口（git 调用通过它注入，便于测试）。"""

    def current_revision(self, root: str) -> str: ...

    def list_untracked(self, root: str) -> list[str]: ...

    def file_exists(self, root: str, path: str) -> bool: ...


class GitCliWorkingCopy:
    """基于 git CLI 的实现。"""

    def __init__(self, git_bin: str = "git") -> None:
        self._git_bin = git_bin

    def current_revision(self, root: str) -> str:
        return _run_git(self._git_bin, ["rev-parse", "--symbolic-full-name", "HEAD"], root).strip()

    def list_untracked(self, root: str) -> list[str]:
        # -z：不对非 ASCII 路径做 C-quote
        output = _run_git(self._git_bin, ["ls-files", "--others", "-z"], root)
        return [path for path in output.split("\0") if path]

    def file_exists(self, root: str, path: str) -> bool:
        return os.path.exists(os.path.join(root, path))


def _run_git(git_bin: str, args: list[str], cwd: str) -> str:
    cmd = [git_bin] + args
    result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)
    if result.returncode != 0:
        logger.error(f"git failed: {' '.join(cmd)}\nstdout={result.stdout}\nstderr={result.stderr}")
        raise FatalError(f"git command failed in {cwd}: {' '.join(cmd)}")
    return result.stdout


class LocalBackend:
    """ref 与 untracked 列表按仓库只取一次。"""

    def __init__(self, working_copy: WorkingCopy) -> None:
        self._working_copy = working_copy
        self._revisions: dict[str, str] = {}
        self._untracked: dict[str, frozenset[str]] = {}

    def exists(self, repo: RepositoryDescriptor, alert: Alert) -> bool:
        root = working_copy_path(repo.target)
        if root is None:
            raise ValueError(f"Repository {repo.full_name} has no local checkout")
        logger.debug(f"Checking {root} for path '{alert.path}'")

        revision = self._current_revision(repo.full_name, root)
        if alert.ref is not None and alert.ref != revision:
            raise FatalError(
                f"The alert associated with ref {alert.ref} cannot be validated against "
                f"repository at {root} with ref {revision}"
            )

        if not self._working_copy.file_exists(root, alert.path):
            logger.debug(f"Did not find alert path '{alert.path}'")
            return False

        if alert.path in self._untracked_files(repo.full_name, root):
            logger.debug(f"Found alert path '{alert.path}' as untracked file")
            return False
        logger.debug(f"Found alert path '{alert.path}' as tracked file")
        return True

    def _current_revision(self, key: str, root: str) -> str:
        if key not in self._revisions:
            self._revisions[key] = self._working_copy.current_revision(root)
        return self._revisions[key]

    def _untracked_files(self, key: str, root: str) -> frozenset[str]:
        if key not in self._untracked:
            self._untracked[key] = frozenset(self._working_copy.list_untracked(root))
        return self._untracked[key]
