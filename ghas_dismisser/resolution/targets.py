"""
仓库参数解析：`OWNER/REPO[:PATH[:CHECKOUT]]` -> (nwo, target)。

- 没有 PATH：remote
- PATH 以 .sarif / .json 结尾：snapshot（SARIF 文件）
  - 额外给出 CHECKOUT 时，SARIF 里的 alert 用这个本地 checkout 判断存在性
- 其它 PATH：本地 git checkout
"""

from __future__ import annotations

import os

from ghas_dismisser.errors import FatalError
from ghas_dismisser.github.schemas import GitHubRepository
from ghas_dismisser.resolution.models import LocalTarget
from ghas_dismisser.resolution.models import RemoteTarget
from ghas_dismisser.resolution.models import RepositoryDescriptor
from ghas_dismisser.resolution.models import RepositoryTarget
from ghas_dismisser.resolution.models import SnapshotTarget

SNAPSHOT_EXTENSIONS = (".sarif", ".json")


def parse_repository_argument(argument: str, snapshot_ref: str | None = None) -> tuple[str, RepositoryTarget]:
    nwo, sep, path = argument.partition(":")
    if nwo.count("/") != 1 or not all(nwo.split("/")):
        raise FatalError(f"Invalid repository '{argument}', expected OWNER/REPO[:PATH[:CHECKOUT]]")
    if not sep:
        return nwo, RemoteTarget()
    if not path:
        raise FatalError(f"Empty path for repository {nwo}")

    path, _, checkout = path.partition(":")
    _require_exists(nwo, path)
    if path.lower().endswith(SNAPSHOT_EXTENSIONS):
        if not os.path.isfile(path):
            raise FatalError(f"Path '{path}' for repository {nwo} is not a file!")
        if not checkout:
            return nwo, SnapshotTarget(sarif_path=path, ref=snapshot_ref)
        _require_exists(nwo, checkout)
        _require_git_checkout(nwo, checkout)
        return nwo, SnapshotTarget(sarif_path=path, ref=snapshot_ref, local_path=checkout)
    if checkout:
        raise FatalError(f"Only SARIF files can be combined with a checkout, got '{path}' for repository {nwo}")
    _require_git_checkout(nwo, path)
    return nwo, LocalTarget(local_path=path)


def _require_exists(nwo: str, path: str) -> None:
    if not os.path.exists(path):
        raise FatalError(f"Path '{path}' for repository {nwo} does not exist!")


def _require_git_checkout(nwo: str, path: str) -> None:
    if not os.path.exists(os.path.join(path, ".git")):
        raise FatalError(f"Path '{path}' for repository {nwo} is not a git repository!")


def build_repository_descriptor(repo: GitHubRepository, target: RepositoryTarget) -> RepositoryDescriptor:
    return RepositoryDescriptor(owner=repo.owner.login, name=repo.name, repo_id=repo.id, target=target)
