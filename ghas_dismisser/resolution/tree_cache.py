"""
Tree Cache（按 repo + ref 缓存的 tree 索引）。

设计要点：
- 首次访问某个 (repo, ref) 时做一次整体 fetch（可选 recursive）
- 之后只追加：子目录按需 fetch，结果按完整路径合并进索引
- 索引按 path 去重（后写覆盖），重复合并同一子树不会产生冲突条目
- 生命周期只在一次运行内，由 orchestrator 持有，不做持久化
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from ghas_dismisser.resolution.models import RepositoryDescriptor
from ghas_dismisser.resolution.models import TreeEntry
from ghas_dismisser.resolution.models import TreeListing

logger = logging.getLogger(__name__)

ROOT_PATH = ""


class TreeFetcher(Protocol):
    """远端 tree API 的抽象（便于测试时替换为内存实现）。"""

    def fetch_tree(self, repo_id: int, tree_ref: str, recursive: bool) -> TreeListing: ...


def join_path(prefix: str, path: str) -> str:
    if not prefix:
        return path
    return f"{prefix}/{path}"


@dataclass
class TreeIndex:
    """
    单个 (repo, ref) 的 tree 索引：完整路径 -> TreeEntry。

    - truncated：最近一次整体 fetch 是否被截断
    - recursive：整体 fetch 是否是 recursive 的
    - expanded：已经确认列出过全部直接子项的目录（根目录用 ""）

    只有 complete 时，“不在索引里”才等价于“不存在”。
    """

    entries: dict[str, TreeEntry] = field(default_factory=dict)
    truncated: bool = False
    recursive: bool = False
    expanded: set[str] = field(default_factory=set)

    @property
    def complete(self) -> bool:
        return self.recursive and not self.truncated

    def get(self, path: str) -> TreeEntry | None:
        return self.entries.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def merge(self, entries: Iterable[TreeEntry], prefix: str) -> None:
        for entry in entries:
            full_path = join_path(prefix, entry.path)
            self.entries[full_path] = entry.model_copy(update={"path": full_path})

    def is_expanded(self, directory_path: str) -> bool:
        return self.complete or directory_path in self.expanded

    def mark_expanded(self, listing: TreeListing, prefix: str, recursive: bool) -> None:
        self.expanded.add(prefix)
        if not recursive or listing.truncated:
            return
        for entry in listing.entries:
            if entry.kind == "directory":
                self.expanded.add(join_path(prefix, entry.path))


class TreeCache:
    """repo -> ref -> TreeIndex。"""

    def __init__(self, fetcher: TreeFetcher, recursive: bool = True) -> None:
        self._fetcher = fetcher
        self._recursive = recursive
        self._trees: dict[str, dict[str, TreeIndex]] = {}

    @property
    def recursive(self) -> bool:
        return self._recursive

    def get_or_fetch(self, repo: RepositoryDescriptor, revision: str) -> TreeIndex:
        by_ref = self._trees.setdefault(repo.full_name, {})
        index = by_ref.get(revision)
        if index is not None:
            return index

        logger.debug(f"Fetching tree for {repo.full_name} at {revision}")
        listing = self._fetcher.fetch_tree(repo_id=repo.repo_id, tree_ref=revision, recursive=self._recursive)
        index = TreeIndex(truncated=listing.truncated, recursive=self._recursive)
        index.merge(listing.entries, prefix=ROOT_PATH)
        index.mark_expanded(listing, prefix=ROOT_PATH, recursive=self._recursive)
        by_ref[revision] = index
        if listing.truncated:
            logger.debug(f"Tree for {repo.full_name} at {revision} is truncated ({len(index)} entries)")
        return index

    def extend(
        self,
        repo: RepositoryDescriptor,
        revision: str,
        entries: Iterable[TreeEntry],
        prefix: str,
    ) -> TreeIndex:
        """把子树条目合并进已有索引；entry.path 相对于 prefix。"""
        index = self.get_or_fetch(repo, revision)
        index.merge(entries, prefix=prefix)
        return index

    def expand(self, repo: RepositoryDescriptor, revision: str, directory: TreeEntry) -> TreeIndex:
        """fetch 某个目录的子项并合并（已展开的目录不会重复 fetch）。"""
        if directory.kind != "directory" or directory.subtree_ref is None:
            raise ValueError(f"Cannot expand non-directory entry: {directory.path}")
        index = self.get_or_fetch(repo, revision)
        if index.is_expanded(directory.path):
            return index

        logger.debug(f"Fetching tree for '{directory.path}' in {repo.full_name} at {revision}")
        listing = self._fetcher.fetch_tree(
            repo_id=repo.repo_id,
            tree_ref=directory.subtree_ref,
            recursive=self._recursive,
        )
        self.extend(repo, revision, listing.entries, prefix=directory.path)
        index.mark_expanded(listing, prefix=directory.path, recursive=self._recursive)
        return index
