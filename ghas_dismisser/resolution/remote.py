"""
Remote Backend：通过 GitHub tree API 判断 alert 的文件是否还在仓库里。

目标是尽量少的 round trip：
- 首次整体 fetch 之后，能从索引直接回答的就不再请求
- 索引不完整时，沿路径逐级走，只在缺少下一级时 fetch 父目录
"""

from __future__ import annotations

import logging

from ghas_dismisser.errors import FatalError
from ghas_dismisser.resolution.models import Alert
from ghas_dismisser.resolution.models import RepositoryDescriptor
from ghas_dismisser.resolution.models import TreeEntry
from ghas_dismisser.resolution.tree_cache import TreeCache
from ghas_dismisser.resolution.tree_cache import TreeIndex
from ghas_dismisser.resolution.tree_cache import join_path

logger = logging.getLogger(__name__)


class RemoteBackend:
    def __init__(self, tree_cache: TreeCache) -> None:
        self._tree_cache = tree_cache

    def exists(self, repo: RepositoryDescriptor, alert: Alert) -> bool:
        """
        判断 alert.path 在 alert.ref 对应的 tree 中是否存在。

        - 要求完整路径精确匹配，且匹配到的是文件（目录不算）
        - 路径中间某一级是文件（或 submodule）时视为不存在
        - 中间某次 fetch 仍找不到下一级时视为不存在（不是错误）
        """
        if alert.ref is None:
            raise FatalError(f"Alert at '{alert.path}' has no ref")
        logger.debug(f"Checking alert {alert.describe()} for path '{alert.path}'")

        index = self._tree_cache.get_or_fetch(repo, alert.ref)
        entry = index.get(alert.path)
        if entry is not None:
            return entry.kind == "file"
        logger.debug(f"Not found alert path '{alert.path}' in cached tree")
        if index.complete:
            return False
        return self._walk(repo, alert.ref, index, alert.path)

    def _walk(self, repo: RepositoryDescriptor, ref: str, index: TreeIndex, path: str) -> bool:
        parent: TreeEntry | None = None
        partial_path = ""
        for part in path.split("/"):
            partial_path = join_path(partial_path, part)
            entry = index.get(partial_path)
            if entry is None:
                if parent is None:
                    logger.debug(f"Nothing found for partial path '{partial_path}'")
                    return False
                if index.is_expanded(parent.path):
                    logger.debug(f"Nothing found for partial path '{partial_path}' in expanded '{parent.path}'")
                    return False
                self._tree_cache.expand(repo, ref, parent)
                entry = index.get(partial_path)
                if entry is None:
                    logger.debug(f"Nothing found for partial path '{partial_path}' after fetching '{parent.path}'")
                    return False

            if entry.kind == "directory":
                parent = entry
                continue
            if partial_path != path:
                logger.debug(f"Partial path '{partial_path}' is a file, '{path}' cannot exist")
                return False
            return True
        logger.debug(f"Path '{path}' is a directory")
        return False
