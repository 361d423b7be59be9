"""
GitHub -> Resolution domain adapter。

职责：
- 将 GitHub code scanning alert 转为平台无关的 `Alert`
- 将 git tree 响应转为 `TreeListing`，供 tree cache 使用
"""

from __future__ import annotations

from ghas_dismisser.github.client import GitHubClient
from ghas_dismisser.github.schemas import GitHubCodeScanningAlert
from ghas_dismisser.github.schemas import GitHubTree
from ghas_dismisser.resolution.models import Alert
from ghas_dismisser.resolution.models import TreeEntry
from ghas_dismisser.resolution.models import TreeListing


def build_alert_from_github(alert: GitHubCodeScanningAlert) -> Alert:
    return Alert(
        number=alert.number,
        rule_id=alert.rule.id,
        path=alert.most_recent_instance.location.path,
        ref=alert.most_recent_instance.ref,
        url=alert.html_url,
    )


def build_tree_listing(tree: GitHubTree) -> TreeListing:
    """submodule（commit）无法继续展开，按文件处理。"""
    entries: list[TreeEntry] = []
    for item in tree.tree:
        if item.type == "tree":
            entries.append(TreeEntry(path=item.path, kind="directory", subtree_ref=item.sha))
        else:
            entries.append(TreeEntry(path=item.path, kind="file"))
    return TreeListing(entries=entries, truncated=tree.truncated)


class GitHubTreeFetcher:
    """`TreeFetcher` 的 GitHub 实现。"""

    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    def fetch_tree(self, repo_id: int, tree_ref: str, recursive: bool) -> TreeListing:
        return build_tree_listing(self._client.get_tree(repo_id=repo_id, tree_ref=tree_ref, recursive=recursive))
