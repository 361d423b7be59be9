"""
GitHub API response schemas（Pydantic）。

说明：
- 字段只覆盖当前需要的子集（repo / code scanning alerts / git trees）
- 未声明的字段直接忽略（Pydantic 默认行为）
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class GitHubOwner(BaseModel):
    login: str


class GitHubRepository(BaseModel):
    id: int
    name: str
    owner: GitHubOwner
    full_name: str


class GitHubAlertRule(BaseModel):
    id: str


class GitHubAlertLocation(BaseModel):
    path: str


class GitHubAlertInstance(BaseModel):
    ref: str | None = None
    location: GitHubAlertLocation


class GitHubCodeScanningAlert(BaseModel):
    """
    code scanning alert item（GET /repos/{owner}/{repo}/code-scanning/alerts）。

    most_recent_instance 里带有 alert 最近一次出现的 ref 与文件路径。
    """

    number: int
    state: str
    rule: GitHubAlertRule
    most_recent_instance: GitHubAlertInstance
    html_url: str | None = None


class GitHubTreeItem(BaseModel):
    """
    git tree item。

    - tree：目录，sha 可用于继续 fetch 子目录
    - blob：文件
    - commit：submodule
    """

    path: str
    type: Literal["blob", "tree", "commit"]
    sha: str


class GitHubTree(BaseModel):
    """GET /repositories/{id}/git/trees/{tree_sha}；truncated=True 表示结果不完整。"""

    sha: str
    url: str | None = None
    tree: list[GitHubTreeItem]
    truncated: bool = False
