"""
Resolution 领域模型（Pydantic）。

用途：
- 平台无关的 Alert / 仓库描述（GitHub API 与 SARIF 都归一化到这里）
- tree entry / tree listing：远端 tree API 的最小抽象
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Alert(BaseModel):
    """
    单条 code scanning alert。

    - number：GitHub alert 编号；SARIF 来源没有编号（None）
    - ref：alert 所属的 ref；SARIF 来源可能为空
    """

    model_config = ConfigDict(frozen=True)

    number: int | None = None
    rule_id: str
    path: str
    ref: str | None = None
    url: str | None = None

    def describe(self) -> str:
        if self.url:
            return self.url
        return f"{self.rule_id} at '{self.path}'"


class TreeEntry(BaseModel):
    """tree 中的一个条目，path 为从仓库根开始的完整路径。"""

    model_config = ConfigDict(frozen=True)

    path: str
    kind: Literal["directory", "file"]
    subtree_ref: str | None = None


class TreeListing(BaseModel):
    """一次 tree fetch 的结果（path 相对于被 fetch 的 tree）。"""

    entries: list[TreeEntry] = Field(default_factory=list)
    truncated: bool = False


class RemoteTarget(BaseModel):
    kind: Literal["remote"] = "remote"


class LocalTarget(BaseModel):
    kind: Literal["local"] = "local"
    local_path: str


class SnapshotTarget(BaseModel):
    """local_path 不为空时，SARIF 里的 alert 用本地 checkout 判断存在性。"""

    kind: Literal["snapshot"] = "snapshot"
    sarif_path: str
    ref: str | None = None
    local_path: str | None = None


RepositoryTarget = Annotated[
    Union[RemoteTarget, LocalTarget, SnapshotTarget],
    Field(discriminator="kind"),
]


def working_copy_path(target: RemoteTarget | LocalTarget | SnapshotTarget) -> str | None:
    if isinstance(target, RemoteTarget):
        return None
    return target.local_path


class RepositoryDescriptor(BaseModel):
    """
    一个待处理仓库。

    target 决定 alert 从哪来、存在性用哪个 backend 判断：
    - remote：GitHub API alerts + 远端 tree
    - local：GitHub API alerts + 本地 checkout
    - snapshot：SARIF 文件里的结果 + 远端 tree（或 local_path 指向的本地 checkout）
    """

    model_config = ConfigDict(frozen=True)

    owner: str
    name: str
    repo_id: int
    target: RepositoryTarget = Field(default_factory=RemoteTarget)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"
