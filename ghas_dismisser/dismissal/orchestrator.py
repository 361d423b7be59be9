"""
Dismissal Orchestrator（核心流程编排）。

流程（逐个仓库、逐条 alert，顺序执行）：
resolve repo -> fetch alerts (API / SARIF) -> exists? (remote / local) -> keep | dismiss
-> dismiss sink（PATCH alert 状态 / 重写 SARIF 文件）

- dry run 时分类结果完全相同，只是不做任何写操作
- 所有缓存（tree / ref / untracked）都挂在 orchestrator 持有的 backend 上，不是全局状态
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

import httpx
from pydantic import BaseModel, Field

from ghas_dismisser.config import DismisserConfig
from ghas_dismisser.github.adapter import GitHubTreeFetcher
from ghas_dismisser.github.adapter import build_alert_from_github
from ghas_dismisser.github.client import GitHubApiError
from ghas_dismisser.github.client import GitHubClient
from ghas_dismisser.github.client import GitHubNotFoundError
from ghas_dismisser.github.client import GitHubUnauthorizedError
from ghas_dismisser.resolution.local import GitCliWorkingCopy
from ghas_dismisser.resolution.local import LocalBackend
from ghas_dismisser.resolution.local import WorkingCopy
from ghas_dismisser.resolution.models import Alert
from ghas_dismisser.resolution.models import RepositoryDescriptor
from ghas_dismisser.resolution.models import RepositoryTarget
from ghas_dismisser.resolution.models import SnapshotTarget
from ghas_dismisser.resolution.models import working_copy_path
from ghas_dismisser.resolution.remote import RemoteBackend
from ghas_dismisser.resolution.targets import build_repository_descriptor
from ghas_dismisser.resolution.tree_cache import TreeCache
from ghas_dismisser.sarif.document import SarifOutputOptions
from ghas_dismisser.sarif.document import SarifSnapshot

logger = logging.getLogger(__name__)

DISMISSED_STATE = "dismissed"
DISMISSED_REASON = "won't fix"
DISMISSED_COMMENT = "This alert's location is not in the repository"


class ExistenceBackend(Protocol):
    def exists(self, repo: RepositoryDescriptor, alert: Alert) -> bool: ...


class Classification(BaseModel):
    """单个仓库的分类结果。complete=False 表示中途因 API 错误停止。"""

    repository: str
    source: Literal["api", "snapshot"]
    keep: list[Alert] = Field(default_factory=list)
    dismiss: list[Alert] = Field(default_factory=list)
    complete: bool = True
    dismissed_count: int = 0


@dataclass(frozen=True)
class DismissalOrchestrator:
    """运行时依赖集合。"""

    github_client: GitHubClient
    remote_backend: RemoteBackend
    local_backend: LocalBackend
    snapshot: SarifSnapshot
    tool_name: str = "CodeQL"
    alert_state: str = "open"
    dry_run: bool = False


def build_dismissal_orchestrator(
    config: DismisserConfig,
    http_client: httpx.Client,
    sarif_output: SarifOutputOptions | None = None,
    working_copy: WorkingCopy | None = None,
) -> DismissalOrchestrator:
    github_client = GitHubClient(
        api_base_url=str(config.api_base_url).rstrip("/"),
        token=config.token,
        http_client=http_client,
    )
    tree_cache = TreeCache(fetcher=GitHubTreeFetcher(github_client), recursive=config.recursive_trees)
    return DismissalOrchestrator(
        github_client=github_client,
        remote_backend=RemoteBackend(tree_cache=tree_cache),
        local_backend=LocalBackend(working_copy=working_copy if working_copy is not None else GitCliWorkingCopy()),
        snapshot=SarifSnapshot(tool_name=config.tool_name, output=sarif_output),
        tool_name=config.tool_name,
        alert_state=config.alert_state,
        dry_run=config.dry_run,
    )


def select_backend(orchestrator: DismissalOrchestrator, repo: RepositoryDescriptor) -> ExistenceBackend:
    if working_copy_path(repo.target) is not None:
        return orchestrator.local_backend
    return orchestrator.remote_backend


def resolve_repositories(
    orchestrator: DismissalOrchestrator,
    arguments: Sequence[tuple[str, RepositoryTarget]],
) -> list[RepositoryDescriptor]:
    """查询仓库 id；无权限/不存在的仓库报错后跳过。"""
    repos: list[RepositoryDescriptor] = []
    for nwo, target in arguments:
        try:
            repo = orchestrator.github_client.get_repository(nwo)
        except (GitHubUnauthorizedError, GitHubNotFoundError):
            logger.error(f"Unauthorized to access {nwo}")
            continue
        repos.append(build_repository_descriptor(repo, target))
    return repos


def fetch_alerts(orchestrator: DismissalOrchestrator, repo: RepositoryDescriptor) -> list[Alert]:
    if isinstance(repo.target, SnapshotTarget):
        return orchestrator.snapshot.get_alerts(repo)
    items = orchestrator.github_client.list_code_scanning_alerts(
        owner=repo.owner,
        repo=repo.name,
        tool_name=orchestrator.tool_name,
        state=orchestrator.alert_state,
    )
    return [build_alert_from_github(item) for item in items]


def classify_alerts(
    orchestrator: DismissalOrchestrator,
    repo: RepositoryDescriptor,
    alerts: Sequence[Alert],
) -> Classification:
    """
    逐条判断 alert 位置是否存在。

    远端 tree fetch 失败不重试：停止该仓库剩余 alert 的分类，已有结果保留。
    """
    backend = select_backend(orchestrator, repo)
    source: Literal["api", "snapshot"] = "snapshot" if isinstance(repo.target, SnapshotTarget) else "api"
    classification = Classification(repository=repo.full_name, source=source)
    for alert in alerts:
        try:
            found = backend.exists(repo, alert)
        except (GitHubApiError, httpx.HTTPError) as exc:
            logger.error(f"Failed to resolve '{alert.path}' in {repo.full_name}: {exc}")
            classification.complete = False
            break
        if found:
            classification.keep.append(alert)
        else:
            logger.info(f"Closing {alert.describe()} because its location is not in the repository")
            classification.dismiss.append(alert)
    return classification


def dismiss_alerts(
    orchestrator: DismissalOrchestrator,
    repo: RepositoryDescriptor,
    classification: Classification,
) -> int:
    """执行 dismiss，返回实际处理的数量（dry run 为 0）。"""
    if orchestrator.dry_run or not classification.dismiss:
        return 0
    if classification.source == "snapshot":
        orchestrator.snapshot.dismiss(repo, classification.dismiss)
        return len(classification.dismiss)

    dismissed = 0
    for alert in classification.dismiss:
        if alert.number is None:
            raise ValueError(f"Cannot dismiss alert without number: {alert.describe()}")
        try:
            orchestrator.github_client.update_code_scanning_alert(
                owner=repo.owner,
                repo=repo.name,
                number=alert.number,
                state=DISMISSED_STATE,
                dismissed_reason=DISMISSED_REASON,
                dismissed_comment=DISMISSED_COMMENT,
            )
        except GitHubUnauthorizedError:
            logger.error(f"Unauthorized to dismiss alert {alert.number} in {repo.full_name}")
            continue
        except GitHubNotFoundError:
            logger.error(f"Did not find alert {alert.number} to dismiss in {repo.full_name}")
            continue
        dismissed += 1
    return dismissed


def run_repository(orchestrator: DismissalOrchestrator, repo: RepositoryDescriptor) -> Classification | None:
    try:
        alerts = fetch_alerts(orchestrator, repo)
    except (GitHubUnauthorizedError, GitHubNotFoundError):
        logger.error(f"Unauthorized to access {repo.full_name}")
        return None

    logger.debug(f"Found {len(alerts)} alert(s) for {repo.full_name}")
    classification = classify_alerts(orchestrator, repo, alerts)
    classification.dismissed_count = dismiss_alerts(orchestrator, repo, classification)
    return classification


def run(orchestrator: DismissalOrchestrator, repos: Sequence[RepositoryDescriptor]) -> list[Classification]:
    results: list[Classification] = []
    for repo in repos:
        classification = run_repository(orchestrator, repo)
        if classification is not None:
            results.append(classification)
    return results
