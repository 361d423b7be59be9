"""
GitHub API 客户端（外部系统连接器）。

约定：
- 这里只做 HTTP 调用 + 错误处理 + schema 校验，不做业务决策
- 出错直接抛错（不要吞），401/403/404 用专门的子类，调用方可按需跳过
- 同步调用：整个运行是顺序执行的，没有并发需求
"""

from __future__ import annotations

import logging

import httpx

from ghas_dismisser.github.schemas import GitHubCodeScanningAlert
from ghas_dismisser.github.schemas import GitHubRepository
from ghas_dismisser.github.schemas import GitHubTree

logger = logging.getLogger(__name__)


class GitHubApiError(RuntimeError):
    """GitHub API 返回 >= 400。"""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"GitHub API error {status_code}: {message}")
        self.status_code = status_code


class GitHubUnauthorizedError(GitHubApiError):
    pass


class GitHubNotFoundError(GitHubApiError):
    pass


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    if response.status_code in (401, 403):
        raise GitHubUnauthorizedError(response.status_code, response.text)
    if response.status_code == 404:
        raise GitHubNotFoundError(response.status_code, response.text)
    raise GitHubApiError(response.status_code, response.text)


class GitHubClient:
    """最小 GitHub API client（repo / code scanning alerts / git trees）。"""

    def __init__(self, api_base_url: str, token: str, http_client: httpx.Client) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._token = token
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def get_repository(self, full_name: str) -> GitHubRepository:
        url = f"{self._api_base_url}/repos/{full_name}"
        response = self._http_client.get(url, headers=self._headers())
        _raise_for_status(response)
        return GitHubRepository.model_validate(response.json())

    def list_code_scanning_alerts(
        self,
        owner: str,
        repo: str,
        tool_name: str,
        state: str,
    ) -> list[GitHubCodeScanningAlert]:
        """
        拉取仓库的 code scanning alerts（按 tool_name + state 过滤）。

        注意：GitHub API 有分页；这里会拉取全部页。
        """
        per_page = 100
        page = 1
        all_items: list[GitHubCodeScanningAlert] = []
        while True:
            url = f"{self._api_base_url}/repos/{owner}/{repo}/code-scanning/alerts"
            response = self._http_client.get(
                url,
                headers=self._headers(),
                params={"tool_name": tool_name, "state": state, "per_page": per_page, "page": page},
            )
            _raise_for_status(response)
            data = response.json()
            if not isinstance(data, list):
                raise RuntimeError(f"Unexpected GitHub response shape for code scanning alerts: {data}")
            items = [GitHubCodeScanningAlert.model_validate(x) for x in data]
            all_items.extend(items)
            if len(items) < per_page:
                break
            page += 1
        return all_items

    def update_code_scanning_alert(
        self,
        owner: str,
        repo: str,
        number: int,
        state: str,
        dismissed_reason: str | None = None,
        dismissed_comment: str | None = None,
    ) -> GitHubCodeScanningAlert:
        """PATCH 单条 alert 的状态（例如 dismissed + won't fix）。"""
        url = f"{self._api_base_url}/repos/{owner}/{repo}/code-scanning/alerts/{number}"
        payload: dict[str, str] = {"state": state}
        if dismissed_reason is not None:
            payload["dismissed_reason"] = dismissed_reason
        if dismissed_comment is not None:
            payload["dismissed_comment"] = dismissed_comment
        response = self._http_client.patch(url, headers=self._headers(), json=payload)
        _raise_for_status(response)
        return GitHubCodeScanningAlert.model_validate(response.json())

    def get_tree(self, repo_id: int, tree_ref: str, recursive: bool) -> GitHubTree:
        """
        获取 git tree。

        - tree_ref：branch/commit/tree sha 均可
        - recursive=True 时一次返回整棵树，但过大时 GitHub 会设置 truncated=True
        """
        url = f"{self._api_base_url}/repositories/{repo_id}/git/trees/{tree_ref}"
        params = {"recursive": "1"} if recursive else {}
        logger.debug(f"GET tree {tree_ref} of repository {repo_id} (recursive={recursive})")
        response = self._http_client.get(url, headers=self._headers(), params=params)
        _raise_for_status(response)
        return GitHubTree.model_validate(response.json())
