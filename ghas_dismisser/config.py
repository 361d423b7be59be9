"""
运行配置加载。

设计目标：
- **严格**：拿不到 token 就直接报错（避免“看起来跑了其实什么都没做”）
- **类型安全**：使用 Pydantic 校验 URL 等
- **可测试**：加载函数接收 `environ` / hosts 文件路径作为显式输入

token 来源（优先级从高到低）：
1. 环境变量 `GITHUB_TOKEN`
2. gh CLI 的 hosts 文件（`~/.config/gh/hosts.yml`）中对应 host 的 `oauth_token`
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, HttpUrl

from ghas_dismisser.errors import FatalError

DEFAULT_HOST = "github.com"
DEFAULT_GH_HOSTS_PATH = os.path.join("~", ".config", "gh", "hosts.yml")


class DismisserConfig(BaseModel):
    """一次运行所需的配置。"""

    host: str
    api_base_url: HttpUrl
    token: str
    tool_name: str = "CodeQL"
    alert_state: str = "open"
    dry_run: bool = False
    recursive_trees: bool = True


def normalize_host(host: str | None) -> str:
    """接受 `ghe.example.com` 或 `https://ghe.example.com/`，返回 hostname。"""
    if not host:
        return DEFAULT_HOST
    parsed = urlparse(host if "://" in host else f"https://{host}")
    if not parsed.hostname:
        raise FatalError(f"Invalid GitHub host: {host}")
    return parsed.hostname


def api_base_url_for_host(host: str) -> str:
    if host == DEFAULT_HOST:
        return "https://api.github.com"
    return f"https://{host}/api/v3"


def load_gh_token(host: str, hosts_path: str = DEFAULT_GH_HOSTS_PATH) -> str | None:
    """从 gh CLI 的 hosts.yml 读取 token；文件或 host 不存在时返回 None。"""
    path = os.path.expanduser(hosts_path)
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as handle:
        hosts = yaml.safe_load(handle)
    if not isinstance(hosts, dict):
        return None
    entry = hosts.get(host)
    if not isinstance(entry, dict):
        return None
    token = entry.get("oauth_token")
    if not isinstance(token, str) or not token:
        return None
    return token


def load_config(
    environ: Mapping[str, str],
    host: str | None = None,
    hosts_path: str = DEFAULT_GH_HOSTS_PATH,
    tool_name: str = "CodeQL",
    dry_run: bool = False,
) -> DismisserConfig:
    """
    组装配置。

    - **输入**：`environ`（例如 `os.environ`）、CLI 传入的 host 等
    - **输出**：`DismisserConfig`
    - **失败**：没有 token 时抛 `FatalError`
    """
    hostname = normalize_host(host)
    token = environ.get("GITHUB_TOKEN") or load_gh_token(hostname, hosts_path=hosts_path)
    if not token:
        raise FatalError("The environment variable GITHUB_TOKEN is required")

    return DismisserConfig(
        host=hostname,
        api_base_url=api_base_url_for_host(hostname),
        token=token,
        tool_name=tool_name,
        dry_run=dry_run,
    )
