from __future__ import annotations

"""
致命错误（直接终止整个运行）。

适用场景：
- 缺少 token / 没有指定仓库
- SARIF 文件 schema 不合法
- 本地路径不存在或不是 git 仓库
- alert 的 ref 与本地 checkout 的 ref 不一致
"""


class FatalError(RuntimeError):
    """遇到无法继续的配置/一致性问题时抛出；CLI 负责转成非零退出码。"""

    pass
