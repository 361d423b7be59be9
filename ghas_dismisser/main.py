"""
CLI 入口。

这里做三件事：
- 解析参数 + 加载配置（token 缺失直接失败）
- 组装外部依赖（httpx Client / GitHub client / backends）
- 逐个仓库跑 orchestrator，打印汇总

注意：业务流程不写在这里（由 `dismissal/orchestrator.py` 负责）
"""

from __future__ import annotations

import logging
import os

import click
import httpx

from ghas_dismisser.config import load_config
from ghas_dismisser.dismissal.orchestrator import Classification
from ghas_dismisser.dismissal.orchestrator import build_dismissal_orchestrator
from ghas_dismisser.dismissal.orchestrator import resolve_repositories
from ghas_dismisser.dismissal.orchestrator import run
from ghas_dismisser.errors import FatalError
from ghas_dismisser.resolution.targets import parse_repository_argument
from ghas_dismisser.sarif.document import SarifOutputOptions


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx 自己的请求日志太吵
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _format_summary(classification: Classification, dry_run: bool) -> str:
    line = (
        f"{classification.repository}: kept {len(classification.keep)}, "
        f"stale {len(classification.dismiss)}, dismissed {classification.dismissed_count}"
    )
    if not classification.complete:
        line += " (incomplete)"
    if dry_run:
        line += " (dry run)"
    return line


@click.command()
@click.argument("repositories", nargs=-1, metavar='"OWNER/REPO[:PATH[:CHECKOUT]]" ...')
@click.option("--host", "host", default=None, help="The GitHub host to connect to.")
@click.option("-v", "--verbose", is_flag=True, help="Run verbosely.")
@click.option("-d", "--dry-run", is_flag=True, help="Do a dry run that doesn't perform the action.")
@click.option("--tool-name", default="CodeQL", show_default=True, help="Code scanning tool whose alerts are checked.")
@click.option("--ref", "snapshot_ref", default=None, help="Ref that SARIF results were produced for.")
@click.option("--in-place", is_flag=True, help="Rewrite SARIF files in place.")
@click.option("--backup-ext", default=None, help="Keep the original SARIF file with this extension (with --in-place).")
@click.option("--suffix", default="-filtered", show_default=True, help="Suffix of rewritten SARIF files.")
def cli(
    repositories: tuple[str, ...],
    host: str | None,
    verbose: bool,
    dry_run: bool,
    tool_name: str,
    snapshot_ref: str | None,
    in_place: bool,
    backup_ext: str | None,
    suffix: str,
) -> None:
    """Dismiss code scanning alerts whose location is no longer in the repository."""
    _configure_logging(verbose)
    try:
        if not repositories:
            raise FatalError("No repositories specified")
        arguments = [parse_repository_argument(arg, snapshot_ref=snapshot_ref) for arg in repositories]
        config = load_config(os.environ, host=host, tool_name=tool_name, dry_run=dry_run)

        with httpx.Client(timeout=httpx.Timeout(30.0)) as http_client:
            orchestrator = build_dismissal_orchestrator(
                config=config,
                http_client=http_client,
                sarif_output=SarifOutputOptions(in_place=in_place, backup_ext=backup_ext, suffix=suffix),
            )
            repos = resolve_repositories(orchestrator, arguments)
            results = run(orchestrator, repos)
    except FatalError as exc:
        raise click.ClickException(str(exc)) from exc

    for classification in results:
        click.echo(_format_summary(classification, dry_run=dry_run))


if __name__ == "__main__":
    cli()
