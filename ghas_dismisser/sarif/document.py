"""
Snapshot Backend（SARIF 文件）。

一个 SARIF 文件同时是：
- alert 来源：目标工具（默认 CodeQL）的每个 run 的每个 result 归一化成一条 `Alert`
- dismiss 的目标：被判定为 stale 的 result 从文件里删掉后重新写出

校验只看最少的结构（schema URI + runs + tool.driver.name），
其它字段原样保留，写回时不做任何改动。
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ghas_dismisser.errors import FatalError
from ghas_dismisser.resolution.models import Alert
from ghas_dismisser.resolution.models import RepositoryDescriptor
from ghas_dismisser.resolution.models import SnapshotTarget

logger = logging.getLogger(__name__)

SUPPORTED_SARIF_SCHEMAS: tuple[str, ...] = (
    "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json",
    "https://json.schemastore.org/sarif-2.1.0.json",
)


class SarifDriver(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str


class SarifTool(BaseModel):
    model_config = ConfigDict(extra="allow")

    driver: SarifDriver


class SarifRun(BaseModel):
    model_config = ConfigDict(extra="allow")

    tool: SarifTool
    results: list[dict[str, Any]] = Field(default_factory=list)


class SarifLog(BaseModel):
    """只用于结构校验；真正读写的是原始 dict。"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_uri: str | None = Field(default=None, alias="$schema")
    runs: list[SarifRun] | None = None


@dataclass(frozen=True)
class SarifOutputOptions:
    """
    写回方式：
    - in_place=True：覆盖原文件；backup_ext 不为空时先把原文件改名为 `<path><backup_ext>`
    - in_place=False：写到 `<name><suffix><ext>`
    """

    in_place: bool = False
    backup_ext: str | None = None
    suffix: str = "-filtered"


def validate_sarif(document: object, tool_name: str) -> None:
    if not isinstance(document, dict):
        raise FatalError("Invalid SARIF file, expected a JSON object")
    schema_uri = document.get("$schema")
    if schema_uri not in SUPPORTED_SARIF_SCHEMAS:
        raise FatalError("Invalid SARIF file, expected version 2.1.0")
    if not isinstance(document.get("runs"), list):
        raise FatalError("SARIF file does not contain runs")
    try:
        log = SarifLog.model_validate(document)
    except ValidationError as exc:
        raise FatalError(f"Invalid SARIF file: {exc}") from exc
    if not any(run.tool.driver.name == tool_name for run in log.runs or []):
        raise FatalError(f"SARIF file does not contain {tool_name} results")


def result_location_path(result: dict[str, Any]) -> str | None:
    """`locations[0].physicalLocation.artifactLocation.uri`，缺失时返回 None。"""
    locations = result.get("locations")
    if not isinstance(locations, list) or not locations:
        return None
    node: object = locations[0]
    for key in ("physicalLocation", "artifactLocation", "uri"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if not isinstance(node, str):
        return None
    return node


def rewritten_sarif_path(path: str, suffix: str) -> str:
    root, ext = os.path.splitext(path)
    return f"{root}{suffix}{ext}"


class SarifSnapshot:
    def __init__(self, tool_name: str = "CodeQL", output: SarifOutputOptions | None = None) -> None:
        self._tool_name = tool_name
        self._output = output if output is not None else SarifOutputOptions()

    def load(self, path: str) -> dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                document = json.load(handle)
        except json.JSONDecodeError as exc:
            raise FatalError(f"Invalid SARIF file '{path}': {exc}") from exc
        validate_sarif(document, tool_name=self._tool_name)
        return document

    def _tool_runs(self, document: dict[str, Any]) -> list[dict[str, Any]]:
        """只处理配置的工具产生的 run，其它工具的结果原样保留。"""
        return [run for run in document["runs"] if run["tool"]["driver"]["name"] == self._tool_name]

    def get_alerts(self, repo: RepositoryDescriptor) -> list[Alert]:
        target = _snapshot_target(repo)
        document = self.load(target.sarif_path)
        alerts: list[Alert] = []
        for run in self._tool_runs(document):
            for result in run.get("results") or []:
                path = result_location_path(result)
                rule_id = result.get("ruleId")
                if path is None or not isinstance(rule_id, str):
                    logger.debug(f"Skipping SARIF result without ruleId or location in {target.sarif_path}")
                    continue
                alerts.append(Alert(rule_id=rule_id, path=path, ref=target.ref))
        return alerts

    def dismiss(self, repo: RepositoryDescriptor, alerts: Iterable[Alert]) -> str:
        """
        删除 (path, ruleId) 命中的 result，返回写出的文件路径。

        先在内存里完成过滤并写到临时文件，成功后才替换（或备份）原文件。
        """
        target = _snapshot_target(repo)
        document = self.load(target.sarif_path)
        to_remove = {(alert.path, alert.rule_id) for alert in alerts}

        removed = 0
        for run in self._tool_runs(document):
            results = run.get("results")
            if not isinstance(results, list):
                continue
            kept = [r for r in results if (result_location_path(r), r.get("ruleId")) not in to_remove]
            removed += len(results) - len(kept)
            run["results"] = kept

        if self._output.in_place:
            output_path = target.sarif_path
        else:
            output_path = rewritten_sarif_path(target.sarif_path, self._output.suffix)

        temp_path = _write_temp_json(document, directory=os.path.dirname(os.path.abspath(output_path)))
        if self._output.in_place and self._output.backup_ext:
            os.replace(target.sarif_path, f"{target.sarif_path}{self._output.backup_ext}")
        os.replace(temp_path, output_path)
        logger.info(f"Removed {removed} result(s) from {target.sarif_path}, written to {output_path}")
        return output_path


def _write_temp_json(document: dict[str, Any], directory: str) -> str:
    handle = tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False)
    try:
        with handle:
            json.dump(document, handle, ensure_ascii=False, indent=2)
    except BaseException:
        os.unlink(handle.name)
        raise
    return handle.name


def _snapshot_target(repo: RepositoryDescriptor) -> SnapshotTarget:
    if not isinstance(repo.target, SnapshotTarget):
        raise ValueError(f"Repository {repo.full_name} has no SARIF snapshot")
    return repo.target
