"""GitLab CI parser."""

from __future__ import annotations

import logging
from typing import Any

from pipelinex.graph.dag import CyclicDagError, DagError, PipelineDag
from pipelinex.graph.models import (
    CacheConfig,
    JobNode,
    MatrixStrategy,
    StepInfo,
    WorkflowTrigger,
)
from pipelinex.parser.common import PipelineParseError, as_str_dict, as_str_list, load_yaml
from pipelinex.parser.durations import estimate_command_duration

logger = logging.getLogger(__name__)

PROVIDER = "gitlab-ci"

RESERVED_KEYWORDS = {
    "image", "services", "stages", "before_script", "after_script",
    "variables", "cache", "default", "include", "workflow",
}
DEFAULT_STAGES = ["build", "test", "deploy"]
DEFAULT_STAGE = "test"


def _image_name(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and value.get("name"):
        return str(value["name"])
    return None


def _parse_cache(value: Any) -> list[CacheConfig]:
    entries = value if isinstance(value, list) else [value]
    caches: list[CacheConfig] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        key = entry.get("key", "")
        if isinstance(key, dict):
            key = ",".join(as_str_list(key.get("files")))
        caches.append(
            CacheConfig(
                path=",".join(as_str_list(entry.get("paths"))),
                key_pattern=str(key),
            )
        )
    return caches


def _parse_needs(value: Any) -> list[str]:
    needs: list[str] = []
    for item in value if isinstance(value, list) else []:
        if isinstance(item, str):
            needs.append(item)
        elif isinstance(item, dict) and item.get("job"):
            needs.append(str(item["job"]))
    return needs


def _script_steps(config: dict) -> list[StepInfo]:
    steps: list[StepInfo] = []
    for section in ("before_script", "script", "after_script"):
        for i, cmd in enumerate(as_str_list(config.get(section))):
            steps.append(
                StepInfo(
                    name=f"{section}[{i}]",
                    run=cmd,
                    estimated_duration_secs=estimate_command_duration(cmd),
                )
            )
    return steps


def parse_job(
    job_id: str,
    config: dict,
    default_image: str | None,
    global_cache: list[CacheConfig],
    global_before: list[str],
) -> JobNode:
    if "before_script" not in config and global_before:
        config = {**config, "before_script": global_before}

    caches = _parse_cache(config["cache"]) if "cache" in config else list(global_cache)

    conditions = [
        str(rule["if"]) for rule in config.get("rules") or []
        if isinstance(rule, dict) and rule.get("if")
    ]

    matrix = None
    parallel = config.get("parallel")
    if isinstance(parallel, int) and parallel > 1:
        matrix = MatrixStrategy(
            variables={"CI_NODE_INDEX": [str(i) for i in range(1, parallel + 1)]},
            total_combinations=parallel,
        )
    elif isinstance(parallel, dict) and isinstance(parallel.get("matrix"), list):
        total = 0
        variables: dict[str, list[str]] = {}
        for entry in parallel["matrix"]:
            if not isinstance(entry, dict):
                continue
            combos = 1
            for key, values in entry.items():
                values = as_str_list(values)
                variables.setdefault(str(key), []).extend(values)
                combos *= max(len(values), 1)
            total += combos
        matrix = MatrixStrategy(variables=variables, total_combinations=max(total, 1))

    artifacts = config.get("artifacts")
    artifact_paths = as_str_list(artifacts.get("paths")) if isinstance(artifacts, dict) else []

    return JobNode(
        id=job_id,
        name=job_id,
        steps=_script_steps(config),
        needs=_parse_needs(config.get("needs")),
        runs_on=_image_name(config.get("image")) or default_image or "docker",
        caches=caches,
        matrix=matrix,
        condition=" || ".join(conditions) or None,
        env=as_str_dict(config.get("variables")),
        artifact_paths=artifact_paths,
        consumes_artifacts_from=as_str_list(config.get("dependencies")),
    )


def parse_triggers(doc: dict) -> list[WorkflowTrigger]:
    triggers: list[WorkflowTrigger] = []
    workflow = doc.get("workflow")
    if isinstance(workflow, dict):
        for rule in workflow.get("rules") or []:
            if isinstance(rule, dict):
                triggers.append(WorkflowTrigger(event=str(rule.get("if") or "push")))
    return triggers or [WorkflowTrigger(event="push")]


def parse(content: str, source_file: str = "") -> PipelineDag:
    """Parse a .gitlab-ci.yml into a PipelineDag.

    Jobs without `needs` depend on every job of the previous stage.
    """
    doc = load_yaml(content, source_file)
    if not isinstance(doc, dict):
        raise PipelineParseError("GitLab CI config must be a YAML mapping")

    dag = PipelineDag(name=source_file or "GitLab CI", source_file=source_file, provider=PROVIDER)
    dag.env = as_str_dict(doc.get("variables"))
    dag.triggers = parse_triggers(doc)

    stages = as_str_list(doc.get("stages")) or list(DEFAULT_STAGES)
    default = doc.get("default") if isinstance(doc.get("default"), dict) else {}
    default_image = _image_name(default.get("image")) or _image_name(doc.get("image"))
    global_cache_value = default.get("cache", doc.get("cache"))
    global_cache = _parse_cache(global_cache_value) if global_cache_value else []
    global_before = as_str_list(default.get("before_script", doc.get("before_script")))

    jobs_by_stage: dict[str, list[str]] = {}
    raw: dict[str, dict] = {}
    try:
        for key, config in doc.items():
            key = str(key)
            if key in RESERVED_KEYWORDS or key.startswith(".") or not isinstance(config, dict):
                continue
            if "script" not in config and "trigger" not in config and "extends" not in config:
                continue
            dag.add_job(parse_job(key, config, default_image, global_cache, global_before))
            stage = str(config.get("stage") or DEFAULT_STAGE)
            jobs_by_stage.setdefault(stage, []).append(key)
            raw[key] = config

        for job_id, config in raw.items():
            if "needs" in config:
                for dep in _parse_needs(config["needs"]):
                    if dep in dag:
                        dag.add_dependency(dep, job_id)
                    else:
                        logger.warning("Job '%s' needs unknown job '%s'", job_id, dep)
                continue
            stage = str(config.get("stage") or DEFAULT_STAGE)
            if stage in stages and stages.index(stage) > 0:
                for prev in jobs_by_stage.get(stages[stages.index(stage) - 1], []):
                    dag.add_dependency(prev, job_id)
        dag.validate()
    except CyclicDagError:
        raise
    except DagError as e:
        raise PipelineParseError(str(e)) from e

    logger.debug("Parsed %d GitLab CI jobs from %s", dag.job_count, source_file)
    return dag
