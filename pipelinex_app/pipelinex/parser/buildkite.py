"""Buildkite pipeline parser."""

from __future__ import annotations

import logging
import re
from typing import Any

from pipelinex.graph.dag import CyclicDagError, DagError, PipelineDag
from pipelinex.graph.models import CacheConfig, JobNode, MatrixStrategy, StepInfo, WorkflowTrigger
from pipelinex.parser.common import PipelineParseError, as_str_dict, as_str_list, load_yaml
from pipelinex.parser.durations import estimate_command_duration

logger = logging.getLogger(__name__)

PROVIDER = "buildkite"
PLUGIN_STEP_SECS = 20.0
PLACEHOLDER_STEP_SECS = 45.0

_ID_RE = re.compile(r"[^a-z0-9_-]+")


def sanitize_id(value: str) -> str:
    return _ID_RE.sub("-", value.strip().lower()).strip("-")


def _is_barrier(step: Any) -> bool:
    if isinstance(step, str):
        return step.lower() in ("wait", "block")
    return isinstance(step, dict) and ("wait" in step or "block" in step)


def _agents(value: Any) -> str | None:
    if isinstance(value, str):
        return f"buildkite:{value}"
    if isinstance(value, dict):
        for field in ("queue", "role"):
            if value.get(field):
                return f"buildkite:{value[field]}"
    return None


def _depends_on(value: Any) -> list[str]:
    items = value if isinstance(value, list) else [value] if value else []
    deps: list[str] = []
    for item in items:
        if isinstance(item, str):
            deps.append(sanitize_id(item))
        elif isinstance(item, dict) and item.get("step"):
            deps.append(sanitize_id(str(item["step"])))
    return deps


def _plugin_steps(plugins: Any) -> list[StepInfo]:
    entries: list[tuple[str, Any]] = []
    if isinstance(plugins, list):
        for plugin in plugins:
            if isinstance(plugin, str):
                entries.append((plugin, None))
            elif isinstance(plugin, dict):
                entries.extend(plugin.items())
    elif isinstance(plugins, dict):
        entries.extend(plugins.items())
    return [
        StepInfo(
            name=f"plugin {ref}",
            uses=str(ref),
            estimated_duration_secs=PLUGIN_STEP_SECS,
            with_args=as_str_dict(config),
        )
        for ref, config in entries
    ]


def parse_step(step: dict, index: int) -> tuple[JobNode, list[str], list[str]]:
    """Return the job, its raw depends_on references and its aliases."""
    label = str(step.get("label") or step.get("name") or step.get("command") or "step")
    key = str(step.get("key") or step.get("id") or f"step-{index + 1}")
    job_id = sanitize_id(key)

    steps = [
        StepInfo(name="command", run=cmd, estimated_duration_secs=estimate_command_duration(cmd))
        for cmd in as_str_list(step.get("commands") or step.get("command"))
    ]
    steps.extend(_plugin_steps(step.get("plugins")))
    if not steps:
        steps.append(
            StepInfo(name="step", run="buildkite step", estimated_duration_secs=PLACEHOLDER_STEP_SECS)
        )

    caches = [
        CacheConfig(path=s.with_args.get("path", ""), key_pattern=s.with_args.get("key", ""))
        for s in steps
        if s.uses and "cache" in s.uses.lower()
    ]

    matrix = None
    parallelism = step.get("parallelism")
    if isinstance(parallelism, int) and parallelism > 1:
        matrix = MatrixStrategy(
            variables={"BUILDKITE_PARALLEL_JOB": [str(i) for i in range(parallelism)]},
            total_combinations=parallelism,
        )

    condition = step.get("if")
    job = JobNode(
        id=job_id,
        name=label,
        steps=steps,
        runs_on=_agents(step.get("agents")) or "buildkite:agent",
        caches=caches,
        matrix=matrix,
        condition=str(condition) if condition else None,
        env=as_str_dict(step.get("env")),
        artifact_paths=as_str_list(step.get("artifact_paths")),
    )
    aliases = [a for a in (job_id, key, sanitize_id(label)) if a]
    return job, _depends_on(step.get("depends_on")), aliases


def parse(content: str, source_file: str = "") -> PipelineDag:
    """Parse a Buildkite pipeline.yml into a PipelineDag.

    Steps after a `wait` or `block` barrier depend on every earlier step
    unless they declare `depends_on`.
    """
    doc = load_yaml(content, source_file)
    if not isinstance(doc, dict) or not isinstance(doc.get("steps"), list):
        raise PipelineParseError("No 'steps' section found in Buildkite pipeline")

    dag = PipelineDag(
        name=str(doc.get("name") or "Buildkite Pipeline"),
        source_file=source_file,
        provider=PROVIDER,
    )
    dag.env = as_str_dict(doc.get("env"))
    dag.triggers = [WorkflowTrigger(event="push")]

    aliases: dict[str, str] = {}
    raw_needs: dict[str, list[str]] = {}
    prior: list[str] = []
    barrier: list[str] = []

    try:
        for index, step in enumerate(doc["steps"]):
            if _is_barrier(step):
                barrier = list(prior)
                continue
            if not isinstance(step, dict):
                continue
            if "trigger" in step or "group" in step:
                logger.debug("Skipping non-command Buildkite step %d", index)
                continue
            job, depends_on, names = parse_step(step, index)
            dag.add_job(job)
            raw_needs[job.id] = depends_on or list(barrier)
            for name in names:
                aliases.setdefault(name, job.id)
            prior.append(job.id)

        for job_id, deps in raw_needs.items():
            job = dag.get_job(job_id)
            assert job is not None
            for dep in deps:
                dep_id = dep if dep in dag else aliases.get(dep)
                if dep_id is None or dep_id == job_id or dep_id in job.needs:
                    continue
                dag.add_dependency(dep_id, job_id)
                job.needs.append(dep_id)
        dag.validate()
    except CyclicDagError:
        raise
    except DagError as e:
        raise PipelineParseError(str(e)) from e

    logger.debug("Parsed %d Buildkite steps from %s", dag.job_count, source_file)
    return dag
