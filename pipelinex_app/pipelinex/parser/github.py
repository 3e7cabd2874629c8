"""GitHub Actions workflow parser."""

from __future__ import annotations

import logging
from typing import Any

from pipelinex.graph.dag import CyclicDagError, DagError, PipelineDag
from pipelinex.graph.models import (
    JobNode,
    MatrixStrategy,
    StepInfo,
    WorkflowTrigger,
)
from pipelinex.parser.common import PipelineParseError, as_str_dict, as_str_list, load_yaml
from pipelinex.parser.durations import estimate_step_duration

logger = logging.getLogger(__name__)

PROVIDER = "github-actions"


def _workflow_on(doc: dict) -> Any:
    # YAML 1.1 loaders turn a bare `on` key into True
    if "on" in doc:
        return doc["on"]
    return doc.get(True)


def parse_triggers(on: Any) -> list[WorkflowTrigger]:
    if isinstance(on, str):
        return [WorkflowTrigger(event=on)]
    if isinstance(on, list):
        return [WorkflowTrigger(event=str(e)) for e in on if isinstance(e, str)]
    if not isinstance(on, dict):
        return []

    triggers: list[WorkflowTrigger] = []
    for event, config in on.items():
        config = config if isinstance(config, dict) else {}
        triggers.append(
            WorkflowTrigger(
                event=str(event),
                branches=as_str_list(config["branches"]) if "branches" in config else None,
                paths=as_str_list(config["paths"]) if "paths" in config else None,
                paths_ignore=(
                    as_str_list(config["paths-ignore"]) if "paths-ignore" in config else None
                ),
            )
        )
    return triggers


def parse_matrix(strategy: Any) -> MatrixStrategy | None:
    if not isinstance(strategy, dict) or not isinstance(strategy.get("matrix"), dict):
        return None
    variables: dict[str, list[str]] = {}
    total = 1
    for key, value in strategy["matrix"].items():
        if key in ("include", "exclude") or not isinstance(value, list):
            continue
        values = [str(v).lower() if isinstance(v, bool) else str(v) for v in value
                  if isinstance(v, (str, int, float, bool))]
        variables[str(key)] = values
        total *= len(values)
    return MatrixStrategy(variables=variables, total_combinations=total)


def parse_permissions(value: Any) -> dict[str, str] | None:
    """Normalise a `permissions:` value; None when the key is absent."""
    if value is None:
        return None
    if isinstance(value, str):
        if value in ("read-all", "write-all"):
            return {"all": value.split("-")[0]}
        return {"all": value}
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    return {}


def parse_step(step: Any, index: int) -> StepInfo:
    if not isinstance(step, dict):
        return StepInfo(name=f"step {index + 1}", estimated_duration_secs=estimate_step_duration(None, None))
    uses = str(step["uses"]) if step.get("uses") is not None else None
    run = str(step["run"]) if step.get("run") is not None else None
    name = step.get("name") or uses or (run or "").strip().split("\n")[0][:50]
    return StepInfo(
        name=str(name or f"step {index + 1}"),
        uses=uses,
        run=run,
        estimated_duration_secs=estimate_step_duration(uses, run),
        with_args=as_str_dict(step.get("with")),
    )


def parse_job(job_id: str, config: dict) -> JobNode:
    steps = [parse_step(s, i) for i, s in enumerate(config.get("steps") or [])]
    runs_on = config.get("runs-on")
    if isinstance(runs_on, list):
        runs_on = ",".join(str(r) for r in runs_on)
    elif isinstance(runs_on, dict):
        runs_on = str(runs_on.get("group") or runs_on.get("labels") or "ubuntu-latest")

    artifact_paths: list[str] = []
    for step in steps:
        if (step.uses or "").startswith("actions/upload-artifact"):
            paths = step.with_args.get("path", "")
            artifact_paths.extend(p.strip() for p in paths.splitlines() if p.strip())

    condition = config.get("if")
    outputs = config.get("outputs")
    return JobNode(
        id=job_id,
        name=str(config.get("name") or job_id),
        steps=steps,
        needs=as_str_list(config.get("needs")),
        runs_on=str(runs_on) if runs_on else "ubuntu-latest",
        matrix=parse_matrix(config.get("strategy")),
        condition=str(condition) if condition is not None else None,
        env=as_str_dict(config.get("env")),
        outputs=[str(k) for k in outputs] if isinstance(outputs, dict) else [],
        artifact_paths=artifact_paths,
        permissions=parse_permissions(config.get("permissions")),
    )


def parse(content: str, source_file: str = "") -> PipelineDag:
    """Parse a GitHub Actions workflow into a PipelineDag."""
    doc = load_yaml(content, source_file)
    if not isinstance(doc, dict):
        raise PipelineParseError("GitHub Actions workflow must be a YAML mapping")

    jobs = doc.get("jobs")
    if not isinstance(jobs, dict):
        raise PipelineParseError("No 'jobs' section found in workflow")

    dag = PipelineDag(
        name=str(doc.get("name") or "Unnamed Workflow"),
        source_file=source_file,
        provider=PROVIDER,
    )
    dag.triggers = parse_triggers(_workflow_on(doc))
    dag.env = as_str_dict(doc.get("env"))
    concurrency = doc.get("concurrency")
    if isinstance(concurrency, dict):
        concurrency = concurrency.get("group")
    dag.concurrency = str(concurrency) if concurrency else None
    dag.permissions = parse_permissions(doc.get("permissions"))

    try:
        for job_id, config in jobs.items():
            dag.add_job(parse_job(str(job_id), config if isinstance(config, dict) else {}))
        for job in dag.jobs():
            for dep in job.needs:
                dag.add_dependency(dep, job.id)
        dag.validate()
    except CyclicDagError:
        raise
    except DagError as e:
        raise PipelineParseError(str(e)) from e

    logger.debug("Parsed %d GitHub Actions jobs from %s", dag.job_count, source_file)
    return dag
