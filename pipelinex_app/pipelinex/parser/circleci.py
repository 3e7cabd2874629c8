"""CircleCI config parser."""

from __future__ import annotations

import logging
from typing import Any

from pipelinex.graph.dag import CyclicDagError, DagError, PipelineDag
from pipelinex.graph.models import JobNode, MatrixStrategy, StepInfo, WorkflowTrigger
from pipelinex.parser.common import PipelineParseError, as_str_dict, as_str_list, load_yaml
from pipelinex.parser.durations import estimate_command_duration

logger = logging.getLogger(__name__)

PROVIDER = "circleci"

# built-in step types and their duration guesses
BUILTIN_STEP_SECS = {
    "checkout": 12.0,
    "restore_cache": 10.0,
    "save_cache": 10.0,
    "persist_to_workspace": 15.0,
    "attach_workspace": 15.0,
    "store_artifacts": 15.0,
    "store_test_results": 5.0,
    "setup_remote_docker": 20.0,
}
ORB_STEP_SECS = 20.0


def _parse_step(step: Any, index: int) -> StepInfo:
    if isinstance(step, str):
        return StepInfo(
            name=step,
            uses=step,
            estimated_duration_secs=BUILTIN_STEP_SECS.get(step, ORB_STEP_SECS),
        )
    if not isinstance(step, dict) or not step:
        return StepInfo(name=f"step {index + 1}")

    kind, body = next(iter(step.items()))
    kind = str(kind)
    if kind == "run":
        if isinstance(body, str):
            command, name = body, body.strip().split("\n")[0][:50]
        else:
            body = body if isinstance(body, dict) else {}
            command = str(body.get("command", ""))
            name = str(body.get("name") or command.strip().split("\n")[0][:50])
        return StepInfo(
            name=name or f"step {index + 1}",
            run=command,
            estimated_duration_secs=estimate_command_duration(command),
        )

    args = as_str_dict(body)
    if kind == "persist_to_workspace" and isinstance(body, dict):
        args["paths"] = ",".join(as_str_list(body.get("paths")))
    return StepInfo(
        name=str(args.get("name") or kind),
        uses=kind,
        estimated_duration_secs=BUILTIN_STEP_SECS.get(kind, ORB_STEP_SECS),
        with_args=args,
    )


def _executor(job_def: dict) -> str:
    docker = job_def.get("docker")
    if isinstance(docker, list) and docker and isinstance(docker[0], dict) and docker[0].get("image"):
        runner = f"docker:{docker[0]['image']}"
    elif "machine" in job_def:
        machine = job_def["machine"]
        image = machine.get("image") if isinstance(machine, dict) else None
        runner = f"machine:{image or 'ubuntu'}"
    elif "macos" in job_def:
        runner = "macos"
    elif job_def.get("executor"):
        executor = job_def["executor"]
        runner = f"executor:{executor.get('name') if isinstance(executor, dict) else executor}"
    else:
        runner = "docker:cimg/base"
    if job_def.get("resource_class"):
        runner = f"{runner} resource_class={job_def['resource_class']}"
    return runner


def parse_job(job_id: str, job_def: dict) -> JobNode:
    steps = [_parse_step(s, i) for i, s in enumerate(job_def.get("steps") or [])]
    artifact_paths: list[str] = []
    for step in steps:
        if step.uses == "persist_to_workspace":
            artifact_paths.extend(p for p in step.with_args.get("paths", "").split(",") if p)

    matrix = None
    parallelism = job_def.get("parallelism")
    if isinstance(parallelism, int) and parallelism > 1:
        matrix = MatrixStrategy(
            variables={"CIRCLE_NODE_INDEX": [str(i) for i in range(parallelism)]},
            total_combinations=parallelism,
        )

    return JobNode(
        id=job_id,
        name=job_id,
        steps=steps,
        runs_on=_executor(job_def),
        matrix=matrix,
        env=as_str_dict(job_def.get("environment")),
        artifact_paths=artifact_paths,
    )


def _workflow_edges(workflow: Any) -> list[tuple[str, list[str]]]:
    edges: list[tuple[str, list[str]]] = []
    if not isinstance(workflow, dict):
        return edges
    for entry in workflow.get("jobs") or []:
        if isinstance(entry, str):
            edges.append((entry, []))
        elif isinstance(entry, dict) and entry:
            name, config = next(iter(entry.items()))
            requires = config.get("requires") if isinstance(config, dict) else None
            edges.append((str(name), as_str_list(requires)))
    return edges


def parse(content: str, source_file: str = "") -> PipelineDag:
    """Parse a .circleci/config.yml into a PipelineDag."""
    doc = load_yaml(content, source_file)
    if not isinstance(doc, dict) or not isinstance(doc.get("jobs"), dict):
        raise PipelineParseError("No jobs found in CircleCI config")

    dag = PipelineDag(name="CircleCI Pipeline", source_file=source_file, provider=PROVIDER)
    dag.triggers = [WorkflowTrigger(event="push")]

    try:
        for job_id, job_def in doc["jobs"].items():
            dag.add_job(parse_job(str(job_id), job_def if isinstance(job_def, dict) else {}))

        workflows = doc.get("workflows")
        if isinstance(workflows, dict):
            for workflow in workflows.values():
                for job_id, requires in _workflow_edges(workflow):
                    if job_id not in dag:
                        logger.debug("Workflow references external job '%s'", job_id)
                        continue
                    job = dag.get_job(job_id)
                    assert job is not None
                    for dep in requires:
                        if dep not in dag:
                            continue
                        dag.add_dependency(dep, job_id)
                        if dep not in job.needs:
                            job.needs.append(dep)
        dag.validate()
    except CyclicDagError:
        raise
    except DagError as e:
        raise PipelineParseError(str(e)) from e

    # attach_workspace reads whatever the required jobs persisted
    for job in dag.jobs():
        if any(s.uses == "attach_workspace" for s in job.steps):
            job.consumes_artifacts_from = list(job.needs)

    logger.debug("Parsed %d CircleCI jobs from %s", dag.job_count, source_file)
    return dag
