"""Pipeline DAG backed by a networkx digraph.

Jobs live in an arena list and are addressed by their integer index in the
graph; the index also records declaration order, which every traversal uses
as its tie-break. Edges point from a dependency to its dependent.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator

import networkx as nx

from pipelinex.graph.models import JobNode, WorkflowTrigger

logger = logging.getLogger(__name__)


class DagError(ValueError):
    """Structural problem with a pipeline graph."""


class CyclicDagError(DagError):
    """Raised when the job graph contains a cycle."""

    def __init__(self, job_ids: list[str]) -> None:
        self.job_ids = job_ids
        super().__init__(f"Pipeline graph has a cycle through jobs: {job_ids}")


class PipelineDag:
    """Directed acyclic graph of jobs for a single pipeline file."""

    def __init__(
        self,
        name: str,
        source_file: str = "",
        provider: str = "github-actions",
    ) -> None:
        self.name = name
        self.source_file = source_file
        self.provider = provider
        self.triggers: list[WorkflowTrigger] = []
        self.env: dict[str, str] = {}
        self.concurrency: str | None = None
        self.permissions: dict[str, str] | None = None
        self._graph: nx.DiGraph = nx.DiGraph()
        self._jobs: list[JobNode] = []
        self._index: dict[str, int] = {}

    # -- construction --

    def add_job(self, job: JobNode) -> int:
        """Add a job and return its node index."""
        if job.id in self._index:
            raise DagError(f"Duplicate job id '{job.id}'")
        idx = len(self._jobs)
        self._jobs.append(job)
        self._index[job.id] = idx
        self._graph.add_node(idx)
        return idx

    def add_dependency(self, from_id: str, to_id: str) -> None:
        """Record that `to_id` depends on `from_id`."""
        for job_id in (from_id, to_id):
            if job_id not in self._index:
                raise DagError(
                    f"Unknown job '{job_id}' in dependency {from_id} -> {to_id}. "
                    f"Known jobs: {self.job_ids()}"
                )
        if from_id == to_id:
            raise DagError(f"Job '{from_id}' cannot depend on itself")
        self._graph.add_edge(self._index[from_id], self._index[to_id])

    # -- queries --

    def jobs(self) -> list[JobNode]:
        """All jobs in declaration order."""
        return list(self._jobs)

    def __iter__(self) -> Iterator[JobNode]:
        return iter(self._jobs)

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._index

    def get_job(self, job_id: str) -> JobNode | None:
        idx = self._index.get(job_id)
        return self._jobs[idx] if idx is not None else None

    def job_ids(self) -> list[str]:
        return [j.id for j in self._jobs]

    def declared_index(self, job_id: str) -> int:
        return self._index[job_id]

    def predecessors(self, job_id: str) -> list[JobNode]:
        """Direct dependencies of a job, in declaration order."""
        idx = self._index[job_id]
        return [self._jobs[p] for p in sorted(self._graph.predecessors(idx))]

    def successors(self, job_id: str) -> list[JobNode]:
        """Direct dependents of a job, in declaration order."""
        idx = self._index[job_id]
        return [self._jobs[s] for s in sorted(self._graph.successors(idx))]

    def edges(self) -> list[tuple[JobNode, JobNode]]:
        """All (dependency, dependent) pairs, ordered by declaration."""
        return [
            (self._jobs[u], self._jobs[v]) for u, v in sorted(self._graph.edges())
        ]

    def has_dependency(self, from_id: str, to_id: str) -> bool:
        if from_id not in self._index or to_id not in self._index:
            return False
        return self._graph.has_edge(self._index[from_id], self._index[to_id])

    def root_jobs(self) -> list[JobNode]:
        """Jobs with no dependencies."""
        return [
            self._jobs[n] for n in sorted(self._graph.nodes)
            if self._graph.in_degree(n) == 0
        ]

    def leaf_jobs(self) -> list[JobNode]:
        """Jobs nothing depends on."""
        return [
            self._jobs[n] for n in sorted(self._graph.nodes)
            if self._graph.out_degree(n) == 0
        ]

    @property
    def job_count(self) -> int:
        return len(self._jobs)

    @property
    def step_count(self) -> int:
        return sum(len(j.steps) for j in self._jobs)

    def job_duration(self, job_id: str, default_step_secs: float = 0.0) -> float:
        return self._jobs[self._index[job_id]].duration_secs(default_step_secs)

    def topological_order(self) -> list[JobNode]:
        """Jobs in dependency order, earliest-declared first among ready jobs.

        Raises CyclicDagError when the graph is not acyclic.
        """
        try:
            order = list(nx.lexicographical_topological_sort(self._graph))
        except nx.NetworkXUnfeasible:
            raise CyclicDagError(self._cycle_job_ids()) from None
        return [self._jobs[i] for i in order]

    def depth_levels(self) -> list[list[JobNode]]:
        """Group jobs by longest distance from a root job."""
        depth: dict[str, int] = {}
        for job in self.topological_order():
            preds = self.predecessors(job.id)
            depth[job.id] = max((depth[p.id] + 1 for p in preds), default=0)

        levels: list[list[JobNode]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
        for job in self._jobs:
            levels[depth[job.id]].append(job)
        return levels

    @property
    def max_parallelism(self) -> int:
        """Largest number of jobs sharing a topological depth."""
        if not self._jobs:
            return 0
        return max(len(level) for level in self.depth_levels())

    def validate(self) -> None:
        """Raise CyclicDagError unless the graph is acyclic."""
        if not nx.is_directed_acyclic_graph(self._graph):
            raise CyclicDagError(self._cycle_job_ids())

    def _cycle_job_ids(self) -> list[str]:
        try:
            cycle = nx.find_cycle(self._graph)
        except nx.NetworkXNoCycle:
            return []
        return [self._jobs[u].id for u, _ in cycle]

    def to_dict(self) -> dict[str, Any]:
        """Serialisable snapshot of the graph."""
        return {
            "name": self.name,
            "source_file": self.source_file,
            "provider": self.provider,
            "triggers": [t.model_dump() for t in self.triggers],
            "concurrency": self.concurrency,
            "jobs": [j.model_dump() for j in self._jobs],
            "edges": [[u.id, v.id] for u, v in self.edges()],
        }
