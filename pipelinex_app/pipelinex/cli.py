"""Command-line interface for PipelineX."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click

from pipelinex.analyzer.engine import analyze
from pipelinex.analyzer.models import AnalysisReport, Severity, format_duration
from pipelinex.config import AnalyzerSettings, load_options, load_settings
from pipelinex.cost import estimate_costs
from pipelinex.explainer.engine import ExplainEngine, format_explanations
from pipelinex.explainer.models import PipelineContext
from pipelinex.graph.dag import CyclicDagError, PipelineDag
from pipelinex.linter import LintReport, lint
from pipelinex.llm.openai_compat import OpenAICompatBackend
from pipelinex.parser import (
    PipelineParseError,
    detect_provider,
    discover_pipeline_files,
    parse_file,
)
from pipelinex.redact import redact_report
from pipelinex.signing import (
    SignedReport,
    SigningError,
    canonical_payload,
    generate_keypair,
    sign_report,
    verify_report,
)
from pipelinex.sizing.models import RunnerSizingReport
from pipelinex.sizing.profiler import profile_pipeline
from pipelinex.sizing.rules import default_sizing_rules, load_sizing_rules

logger = logging.getLogger(__name__)

SEVERITY_COLORS = {
    Severity.critical: "red",
    Severity.high: "red",
    Severity.medium: "yellow",
    Severity.low: "blue",
    Severity.info: "cyan",
}


def _load_dag(path: Path, provider: str | None = None) -> PipelineDag:
    try:
        return parse_file(path, provider)
    except CyclicDagError as e:
        raise click.ClickException(f"{path}: {e}") from e
    except PipelineParseError as e:
        raise click.ClickException(str(e)) from e


def _pipeline_files(paths: tuple[Path, ...]) -> list[Path]:
    """Expand directories into the CI config files they contain."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            found = discover_pipeline_files(path)
            if not found:
                raise click.ClickException(f"No CI configuration files found under {path}")
            files.extend(found)
        else:
            files.append(path)
    return files


def render_report(report: AnalysisReport) -> str:
    """Human-readable rendering of an analysis report."""
    lines = [
        click.style(f"Pipeline: {report.pipeline_name}", bold=True)
        + f" ({report.provider}, {report.source_file or '<string>'})",
        f"Jobs: {report.job_count}  Steps: {report.step_count}  "
        f"Max parallelism: {report.max_parallelism}",
        f"Critical path ({format_duration(report.critical_path_duration_secs)}): "
        + (" -> ".join(report.critical_path) or "-"),
        f"Optimized estimate: {format_duration(report.optimized_duration_secs)} "
        f"({report.potential_improvement_pct():.0f}% faster)",
    ]
    if report.health_score is not None:
        lines.append(
            f"Health: {report.health_score.total_score:.0f}/100 "
            f"({report.health_score.grade.value})"
        )
    lines.append("")
    for i, f in enumerate(report.findings, start=1):
        tag = click.style(
            f"{f.severity.symbol} {f.severity.value.upper()}",
            fg=SEVERITY_COLORS[f.severity],
        )
        lines.append(f"{i}. {tag} [{f.category.label}] {f.title}")
        lines.append(f"   {f.description}")
        if f.affected_jobs:
            lines.append(f"   Jobs: {', '.join(f.affected_jobs)}")
        if f.recommendation:
            lines.append(f"   Fix: {f.recommendation}")
        lines.append(f"   Savings: {f.savings_display()}  Confidence: {f.confidence:.0%}")
        if f.fix_command:
            lines.extend("     " + line for line in f.fix_command.splitlines())
        lines.append("")
    lines.append(report.summary)
    return "\n".join(lines)


def render_lint(report: LintReport) -> str:
    lines = [click.style(f"Lint: {report.source_file}", bold=True)]
    for f in report.findings:
        location = f" ({f.location})" if f.location else ""
        lines.append(f"  {f.severity.value.upper():7} {f.rule_id}{location}: {f.message}")
        if f.suggestion:
            lines.append(f"          {f.suggestion}")
    lines.append(
        f"{report.errors} error(s), {report.warnings} warning(s), {report.infos} info"
    )
    return "\n".join(lines)


def render_sizing(report: RunnerSizingReport) -> str:
    lines = [
        click.style(f"Runner sizing: {report.pipeline_name}", bold=True),
        f"{report.upsizing_jobs} upsize, {report.downsizing_jobs} downsize, "
        f"{report.unchanged_jobs} unchanged",
    ]
    for job in report.jobs:
        arrow = "->" if job.should_resize else "=="
        lines.append(
            f"  {job.job_id}: {job.current_class.value} {arrow} {job.recommended_class.value} "
            f"(cpu {job.cpu_pressure}, mem {job.memory_pressure}, io {job.io_pressure}, "
            f"confidence {job.confidence:.0%})"
        )
        for reason in job.rationale:
            lines.append(f"      - {reason}")
    return "\n".join(lines)


@click.group()
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """PipelineX: static CI/CD pipeline analysis."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    ctx.ensure_object(dict)
    options = load_options()
    ctx.obj["options"] = options
    ctx.obj["settings"] = load_settings(options)


@cli.command("analyze")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--provider", default=None, help="Force a provider instead of detecting it")
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text", show_default=True)
@click.option("--redact", is_flag=True, default=False, help="Strip secrets, paths and internal URLs")
@click.option("--security/--no-security", default=None, help="Include the security scan")
@click.pass_context
def analyze_cmd(
    ctx: click.Context,
    paths: tuple[Path, ...],
    provider: str | None,
    fmt: str,
    redact: bool,
    security: bool | None,
) -> None:
    """Analyze one or more pipeline files or directories."""
    settings: AnalyzerSettings = ctx.obj["settings"]
    if security is not None:
        settings = settings.model_copy(update={"include_security": security})

    reports = []
    for path in _pipeline_files(paths):
        report = analyze(_load_dag(path, provider), settings)
        reports.append(redact_report(report) if redact else report)

    if fmt == "json":
        payload = [r.model_dump(mode="json") for r in reports]
        click.echo(json.dumps(payload[0] if len(payload) == 1 else payload, indent=2))
        return
    click.echo("\n\n".join(render_report(r) for r in reports))


@cli.command("lint")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--provider", default=None)
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text", show_default=True)
@click.pass_context
def lint_cmd(ctx: click.Context, path: Path, provider: str | None, fmt: str) -> None:
    """Lint a pipeline file; exits 0 when clean, 1 on warnings, 2 on errors."""
    content = path.read_text()
    try:
        dag = parse_file(path, provider)
    except PipelineParseError as e:
        # still lint the raw text so syntax errors map to exit code 2
        logger.debug("Parse failed, linting raw text only: %s", e)
        dag = PipelineDag(path.name, str(path), provider or detect_provider(str(path), content) or "")
    except CyclicDagError as e:
        raise click.ClickException(f"{path}: {e}") from e
    report = lint(content, dag)
    if fmt == "json":
        click.echo(report.model_dump_json(indent=2))
    else:
        click.echo(render_lint(report))
    ctx.exit(report.exit_code())


@cli.command("cost")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--runs-per-month", default=500, show_default=True, type=click.IntRange(min=0))
@click.option("--runner", "runner_type", default=None, help="Runner label, defaults to the first job's")
@click.option("--hourly-rate", default=150.0, show_default=True, type=click.FloatRange(min=0))
@click.option("--team-size", default=10, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def cost_cmd(
    ctx: click.Context,
    path: Path,
    runs_per_month: int,
    runner_type: str | None,
    hourly_rate: float,
    team_size: int,
) -> None:
    """Estimate monthly compute and developer-wait cost for a pipeline."""
    dag = _load_dag(path)
    report = analyze(dag, ctx.obj["settings"])
    jobs = dag.jobs()
    runner = runner_type or (jobs[0].runs_on if jobs else "ubuntu-latest")
    estimate = estimate_costs(
        report.critical_path_duration_secs,
        report.optimized_duration_secs,
        runs_per_month,
        runner,
        hourly_rate,
        team_size,
    )
    click.echo(f"Runner: {runner}")
    click.echo(f"Compute cost per run:      ${estimate.compute_cost_per_run:.4f}")
    click.echo(f"Monthly compute cost:      ${estimate.monthly_compute_cost:.2f}")
    click.echo(f"Developer hours lost:      {estimate.monthly_developer_hours_lost:.1f} h/month")
    click.echo(f"Monthly opportunity cost:  ${estimate.monthly_opportunity_cost:.2f}")
    click.echo(f"Waste ratio:               {estimate.waste_ratio:.0%}")


@cli.command("right-size")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--rules", "rules_path", default=None, type=click.Path(exists=True, dir_okay=False))
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text", show_default=True)
@click.pass_context
def right_size_cmd(ctx: click.Context, path: Path, rules_path: str | None, fmt: str) -> None:
    """Recommend runner size classes for each job."""
    settings: AnalyzerSettings = ctx.obj["settings"]
    rules_path = rules_path or settings.runner_sizing_rules
    rules = load_sizing_rules(rules_path) if rules_path else default_sizing_rules()
    report = profile_pipeline(_load_dag(path), rules, settings.default_step_duration_secs)
    if fmt == "json":
        click.echo(report.model_dump_json(indent=2))
    else:
        click.echo(render_sizing(report))


@cli.command("explain")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--runs-per-month", default=500, show_default=True, type=click.IntRange(min=0))
@click.pass_context
def explain_cmd(ctx: click.Context, path: Path, runs_per_month: int) -> None:
    """Explain each finding in plain language (LLM when configured)."""
    options = ctx.obj["options"]
    dag = _load_dag(path)
    report = analyze(dag, ctx.obj["settings"])
    context = PipelineContext.from_dag(dag, runs_per_month)

    async def _run() -> str:
        backend = None
        if options.get("llm_api_url"):
            backend = OpenAICompatBackend(
                base_url=options["llm_api_url"],
                model=options.get("llm_model", "gpt-4o-mini"),
                api_key=options.get("llm_api_key", ""),
            )
        try:
            explanations = await ExplainEngine(backend).explain_all(report.findings, context)
        finally:
            if backend is not None:
                await backend.close()
        return format_explanations(explanations)

    click.echo(asyncio.run(_run()) or "No findings to explain.")


@cli.command("keygen")
@click.option("--private-key-file", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--public-key-file", type=click.Path(dir_okay=False, path_type=Path), default=None)
def keygen_cmd(private_key_file: Path | None, public_key_file: Path | None) -> None:
    """Generate an Ed25519 key pair for report signing."""
    private_hex, public_hex = generate_keypair()
    if private_key_file:
        private_key_file.write_text(private_hex + "\n")
        private_key_file.chmod(0o600)
        click.echo(f"Private key written to {private_key_file}")
    else:
        click.echo(f"Private key: {private_hex}")
    if public_key_file:
        public_key_file.write_text(public_hex + "\n")
        click.echo(f"Public key written to {public_key_file}")
    else:
        click.echo(f"Public key:  {public_hex}")


@cli.command("sign")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--key", "key_file", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--redact", is_flag=True, default=False)
@click.pass_context
def sign_cmd(
    ctx: click.Context,
    path: Path,
    key_file: Path,
    output: Path | None,
    redact: bool,
) -> None:
    """Analyze a pipeline and emit a signed report envelope."""
    report = analyze(_load_dag(path), ctx.obj["settings"])
    if redact:
        report = redact_report(report)
    try:
        signed = sign_report(canonical_payload(report), key_file.read_text().strip())
    except SigningError as e:
        raise click.ClickException(str(e)) from e

    envelope = signed.model_dump_json(indent=2)
    if output:
        output.write_text(envelope + "\n")
        click.echo(f"Signed report written to {output}")
    else:
        click.echo(envelope)


@cli.command("verify")
@click.argument("signed_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--public-key", required=True, help="Hex public key, or a file containing it")
@click.pass_context
def verify_cmd(ctx: click.Context, signed_file: Path, public_key: str) -> None:
    """Verify a signed report; exits 1 when the signature does not match."""
    key_path = Path(public_key)
    if key_path.is_file():
        public_key = key_path.read_text().strip()
    try:
        signed = SignedReport.model_validate_json(signed_file.read_text())
        valid = verify_report(signed, public_key)
    except (SigningError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    if valid:
        click.echo(click.style("Signature valid", fg="green"))
    else:
        click.echo(click.style("Signature INVALID", fg="red"))
        ctx.exit(1)


@cli.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8099, show_default=True, type=int)
def serve_cmd(host: str, port: int) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("pipelinex.main:app", host=host, port=port)


if __name__ == "__main__":
    cli()
