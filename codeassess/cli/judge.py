"""Command-line front end for the execution broker, grader and question generator."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

import anyio
import typer
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from codeassess.core.config import JudgeConfig, load_judge_config, read_yaml_file
from codeassess.core.languages import is_supported, starter_template, supported_languages
from codeassess.core.models import Question

from apps.authoring import QuestionGenerator
from apps.judge import ExecutionBroker, ExecutionResult, GradeReport, GradingEngine

ENV_REPO_ROOT = "CODEASSESS_REPO_ROOT"
EXIT_FAILED = 1
EXIT_INVALID = 2


def _resolve_repo_root() -> Path:
    override = os.environ.get(ENV_REPO_ROOT)
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).resolve().parents[2]


REPO_ROOT = _resolve_repo_root()
DEFAULT_CONFIG = REPO_ROOT / "config" / "judge.yaml"

app = typer.Typer(help="Run, grade and draft coding questions against the remote execution backend.")
console = Console()


class _State:
    config: JudgeConfig = JudgeConfig()


state = _State()


@app.callback()
def main(
    config: Path | None = typer.Option(
        None,
        "--config",
        show_default=False,
        help=f"Judge YAML config (defaults to {DEFAULT_CONFIG} when present).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    load_dotenv(REPO_ROOT / ".env")
    path = config or (DEFAULT_CONFIG if DEFAULT_CONFIG.exists() else None)
    if path is None:
        state.config = JudgeConfig()
        return
    try:
        state.config = load_judge_config(path, base_dir=REPO_ROOT)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Could not load config {path}: {exc}[/red]")
        raise typer.Exit(code=EXIT_INVALID) from exc


def _read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        console.print(f"[red]Cannot read {path}: {exc}[/red]")
        raise typer.Exit(code=EXIT_INVALID) from exc


def _load_question(path: Path) -> Question:
    try:
        data: Dict[str, Any] = read_yaml_file(path)
        return Question.model_validate(data)
    except (OSError, ValueError, yaml.YAMLError, ValidationError) as exc:
        console.print(f"[red]Invalid question file {path}: {exc}[/red]")
        raise typer.Exit(code=EXIT_INVALID) from exc


async def _execute(source: str, language: str, stdin: str | None) -> ExecutionResult:
    async with ExecutionBroker(config=state.config.executor) as broker:
        return await broker.execute(source, language, stdin=stdin)


async def _grade(question: Question, source: str, language: str) -> GradeReport:
    async with ExecutionBroker(config=state.config.executor) as broker:
        return await GradingEngine(broker).grade(source, language, question.test_cases)


@app.command()
def languages(as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table.")) -> None:
    """List the languages the execution backend accepts."""

    specs = supported_languages()
    if as_json:
        typer.echo(json.dumps([spec.model_dump() for spec in specs], indent=2))
        return
    table = Table("Language", "Backend", "Version")
    for spec in specs:
        table.add_row(spec.name, spec.backend_id, spec.backend_version)
    console.print(table)


@app.command()
def run(
    source: Path = typer.Argument(..., help="Source file to execute."),
    language: str = typer.Option(..., "--language", "-l", help="Language name, e.g. python or c++."),
    stdin: str | None = typer.Option(None, "--stdin", help="Text passed to the program on stdin."),
    as_json: bool = typer.Option(False, "--json", help="Emit the raw result as JSON."),
) -> None:
    """Execute one source file and print its output."""

    if not is_supported(language):
        console.print(f"[red]Unsupported language: {language}[/red]")
        raise typer.Exit(code=EXIT_INVALID)
    result = anyio.run(_execute, _read_source(source), language, stdin)
    if as_json:
        typer.echo(json.dumps(result.as_dict(), indent=2))
    else:
        if result.degraded:
            console.print(f"[yellow]{result.error}[/yellow]")
        typer.echo(result.display_output)
        if result.stderr:
            console.print(f"[red]{result.stderr}[/red]")
        console.print(
            f"[dim]{result.language} {result.version or ''} exit={result.exit_code} in {result.duration_ms}ms[/dim]"
        )
    if result.degraded:
        raise typer.Exit(code=EXIT_FAILED)


@app.command()
def grade(
    source: Path = typer.Argument(..., help="Candidate solution file."),
    question: Path = typer.Option(..., "--question", "-q", help="Question YAML with test_cases."),
    language: str | None = typer.Option(None, "--language", "-l", help="Override the question's language."),
    as_json: bool = typer.Option(False, "--json", help="Emit the grade report as JSON."),
) -> None:
    """Grade a solution against every test case of a question."""

    parsed = _load_question(question)
    chosen = language or parsed.language
    if not is_supported(chosen):
        console.print(f"[red]Unsupported language: {chosen}[/red]")
        raise typer.Exit(code=EXIT_INVALID)
    report = anyio.run(_grade, parsed, _read_source(source), chosen)
    if as_json:
        typer.echo(json.dumps(report.as_dict(), indent=2))
    else:
        table = Table("#", "Input", "Expected", "Actual", "Result")
        for case in report.cases:
            table.add_row(
                str(case.index + 1),
                case.input,
                case.expected,
                case.actual,
                "[green]pass[/green]" if case.passed else "[red]fail[/red]",
            )
        if report.cases:
            console.print(table)
        colour = "green" if report.is_correct else "red"
        console.print(f"[{colour}]{report.output}[/{colour}] score={report.score}")
    if not report.is_correct:
        raise typer.Exit(code=EXIT_FAILED)


@app.command()
def generate(
    difficulty: str = typer.Option("medium", "--difficulty", "-d", help="easy, medium or hard."),
    language: str = typer.Option("JavaScript", "--language", "-l", help="Target language for the starter code."),
    reference: str = typer.Option("LeetCode", "--reference", "-r", help="Problem style to imitate."),
    as_json: bool = typer.Option(False, "--json", help="Emit the question as JSON."),
) -> None:
    """Draft a new question with the configured model (or a template)."""

    async def _generate():
        generator = QuestionGenerator(config=state.config.generator)
        try:
            return await generator.generate(difficulty, language, reference)
        finally:
            await generator.aclose()

    question = anyio.run(_generate)
    if as_json:
        typer.echo(json.dumps(question.as_payload(), indent=2, ensure_ascii=False))
        return
    console.print(f"[bold]{question.title}[/bold] [dim]({question.source})[/dim]")
    console.print(question.description)
    console.print("\n[bold]Starter code[/bold]")
    typer.echo(question.starter_code or starter_template(language))
    table = Table("Input", "Expected output")
    for case in question.test_cases:
        table.add_row(case.input, case.expected_output)
    console.print(table)


if __name__ == "__main__":  # pragma: no cover
    app()
