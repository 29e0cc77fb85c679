"""perftrack command-line interface.

Every command works through one ``PerformanceEngine`` built from the loaded
configuration and stored on the click context.
"""

import json
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import configure_logging, load_config
from ..domain import TaskStatus, parse_event
from ..services.engine import PerformanceEngine, TaskNotRegisteredError, build_engine
from ..services.metrics import AggregatedMetrics
from ..utils.validation import InvalidInputError

_console = None

METRIC_LABELS = [
    ('tasks_assigned', "Tasks assigned", ""),
    ('tasks_completed', "Tasks completed", ""),
    ('completion_rate', "Completion rate", "%"),
    ('average_completion_days', "Avg completion (working days)", ""),
    ('on_time_deliveries', "On-time deliveries", ""),
    ('on_time_percentage', "On-time percentage", "%"),
    ('delayed_deliveries', "Delayed deliveries", ""),
    ('average_delay_days', "Avg delay (working days)", ""),
    ('max_delay_days', "Max delay (working days)", ""),
    ('early_deliveries', "Early deliveries", ""),
    ('early_delivery_percentage', "Early delivery percentage", "%"),
    ('tasks_completed_this_month', "Completed this month", ""),
    ('quality_score', "Quality score", ""),
]

RATING_STYLES = {
    'excellent': "bold green",
    'good': "green",
    'average': "yellow",
    'needs_improvement': "red",
    'poor': "bold red",
}

STATUS_CHOICES = [s.value for s in TaskStatus]

format_option = click.option(
    "--format", "-f", "output_format",
    type=click.Choice(['table', 'json']),
    default='table',
    help="Output format",
)


def get_console() -> Console:
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_engine() -> PerformanceEngine:
    return click.get_current_context().obj['engine']


def _abort(message: str) -> None:
    get_console().print(f"[red]❌ {escape(message)}[/red]")
    sys.exit(1)


def _print_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _metrics_table(metrics: AggregatedMetrics, title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold blue")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    values = metrics.to_dict()
    for key, label, unit in METRIC_LABELS:
        table.add_row(label, f"{values[key]}{unit}")
    return table


@click.group()
@click.option("--config", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, config, verbose):
    """perftrack - Business-day performance tracking for task teams."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    # An engine supplied by the caller takes precedence over configuration
    if 'engine' in ctx.obj:
        return

    try:
        settings = load_config(Path(config) if config else None)
        configure_logging("DEBUG" if verbose else settings.log_level)
        ctx.obj['config'] = settings
        ctx.obj['engine'] = build_engine(settings)
    except Exception as e:
        get_console().print(f"[red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(1)


@main.command("task-created")
@click.argument("task_id")
@click.option("--project", "-p", required=True, help="Project the task belongs to")
@click.option("--created", "created_at", required=True, help="Creation timestamp (ISO 8601)")
@click.option("--due", "due_date", required=True, help="Due date (YYYY-MM-DD)")
def task_created(task_id, project, created_at, due_date):
    """Register a task so later status changes can be measured."""
    try:
        task = get_engine().register_task(task_id, project, created_at, due_date)
    except InvalidInputError as e:
        _abort(str(e))

    get_console().print(
        f"[green]✅ Registered task {task.task_id} ({task.project}), due {task.due_date.isoformat()}[/green]"
    )


@main.command()
@click.argument("user")
@click.argument("task_id")
@click.argument("new_status", type=click.Choice(STATUS_CHOICES, case_sensitive=False))
@click.option("--project", "-p", help="Project the task belongs to")
@click.option("--at", "timestamp", help="When the change happened (ISO 8601, default now)")
def status(user, task_id, new_status, project, timestamp):
    """Record a status change of TASK_ID made by USER."""
    engine = get_engine()
    task = engine.repository.get_task(task_id)
    if task is None:
        _abort(str(TaskNotRegisteredError(task_id)))

    payload = {
        'type': 'TaskStatusChanged',
        'user_id': user,
        'task_id': task_id,
        'project_id': project or task.project,
        'new_status': new_status,
        'timestamp': timestamp,
    }
    try:
        record = engine.handle(parse_event(payload))
    except (InvalidInputError, TaskNotRegisteredError) as e:
        _abort(str(e))

    console = get_console()
    console.print(f"[green]✅ {user} moved {task_id} to {record.current_status.value}[/green]")
    if record.is_completed:
        punctuality = "on time" if record.is_on_time else "late"
        console.print(f"   Completed in {record.completion_time} working days ({punctuality})")


@main.command("due-date")
@click.argument("task_id")
@click.argument("new_due_date")
def due_date(task_id, new_due_date):
    """Change the due date of TASK_ID and recompute punctuality."""
    try:
        records = get_engine().update_due_date(task_id, new_due_date)
    except InvalidInputError as e:
        _abort(str(e))

    get_console().print(f"[green]✅ Due date of {task_id} set to {new_due_date}; {len(records)} record(s) updated[/green]")


@main.command("delete-task")
@click.argument("task_id")
@click.confirmation_option(prompt="Delete the task and all of its performance records?")
def delete_task(task_id):
    """Delete TASK_ID and its performance records."""
    deleted = get_engine().delete_task(task_id)
    get_console().print(f"[green]✅ Deleted task {task_id} ({deleted} record(s))[/green]")


@main.command()
@click.argument("source", type=click.File('r'), default='-')
def ingest(source):
    """Apply task events from SOURCE, one JSON object per line."""
    engine = get_engine()
    console = get_console()
    applied = 0

    for line_number, line in enumerate(source, 1):
        line = line.strip()
        if not line:
            continue
        try:
            engine.handle(parse_event(json.loads(line)))
        except json.JSONDecodeError as e:
            _abort(f"Line {line_number}: invalid JSON ({e})")
        except (InvalidInputError, TaskNotRegisteredError) as e:
            _abort(f"Line {line_number}: {e}")
        applied += 1

    console.print(f"[green]✅ Applied {applied} event(s)[/green]")


@main.command()
@click.argument("user")
@click.option("--days", "-d", "period_days", type=int, help="Evaluation period in days")
@format_option
def metrics(user, period_days, output_format):
    """Show aggregated performance metrics for USER."""
    engine = get_engine()
    try:
        result = engine.get_metrics(user, period_days)
    except InvalidInputError as e:
        _abort(str(e))

    if output_format == 'json':
        _print_json(result.to_dict())
        return

    days = period_days if period_days is not None else engine.config.default_period_days
    get_console().print(_metrics_table(result, f"📊 {user} - last {days} days"))


@main.command()
@click.argument("user")
@click.option("--days", "-d", "period_days", type=int, help="Evaluation period in days")
@format_option
def evaluate(user, period_days, output_format):
    """Run the automated evaluation for USER."""
    try:
        result = get_engine().get_evaluation(user, period_days)
    except InvalidInputError as e:
        _abort(str(e))

    if output_format == 'json':
        _print_json(result.to_dict())
        return

    console = get_console()
    evaluation = result.evaluation
    style = RATING_STYLES[evaluation.rating.value]
    console.print(_metrics_table(result.metrics, f"📊 {user} - last {result.period_days} days"))
    console.print(f"\nTrend: [bold]{result.trend.value}[/bold]")
    console.print(f"Score: [{style}]{evaluation.score}/100 ({evaluation.rating.value})[/{style}]")
    for line in evaluation.feedback:
        console.print(f"  • {line}")


@main.command()
@click.argument("user")
@click.option("--month", "-m", type=int, help="Month (1-12), default current")
@click.option("--year", "-y", type=int, help="Year, default current")
@click.option("--recent", "-r", "recent", type=int, help="Show the N most recent months instead")
@format_option
def report(user, month, year, recent, output_format):
    """Monthly performance report for USER."""
    engine = get_engine()
    today = engine.clock()
    try:
        if recent is not None:
            reports = engine.get_recent_reports(user, recent)
        else:
            reports = [engine.get_monthly_report(user, month or today.month, year or today.year)]
    except InvalidInputError as e:
        _abort(str(e))

    if output_format == 'json':
        _print_json([r.to_dict() for r in reports])
        return

    console = get_console()
    for monthly in reports:
        console.print(_metrics_table(monthly.metrics, f"📅 {monthly.month_name} {monthly.year}"))


@main.command()
@click.argument("user")
@format_option
def predict(user, output_format):
    """Forecast completion times and task load for USER."""
    result = get_engine().get_predictions(user)

    if output_format == 'json':
        _print_json(result.to_dict())
        return

    console = get_console()
    if not result.sufficient_data:
        console.print(
            f"[yellow]Insufficient data to make predictions: {result.current_tasks} of "
            f"{result.minimum_tasks_required} completed tasks[/yellow]"
        )
        return

    summary = result.summary
    console.print(f"Average completion: {summary.average_completion_time} working days")
    console.print(f"On-time percentage: {summary.on_time_percentage}%")
    console.print(f"Productivity trend: {summary.productivity_trend:+}%")

    table = Table(title="🔮 Predictions", show_header=True, header_style="bold blue")
    table.add_column("Period", style="cyan")
    table.add_column("Est. days", justify="right")
    table.add_column("On-time %", justify="right")
    table.add_column("Task load", justify="right")
    table.add_column("Confidence", justify="right")
    for prediction in result.predictions:
        table.add_row(
            prediction.period,
            str(prediction.estimated_completion_time),
            str(prediction.expected_on_time_rate),
            str(prediction.recommended_task_load),
            f"{prediction.confidence_level}%",
        )
    console.print(table)

    for strength in result.strengths:
        console.print(f"[green]  + {strength}[/green]")
    for improvement in result.improvements:
        console.print(f"[yellow]  - {improvement}[/yellow]")


@main.command()
@click.argument("user")
@click.option("--days", "-d", "period_days", type=int, help="Period in days")
@format_option
def breakdown(user, period_days, output_format):
    """Per-project breakdown of USER's tasks."""
    try:
        projects = get_engine().get_project_breakdown(user, period_days)
    except InvalidInputError as e:
        _abort(str(e))

    if output_format == 'json':
        _print_json([p.to_dict() for p in projects])
        return

    if not projects:
        get_console().print("[dim]No tasks found[/dim]")
        return

    table = Table(title=f"📁 {user} by project", show_header=True, header_style="bold blue")
    table.add_column("Project", style="cyan")
    table.add_column("Tasks", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Avg days", justify="right")
    for item in projects:
        table.add_row(item.project, str(item.tasks), str(item.completed_tasks), str(item.average_time))
    get_console().print(table)


@main.command()
@click.argument("users", nargs=-1, required=True)
@click.option("--days", "-d", "period_days", type=int, help="Evaluation period in days")
@format_option
def team(users, period_days, output_format):
    """Rank USERS by evaluation score."""
    try:
        overview = get_engine().get_team_overview(users, period_days)
    except InvalidInputError as e:
        _abort(str(e))

    if output_format == 'json':
        _print_json([entry.to_dict() for entry in overview])
        return

    table = Table(title="👥 Team overview", show_header=True, header_style="bold blue")
    table.add_column("User", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Rating")
    table.add_column("Completion %", justify="right")
    table.add_column("On-time %", justify="right")
    table.add_column("Trend")
    for entry in overview:
        rating = entry.evaluation.rating.value
        table.add_row(
            entry.user,
            str(entry.evaluation.score),
            f"[{RATING_STYLES[rating]}]{rating}[/{RATING_STYLES[rating]}]",
            str(entry.metrics.completion_rate),
            str(entry.metrics.on_time_percentage),
            entry.trend.value,
        )
    get_console().print(table)


@main.command()
@click.option("--user", "-u", help="Only repair records of this user")
@format_option
def repair(user, output_format):
    """Find and repair inconsistent completion data."""
    result = get_engine().repair(user)

    if output_format == 'json':
        _print_json(result.to_dict())
        return

    console = get_console()
    console.print(f"Records scanned: {result.total_records}")
    console.print(f"Punctuality repaired: {result.repaired_punctuality}")
    console.print(f"Completion time repaired: {result.repaired_completion_time}")
    console.print(f"Data integrity: {result.integrity_percentage}%")
