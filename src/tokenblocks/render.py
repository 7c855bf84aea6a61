from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import IO

from rich import box
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from tokenblocks.aggregator import get_active_block
from tokenblocks.models import Block, DailyUsage, MonthlyUsage, Projection
from tokenblocks.monitor import MonitorState, Snapshot
from tokenblocks.projection import project

# reference scale for the usage bars when no token limit is set
_REFERENCE_TOKENS = 50_000
_BAR_WIDTH = 60


@dataclass(frozen=True)
class RenderConfig:
    color: "bool" = True
    # None lets rich detect the terminal width
    width: "int | None" = None
    token_limit: "int | None" = None


def make_console(config: "RenderConfig", file: "IO[str] | None" = None) -> "Console":
    return Console(
        file=file,
        width=config.width,
        no_color=not config.color,
        color_system="auto" if config.color else None,
        highlight=False,
        soft_wrap=False,
    )


def format_number(n: "int") -> "str":
    return f"{n:,}"


def format_currency(amount: "float") -> "str":
    return f"${amount:,.2f}"


def format_span(span: "timedelta") -> "str":
    minutes = max(int(span.total_seconds() // 60), 0)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _cost_style(cost: "float") -> "str":
    if cost > 1.0:
        return "red"
    if cost > 0.1:
        return "yellow"
    if cost > 0:
        return "green"
    return ""


def _limit_status(tokens: "int", limit: "int | None") -> "tuple[str, str]":
    """
    returns a (status, style) pair describing tokens against the
    configured limit.
    """
    if not limit:
        return ("TRACKING", "green")

    percent = tokens / limit * 100
    if percent > 100:
        return ("EXCEEDED", "red")
    if percent > 80:
        return ("HIGH", "red")
    if percent > 50:
        return ("MODERATE", "yellow")
    return ("NORMAL", "green")


def _block_duration(block: "Block", now: "datetime") -> "Text":
    if block.is_gap:
        hours = int(block.duration.total_seconds() // 3600)
        return Text(f"{hours}h gap", style="dim")

    if block.is_active:
        elapsed = format_span(now - block.start)
        remaining = format_span(block.end - now)
        return Text(f"{elapsed} / {remaining}", style="green")

    if block.actual_end is not None:
        return Text(format_span(block.actual_end - block.start))

    return Text(format_span(block.duration))


def _models_cell(models: "list[str]") -> "Text":
    if not models:
        return Text("-", style="dim")
    if len(models) > 2:
        return Text(f"{models[0]}, {models[1]}...")
    return Text(", ".join(models))


def blocks_table(
    blocks: "list[Block]",
    now: "datetime",
    config: "RenderConfig",
) -> "Table":
    """
    builds the block report table with a totals footer. Gap blocks
    are listed but not counted in the totals.
    """
    table = Table(
        title="Usage Blocks",
        title_style="bold",
        box=box.ROUNDED,
        show_footer=True,
    )
    table.add_column("Block Start", footer="TOTAL", style="white", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Duration", no_wrap=True)
    table.add_column("Requests", justify="right", no_wrap=True)
    table.add_column("Input", justify="right", style="dim", no_wrap=True)
    table.add_column("Output", justify="right", style="dim", no_wrap=True)
    table.add_column("Total Tokens", justify="right", style="bold", no_wrap=True)
    table.add_column("Cost (USD)", justify="right", no_wrap=True)
    table.add_column("Models", style="dim", no_wrap=True)

    total_requests = 0
    total_tokens = 0
    total_cost = 0.0

    for block in blocks:
        if block.is_active:
            status = Text("● Active", style="green")
        elif block.is_gap:
            status = Text("○ Gap", style="dim")
        else:
            status = Text("Complete")

        tokens = Text(format_number(block.total_tokens))
        if config.token_limit and block.total_tokens > config.token_limit:
            tokens = Text(f"{format_number(block.total_tokens)} ⚠", style="red")

        table.add_row(
            block.start.strftime("%Y-%m-%d %H:%M"),
            status,
            _block_duration(block, now),
            format_number(block.request_count),
            format_number(block.input_tokens),
            format_number(block.output_tokens),
            tokens,
            Text(format_currency(block.total_cost), style=_cost_style(block.total_cost)),
            _models_cell(block.models),
        )

        if not block.is_gap:
            total_requests += block.request_count
            total_tokens += block.total_tokens
            total_cost += block.total_cost

    table.columns[3].footer = format_number(total_requests)
    table.columns[6].footer = format_number(total_tokens)
    table.columns[7].footer = format_currency(total_cost)
    return table


def projection_summary(block: "Block", projection: "Projection") -> "Text":
    text = Text()
    text.append("Active Block Projection\n", style="bold")
    text.append(
        f"Current: {format_number(block.total_tokens)} tokens, "
        f"{format_currency(block.total_cost)}\n"
    )
    text.append(f"Projected {format_span(block.duration)} total: ")
    text.append(
        f"{format_number(projection.projected_tokens)} tokens, "
        f"{format_currency(projection.projected_cost)}\n",
        style="cyan",
    )
    text.append(f"Burn rate: {projection.burn_rate:.1f} tokens/min\n", style="dim")
    text.append(f"Time remaining: {format_span(projection.time_remaining)}", style="dim")
    if projection.projected_cost > 5.0:
        text.append("\n⚠ High cost projected for this block!", style="red")
    return text


def render_report(
    console: "Console",
    blocks: "list[Block]",
    now: "datetime",
    config: "RenderConfig",
) -> "None":
    """
    prints the one-shot block report, followed by the projection
    of the active block when there is one.
    """
    if not blocks:
        console.print("No blocks found", style="yellow")
        return

    console.print(blocks_table(blocks, now, config))

    active = get_active_block(blocks)
    if active is None:
        return

    projection = project(active, now=now)
    if projection is not None:
        console.print()
        console.print(projection_summary(active, projection))


def daily_table(days: "list[DailyUsage]") -> "Table":
    table = Table(
        title="Token Usage Report - Daily",
        title_style="bold",
        box=box.ROUNDED,
        show_footer=True,
    )
    table.add_column("Date", footer="TOTAL", style="white", no_wrap=True)
    table.add_column("Models", style="dim", no_wrap=True)
    table.add_column("Requests", justify="right", no_wrap=True)
    table.add_column("Input", justify="right", style="dim", no_wrap=True)
    table.add_column("Output", justify="right", style="dim", no_wrap=True)
    table.add_column("Total Tokens", justify="right", style="bold", no_wrap=True)
    table.add_column("Cost (USD)", justify="right", no_wrap=True)

    for day in days:
        table.add_row(
            day.date,
            _models_cell(day.models),
            format_number(day.request_count),
            format_number(day.input_tokens),
            format_number(day.output_tokens),
            format_number(day.total_tokens),
            Text(format_currency(day.total_cost), style=_cost_style(day.total_cost)),
        )

    table.columns[2].footer = format_number(sum(d.request_count for d in days))
    table.columns[3].footer = format_number(sum(d.input_tokens for d in days))
    table.columns[4].footer = format_number(sum(d.output_tokens for d in days))
    table.columns[5].footer = format_number(sum(d.total_tokens for d in days))
    table.columns[6].footer = format_currency(sum(d.total_cost for d in days))
    return table


def monthly_table(months: "list[MonthlyUsage]") -> "Table":
    table = Table(
        title="Token Usage Report - Monthly",
        title_style="bold",
        box=box.ROUNDED,
        show_footer=True,
    )
    table.add_column("Month", footer="TOTAL", style="white", no_wrap=True)
    table.add_column("Days Active", justify="right", no_wrap=True)
    table.add_column("Requests", justify="right", no_wrap=True)
    table.add_column("Input", justify="right", style="dim", no_wrap=True)
    table.add_column("Output", justify="right", style="dim", no_wrap=True)
    table.add_column("Total Tokens", justify="right", style="bold", no_wrap=True)
    table.add_column("Cost (USD)", justify="right", no_wrap=True)
    table.add_column("Models", style="dim", no_wrap=True)

    for month in months:
        table.add_row(
            month.month,
            str(month.active_days),
            format_number(month.request_count),
            format_number(month.input_tokens),
            format_number(month.output_tokens),
            format_number(month.total_tokens),
            Text(format_currency(month.total_cost), style=_cost_style(month.total_cost)),
            _models_cell(month.models),
        )

    table.columns[1].footer = str(sum(m.active_days for m in months))
    table.columns[2].footer = format_number(sum(m.request_count for m in months))
    table.columns[3].footer = format_number(sum(m.input_tokens for m in months))
    table.columns[4].footer = format_number(sum(m.output_tokens for m in months))
    table.columns[5].footer = format_number(sum(m.total_tokens for m in months))
    table.columns[6].footer = format_currency(sum(m.total_cost for m in months))
    return table


def render_periods(
    console: "Console",
    periods: "list[DailyUsage] | list[MonthlyUsage]",
) -> "None":
    """
    prints the daily or monthly report, picked by the kind of
    periods given.
    """
    if not periods:
        console.print("No usage data found", style="yellow")
        return

    if isinstance(periods[0], MonthlyUsage):
        console.print(monthly_table(periods))
    else:
        console.print(daily_table(periods))


def _bar(fraction: "float", style: "str") -> "ProgressBar":
    fraction = max(0.0, min(1.0, fraction))
    return ProgressBar(
        total=100,
        completed=fraction * 100,
        width=_BAR_WIDTH,
        complete_style=style,
        finished_style=style,
    )


def _session_section(block: "Block", now: "datetime") -> "Group":
    elapsed = now - block.start
    progress = elapsed.total_seconds() / block.duration.total_seconds()
    header = Text.assemble(
        ("SESSION  ", "bold"),
        (f"{progress * 100:.1f}%", "bold"),
    )
    details = Text.assemble(
        "Started: ",
        (block.start.strftime("%H:%M:%S"), "cyan"),
        f"  Elapsed: {format_span(elapsed)}",
        f"  Remaining: {format_span(block.end - now)} ",
        (f"(ends {block.end.strftime('%H:%M:%S')})", "dim"),
    )
    return Group(header, details, _bar(progress, "green"))


def _usage_section(
    block: "Block",
    projection: "Projection | None",
    config: "RenderConfig",
) -> "Group":
    status, style = _limit_status(block.total_tokens, config.token_limit)
    scale = config.token_limit or _REFERENCE_TOKENS
    burn_rate = projection.burn_rate if projection else 0.0

    header = Text("USAGE  ", style="bold")
    if config.token_limit:
        header.append(
            f"{block.total_tokens / config.token_limit * 100:.1f}% "
            f"({format_number(block.total_tokens)}/{format_number(config.token_limit)})",
            style="bold",
        )
    else:
        header.append(f"{format_number(block.total_tokens)} tokens", style="bold")

    details = Text.assemble(
        f"Tokens: {format_number(block.total_tokens)} (Burn Rate: ",
        (f"{burn_rate:.0f}", "yellow"),
        " token/min ",
        (status, style),
        ")  Cost: ",
        (format_currency(block.total_cost), _cost_style(block.total_cost)),
    )
    return Group(header, details, _bar(block.total_tokens / scale, style))


def _projection_section(
    projection: "Projection",
    config: "RenderConfig",
) -> "Group":
    status, style = _limit_status(projection.projected_tokens, config.token_limit)
    # projections get twice the headroom of current usage
    scale = config.token_limit or _REFERENCE_TOKENS * 2

    header = Text.assemble(
        ("PROJECTION  ", "bold"),
        (f"{format_number(projection.projected_tokens)} tokens", "bold"),
    )
    details = Text.assemble(
        "Status: ",
        (status, style),
        f"  Tokens: {format_number(projection.projected_tokens)}  Cost: ",
        (format_currency(projection.projected_cost), _cost_style(projection.projected_cost)),
    )
    return Group(header, details, _bar(projection.projected_tokens / scale, style))


def dashboard(
    snapshot: "Snapshot",
    config: "RenderConfig",
    refresh_interval: "int" = 1,
) -> "RenderableType":
    """
    builds the live dashboard for one snapshot: a waiting panel
    when no block is active, otherwise session progress, usage,
    projection and models.
    """
    footer = Text(
        f"Refreshing every {refresh_interval}s  •  Press Ctrl+C to stop",
        style="dim",
        justify="center",
    )
    title = "[bold]LIVE TOKEN USAGE MONITOR[/bold]"

    if snapshot.state is MonitorState.WAITING or snapshot.active_block is None:
        body = Group(
            Text("WAITING FOR ACTIVITY...", style="bold yellow", justify="center"),
            Text(
                "No active billing block found. New usage will show up here.",
                style="dim",
                justify="center",
            ),
            Text(
                f"Updated: {snapshot.now.strftime('%Y-%m-%d %H:%M:%S')}",
                style="dim",
                justify="center",
            ),
            Text(),
            footer,
        )
        return Panel(body, title=title, box=box.SQUARE, width=config.width)

    block = snapshot.active_block
    sections: "list[RenderableType]" = [
        _session_section(block, snapshot.now),
        Text(),
        _usage_section(block, snapshot.projection, config),
    ]
    if snapshot.projection is not None:
        sections.extend([Text(), _projection_section(snapshot.projection, config)])
    if block.models:
        sections.extend([Text(), Text(f"Models: {', '.join(block.models)}", style="bold")])
    sections.extend([Text(), footer])

    return Panel(Group(*sections), title=title, box=box.SQUARE, width=config.width)
