from dataclasses import dataclass, field
from datetime import datetime, timedelta


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """
    UsageRecord represents a single usage event
    reported by a record source.
    """

    timestamp: "datetime"
    model: "str"
    prompt_tokens: "int"
    completion_tokens: "int"
    total_tokens: "int"
    cost: "float" = 0.0
    session_id: "str" = ""
    request_id: "str" = ""
    # number of API requests behind this record, bucketed
    # sources report more than one
    request_count: "int" = 1


@dataclass(slots=True)
class TokenUsage:
    """
    TokenUsage holds the per-model token breakdown of a block.
    """

    prompt_tokens: "int" = 0
    completion_tokens: "int" = 0
    total_tokens: "int" = 0

    def add(self, record: "UsageRecord") -> "None":
        self.prompt_tokens += record.prompt_tokens
        self.completion_tokens += record.completion_tokens
        self.total_tokens += record.total_tokens

    def merge(self, other: "TokenUsage") -> "None":
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens

    def to_dict(self) -> "dict[str, int]":
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


def _accumulate(totals: "Block | DailyUsage", record: "UsageRecord") -> "None":
    totals.request_count += record.request_count
    totals.total_tokens += record.total_tokens
    totals.total_cost += record.cost
    totals.input_tokens += record.prompt_tokens
    totals.output_tokens += record.completion_tokens

    if record.model not in totals.model_usage:
        totals.model_usage[record.model] = TokenUsage()
        totals.model_costs[record.model] = 0.0
        totals.models.append(record.model)

    totals.model_usage[record.model].add(record)
    totals.model_costs[record.model] += record.cost


@dataclass(slots=True)
class Block:
    """
    Block represents one fixed-duration billing window covering
    the half-open interval [start, end).

    Blocks are built from scratch on every aggregation. Gap blocks
    are synthesized to cover silent periods and always carry zero
    totals.
    """

    start: "datetime"
    end: "datetime"
    # timestamp of the latest record folded into the block,
    # equal to end for gap blocks
    actual_end: "datetime | None" = None
    is_active: "bool" = False
    is_gap: "bool" = False

    request_count: "int" = 0
    total_tokens: "int" = 0
    total_cost: "float" = 0.0
    input_tokens: "int" = 0
    output_tokens: "int" = 0

    model_usage: "dict[str, TokenUsage]" = field(default_factory=dict)
    model_costs: "dict[str, float]" = field(default_factory=dict)
    # display order, models in the order they were first seen
    models: "list[str]" = field(default_factory=list)

    @property
    def duration(self) -> "timedelta":
        return self.end - self.start

    def add(self, record: "UsageRecord") -> "None":
        """
        folds a record into the running totals of the block.
        """
        _accumulate(self, record)

        if self.actual_end is None or record.timestamp > self.actual_end:
            self.actual_end = record.timestamp

    def contains(self, moment: "datetime") -> "bool":
        return self.start <= moment < self.end

    def to_dict(self) -> "dict[str, object]":
        """
        maps the block to its JSON representation. actual_end_time
        is left out when the block has no records.
        """
        data: "dict[str, object]" = {
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
        }
        if self.actual_end is not None:
            data["actual_end_time"] = self.actual_end.isoformat()

        data.update(
            {
                "is_active": self.is_active,
                "is_gap": self.is_gap,
                "request_count": self.request_count,
                "total_tokens": self.total_tokens,
                "total_cost": self.total_cost,
                "model_usage": {
                    model: usage.to_dict() for model, usage in self.model_usage.items()
                },
                "model_costs": dict(self.model_costs),
                "models": list(self.models),
                "input_tokens": self.input_tokens,
                "output_tokens": self.output_tokens,
            }
        )
        return data


@dataclass(frozen=True, slots=True)
class Projection:
    """
    Projection is a linear estimate of where the active block
    will end up if the current burn rate holds.
    """

    projected_tokens: "int"
    projected_cost: "float"
    # tokens per minute
    burn_rate: "float"
    time_remaining: "timedelta"

    def to_dict(self) -> "dict[str, object]":
        return {
            "projected_tokens": self.projected_tokens,
            "projected_cost": self.projected_cost,
            "burn_rate": self.burn_rate,
            "time_remaining": self.time_remaining.total_seconds(),
        }


@dataclass(slots=True)
class DailyUsage:
    """
    DailyUsage holds the totals of one local calendar day.
    """

    # YYYY-MM-DD
    date: "str"
    request_count: "int" = 0
    total_tokens: "int" = 0
    total_cost: "float" = 0.0
    input_tokens: "int" = 0
    output_tokens: "int" = 0
    model_usage: "dict[str, TokenUsage]" = field(default_factory=dict)
    model_costs: "dict[str, float]" = field(default_factory=dict)
    models: "list[str]" = field(default_factory=list)

    def add(self, record: "UsageRecord") -> "None":
        _accumulate(self, record)

    def to_dict(self) -> "dict[str, object]":
        return {
            "date": self.date,
            "total_cost": self.total_cost,
            "total_tokens": self.total_tokens,
            "request_count": self.request_count,
            "model_usage": {
                model: usage.to_dict() for model, usage in self.model_usage.items()
            },
            "model_costs": dict(self.model_costs),
            "models": list(self.models),
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }


@dataclass(slots=True)
class MonthlyUsage:
    """
    MonthlyUsage rolls up the active days of one calendar month.
    Days without records are not listed in daily_breakdown.
    """

    # YYYY-MM
    month: "str"
    request_count: "int" = 0
    total_tokens: "int" = 0
    total_cost: "float" = 0.0
    input_tokens: "int" = 0
    output_tokens: "int" = 0
    model_usage: "dict[str, TokenUsage]" = field(default_factory=dict)
    model_costs: "dict[str, float]" = field(default_factory=dict)
    models: "list[str]" = field(default_factory=list)
    daily_breakdown: "list[DailyUsage]" = field(default_factory=list)

    @property
    def active_days(self) -> "int":
        return len(self.daily_breakdown)

    def add_day(self, day: "DailyUsage") -> "None":
        self.request_count += day.request_count
        self.total_tokens += day.total_tokens
        self.total_cost += day.total_cost
        self.input_tokens += day.input_tokens
        self.output_tokens += day.output_tokens

        for model in day.models:
            usage = day.model_usage[model]
            if model not in self.model_usage:
                self.model_usage[model] = TokenUsage()
                self.model_costs[model] = 0.0
                self.models.append(model)

            self.model_usage[model].merge(usage)
            self.model_costs[model] += day.model_costs[model]

        self.daily_breakdown.append(day)

    def to_dict(self) -> "dict[str, object]":
        return {
            "month": self.month,
            "total_cost": self.total_cost,
            "total_tokens": self.total_tokens,
            "request_count": self.request_count,
            "active_days": self.active_days,
            "daily_breakdown": [day.to_dict() for day in self.daily_breakdown],
            "model_usage": {
                model: usage.to_dict() for model, usage in self.model_usage.items()
            },
            "model_costs": dict(self.model_costs),
            "models": list(self.models),
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }
