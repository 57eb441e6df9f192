"""Cron scheduling for the periodic sweeps.

The scheduler pool owns *when* a sweep runs; the sweep pools own *how*. A
tick only enqueues the sweep job on its queue, with a job id derived from the
schedule name and the minute it fired, so several scheduler processes (or a
restart within the same minute) never queue the same sweep twice.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from arq.cron import CronJob, cron

from sitebrain.jobs.queues import QueueName, Task
from sitebrain.main.config import Settings, get_settings
from sitebrain.main.logging import get_logger

logger = get_logger(__name__)

# (arq keyword, lowest value, highest value)
_CRON_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 7),
)


@dataclass(frozen=True)
class CronSchedule:
    name: str
    expression: str
    queue_name: QueueName
    function_name: Task

    def job_id_for(self, fired_at: datetime) -> str:
        return f"{self.name}:{fired_at.strftime('%Y-%m-%dT%H:%M')}"


def _parse_field(field: str, low: int, high: int) -> set[int] | None:
    if field == "*":
        return None

    values: set[int] = set()
    for part in field.split(","):
        step = 1
        if "/" in part:
            part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Invalid cron step: {step_str}")

        if part == "*":
            start, end = low, high
        elif "-" in part:
            start_str, end_str = part.split("-", 1)
            start, end = int(start_str), int(end_str)
        else:
            start = end = int(part)

        if start < low or end > high or start > end:
            raise ValueError(f"Cron value {part} out of range {low}-{high}")

        values.update(range(start, end + 1, step))

    return values


def _to_arq_weekdays(values: set[int]) -> set[int]:
    # cron counts from Sunday (0 or 7), arq from Monday
    return {(value - 1) % 7 for value in values}


def parse_cron_expression(expression: str) -> dict[str, Any]:
    """Translate a five-field cron expression into ``arq.cron`` kwargs.

    Supports ``*``, single values, comma lists, ranges and ``*/n`` steps.
    Fields left as ``*`` are omitted so arq treats them as "every".

    Examples:
        "0 2 * * *"   -> {"minute": 0, "hour": 2}
        "*/15 * * * 1-5" -> {"minute": {0, 15, 30, 45}, "weekday": {0, 1, 2, 3, 4}}

    Raises:
        ValueError: if the expression is malformed.
    """
    fields = expression.split()
    if len(fields) != len(_CRON_FIELDS):
        raise ValueError(
            f"Cron expression must have {len(_CRON_FIELDS)} fields: {expression!r}"
        )

    kwargs: dict[str, Any] = {}
    for field, (name, low, high) in zip(fields, _CRON_FIELDS):
        try:
            values = _parse_field(field, low, high)
        except ValueError as e:
            raise ValueError(f"Invalid {name} field in {expression!r}: {e}") from e

        if values is None:
            continue

        if name == "weekday":
            values = _to_arq_weekdays(values)

        kwargs[name] = next(iter(values)) if len(values) == 1 else values

    return kwargs


class Scheduler:
    """Registry of cron schedules, exposed to arq as ``cron_jobs``.

    ``enqueue`` is the coroutine that puts a job on a queue; it receives the
    arq ``ctx`` so the worker container can be used.
    """

    def __init__(self, enqueue: Callable | None = None):
        self._schedules: dict[str, CronSchedule] = {}
        self._enqueue = enqueue or _enqueue_with_container

    @property
    def schedules(self) -> list[CronSchedule]:
        return list(self._schedules.values())

    def register(self, schedule: CronSchedule) -> None:
        # Validate eagerly so a bad expression fails at start-up, not at tick time
        parse_cron_expression(schedule.expression)

        if schedule.name in self._schedules:
            logger.info(
                "Replacing existing schedule",
                extra={"schedule": schedule.name, "cron": schedule.expression},
            )
        self._schedules[schedule.name] = schedule

    def _make_tick(self, schedule: CronSchedule):
        async def tick(ctx: dict):
            fired_at = datetime.now(timezone.utc).replace(second=0, microsecond=0)
            job_id = schedule.job_id_for(fired_at)
            queued = await self._enqueue(ctx, schedule, job_id)

            logger.info(
                "Scheduled sweep enqueued" if queued else "Scheduled sweep already queued",
                extra={"schedule": schedule.name, "queue": schedule.queue_name.value, "job_id": job_id},
            )
            return job_id if queued else None

        tick.__qualname__ = f"tick_{schedule.name}"
        return tick

    def cron_jobs(self) -> list[CronJob]:
        return [
            cron(
                self._make_tick(schedule),
                name=f"cron:{schedule.name}",
                run_at_startup=False,
                **parse_cron_expression(schedule.expression),
            )
            for schedule in self._schedules.values()
        ]


async def _enqueue_with_container(ctx: dict, schedule: CronSchedule, job_id: str) -> bool:
    job_manager = ctx["container"].job_manager()
    queued_id = await job_manager.enqueue(
        schedule.queue_name, schedule.function_name, job_id=job_id
    )
    return queued_id is not None


def default_schedules(settings: Settings | None = None) -> list[CronSchedule]:
    settings = settings or get_settings()

    return [
        CronSchedule(
            name=QueueName.SCHEDULED_RESCRAPE.value,
            expression=settings.rescrape_cron,
            queue_name=QueueName.SCHEDULED_RESCRAPE,
            function_name=Task.CHECK_SCHEDULED_RESCRAPES,
        ),
        CronSchedule(
            name=QueueName.SCHEDULED_DELETION_CHECK.value,
            expression=settings.deletion_check_cron,
            queue_name=QueueName.SCHEDULED_DELETION_CHECK,
            function_name=Task.CHECK_SCHEDULED_DELETIONS,
        ),
    ]


def build_scheduler(settings: Settings | None = None) -> Scheduler:
    scheduler = Scheduler()
    for schedule in default_schedules(settings):
        scheduler.register(schedule)
    return scheduler
