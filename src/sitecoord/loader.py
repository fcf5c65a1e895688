"""Turn raw task/trade records into validated model objects.

Records come from whatever the caller reads (JSON snapshot, database rows).
A bad record never aborts the load: it is left out and reported in the
``skipped`` list so the exclusion stays visible.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from sitecoord.exceptions import InvalidInputError, RecordError
from sitecoord.logger import get_logger
from sitecoord.models import SkippedRecord, Task, TaskSet, Trade
from sitecoord.schemas import DateValue, TaskRecord, TradeRecord

logger = get_logger()

_date_adapter: TypeAdapter[date | None] = TypeAdapter(DateValue)


def describe_errors(e: PydanticValidationError) -> str:
    """One line per failing field, e.g. ``planned_start: Input should be ...``."""
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def parse_date(value: Any, field_name: str = "date") -> date | None:
    """Accept a date, a datetime (date part only), an ISO string or None."""
    try:
        return _date_adapter.validate_python(value)
    except PydanticValidationError as e:
        raise RecordError(f"{field_name}: {describe_errors(e)}") from e


def _record_id(record: Any) -> str | None:
    if not isinstance(record, Mapping):
        return None
    raw = record.get("id")
    if raw is None:
        return None
    rid = str(raw).strip()
    return rid or None


def _require_list(records: Any, what: str) -> None:
    if records is None:
        raise InvalidInputError(f"{what} records are required")
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Iterable):
        raise InvalidInputError(f"{what} records must be a list, got {type(records).__name__}")


def parse_task(record: Mapping[str, Any]) -> Task:
    """Validate a single task record. Raises RecordError on bad input."""
    try:
        return TaskRecord.model_validate(record).to_task()
    except PydanticValidationError as e:
        raise RecordError(describe_errors(e)) from e


def parse_trade(record: Mapping[str, Any]) -> Trade:
    """Validate a single trade record. Raises RecordError on bad input."""
    try:
        return TradeRecord.model_validate(record).to_trade()
    except PydanticValidationError as e:
        raise RecordError(describe_errors(e)) from e


def load_task_set(records: Iterable[Mapping[str, Any]] | None) -> TaskSet:
    """Ingest task records, excluding (and counting) the ones that fail."""
    _require_list(records, "task")

    result = TaskSet()
    seen: set[str] = set()
    for index, record in enumerate(records):
        try:
            task = parse_task(record)
            if task.id in seen:
                raise RecordError(f"duplicate task id {task.id}")
        except RecordError as e:
            skipped = SkippedRecord(index=index, record_id=_record_id(record), reason=str(e))
            logger.warning("Skipping task record #%d (%s): %s", index, skipped.record_id, e)
            result.skipped.append(skipped)
            continue
        seen.add(task.id)
        result.tasks.append(task)

    logger.debug("Loaded %d task(s), skipped %d", len(result.tasks), result.skipped_count)
    return result


def load_trades(
    records: Iterable[Mapping[str, Any]] | None,
) -> tuple[dict[str, Trade], list[SkippedRecord]]:
    """Ingest trade records into an id -> Trade lookup."""
    _require_list(records, "trade")

    trades: dict[str, Trade] = {}
    skipped: list[SkippedRecord] = []
    for index, record in enumerate(records):
        try:
            trade = parse_trade(record)
            if trade.id in trades:
                raise RecordError(f"duplicate trade id {trade.id}")
        except RecordError as e:
            rid = _record_id(record)
            logger.warning("Skipping trade record #%d (%s): %s", index, rid, e)
            skipped.append(SkippedRecord(index=index, record_id=rid, reason=str(e)))
            continue
        trades[trade.id] = trade

    return trades, skipped
