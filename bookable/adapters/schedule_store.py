"""
YAML-file persistence for published schedules.

File layout::

    schedules:
      alice:
        timezone: America/New_York
        windows:
          - {weekday: monday, start: "09:00", end: "17:00"}
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..domain.exceptions import (
    ExternalSourceUnavailable,
    InvalidTimezone,
    InvalidWindow,
    ScheduleError,
)
from ..domain.models import Schedule, Weekday, WeeklyWindow

logger = logging.getLogger(__name__)


class WindowRecord(BaseModel):
    """Serialized form of one weekly window."""
    weekday: str
    start: str
    end: str

    @field_validator("weekday", mode="before")
    @classmethod
    def weekday_as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return Weekday(value).name.lower() if 0 <= value <= 6 else str(value)
        return value

    @field_validator("start", "end", mode="before")
    @classmethod
    def time_as_text(cls, value: Any) -> Any:
        """Unquoted ``17:00`` is read by YAML 1.1 as the sexagesimal int 1020."""
        if isinstance(value, int) and not isinstance(value, bool):
            hours, minutes = divmod(value, 60)
            return f"{hours:02d}:{minutes:02d}"
        return value

    def to_domain(self) -> WeeklyWindow:
        return WeeklyWindow.build(self.weekday, self.start, self.end)

    @classmethod
    def from_domain(cls, window: WeeklyWindow) -> "WindowRecord":
        return cls(
            weekday=window.weekday.name.lower(),
            start=str(window.start),
            end=str(window.end),
        )


class ScheduleRecord(BaseModel):
    """Serialized form of one owner's schedule."""
    timezone: str
    windows: List[WindowRecord] = Field(default_factory=list)

    def to_domain(self, owner_id: str) -> Schedule:
        """Validate into a domain Schedule (raises InvalidTimezone / InvalidWindow)."""
        return Schedule.create(
            owner_id=owner_id,
            timezone=self.timezone,
            windows=[record.to_domain() for record in self.windows],
        )

    @classmethod
    def from_domain(cls, schedule: Schedule) -> "ScheduleRecord":
        return cls(
            timezone=schedule.timezone,
            windows=[WindowRecord.from_domain(window) for window in schedule.windows],
        )


def _schedule_error(entry: Any, exc: ValidationError) -> ScheduleError:
    """Translate a rejected stored entry into the matching schedule error."""
    fields = entry if isinstance(entry, dict) else {}
    first = exc.errors()[0]
    location = first["loc"]

    if location and location[0] == "timezone":
        return InvalidTimezone(fields.get("timezone"))

    where = ".".join(str(part) for part in location) or "entry"
    window = fields.get("windows", entry)
    if len(location) > 1 and isinstance(window, list) and isinstance(location[1], int):
        window = window[location[1]]
    return InvalidWindow(window, f"{where}: {first['msg']}")


class ScheduleStore:
    """
    Reads and writes schedules keyed by owner id.

    Saving replaces an owner's schedule wholesale; windows are never merged.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def get_schedule(self, owner_id: str) -> Optional[Schedule]:
        """
        Load and validate one owner's schedule.

        Returns:
            The schedule, or None if the owner has not published one

        Raises:
            ExternalSourceUnavailable: If the file cannot be read or parsed
            InvalidTimezone: If the entry has no valid timezone
            InvalidWindow: If a stored window is missing fields or malformed
        """
        raw = self._read()
        entry = raw.get(owner_id)
        if entry is None:
            logger.debug("No schedule stored for owner %s", owner_id)
            return None

        try:
            record = ScheduleRecord.model_validate(entry)
        except ValidationError as exc:
            raise _schedule_error(entry, exc) from exc

        return record.to_domain(owner_id)

    def save_schedule(self, schedule: Schedule) -> None:
        """Replace the owner's stored schedule with ``schedule``."""
        raw = self._read()
        raw[schedule.owner_id] = ScheduleRecord.from_domain(schedule).model_dump()
        self._write(raw)
        logger.info(
            "Saved schedule for %s (%d windows, %s)",
            schedule.owner_id,
            len(schedule.windows),
            schedule.timezone,
        )

    def delete_schedule(self, owner_id: str) -> bool:
        """Remove an owner's schedule. Returns False if none was stored."""
        raw = self._read()
        if owner_id not in raw:
            return False
        del raw[owner_id]
        self._write(raw)
        return True

    def owner_ids(self) -> List[str]:
        return sorted(self._read())

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as file_handle:
                data = yaml.safe_load(file_handle) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ExternalSourceUnavailable(
                "Schedule store", f"cannot read {self.path}: {exc}"
            ) from exc

        schedules = (data.get("schedules") or {}) if isinstance(data, dict) else None
        if not isinstance(schedules, dict):
            raise ExternalSourceUnavailable(
                "Schedule store", f"{self.path} must map 'schedules' to owner entries"
            )
        return {str(owner_id): entry for owner_id, entry in schedules.items()}

    def _write(self, schedules: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = yaml.safe_dump({"schedules": schedules}, sort_keys=True)

        # Write to a sibling temp file first so readers never see half a file
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_handle:
                file_handle.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise ExternalSourceUnavailable(
                "Schedule store", f"cannot write {self.path}: {exc}"
            ) from exc
