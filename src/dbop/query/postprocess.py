"""Row post-processing applied once to every fetched result set."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from dbop.core.types import PostProcessOptions

_UTC = ZoneInfo("UTC")


class RowPostProcessor:
    """Normalizes fetched rows according to a builder's PostProcessOptions.

    Naive datetimes coming back from the driver are taken to be UTC before
    conversion; plain dates are left alone.
    """

    def __init__(self, options: PostProcessOptions | None = None) -> None:
        self.options = options or PostProcessOptions()
        self._zone = ZoneInfo(self.options.timezone) if self.options.timezone else None

    def process(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if self.options.is_noop:
            return rows
        return [self.process_row(row) for row in rows]

    def process_row(self, row: dict[str, Any]) -> dict[str, Any]:
        separator = self.options.separator
        processed: dict[str, Any] = {}
        for key, value in row.items():
            if value is None and self.options.drop_nulls:
                continue
            if self._zone is not None and isinstance(value, datetime):
                value = self.to_local(value)
            if self.options.strip_prefix and key.startswith(separator):
                key = key[len(separator) :]
            processed[key] = value
        return processed

    def to_local(self, value: datetime) -> datetime:
        """Convert to the configured zone and drop the tzinfo."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=_UTC)
        return value.astimezone(self._zone).replace(tzinfo=None)
