"""Type validation and coercion of row data against a table's schema.

Validation mutates the caller's dict in place (trimming strings, turning
numeric strings into numbers and date strings into date/datetime objects)
and stops at the first bad field. Keys that are not columns of the table
are left alone.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta
from typing import Any

from dbop.core.types import BaseType, ColumnDescriptor, TableDescriptor
from dbop.exceptions import ValidationError

# Values the database evaluates itself
NOW_SENTINELS = frozenset({"now()", "NOW()"})

MAX_YEAR = 2100


def is_now_sentinel(value: Any) -> bool:
    return isinstance(value, str) and value in NOW_SENTINELS


def _to_number(value: Any) -> int | float | None:
    """Coerce to int (or float when fractional); None when not a number."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value) if value.is_integer() else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return _to_number(number)
    return None


def _part(field_name: str, label: str, raw: str, low: int, high: int) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        value = None
    if value is None or value < low or value > high:
        raise ValidationError.for_field(field_name, f"invalid {label}={raw}")
    return value


def parse_date(field_name: str, raw: str) -> date:
    """Parse ``yyyy-mm-dd``.

    The day is only bounded to 0-31, not to the month's length; days past the
    end of a month roll into the next one (2024-02-30 -> 2024-03-01) and day 0
    is the last day of the previous month.

    Year 0 passes the range check but cannot be represented by ``date``, so
    it fails as "date out of range".
    """
    parts = raw.split("-")
    if len(parts) != 3:
        raise ValidationError.for_field(field_name, "invalid date format (yyyy-mm-dd)")

    year = _part(field_name, "year", parts[0], 0, MAX_YEAR)
    month = _part(field_name, "month", parts[1], 1, 12)
    day = _part(field_name, "day", parts[2], 0, 31)

    try:
        return date(year, month, 1) + timedelta(days=day - 1)
    except (ValueError, OverflowError) as e:
        raise ValidationError.for_field(field_name, f"date out of range={raw}") from e


def parse_datetime(field_name: str, raw: str) -> datetime:
    """Parse ``yyyy-mm-dd hh:mm:ss`` with the same day handling as parse_date."""
    pieces = raw.split(" ")
    if len(pieces) != 2:
        raise ValidationError.for_field(
            field_name, "invalid date format (yyyy-MM-dd hh:mm:ss)"
        )

    day = parse_date(field_name, pieces[0])
    parts = pieces[1].split(":")
    if len(parts) != 3:
        raise ValidationError.for_field(field_name, "invalid date format (hh:mm:ss)")

    hour = _part(field_name, "hour", parts[0], 0, 23)
    minute = _part(field_name, "minute", parts[1], 0, 59)
    second = _part(field_name, "seconds", parts[2], 0, 59)
    return datetime.combine(day, time(hour, minute, second))


class ValidationEngine:
    """Validates a field mapping against a TableDescriptor."""

    def validate_data(
        self,
        table: TableDescriptor,
        alias_prefix: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Validate and coerce ``data`` in place.

        Args:
            table: Schema of the target table
            alias_prefix: Prefix (e.g. ``"u."``) the keys for this table carry;
                empty string for bare column keys
            data: Field values, keyed ``alias_prefix + column``

        Returns:
            The same dict, validated

        Raises:
            ValidationError: For the first invalid field, or when no key maps
                to a column of the table
        """
        recognized = 0
        for key in list(data):
            if alias_prefix and not key.startswith(alias_prefix):
                continue
            column = table.get(key[len(alias_prefix) :])
            if column is None:
                continue
            recognized += 1
            data[key] = self.validate_value(key, column, data[key])

        if recognized == 0:
            raise ValidationError(f"No valid columns supplied for table '{table.name}'")
        return data

    def validate_value(self, field_name: str, column: ColumnDescriptor, value: Any) -> Any:
        """Return the coerced value for one column, or raise ValidationError."""
        base_type = column.base_type

        if base_type in (BaseType.TEXT, BaseType.VARCHAR):
            return self._validate_string(field_name, column, value)
        if base_type == BaseType.ENUM:
            return self._validate_enum(field_name, column, value)
        if base_type.is_integer:
            return self._validate_integer(field_name, column, value)
        if base_type == BaseType.DATE:
            return self._validate_temporal(field_name, value, parse_date)
        if base_type == BaseType.DATETIME:
            return self._validate_temporal(field_name, value, parse_datetime)
        return value

    def _validate_string(self, field_name: str, column: ColumnDescriptor, value: Any) -> Any:
        if value is None:
            if column.allows_null:
                return None
            raise ValidationError.for_field(field_name, "may not be null")

        if not isinstance(value, str):
            if column.base_type != BaseType.VARCHAR:
                raise ValidationError.for_field(field_name, "expected a string")
            value = str(value)

        value = value.strip()
        if (
            column.base_type == BaseType.VARCHAR
            and column.max_length is not None
            and len(value) > column.max_length
        ):
            raise ValidationError.for_field(field_name, f"longer than {column.max_length}")
        return value

    def _validate_enum(self, field_name: str, column: ColumnDescriptor, value: Any) -> Any:
        if value is None and column.allows_null:
            return None
        if value not in (column.enum_values or ()):
            raise ValidationError.for_field(field_name, f"invalid value={value}")
        return value

    def _validate_integer(self, field_name: str, column: ColumnDescriptor, value: Any) -> Any:
        if value is None and column.allows_null:
            return None

        number = _to_number(value)
        if number is None:
            raise ValidationError.for_field(field_name, "not a number")
        if column.max_length is not None and len(str(number)) > column.max_length:
            raise ValidationError.for_field(field_name, "too big to store")
        return number

    def _validate_temporal(self, field_name: str, value: Any, parse: Any) -> Any:
        if is_now_sentinel(value):
            return value
        if value is None or value == "":
            return None
        if isinstance(value, date):
            return value
        if not isinstance(value, str):
            raise ValidationError.for_field(field_name, "expected a date string")
        return parse(field_name, value.strip())
