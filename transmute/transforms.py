#  -*- coding: utf-8 -*-
"""
Ready-made field actions.

Every object exported here is a shared, unattached ``PropAction`` prototype.
Use it as is, or derive a variant with the builder modifiers
(``.array``, ``.RO``, ``.to_field('x')``, ...), then attach it to a field::

    class Measurement:
        label = str_
        value = num
        samples = num.array
        taken_at = date.to_utc
        raw = ndarray.WO
        sensor = embed(lambda: Sensor)

Primitive transforms
--------------------
- ``str_``: ``str(value)`` both ways.
- ``num``: numbers, including numpy scalars, become plain ``int`` or
  ``float``. Numeric strings are parsed.
- ``bool_``: ``bool(value)`` both ways.
- ``as_is``: the value is forwarded unchanged.
- ``ndarray``: numpy arrays to nested lists and back.
- ``date``: ``datetime`` to ISO-8601 text carrying the local UTC offset.

Structural transforms
---------------------
- ``embed(cls)`` or ``embed(lambda: cls)``: nested mapped object. The lambda
  form lets a class refer to another one defined later in the module.
"""

from __future__ import annotations

import copy
import logging
import numbers

from datetime import datetime, timezone

import numpy
import pandas

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import Callable, Any, TypeAlias, Self

from numpy.typing import NDArray

from transmute.serialization import ArrayOf, MappingOf, PropAction, Serializer, serialize


logger = logging.getLogger(__name__)

ForwardTarget: TypeAlias = type | Serializer | Callable[[], type | Serializer]


# ========== ========== ========== ========== ========== primitives
def to_str(value: Any) -> str:
    return str(value)


def to_number(value: Any) -> int | float:
    """
    Convert ``value`` to a plain Python number.

    Integral values (numpy integers and booleans included) stay integral, any
    other real value becomes a float. Strings are parsed.

    Raises
    ------
    ValueError
        If a string does not represent a number.
    """
    if isinstance(value, numpy.generic):
        value = value.item()

    if isinstance(value, numbers.Integral):
        return int(value)

    if isinstance(value, numbers.Real):
        return float(value)

    if isinstance(value, str):
        text = value.strip()

        try:
            return int(text)
        except ValueError:
            return float(text)

    return float(value)


def to_bool(value: Any) -> bool:
    return bool(value)


def identity(value: Any) -> Any:
    return value


def array_to_list(value: NDArray | Any) -> list:
    return numpy.asarray(value).tolist()


def list_to_array(value: Any) -> NDArray:
    return numpy.asarray(value)


# ========== ========== ========== ========== ========== dates
def as_datetime(value: Any) -> datetime:
    """Return ``value`` as a plain ``datetime`` (dates and text go through pandas)."""
    if isinstance(value, pandas.Timestamp):
        return value.to_pydatetime()

    if isinstance(value, datetime):
        return value

    return pandas.Timestamp(value).to_pydatetime()


def date_with_tz_to_json(value: Any) -> str:
    """
    Format ``value`` as ``YYYY-MM-DDTHH:MM:SS+HH:MM`` in local time.

    Naive datetimes are taken as local time. The offset is the one of the
    local clock at that instant; seconds fractions are dropped.
    """
    local = as_datetime(value).astimezone()

    offset = int(local.utcoffset().total_seconds() // 60)
    sign = '+' if offset >= 0 else '-'
    hours, minutes = divmod(abs(offset), 60)

    return f'{local:%Y-%m-%dT%H:%M:%S}{sign}{hours:02d}:{minutes:02d}'


def date_to_utc(value: Any) -> str:
    """Format ``value`` as UTC ISO-8601 text with milliseconds, e.g. ``2017-05-01T00:00:00.000Z``."""
    utc = as_datetime(value).astimezone(timezone.utc)
    return f'{utc:%Y-%m-%dT%H:%M:%S}.{utc.microsecond // 1000:03d}Z'


def date_to_seconds(value: Any) -> int:
    return round(as_datetime(value).timestamp())


def date_from_anything(value: Any) -> datetime:
    """
    Parse ``value`` into a ``datetime``.

    Numbers are milliseconds since the epoch (UTC). Anything else is handed
    to pandas, so ISO-8601 text keeps its offset, if any.
    """
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return pandas.to_datetime(value, unit='ms', utc=True).to_pydatetime()

    return as_datetime(value)


def date_from_seconds(value: Any) -> datetime:
    """Parse ``value`` as seconds since the epoch, falling back to ``date_from_anything``."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return date_from_anything(value)

    return pandas.to_datetime(seconds, unit='s', utc=True).to_pydatetime()


def _swap_element(current: Any, transform: Callable[[Any], Any]) -> Callable[[Any], Any]:
    """Replace the element transform of ``current``, keeping any array or mapping wrappers."""
    if isinstance(current, (ArrayOf, MappingOf)):
        wrapper = copy.copy(current)
        wrapper.inner = _swap_element(current.inner, transform)
        return wrapper

    return transform


class DatePropAction(PropAction):
    """
    ``datetime`` field action.

    By default values are written with the local UTC offset and read from
    ISO-8601 text or epoch milliseconds. The variants below swap one of the
    two directions. They can be applied before or after structural modifiers
    such as ``.array``: the element transform is swapped inside the wrapper.
    """

    def __init__(self) -> None:
        super().__init__(date_with_tz_to_json, date_from_anything)

    @property
    def to_utc(self) -> Self:
        """Write UTC ISO-8601 text."""
        return self._evolve(serializer=_swap_element(self._serializer, date_to_utc))

    @property
    def to_seconds(self) -> Self:
        """Write integer seconds since the epoch."""
        return self._evolve(serializer=_swap_element(self._serializer, date_to_seconds))

    @property
    def from_seconds(self) -> Self:
        """Read numbers as seconds since the epoch."""
        return self._evolve(deserializer=_swap_element(self._deserializer, date_from_seconds))


# ========== ========== ========== ========== ========== embedding
def get_type(target: ForwardTarget) -> type | Serializer:
    """
    Resolve a forward target.

    A registered class (or a registry) is returned as is. Any other callable
    is called without arguments and must return one of those.

    Raises
    ------
    TypeError
        If the target does not resolve to a class or a registry, or resolves
        to a class with no registered rules.
    """
    if isinstance(target, (type, Serializer)):
        return _checked(target)

    if callable(target):
        resolved = target()

        if isinstance(resolved, (type, Serializer)):
            return _checked(resolved)

        raise TypeError(f"The provided forward does not resolve to a serializable type: "
                        f"{target!r} returned {type(resolved).__name__}")

    raise TypeError(f"The provided forward does not resolve to a serializable type: {target!r}")


def _checked(resolved: type | Serializer) -> type | Serializer:
    if isinstance(resolved, type) and not Serializer.registered(resolved):
        raise TypeError(f'No serializer registered for type {resolved.__qualname__}')

    return resolved


class Forward:
    """
    Lazily resolved nested deserializer.

    The target is resolved on the first call only; the resulting registry is
    cached and reused by every later call.
    """

    def __init__(self, target: ForwardTarget) -> None:
        self._target: ForwardTarget = target
        self._serializer: Serializer | None = None

    def __call__(self, value: Any) -> Any:
        return self.serializer.deserialize(value)

    def __repr__(self) -> str:
        if self._serializer is None:
            return f'{type(self).__name__}(<unresolved>)'

        return f'{type(self).__name__}({self._serializer.model.__qualname__})'

    @property
    def resolved(self) -> bool:
        return self._serializer is not None

    @property
    def serializer(self) -> Serializer:
        if self._serializer is None:
            resolved = get_type(self._target)

            if not isinstance(resolved, Serializer):
                resolved = Serializer.lookup(resolved)

            logger.debug("forward resolved to %s", resolved.model.__qualname__)
            self._serializer = resolved

        return self._serializer


def embed(target: ForwardTarget) -> PropAction:
    """
    Action for a nested mapped object.

    Parameters
    ----------
    target : type, Serializer or callable
        The nested class, or a zero-argument callable returning it. Use the
        callable form when the class is defined later or when two classes
        refer to each other.

    Notes
    -----
    Serialization follows the runtime type of the nested value, so instances
    of subclasses keep their own fields. Deserialization builds instances of
    the resolved target.
    """
    return PropAction(serialize, Forward(target))


# ========== ========== ========== ========== ========== prototypes
str_ = PropAction(to_str, to_str)
num = PropAction(to_number, to_number)
bool_ = PropAction(to_bool, to_bool)
as_is = PropAction(identity, identity)
ndarray = PropAction(array_to_list, list_to_array)
date = DatePropAction()


__all__ = [
    'str_',
    'num',
    'bool_',
    'as_is',
    'ndarray',
    'date',
    'embed',
    'Forward',
    'DatePropAction',
    'get_type',
]
