#  -*- coding: utf-8 -*-
"""
Rich terminal display of mapping rules.

``describe(cls)`` returns a displayable view of the registry of a mapped
type: a short form (model, factory, post-deserialize hook) followed by one
table row per registered action. Print it, or hand it to a Rich console::

    >>> print(describe(Point))

Styling is controlled by ``DisplaySettings``, which is itself a mapped type,
so a theme can be stored with ``save`` and restored with ``load``.
"""

from __future__ import annotations

import pandas

from abc import ABC, abstractmethod

from io import StringIO

from rich.markup import escape
from rich.text import Text
from rich.panel import Panel
from rich.console import Console, RenderableType, Group
from rich.table import Table
from rich import box
from rich.align import Align

from typing import Any

from transmute.serialization import (Action, ArrayOf, CallbackAction, MappingOf, PropAction,
                                     Serializer, POST_DESERIALIZE)
from transmute.transforms import Forward, num, str_


# ========== ========== ========== ========== ========== ==========
class DisplaySettings:
    """
    Configuration for terminal display formatting.

    Attributes
    ----------
    console_width : int
        Maximum console output width in characters. Default 150.
    property_style : str
        Style for labels in forms. Default 'bold bright_yellow'.
    panel_border_style : str
        Style for panel borders. Default 'bright_cyan'.
    panel_box : str
        Box style name from ``rich.box``. Default 'ROUNDED'.
    panel_title_align : str
        Panel title alignment. Default 'center'.
    table_header_style : str
        Style for table headers. Default 'bold bright_yellow'.
    table_spacing : int
        Column spacing in characters. Default 4.

    Examples
    --------
    Save and restore a theme::

        settings = DisplaySettings()
        settings.panel_border_style = 'green'
        save(settings, 'theme.json')

        settings = load('theme.json', DisplaySettings)
    """

    console_width = num
    property_style = str_
    panel_border_style = str_
    panel_box = str_
    panel_title_align = str_
    table_header_style = str_
    table_spacing = num

    def __init__(self) -> None:
        self.console_width: int = 150
        self.property_style: str = 'bold bright_yellow'
        self.panel_border_style: str = 'bright_cyan'
        self.panel_box: str = 'ROUNDED'
        self.panel_title_align: str = 'center'
        self.table_header_style: str = 'bold bright_yellow'
        self.table_spacing: int = 4


class Displayable(ABC):
    """
    Abstract base for objects with Rich terminal display.

    Subclasses provide ``_title()`` and ``_content()``; the panel styling
    comes from ``display_settings``.
    """

    # ========== ========== ========== ========== ========== special methods
    def __str__(self) -> str:
        string_io = StringIO()
        console = Console(file=string_io,
                          force_terminal=True,
                          width=self.display_settings.console_width)

        console.print(self._display_panel())

        return string_io.getvalue()

    def __rich__(self) -> RenderableType:
        return self._display_panel()

    # ========== ========== ========== ========== ========== protected methods
    @abstractmethod
    def _title(self) -> Text:
        ...

    @abstractmethod
    def _content(self) -> RenderableType:
        ...

    def _display_panel(self) -> Panel:
        return Panel(
            self._content(),
            title=self._title(),
            border_style=self.display_settings.panel_border_style,
            title_align=self.display_settings.panel_title_align,
            expand=False,
            box=getattr(box, self.display_settings.panel_box)
        )

    # ========== ========== ========== ========== ========== public methods
    def format_as_form(self, data: dict[str, str]) -> Table:
        """
        Format key-value pairs as a two-column form.

        Keys get ':' appended and use ``property_style``.
        """
        form = Table.grid(padding=(0, 4), expand=False)
        form.add_column(justify='left', style=self.display_settings.property_style)
        form.add_column(justify='left', style=None)

        for prop, value in data.items():
            form.add_row(f'{prop}:', value)

        return form

    def format_as_table(self, frame: pandas.DataFrame, max_rows: int = 31) -> Table:
        """
        Format a DataFrame as a Rich table.

        Numeric columns are right-aligned, anything else left-aligned. Frames
        longer than ``max_rows`` show their head and tail around an ellipsis
        row.
        """
        table = Table.grid(padding=(0, self.display_settings.table_spacing), expand=False)

        for column in frame.columns:

            if pandas.api.types.is_numeric_dtype(frame[column]) \
                    and not pandas.api.types.is_bool_dtype(frame[column]):
                table.add_column(justify='right')

            else:
                table.add_column(justify='left')

        table.add_row(*(Align(escape(str(col)), 'center') for col in frame.columns),
                      style=self.display_settings.table_header_style)

        _frame = frame.astype(str)

        if len(_frame) <= max_rows:
            for _, row in _frame.iterrows():
                table.add_row(*(escape(v) for v in row.values))

        else:
            n_rows: int = (max_rows - 1) // 2

            for _, row in _frame.head(n_rows).iterrows():
                table.add_row(*(escape(v) for v in row.values))

            table.add_row(*(Align.center('...') for _ in frame.columns))

            for _, row in _frame.tail(n_rows).iterrows():
                table.add_row(*(escape(v) for v in row.values))

        return table

    # ---------- ---------- ---------- ---------- ---------- properties
    @property
    def display_settings(self) -> DisplaySettings:
        """Per-instance display settings, created on first access."""
        try:
            return self._display_settings
        except AttributeError:
            self._display_settings = DisplaySettings()
            return self._display_settings

    @display_settings.setter
    def display_settings(self, settings: DisplaySettings) -> None:
        if not isinstance(settings, DisplaySettings):
            raise TypeError(f"Expected DisplaySettings, given {type(settings).__name__} instead")

        self._display_settings = settings


# ========== ========== ========== ========== ========== ==========
def transform_name(fn: Any) -> str:
    """Short human-readable name of a transform function."""
    if fn is None:
        return '-'

    if isinstance(fn, (ArrayOf, MappingOf)):
        kind = 'array' if isinstance(fn, ArrayOf) else 'mapping'
        strict = 'strict ' if fn.strict else ''
        return f'{strict}{kind} of {transform_name(fn.inner)}'

    if isinstance(fn, Forward):
        if fn.resolved:
            return f'embed {fn.serializer.model.__qualname__}'

        return 'embed (unresolved)'

    return getattr(fn, '__name__', type(fn).__name__)


def _direction(action: PropAction) -> str:
    reads = action.deserializer is not None
    writes = action.serializer is not None

    if reads and writes:
        return 'both'

    if writes:
        return 'write-only'

    if reads:
        return 'read-only'

    return 'none'


class SerializerView(Displayable):
    """
    Displayable view over the registry of a mapped type.

    Parameters
    ----------
    serializer : Serializer
        Registry to display.
    """

    def __init__(self, serializer: Serializer) -> None:
        self.serializer: Serializer = serializer

    def _title(self) -> Text:
        return Text(self.serializer.model.__qualname__)

    def _content(self) -> RenderableType:
        model = self.serializer.model
        hook = getattr(model, POST_DESERIALIZE, None)

        form = self.format_as_form({
            'Model': escape(f'{model.__module__}.{model.__qualname__}'),
            'Factory': escape(transform_name(self.serializer.factory)),
            'Post-deserialize hook': 'yes' if callable(hook) else 'no',
            'Actions': str(len(self.serializer)),
        })

        if not len(self.serializer):
            return form

        return Group(form, Text(''), self.format_as_table(self.to_frame()))

    def to_frame(self) -> pandas.DataFrame:
        """
        One row per registered action, in registration order.

        Columns are ``field``, ``output``, ``input``, ``direction``,
        ``null_is_undefined``, ``serializer`` and ``deserializer``.
        """
        rows = [self._row(action) for action in self.serializer.actions]

        columns = ['field', 'output', 'input', 'direction',
                   'null_is_undefined', 'serializer', 'deserializer']

        return pandas.DataFrame(rows, columns=columns)

    @staticmethod
    def _row(action: Action) -> dict[str, Any]:
        if isinstance(action, PropAction):
            return {
                'field': action.prop,
                'output': action.serialize_to if action.serializer is not None else '-',
                'input': action.deserialize_from if action.deserializer is not None else '-',
                'direction': _direction(action),
                'null_is_undefined': action.ignore_null,
                'serializer': transform_name(action.serializer),
                'deserializer': transform_name(action.deserializer),
            }

        name = 'callback' if isinstance(action, CallbackAction) else type(action).__name__

        return {
            'field': '-',
            'output': '-',
            'input': '-',
            'direction': name,
            'null_is_undefined': False,
            'serializer': '-',
            'deserializer': '-',
        }


def describe(target: type | object) -> SerializerView:
    """
    Return a displayable view of the mapping rules of ``target``.

    Parameters
    ----------
    target : type or object
        A registered class, or an instance of one.

    Raises
    ------
    TypeError
        If the type is not registered.
    """
    cls = target if isinstance(target, type) else type(target)
    return SerializerView(Serializer.lookup(cls))


__all__ = [
    'DisplaySettings',
    'Displayable',
    'SerializerView',
    'describe',
]
