#  -*- coding: utf-8 -*-
"""
Test suite for Displayable, DisplaySettings and rule descriptions.

Tests cover:
- DisplaySettings: defaults, mapping through serialize/deserialize
- Displayable: panel rendering, settings handling, form and table formatting
- describe: rule tables of mapped types
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from io import StringIO

from rich.console import Console
from rich.text import Text
from rich.table import Table
from rich.panel import Panel

from transmute import serialize, deserialize, str_, num, bool_, embed, on_deserialize
from transmute.display import Displayable, DisplaySettings, SerializerView, describe, transform_name
from transmute.serialization import ArrayOf, MappingOf
from transmute.transforms import Forward, to_str, to_number


# ========== ========== ========== ========== Fixtures
@pytest.fixture
def simple_displayable_class() -> type:
    """A simple Displayable implementation for testing."""

    class SimpleDisplay(Displayable):
        def __init__(self, title_text: str, body_text: str):
            self.title_text = title_text
            self.body_text = body_text

        def _title(self) -> Text:
            return Text(self.title_text)

        def _content(self) -> str:
            return self.body_text

    return SimpleDisplay


@pytest.fixture
def large_dataframe() -> pd.DataFrame:
    """Create large DataFrame for truncation testing."""
    return pd.DataFrame({
        'id': range(100),
        'value': np.random.randn(100),
        'category': [f'Cat{i % 5}' for i in range(100)],
    })


@pytest.fixture
def mapped_class() -> type:
    """A small mapped class with a variety of rules."""

    class Inner:
        x = num

    @on_deserialize(lambda obj: None)
    class Sample:
        name = str_.to_field('label')
        size = num.RO
        flags = bool_.array.null_is_undefined
        inner = embed(Inner)

    return Sample


# ========== ========== ========== ========== Test DisplaySettings
class TestDisplaySettings:
    """Test DisplaySettings configuration class."""

    def test_creates_with_defaults(self) -> None:
        # Should create with default values
        settings = DisplaySettings()

        assert settings.console_width == 150
        assert settings.property_style == 'bold bright_yellow'
        assert settings.panel_border_style == 'bright_cyan'
        assert settings.panel_box == 'ROUNDED'
        assert settings.panel_title_align == 'center'
        assert settings.table_spacing == 4

    def test_serializes_as_plain_data(self) -> None:
        # Settings are a mapped type
        data = serialize(DisplaySettings())

        assert data['console_width'] == 150
        assert data['panel_box'] == 'ROUNDED'

    def test_partial_theme_keeps_defaults(self) -> None:
        # Missing keys keep the constructor defaults
        settings = deserialize({'panel_border_style': 'green'}, DisplaySettings)

        assert settings.panel_border_style == 'green'
        assert settings.console_width == 150


# ========== ========== ========== ========== Test Displayable
class TestDisplayableBasics:
    """Test basic Displayable functionality."""

    def test_abstract_methods_required(self) -> None:
        # Cannot instantiate without implementing abstract methods
        with pytest.raises(TypeError):
            Displayable()

    def test_each_instance_gets_own_settings(self, simple_displayable_class: type) -> None:
        # Each instance should have independent settings
        obj1 = simple_displayable_class("Title1", "Body1")
        obj2 = simple_displayable_class("Title2", "Body2")

        obj1.display_settings.console_width = 100

        assert obj1.display_settings is not obj2.display_settings
        assert obj2.display_settings.console_width == 150

    def test_can_assign_custom_settings(self, simple_displayable_class: type) -> None:
        # Should accept custom settings object
        settings = DisplaySettings()
        settings.panel_border_style = 'green'

        obj = simple_displayable_class("Title", "Body")
        obj.display_settings = settings

        assert obj.display_settings is settings

    def test_rejects_other_settings(self, simple_displayable_class: type) -> None:
        obj = simple_displayable_class("Title", "Body")

        with pytest.raises(TypeError, match="Expected DisplaySettings"):
            obj.display_settings = {'console_width': 10}


class TestDisplayableRendering:
    """Test rendering and output methods."""

    def test_str_contains_title_and_body(self, simple_displayable_class: type) -> None:
        # String output should include title and body
        obj = simple_displayable_class("MyTitle", "MyContent")

        result = str(obj)

        assert "MyTitle" in result
        assert "MyContent" in result

    def test_rich_protocol(self, simple_displayable_class: type) -> None:
        # __rich__ should return Panel
        obj = simple_displayable_class("Title", "Body")

        assert isinstance(obj.__rich__(), Panel)

    def test_rich_rendering(self, simple_displayable_class: type) -> None:
        # Should render via Rich Console
        obj = simple_displayable_class("Title", "Body")

        console = Console(file=StringIO())
        console.print(obj)

    def test_display_panel_uses_settings(self, simple_displayable_class: type) -> None:
        # Panel should respect display settings
        from rich import box

        obj = simple_displayable_class("Title", "Body")
        obj.display_settings.panel_border_style = 'red'
        obj.display_settings.panel_title_align = 'right'
        obj.display_settings.panel_box = 'DOUBLE'

        panel = obj._display_panel()

        assert panel.border_style == 'red'
        assert panel.title_align == 'right'
        assert panel.box == box.DOUBLE


class TestFormatting:
    """Test form and table formatting helpers."""

    def test_formats_dict_as_form(self, simple_displayable_class: type) -> None:
        obj = simple_displayable_class("Title", "Body")

        form = obj.format_as_form({'name': 'Alice', 'age': '25'})

        assert isinstance(form, Table)
        assert form.row_count == 2

    def test_formats_frame_as_table(self, simple_displayable_class: type) -> None:
        obj = simple_displayable_class("Title", "Body")
        frame = pd.DataFrame({'a': [1, 2], 'b': ['x', 'y']})

        table = obj.format_as_table(frame)

        # header row plus one row per record
        assert table.row_count == 3

    def test_truncates_large_frames(self, simple_displayable_class: type,
                                    large_dataframe: pd.DataFrame) -> None:
        obj = simple_displayable_class("Title", "Body")

        table = obj.format_as_table(large_dataframe, max_rows=11)

        # header, 5 head rows, ellipsis, 5 tail rows
        assert table.row_count == 12


# ========== ========== ========== ========== Test describe
class TestDescribe:
    """Rule tables of mapped types."""

    def test_transform_names(self) -> None:
        assert transform_name(None) == '-'
        assert transform_name(to_str) == 'to_str'
        assert transform_name(ArrayOf(to_str)) == 'array of to_str'
        assert transform_name(MappingOf(to_number, strict=True)) == 'strict mapping of to_number'
        assert transform_name(Forward(lambda: None)) == 'embed (unresolved)'

    def test_frame(self, mapped_class: type) -> None:
        frame = describe(mapped_class).to_frame()

        assert list(frame['field']) == ['name', 'size', 'flags', 'inner']
        assert list(frame['output']) == ['label', '-', 'flags', 'inner']
        assert list(frame['direction']) == ['both', 'read-only', 'both', 'both']
        assert list(frame['null_is_undefined']) == [False, False, True, False]
        assert frame['deserializer'][2] == 'array of to_bool'

    def test_describe_instance(self, mapped_class: type) -> None:
        view = describe(mapped_class())

        assert isinstance(view, SerializerView)
        assert view.serializer.model is mapped_class

    def test_render(self, mapped_class: type) -> None:
        view = describe(mapped_class)
        view.display_settings.console_width = 220

        result = str(view)

        assert 'Sample' in result
        assert 'label' in result
        assert 'read-only' in result

    def test_render_without_actions(self) -> None:
        from transmute import serializable

        @serializable
        class Bare:
            pass

        assert 'Bare' in str(describe(Bare))

    def test_unregistered(self) -> None:

        class Unregistered:
            pass

        with pytest.raises(TypeError, match="No serializer registered"):
            describe(Unregistered)
