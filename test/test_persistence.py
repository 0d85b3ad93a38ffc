#  -*- coding: utf-8 -*-
"""
Test suite for saving and loading serialized objects as JSON files.
"""

from __future__ import annotations

import json

import pytest

from pathlib import Path

from transmute import save, load, str_, num, embed, DisplaySettings


# ========== ========== ========== ========== Fixtures
@pytest.fixture
def model() -> type:

    class Sensor:
        name = str_
        reading = num

    class Station:
        label = str_
        sensors = embed(Sensor).array

        def __init__(self) -> None:
            self.label = 'station'
            self.sensors = []

    Station.Sensor = Sensor

    return Station


# ========== ========== ========== ========== Tests
class TestPersistence:

    def test_save_appends_extension(self, tmp_path: Path, model: type) -> None:
        path = save(model(), tmp_path / 'station')

        assert path == tmp_path / 'station.json'
        assert json.loads(path.read_text()) == {'label': 'station', 'sensors': []}

    def test_save_keeps_given_suffix(self, tmp_path: Path, model: type) -> None:
        path = save(model(), tmp_path / 'station.txt')

        assert path.suffix == '.txt'
        assert path.exists()

    def test_load_into_class(self, tmp_path: Path, model: type) -> None:
        station = model()
        sensor = model.Sensor()
        sensor.name = 'thermo'
        sensor.reading = 21.5
        station.sensors = [sensor]

        path = save(station, tmp_path / 'station.json')
        loaded = load(path, model)

        assert loaded.label == 'station'
        assert loaded.sensors[0].name == 'thermo'
        assert loaded.sensors[0].reading == 21.5

    def test_load_in_place(self, tmp_path: Path, model: type) -> None:
        path = tmp_path / 'partial.json'
        path.write_text(json.dumps({'label': 'renamed'}))

        station = model()
        result = load(path, station)

        assert result is station
        assert station.label == 'renamed'
        assert station.sensors == []

    def test_load_list(self, tmp_path: Path, model: type) -> None:
        stations = [model(), model()]
        stations[1].label = 'second'

        path = save(stations, tmp_path / 'stations')

        loaded = load(path, model)

        assert [s.label for s in loaded] == ['station', 'second']

    def test_display_theme(self, tmp_path: Path) -> None:
        settings = DisplaySettings()
        settings.console_width = 200
        settings.panel_border_style = 'magenta'

        path = save(settings, tmp_path / 'theme')
        loaded = load(path, DisplaySettings)

        assert loaded.console_width == 200
        assert loaded.panel_border_style == 'magenta'
