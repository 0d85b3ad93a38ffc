#  -*- coding: utf-8 -*-
"""
Transmute: declarative, bidirectional mapping between objects and plain data.

Mapping rules are attached once per class; ``serialize`` then turns instances
into JSON-ready dicts and lists, and ``deserialize`` builds or updates
instances from them.

Key Features
------------
- **Per-field rules**: Reusable field actions (``str_``, ``num``, ``date``, ...)
  refined with immutable modifiers (``.array``, ``.RO``, ``.to_field('x')``)
- **Inheritance-aware**: Subclasses inherit rules and may override any field
- **Absent vs None**: Missing input never erases constructor defaults
- **Nested objects**: ``embed`` with lazily resolved forward references
- **Rich display**: ``describe`` renders the rules of a type in the terminal

Modules
-------
serialization
    Action, PropAction, Serializer registry and the serialize/deserialize entry points
transforms
    Ready-made field actions and embedding
display
    Rich rendering of mapping rules
persistence
    JSON files holding serialized objects

Examples
--------
>>> from transmute import serialize, deserialize, str_, num, embed
>>>
>>> class Point:
...     x = num
...     y = num
...     label = str_.to_field('name').from_field('name')
...
...     def __init__(self):
...         self.x = 0
...         self.y = 0
>>>
>>> p = deserialize({'x': 1, 'name': 'origin'}, Point)
>>> serialize(p)
{'x': 1, 'y': 0, 'name': 'origin'}
"""


from .serialization import *
from .transforms import *
from .display import *
from .persistence import *


__all__ = [
    "Action",
    "CallbackAction",
    "PropAction",
    "Serializer",
    "register_field",
    "register_action",
    "serializable",
    "on_deserialize",
    "serialize",
    "deserialize",
    "str_",
    "num",
    "bool_",
    "as_is",
    "ndarray",
    "date",
    "embed",
    "DisplaySettings",
    "describe",
    "save",
    "load",
]


try:
    # this will run if transmute is installed
    from importlib.metadata import metadata, PackageNotFoundError

    meta = metadata('transmute')

    __author__ = meta['Author-email']
    __license__ = meta['License']
    __version__ = meta['Version']

except PackageNotFoundError:
    # this will run during development
    import toml
    from pathlib import Path

    pyproject_filepath = Path(__file__).parent.parent / "pyproject.toml"

    with pyproject_filepath.open() as file:
        pyproject = toml.load(file)

    __version__ = pyproject["project"]["version"]
    __author__ = pyproject["project"]["authors"][0]["name"]
    __license__ = pyproject["project"]["license"]["text"]
