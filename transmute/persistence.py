#  -*- coding: utf-8 -*-
"""
JSON files holding serialized objects.

``save`` writes the plain data produced by ``serialize`` to a text file and
``load`` reads it back through ``deserialize``, either into new instances of
a class or in place into existing instances.
"""

from __future__ import annotations

import json
import logging

from pathlib import Path

from typing import Any

from transmute.serialization import serialize, deserialize


logger = logging.getLogger(__name__)

extension: str = '.json'


def _resolve(path: Path | str) -> Path:
    path = Path(path)

    if not path.suffix:
        path = path.with_suffix(extension)

    return path


def save(obj: Any, path: Path | str, indent: int | None = 2) -> Path:
    """
    Serialize ``obj`` and write it to ``path``.

    A path without suffix gets the ``.json`` extension. Parent directories
    must exist.

    Returns
    -------
    Path
        The path actually written.
    """
    path = _resolve(path)

    with path.open('w', encoding='utf-8') as file:
        json.dump(serialize(obj), file, indent=indent)

    logger.debug("saved %s to %s", type(obj).__name__, path)

    return path


def load(path: Path | str, target: Any) -> Any:
    """
    Read ``path`` and deserialize its content into ``target``.

    ``target`` accepts anything ``deserialize`` accepts: a class, an
    instance or a list of instances.
    """
    path = _resolve(path)

    with path.open('r', encoding='utf-8') as file:
        data = json.load(file)

    return deserialize(data, target)


__all__ = ['save', 'load']
