#  -*- coding: utf-8 -*-
"""
Declarative, bidirectional mapping between typed objects and plain data.

This module provides the mapping-rule engine: the ``Action`` protocol, the
field-bound ``PropAction`` with its immutable builder modifiers, the per-type
``Serializer`` registry and the top-level ``serialize`` / ``deserialize``
entry points.

Plain data
----------
The plain representation produced by ``serialize`` is a tree made of dicts,
lists and primitive values, ready to be handed to ``json.dumps``.

Attaching rules
---------------
Rules are attached once per class. The usual way is to place an action as a
class attribute; the action registers a field-bound clone of itself when the
class is created::

    class Point:
        x = num
        y = num
        label = str_.to_field('name')

        def __init__(self):
            self.x = 0
            self.y = 0

The explicit form ``register_field(Point, 'x', num)`` is equivalent.

Absent vs None
--------------
An attribute that was never set on an instance is *absent*. Absent values are
omitted from the output, while ``None`` is written as ``None``. Likewise,
absent input keys never overwrite an existing attribute, while an explicit
``None`` does, unless the action carries the ``null_is_undefined`` policy.

Inheritance
-----------
A subclass registry is seeded from the nearest registered ancestor. Actions
are keyed by field name, so redeclaring a field in a subclass replaces the
inherited rule in place instead of duplicating it.
"""

from __future__ import annotations

import copy
import logging
import weakref

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from itertools import count

# ---------- ---------- ---------- ---------- ---------- ---------- typing
from typing import TypeVar, Callable, Any, TypeAlias, Self, Type, Iterator


logger = logging.getLogger(__name__)

T = TypeVar('T')
"""Represent the type of the mapped object"""

SerializerFn: TypeAlias = Callable[[Any], Any]
DeserializerFn: TypeAlias = Callable[[Any], Any]
Factory: TypeAlias = Callable[[], Any]

POST_DESERIALIZE: str = '__post_deserialize__'
"""Reserved per-type slot invoked after ``deserialize`` populated all fields"""


class _Missing:
    """Marker for an attribute or key that is not there at all."""

    __slots__ = ()

    def __repr__(self) -> str:
        return 'MISSING'

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

_ids = count()


# ========== ========== ========== ========== ========== ==========
class Action(ABC):
    """
    Unit of (de)serialization behaviour bound to a type.

    An action knows how to write something from an instance into plain data
    (``serialize``) and how to read something from plain data into an
    instance (``deserialize``).

    The ``internal_key`` decides how a registry stores the action: actions
    with the same non-None key replace each other, while actions whose key
    is None are always appended.
    """

    # ========== ========== ========== ========== ========== special methods
    def __init__(self) -> None:
        self._id: int = next(_ids)

    # ========== ========== ========== ========== ========== public methods
    @property
    def internal_key(self) -> str | None:
        return None

    def clone(self) -> Self:
        """Return a shallow copy of this action carrying every attribute."""
        clone = copy.copy(self)
        clone._id = next(_ids)
        return clone

    @abstractmethod
    def serialize(self, instance: Any, output: dict[str, Any]) -> None:
        ...

    @abstractmethod
    def deserialize(self, instance: Any, data: Mapping[str, Any]) -> None:
        ...


class CallbackAction(Action):
    """
    Type-level action delegating to user callbacks.

    Parameters
    ----------
    on_serialize : callable, optional
        Called as ``on_serialize(instance, output)``.
    on_deserialize : callable, optional
        Called as ``on_deserialize(instance, data)``.

    Notes
    -----
    The internal key is None, so the action is appended to the registry and
    never overrides another action. It is inherited by subclasses like any
    other action and runs at its registration position.
    """

    def __init__(self,
                 on_serialize: Callable[[Any, dict], None] | None = None,
                 on_deserialize: Callable[[Any, Mapping], None] | None = None) -> None:
        super().__init__()
        self._on_serialize = on_serialize
        self._on_deserialize = on_deserialize

    def serialize(self, instance: Any, output: dict[str, Any]) -> None:
        if self._on_serialize is not None:
            self._on_serialize(instance, output)

    def deserialize(self, instance: Any, data: Mapping[str, Any]) -> None:
        if self._on_deserialize is not None:
            self._on_deserialize(instance, data)

    def __repr__(self) -> str:
        return f'{type(self).__name__}(#{self._id})'


# ========== ========== ========== ========== ========== ==========
class ArrayOf:
    """
    Element-wise wrapper turning a value transform into a list transform.

    ``None`` elements are kept as ``None``. When serializing, any iterable
    other than text or a mapping is accepted. When reading plain data
    (``incoming``), only a ``list`` is. Other input becomes an empty list,
    unless ``strict`` is set, in which case a ``TypeError`` is raised.
    """

    def __init__(self, inner: Callable[[Any], Any], strict: bool = False,
                 incoming: bool = False) -> None:
        self.inner = inner
        self.strict = strict
        self.incoming = incoming

    def _accepts(self, value: Any) -> bool:
        if self.incoming:
            return isinstance(value, list)

        return isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping))

    def __call__(self, value: Any) -> list:
        if not self._accepts(value):
            if self.strict:
                raise TypeError(f"Expected a sequence, given {type(value).__name__} instead")

            logger.debug("non-sequence value of type %s coerced to an empty list",
                         type(value).__name__)
            return []

        return [self.inner(v) if v is not None else None for v in value]

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.inner!r}, strict={self.strict})'


class MappingOf:
    """
    Value-wise wrapper turning a value transform into a dict transform.

    Keys are converted to ``str``. Input that is not a mapping becomes an
    empty dict, unless ``strict`` is set.
    """

    def __init__(self, inner: Callable[[Any], Any], strict: bool = False) -> None:
        self.inner = inner
        self.strict = strict

    def __call__(self, value: Any) -> dict:
        if not isinstance(value, Mapping):
            if self.strict:
                raise TypeError(f"Expected a mapping, given {type(value).__name__} instead")

            logger.debug("non-mapping value of type %s coerced to an empty dict",
                         type(value).__name__)
            return {}

        return {str(k): self.inner(v) if v is not None else None for k, v in value.items()}

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.inner!r}, strict={self.strict})'


# ========== ========== ========== ========== ========== ==========
class PropAction(Action):
    """
    Action bound to a single named attribute.

    A ``PropAction`` converts the value of ``instance.<prop>`` with its
    ``serializer`` when producing plain data, and converts
    ``data[<deserialize_from>]`` with its ``deserializer`` when reading plain
    data back.

    The shared primitives of the transform library (``str_``, ``num``, ...)
    are prototypes: every modifier returns a new action with exactly one
    attribute changed, and attaching an action to a field registers a clone.
    The prototypes are never mutated.

    Parameters
    ----------
    serializer : callable, optional
        Instance value to plain value. Without it the field is never written
        (read-only field).
    deserializer : callable, optional
        Plain value to instance value. Without it the field is never read
        (write-only field).

    Attributes
    ----------
    prop : str or None
        Attribute name on the instance. None for unattached prototypes.
    serialize_to : str or None
        Output key. Defaults to ``prop``.
    deserialize_from : str or None
        Input key. Defaults to ``prop``.
    ignore_null : bool
        If True, ``None`` is treated as absent in both directions.

    Notes
    -----
    A ``PropAction`` is also a non-data descriptor. When set as a class
    attribute, ``__set_name__`` attaches a clone to the owning class. Reading
    the attribute from an instance that never assigned it raises
    ``AttributeError``.
    """

    # ========== ========== ========== ========== ========== special methods
    def __init__(self,
                 serializer: SerializerFn | None = None,
                 deserializer: DeserializerFn | None = None) -> None:

        super().__init__()

        self._serializer: SerializerFn | None = serializer
        self._deserializer: DeserializerFn | None = deserializer

        self._prop: str | None = None
        self._serialize_to: str | None = None
        self._deserialize_from: str | None = None
        self._ignore_null: bool = False

    def __set_name__(self, owner: type, name: str) -> None:
        """Attach a field-bound clone of this action to ``owner``."""
        setattr(owner, name, register_field(owner, name, self))

    def __get__(self, instance: object | None, owner: type) -> Any:
        if instance is None:
            # class access returns the action for introspection
            return self

        raise AttributeError(f"'{type(instance).__name__}' object has no value "
                             f"for mapped attribute '{self._prop or '?'}'")

    def __repr__(self) -> str:
        flags = [f for f, on in (('RO', self._serializer is None),
                                 ('WO', self._deserializer is None),
                                 ('null_is_undefined', self._ignore_null)) if on]

        return f"{type(self).__name__}(prop={self._prop!r}, to={self.serialize_to!r}, " \
               f"from={self.deserialize_from!r}{''.join(', ' + f for f in flags)})"

    # ========== ========== ========== ========== ========== protected methods
    def _evolve(self, **changes: Any) -> Self:
        clone = self.clone()

        for attr, value in changes.items():
            setattr(clone, f'_{attr}', value)

        return clone

    # ========== ========== ========== ========== ========== builder methods
    def to_field(self, key: str) -> Self:
        """Return a clone writing its value to output key ``key``."""
        return self._evolve(serialize_to=key)

    def from_field(self, key: str) -> Self:
        """Return a clone reading its value from input key ``key``."""
        return self._evolve(deserialize_from=key)

    @property
    def RO(self) -> Self:
        """Read-only clone: the field is read from plain data but never written."""
        return self._evolve(serializer=None)

    @property
    def WO(self) -> Self:
        """Write-only clone: the field is written to plain data but never read."""
        return self._evolve(deserializer=None)

    @property
    def null_is_undefined(self) -> Self:
        """Clone treating ``None`` exactly like an absent value."""
        return self._evolve(ignore_null=True)

    @property
    def array(self) -> Self:
        """
        Clone mapping a list of values through this action's transforms.

        Malformed input degrades to an empty list. Plain data must hold a
        ``list``; instance values may be any iterable.
        """
        return self._wrap(ArrayOf, strict=False, incoming=True)

    @property
    def strict_array(self) -> Self:
        """Like ``array`` but malformed input raises ``TypeError``."""
        return self._wrap(ArrayOf, strict=True, incoming=True)

    @property
    def mapping(self) -> Self:
        """
        Clone mapping a dict of values through this action's transforms.

        Malformed input (a non-mapping) degrades to an empty dict.
        """
        return self._wrap(MappingOf, strict=False)

    @property
    def strict_mapping(self) -> Self:
        """Like ``mapping`` but malformed input raises ``TypeError``."""
        return self._wrap(MappingOf, strict=True)

    def _wrap(self, wrapper: type, strict: bool, **reading: Any) -> Self:
        ser = self._serializer
        des = self._deserializer

        return self._evolve(serializer=None if ser is None else wrapper(ser, strict),
                            deserializer=None if des is None else wrapper(des, strict, **reading))

    # ---------- ---------- ---------- ---------- ---------- properties
    @property
    def internal_key(self) -> str | None:
        return self._prop

    @property
    def prop(self) -> str | None:
        return self._prop

    @property
    def serialize_to(self) -> str | None:
        return self._serialize_to or self._prop

    @property
    def deserialize_from(self) -> str | None:
        return self._deserialize_from or self._prop

    @property
    def serializer(self) -> SerializerFn | None:
        return self._serializer

    @property
    def deserializer(self) -> DeserializerFn | None:
        return self._deserializer

    @property
    def ignore_null(self) -> bool:
        return self._ignore_null

    # ========== ========== ========== ========== ========== public methods
    def serialize(self, instance: Any, output: dict[str, Any]) -> None:
        if self._serializer is None:
            return

        value = getattr(instance, self._prop, MISSING)

        if value is MISSING or (value is None and self._ignore_null):
            return

        if value is None:
            output[self.serialize_to] = None

        else:
            output[self.serialize_to] = self._serializer(value)

    def deserialize(self, instance: Any, data: Mapping[str, Any]) -> None:
        if self._deserializer is None:
            return

        value = data.get(self.deserialize_from, MISSING)

        if value is MISSING or (value is None and self._ignore_null):

            # keep whatever the constructor or a previous state put there
            if not self._ignore_null and getattr(instance, self._prop, MISSING) is MISSING:
                setattr(instance, self._prop, None)

        elif value is None:
            setattr(instance, self._prop, None)

        else:
            setattr(instance, self._prop, self._deserializer(value))

    # defined last so that it does not shadow the builtin in the class body
    def property(self, key: str) -> Self:
        """
        Return a clone bound to attribute ``key``.

        Output and input keys default to ``key`` unless a previous modifier
        already set them.
        """
        return self._evolve(prop=key,
                            serialize_to=self._serialize_to or key,
                            deserialize_from=self._deserialize_from or key)


# ========== ========== ========== ========== ========== ==========
class Serializer:
    """
    Ordered, inheritance-aware registry of the actions of one type.

    Instances are created through ``Serializer.get`` and stored in a
    process-wide table keyed by the type itself. The table holds types weakly,
    so a registry lives as long as its type.

    Parameters
    ----------
    model : type
        Type whose instances are built by ``deserialize``.
    factory : callable, optional
        Zero-argument callable building a fresh instance. Defaults to
        ``model``.

    Notes
    -----
    Registration is expected to complete before the first call to
    ``serialize`` or ``deserialize``. A subclass registry copies its
    ancestor's actions when it is created, so actions added to the ancestor
    afterwards are not seen by the subclass.
    """

    # ========== ========== ========== ========== ========== class attributes
    _registry: weakref.WeakKeyDictionary[type, Serializer] = weakref.WeakKeyDictionary()

    # ========== ========== ========== ========== ========== special methods
    def __init__(self, model: type, factory: Factory | None = None) -> None:
        # the registry is keyed weakly by the model, so it is only referenced weakly here
        self._model: weakref.ref[type] = weakref.ref(model)
        self._factory: Factory | None = factory

        self._actions: list[Action] = []
        self._positions: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._actions)

    def __iter__(self) -> Iterator[Action]:
        return iter(tuple(self._actions))

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.model.__qualname__}, {len(self)} actions)'

    # ========== ========== ========== ========== ========== class methods
    @classmethod
    def get(cls, model: type, create: bool = False) -> Serializer:
        """
        Return the registry of ``model``.

        Parameters
        ----------
        model : type
            Type whose registry is requested.
        create : bool, default False
            If True and ``model`` has no registry of its own, build one,
            seeded with the actions of the nearest registered ancestor.

        Raises
        ------
        KeyError
            If ``model`` has no registry and ``create`` is False.
        """
        try:
            return cls._registry[model]

        except KeyError:
            if not create:
                raise KeyError(f'No serializer registered for {model.__qualname__}') from None

        serializer = cls(model)

        parent = cls._nearest_ancestor(model)

        if parent is not None:
            logger.debug("seeding serializer of %s with %d actions from %s",
                         model.__qualname__, len(parent), parent.model.__qualname__)

            for action in parent._actions:
                serializer.add_action(action)

        else:
            logger.debug("creating serializer of %s", model.__qualname__)

        cls._registry[model] = serializer

        return serializer

    @classmethod
    def lookup(cls, model: type) -> Serializer:
        """
        Return the registry used to map instances of ``model``.

        A type without its own registry gets one on first use when one of its
        ancestors is registered.

        Raises
        ------
        TypeError
            If neither ``model`` nor any of its ancestors is registered.
        """
        if not cls.registered(model):
            raise TypeError(f'No serializer registered for type {model.__qualname__}')

        return cls.get(model, create=True)

    @classmethod
    def registered(cls, model: type) -> bool:
        """Return True if ``model`` or one of its ancestors has a registry."""
        return model in cls._registry or cls._nearest_ancestor(model) is not None

    @classmethod
    def _nearest_ancestor(cls, model: type) -> Serializer | None:
        for base in model.__mro__[1:]:
            if base in cls._registry:
                return cls._registry[base]

        return None

    # ========== ========== ========== ========== ========== public methods
    def add_action(self, action: Action) -> None:
        """
        Register ``action``.

        An action whose internal key is already present replaces the previous
        one at its original position. Otherwise the action is appended.
        """
        key = action.internal_key

        if key is None:
            self._actions.append(action)
            return

        position = self._positions.get(key)

        if position is not None:
            logger.debug("overriding action %r of %s", key, self.model.__qualname__)
            self._actions[position] = action

        else:
            self._positions[key] = len(self._actions)
            self._actions.append(action)

    def serialize(self, instance: Any, output: dict[str, Any] | None = None) -> dict[str, Any]:
        """Apply every action in order and return the output dict."""
        if output is None:
            output = {}

        for action in self._actions:
            action.serialize(instance, output)

        return output

    def deserialize(self, data: Mapping[str, Any], instance: Any = None) -> Any:
        """
        Populate ``instance`` (or a freshly built one) from ``data``.

        After every action ran, the most-derived ``__post_deserialize__`` hook
        of the instance, if any, is called once.

        Raises
        ------
        TypeError
            If ``data`` is not a mapping.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"Expected a mapping to deserialize {self.model.__qualname__}, "
                            f"given {type(data).__name__} instead")

        if instance is None:
            instance = self.factory()

        for action in self._actions:
            action.deserialize(instance, data)

        hook = getattr(instance, POST_DESERIALIZE, None)

        if callable(hook):
            hook()

        return instance

    # ---------- ---------- ---------- ---------- ---------- properties
    @property
    def model(self) -> type:
        return self._model()

    @property
    def factory(self) -> Factory:
        """Zero-argument callable building fresh instances (the model itself by default)."""
        return self._factory if self._factory is not None else self.model

    @factory.setter
    def factory(self, factory: Factory | None) -> None:
        self._factory = factory

    @property
    def actions(self) -> tuple[Action, ...]:
        return tuple(self._actions)

    def action_for(self, key: str) -> Action:
        """Return the action registered under internal key ``key``."""
        return self._actions[self._positions[key]]


# ========== ========== ========== ========== ========== attachment
def register_field(cls: type, name: str, action: PropAction) -> PropAction:
    """
    Attach ``action`` to attribute ``name`` of ``cls``.

    The action itself is left untouched; a clone bound to ``name`` is
    registered and returned.
    """
    bound = action.property(name)
    Serializer.get(cls, create=True).add_action(bound)
    return bound


def register_action(cls: type, action: Action) -> Action:
    """Attach a type-level ``action`` to ``cls``."""
    Serializer.get(cls, create=True).add_action(action)
    return action


def serializable(cls: type | None = None, *, factory: Factory | None = None):
    """
    Class decorator making sure ``cls`` has a registry.

    Useful for types without mapped fields, or to capture a zero-argument
    ``factory`` used by ``deserialize`` instead of calling the class.

    Examples
    --------
    >>> @serializable(factory=lambda: Config(path='.'))
    ... class Config:
    ...     path = str_
    ...     def __init__(self, path):
    ...         self.path = path
    """
    def decorator(klass: type) -> type:
        serializer = Serializer.get(klass, create=True)

        if factory is not None:
            serializer.factory = factory

        return klass

    if cls is None:
        return decorator

    return decorator(cls)


def on_deserialize(callback: Callable[[Any], None]) -> Callable[[type], type]:
    """
    Class decorator installing ``callback`` as the post-deserialize hook.

    The callback receives the deserialized instance. Only the most-derived
    hook runs: a subclass hook replaces the parent one, which it must call
    explicitly to keep the parent behaviour.
    """
    def decorator(cls: type) -> type:
        Serializer.get(cls, create=True)

        def hook(self) -> None:
            callback(self)

        setattr(cls, POST_DESERIALIZE, hook)
        return cls

    return decorator


# ========== ========== ========== ========== ========== entry points
def serialize(obj: Any) -> Any:
    """
    Produce plain data from an instance or a list of instances.

    Parameters
    ----------
    obj : object, list or tuple
        Instance of a registered type, or a sequence of instances of the same
        type. The type of the first element that is not None selects the
        registry used for every element.

    Returns
    -------
    dict, list or None
        None if ``obj`` is None.

    Raises
    ------
    TypeError
        If the type of ``obj`` is not registered.
    """
    if obj is None:
        return None

    if isinstance(obj, (list, tuple)):
        first = next((o for o in obj if o is not None), None)

        if first is None:
            return [None] * len(obj)

        serializer = Serializer.lookup(type(first))
        return [None if o is None else serializer.serialize(o) for o in obj]

    return Serializer.lookup(type(obj)).serialize(obj)


def deserialize(data: Any, target: Type[T] | T | list[T]) -> T | list[T]:
    """
    Build or update instances from plain data.

    Parameters
    ----------
    data : dict or list
        Plain data, usually coming from ``json.loads``.
    target : type, object or list
        Either a registered class (new instances are built) or an existing
        instance (updated in place). When both ``data`` and ``target`` are
        lists, each pair is deserialized in place.

    Returns
    -------
    object or list
        The built or updated instance(s).

    Raises
    ------
    ValueError
        If ``data`` and ``target`` are lists of different lengths.
    TypeError
        If the combination of ``data`` and ``target`` is not supported.

    Examples
    --------
    >>> p = deserialize({'x': 1, 'y': 2}, Point)
    >>> deserialize({'x': 5}, p) is p
    True
    """
    if isinstance(data, list):

        if isinstance(target, list):
            if len(target) != len(data):
                raise ValueError(f"Both lists need to have the same length: "
                                 f"{len(data)} items given for {len(target)} instances")

            for item, instance in zip(data, target):
                Serializer.lookup(type(instance)).deserialize(item, instance)

            return target

        if not isinstance(target, type):
            raise TypeError(f"Expected either a list of instances or a class, "
                            f"given {type(target).__name__} instead")

        serializer = Serializer.lookup(target)
        return [serializer.deserialize(item) for item in data]

    if not isinstance(data, Mapping):
        raise TypeError(f"Input data must be a mapping, given {type(data).__name__} instead")

    if isinstance(target, type):
        return Serializer.lookup(target).deserialize(data)

    if isinstance(target, (list, tuple)) or target is None:
        raise TypeError(f"Cannot deserialize a mapping into {type(target).__name__}")

    return Serializer.lookup(type(target)).deserialize(data, target)


__all__ = [
    'MISSING',
    'POST_DESERIALIZE',
    'Action',
    'CallbackAction',
    'PropAction',
    'ArrayOf',
    'MappingOf',
    'Serializer',
    'register_field',
    'register_action',
    'serializable',
    'on_deserialize',
    'serialize',
    'deserialize',
]
