"""AA typed binding — decode straight into Python type hints.

This is the adapter between the decoder's expect_*/begin_* calls and
ordinary Python types.  Supported targets:

    Any, object              untyped (Decoder.read_value)
    str, bytes, bytearray    scalars; memoryview borrows from the input
    bool, int, float         scalars, parsed per type
    Enum subclasses          by member name, then by value
    list / List[T] / Sequence[T]
    List[Tuple[str, T]]      from a MAP: order-preserving pair list
    tuple / Tuple[A, B] / Tuple[T, ...]
    dict / Dict[str, T] / Mapping[str, T]
    Optional[T]              an empty scalar binds to None
    dataclasses              MAP keys -> fields; unknown keys skipped

A dataclass field may read from an AA key that is not a valid Python
identifier: declare it with aa_field("key") (or field(metadata={"aa_name":
"key"})).  Map keys with no matching field are skipped unread.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import enum
import logging
import types
import typing
from typing import Any, Dict, List, Tuple, Union

from ._errors import ERR_BINDING, ERR_TYPE_MISMATCH
from ._decoder import Decoder
from ._scanner import TokenKind

logger = logging.getLogger(__name__)

AA_NAME = "aa_name"

_NONE_TYPE = type(None)
_UNION_TYPES: Tuple[Any, ...] = (Union,)
if hasattr(types, "UnionType"):  # PEP 604 unions, X | None
    _UNION_TYPES += (types.UnionType,)

_SEQUENCE_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


def from_bytes(data: Any, target: Any, *, allow_trailing: bool = True, **options: Any) -> Any:
    """Decode one document from `data` into an instance of `target`.

    Keyword options are passed to Decoder (max_depth, encoding, source).
    """
    decoder = Decoder(data, **options)
    value = bind(decoder, target)
    decoder.finish(allow_trailing=allow_trailing)
    return value


def bind(decoder: Decoder, target: Any) -> Any:
    """Read the decoder's next value as `target`."""
    if target is Any or target is object:
        return decoder.read_value()

    origin = typing.get_origin(target)
    if origin is not None:
        args = typing.get_args(target)
        if origin in _UNION_TYPES:
            return _bind_optional(decoder, target, args)
        if origin in _SEQUENCE_ORIGINS:
            return _bind_list(decoder, args[0] if args else Any)
        if origin is tuple:
            return _bind_tuple(decoder, args)
        if origin in _MAPPING_ORIGINS:
            key_type, value_type = args if args else (Any, Any)
            return _bind_dict(decoder, key_type, value_type)
        raise decoder.fail(ERR_BINDING, "unsupported target type {!r}".format(target))

    if isinstance(target, type):
        if dataclasses.is_dataclass(target):
            return _bind_dataclass(decoder, target)
        # Enum before bool/int: IntEnum members are ints too.
        if issubclass(target, enum.Enum):
            return _bind_enum(decoder, target)
        # bool before int, since bool is a subclass of int.
        if issubclass(target, bool):
            return decoder.expect_bool()
        if issubclass(target, int):
            return decoder.expect_int()
        if issubclass(target, float):
            return decoder.expect_float()
        if issubclass(target, str):
            return decoder.expect_string()
        if issubclass(target, bytes):
            return decoder.expect_bytes(copy=True)
        if issubclass(target, bytearray):
            return bytearray(decoder.expect_bytes())
        if issubclass(target, memoryview):
            return decoder.expect_bytes()
        if issubclass(target, list):
            return _bind_list(decoder, Any)
        if issubclass(target, tuple):
            return _bind_tuple(decoder, ())
        if issubclass(target, dict):
            return _bind_dict(decoder, Any, Any)

    raise decoder.fail(ERR_BINDING, "unsupported target type {!r}".format(target))


def _bind_optional(decoder: Decoder, target: Any, args: Tuple[Any, ...]) -> Any:
    inner = [a for a in args if a is not _NONE_TYPE]
    if len(inner) != 1 or len(inner) == len(args):
        raise decoder.fail(ERR_BINDING,
                           "only Optional[T] unions are supported, not {!r}".format(target))
    # An empty scalar is the format's only notion of "no value".
    tok = decoder.peek()
    if tok is not None and tok.kind.is_scalar and tok.size == 0:
        decoder.skip_value()
        return None
    return bind(decoder, inner[0])


def _is_pair_type(t: Any) -> bool:
    args = typing.get_args(t)
    return typing.get_origin(t) is tuple and len(args) == 2 and args[1] is not Ellipsis


def _bind_list(decoder: Decoder, item_type: Any) -> List[Any]:
    if _is_pair_type(item_type) and decoder.peek_kind() is TokenKind.MAP:
        key_type, value_type = typing.get_args(item_type)
        _check_key_type(decoder, key_type)
        with decoder.begin_map() as pairs:
            return [(key, bind(pairs.next_value(), value_type)) for key in pairs]

    with decoder.begin_sequence() as seq:
        return [bind(item, item_type) for item in seq]


def _bind_tuple(decoder: Decoder, args: Tuple[Any, ...]) -> Tuple[Any, ...]:
    if not args or (len(args) == 2 and args[1] is Ellipsis):
        item_type = args[0] if args else Any
        with decoder.begin_sequence() as seq:
            return tuple(bind(item, item_type) for item in seq)

    with decoder.begin_sequence() as seq:
        if len(seq) != len(args):
            raise decoder.fail(ERR_TYPE_MISMATCH,
                               "expected a sequence of {} elements, found {}".format(
                                   len(args), len(seq)),
                               expected="tuple of {}".format(len(args)),
                               found="sequence of {}".format(len(seq)))
        return tuple(bind(seq.next_element(), t) for t in args)


def _check_key_type(decoder: Decoder, key_type: Any) -> None:
    if key_type is not str and key_type is not Any:
        raise decoder.fail(ERR_BINDING, "map keys are strings, not {!r}".format(key_type))


def _bind_dict(decoder: Decoder, key_type: Any, value_type: Any) -> Dict[str, Any]:
    _check_key_type(decoder, key_type)
    with decoder.begin_map() as pairs:
        # Later duplicates overwrite earlier ones.
        return {key: bind(pairs.next_value(), value_type) for key in pairs}


def _bind_enum(decoder: Decoder, target: Any) -> Any:
    tok = decoder.peek()
    if tok is not None and tok.kind is TokenKind.NUMBER:
        number = decoder.expect_number()
        try:
            return target(number)
        except ValueError:
            raise decoder.fail(ERR_BINDING,
                               "{} is not a valid {}".format(number, target.__name__))

    name = decoder.expect_string()
    member = target.__members__.get(name)
    if member is not None:
        return member
    for member in target:
        if str(member.value) == name:
            return member
    raise decoder.fail(ERR_BINDING,
                       "unknown {} member {!r}".format(target.__name__, name))


def _bind_dataclass(decoder: Decoder, cls: Any) -> Any:
    hints = typing.get_type_hints(cls)
    by_key: Dict[str, dataclasses.Field] = {}
    for f in dataclasses.fields(cls):
        if f.init:
            by_key[f.metadata.get(AA_NAME, f.name)] = f

    values: Dict[str, Any] = {}
    with decoder.begin_map() as pairs:
        for key in pairs:
            f = by_key.get(key)
            if f is None:
                logger.debug("skipping unknown key %r for %s", key, cls.__name__)
                pairs.next_value().skip_value()
                continue
            values[f.name] = bind(pairs.next_value(), hints.get(f.name, Any))

    missing = [
        f.name for f in by_key.values()
        if f.name not in values
        and f.default is dataclasses.MISSING
        and f.default_factory is dataclasses.MISSING  # type: ignore[misc]
    ]
    if missing:
        raise decoder.fail(ERR_BINDING, "missing field(s) for {}: {}".format(
            cls.__name__, ", ".join(missing)))
    return cls(**values)


def aa_field(aa_name: str, **kwargs: Any) -> Any:
    """dataclasses.field() that reads its value from the AA key `aa_name`."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[AA_NAME] = aa_name
    return dataclasses.field(metadata=metadata, **kwargs)
