"""
Informal Trace Format (ITF) value decoding.

ITF is the JSON encoding Quint and Apalache use for traces:
  - integers that may exceed JSON precision: {"#bigint": "-123"}
  - maps: {"#map": [[key, value], ...]}
  - sets: {"#set": [...]}, tuples: {"#tup": [...]}
  - sum types: {"tag": "Name", "value": payload}
  - trace envelope: {"#meta": {...}, "vars": [...], "states": [{"#meta": {"index": n}, ...}]}

Every helper is fail-closed: an unexpected shape raises `MalformedTrace`
naming the offending path.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Optional, TypeVar

from ..replay.errors import MalformedTrace


T = TypeVar("T")

_BIGINT_RE = re.compile(r"^-?[0-9]+$")


def require_mapping(obj: Any, *, name: str) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise MalformedTrace(f"{name} must be an object")
    return obj


def require_list(obj: Any, *, name: str) -> list[Any]:
    if not isinstance(obj, list):
        raise MalformedTrace(f"{name} must be a list")
    return obj


def require_field(obj: dict[str, Any], key: str, *, name: str) -> Any:
    if key not in obj:
        raise MalformedTrace(f"{name}.{key} is missing")
    return obj[key]


def require_str(obj: Any, *, name: str) -> str:
    if not isinstance(obj, str):
        raise MalformedTrace(f"{name} must be a string")
    return obj


def require_bool(obj: Any, *, name: str) -> bool:
    if not isinstance(obj, bool):
        raise MalformedTrace(f"{name} must be a boolean")
    return obj


def decode_bigint(obj: Any, *, name: str) -> int:
    """Decode an ITF integer: either {"#bigint": "<digits>"} or a plain JSON int."""
    if isinstance(obj, dict) and set(obj.keys()) == {"#bigint"}:
        raw = obj["#bigint"]
        if not isinstance(raw, str) or not _BIGINT_RE.fullmatch(raw):
            raise MalformedTrace(f"{name} is not a valid integer: {raw!r}")
        return int(raw)
    if isinstance(obj, int) and not isinstance(obj, bool):
        return obj
    raise MalformedTrace(f"{name} must be an integer, got {obj!r}")


def decode_map(
    obj: Any,
    *,
    name: str,
    key: Callable[..., Any],
    value: Callable[..., Any],
) -> dict[Any, Any]:
    """Decode {"#map": [[k, v], ...]}; duplicate keys are rejected."""
    data = require_mapping(obj, name=name)
    if set(data.keys()) != {"#map"}:
        raise MalformedTrace(f"{name} must be an ITF map")
    pairs = require_list(data["#map"], name=f"{name}.#map")
    out: dict[Any, Any] = {}
    for i, pair in enumerate(pairs):
        entry = require_list(pair, name=f"{name}.#map[{i}]")
        if len(entry) != 2:
            raise MalformedTrace(f"{name}.#map[{i}] must be a [key, value] pair")
        k = key(entry[0], name=f"{name}.#map[{i}].key")
        if k in out:
            raise MalformedTrace(f"{name} has duplicate key {k!r}")
        out[k] = value(entry[1], name=f"{name}[{k!r}]")
    return out


def decode_seq(obj: Any, *, name: str, item: Callable[..., T]) -> tuple[T, ...]:
    """Decode a JSON list, {"#set": [...]} or {"#tup": [...]} into a tuple."""
    items = obj
    if isinstance(obj, dict):
        if set(obj.keys()) == {"#set"}:
            items = obj["#set"]
        elif set(obj.keys()) == {"#tup"}:
            items = obj["#tup"]
        else:
            raise MalformedTrace(f"{name} must be a list, set or tuple")
    items = require_list(items, name=name)
    return tuple(item(x, name=f"{name}[{i}]") for i, x in enumerate(items))


def decode_variant(obj: Any, *, name: str) -> tuple[str, Any]:
    """Decode a sum-type value {"tag": ..., "value": ...} into (tag, payload)."""
    data = require_mapping(obj, name=name)
    tag = require_str(require_field(data, "tag", name=name), name=f"{name}.tag")
    return tag, data.get("value")


def decode_option(obj: Any, *, name: str, value: Callable[..., T]) -> Optional[T]:
    """Decode an ITF Option: Some(x) -> x, None -> None (never a sentinel)."""
    tag, payload = decode_variant(obj, name=name)
    if tag == "Some":
        return value(payload, name=f"{name}.Some")
    if tag == "None":
        return None
    raise MalformedTrace(f"{name} must be Some or None, got tag {tag!r}")


def decode_result(
    obj: Any,
    *,
    name: str,
    ok: Callable[..., T],
) -> tuple[bool, Optional[T], Optional[str]]:
    """Decode an ITF Result: Ok(x) -> (True, x, None), Err(s) -> (False, None, s)."""
    tag, payload = decode_variant(obj, name=name)
    if tag == "Ok":
        return True, ok(payload, name=f"{name}.Ok"), None
    if tag == "Err":
        return False, None, require_str(payload, name=f"{name}.Err")
    raise MalformedTrace(f"{name} must be Ok or Err, got tag {tag!r}")


def decode_states(doc: Any) -> list[tuple[int, dict[str, Any]]]:
    """
    Split an ITF trace envelope into (index, state-object) pairs.

    The index comes from each state's "#meta".index when present, otherwise
    from its position in the list.
    """
    root = require_mapping(doc, name="trace")
    states = require_list(require_field(root, "states", name="trace"), name="trace.states")
    if not states:
        raise MalformedTrace("trace.states is empty")
    out: list[tuple[int, dict[str, Any]]] = []
    for pos, raw in enumerate(states):
        state = require_mapping(raw, name=f"trace.states[{pos}]")
        index = pos
        meta = state.get("#meta")
        if isinstance(meta, dict) and "index" in meta:
            index = decode_bigint(meta["index"], name=f"trace.states[{pos}].#meta.index")
        out.append((index, {k: v for k, v in state.items() if k != "#meta"}))
    return out
