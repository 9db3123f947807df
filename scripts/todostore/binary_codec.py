"""Protobuf wire-format codec for todo lists.

The encoded message has the shape::

    message Todo {
        string id = 1;
        string title = 2;
        bool completed = 3;
    }

    message TodoList {
        repeated Todo todos = 1;
    }

Unlike the text codec, decoding is strict: anything that does not parse as a
TodoList raises DecodeError.
"""

from __future__ import annotations

from todostore.protocol import Todo

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5

TODO_LIST_TODOS = 1
TODO_ID = 1
TODO_TITLE = 2
TODO_COMPLETED = 3

MAX_VARINT_BYTES = 10


class DecodeError(ValueError):
    """Raised when bytes do not form a valid TodoList message."""


def _write_varint(value: int, out: bytearray) -> None:
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return


def _write_tag(field: int, wire_type: int, out: bytearray) -> None:
    _write_varint((field << 3) | wire_type, out)


def _write_bytes(field: int, payload: bytes, out: bytearray) -> None:
    _write_tag(field, WIRE_LENGTH_DELIMITED, out)
    _write_varint(len(payload), out)
    out += payload


def _encode_todo(todo: Todo) -> bytes:
    out = bytearray()
    # proto3 omits fields holding their default value
    if todo["id"]:
        _write_bytes(TODO_ID, todo["id"].encode("utf-8"), out)
    if todo["title"]:
        _write_bytes(TODO_TITLE, todo["title"].encode("utf-8"), out)
    if todo["completed"]:
        _write_tag(TODO_COMPLETED, WIRE_VARINT, out)
        _write_varint(1, out)
    return bytes(out)


def encode(todos: list[Todo]) -> bytes:
    """Serialize todos to a TodoList message."""
    out = bytearray()
    for todo in todos:
        _write_bytes(TODO_LIST_TODOS, _encode_todo(todo), out)
    return bytes(out)


def _read_varint(buffer: bytes, index: int) -> tuple[int, int]:
    result = 0
    shift = 0
    for _ in range(MAX_VARINT_BYTES):
        if index >= len(buffer):
            raise DecodeError("Truncated varint")
        byte = buffer[index]
        index += 1
        result |= (byte & 0x7F) << shift
        if byte & 0x80 == 0:
            return result, index
        shift += 7
    raise DecodeError(f"Varint longer than {MAX_VARINT_BYTES} bytes")


def _read_length_delimited(buffer: bytes, index: int) -> tuple[bytes, int]:
    length, index = _read_varint(buffer, index)
    end = index + length
    if end > len(buffer):
        raise DecodeError(
            f"Truncated field: need {length} bytes, have {len(buffer) - index}"
        )
    return buffer[index:end], end


def _read_tag(buffer: bytes, index: int) -> tuple[int, int, int]:
    key, index = _read_varint(buffer, index)
    field = key >> 3
    wire_type = key & 0x07
    if field == 0:
        raise DecodeError("Invalid field number 0")
    return field, wire_type, index


def _skip_field(buffer: bytes, index: int, wire_type: int) -> int:
    if wire_type == WIRE_VARINT:
        _, index = _read_varint(buffer, index)
    elif wire_type == WIRE_FIXED64:
        index += 8
    elif wire_type == WIRE_LENGTH_DELIMITED:
        _, index = _read_length_delimited(buffer, index)
    elif wire_type == WIRE_FIXED32:
        index += 4
    else:
        raise DecodeError(f"Unsupported wire type: {wire_type}")
    if index > len(buffer):
        raise DecodeError("Truncated fixed-width field")
    return index


def _expect_wire_type(field: int, wire_type: int, expected: int) -> None:
    if wire_type != expected:
        raise DecodeError(
            f"Field {field} has wire type {wire_type}, expected {expected}"
        )


def _decode_string(payload: bytes, field: int) -> str:
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Field {field} is not valid UTF-8") from exc


def _decode_todo(buffer: bytes) -> Todo:
    todo: Todo = {"id": "", "title": "", "completed": False}
    index = 0
    while index < len(buffer):
        field, wire_type, index = _read_tag(buffer, index)
        if field == TODO_ID:
            _expect_wire_type(field, wire_type, WIRE_LENGTH_DELIMITED)
            payload, index = _read_length_delimited(buffer, index)
            todo["id"] = _decode_string(payload, field)
        elif field == TODO_TITLE:
            _expect_wire_type(field, wire_type, WIRE_LENGTH_DELIMITED)
            payload, index = _read_length_delimited(buffer, index)
            todo["title"] = _decode_string(payload, field)
        elif field == TODO_COMPLETED:
            _expect_wire_type(field, wire_type, WIRE_VARINT)
            value, index = _read_varint(buffer, index)
            todo["completed"] = value != 0
        else:
            index = _skip_field(buffer, index, wire_type)
    return todo


def decode(data: bytes) -> list[Todo]:
    """Deserialize a TodoList message.

    Empty input is the default (never written) message and decodes to an
    empty list.

    Raises:
        DecodeError: If the bytes are truncated, use an invalid wire type,
            carry a known field with the wrong wire type, or contain
            invalid UTF-8.
    """
    todos: list[Todo] = []
    index = 0
    while index < len(data):
        field, wire_type, index = _read_tag(data, index)
        if field == TODO_LIST_TODOS:
            _expect_wire_type(field, wire_type, WIRE_LENGTH_DELIMITED)
            payload, index = _read_length_delimited(data, index)
            todos.append(_decode_todo(payload))
        else:
            index = _skip_field(data, index, wire_type)
    return todos
