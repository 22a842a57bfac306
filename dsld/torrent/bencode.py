from typing import NamedTuple


type BencodeValue = int | bytes | list[BencodeValue] | dict[bytes, BencodeValue]


MAX_DEPTH = 256
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_INT = 0x69  # i
_LIST = 0x6C  # l
_DICT = 0x64  # d
_END = 0x65  # e
_COLON = 0x3A
_MINUS = 0x2D
_ZERO = 0x30
_NINE = 0x39


class MalformedBencode(ValueError):
    pass


class ByteRange(NamedTuple):
    start: int
    end: int


def decode(buffer: bytes, offset: int = 0) -> tuple[BencodeValue, int]:
    """
    Decodes one value starting at `offset`.

    Returns the value and the offset right after it.
    """
    return _decode(buffer, offset, 0)


def loads(buffer: bytes) -> BencodeValue:
    value, end = _decode(buffer, 0, 0)
    if end != len(buffer):
        raise MalformedBencode(f"trailing data at index {end}")
    return value


def skip_value(buffer: bytes, offset: int = 0) -> int:
    """
    Walks over one value without building it, returns the offset after it.
    """
    return _skip(buffer, offset, 0)


def find_top_level_section(buffer: bytes, key: str | bytes) -> ByteRange | None:
    """
    Finds the value of `key` in the root dictionary.

    Only the root dictionary is scanned, every other value is skipped. The
    returned range points into `buffer` itself.
    """
    if isinstance(key, str):
        key = key.encode("utf-8")

    if not buffer or buffer[0] != _DICT:
        raise MalformedBencode("root is not a dictionary")

    view = memoryview(buffer)
    cursor = 1
    while True:
        if cursor >= len(buffer):
            raise MalformedBencode("unterminated dictionary")
        if buffer[cursor] == _END:
            return None
        key_start, key_end = _string_bounds(buffer, cursor)
        value_start = key_end
        value_end = _skip(buffer, value_start, 1)
        if view[key_start:key_end] == key:
            return ByteRange(value_start, value_end)
        cursor = value_end


def _decode(buffer: bytes, offset: int, depth: int) -> tuple[BencodeValue, int]:
    if offset >= len(buffer):
        raise MalformedBencode(f"unexpected end of data at index {offset}")
    if depth > MAX_DEPTH:
        raise MalformedBencode(f"nesting too deep at index {offset}")

    token = buffer[offset]
    if token == _INT:
        return _integer(buffer, offset)

    if _ZERO <= token <= _NINE:
        start, end = _string_bounds(buffer, offset)
        return bytes(buffer[start:end]), end

    if token == _LIST:
        items: list[BencodeValue] = []
        cursor = offset + 1
        while True:
            if cursor >= len(buffer):
                raise MalformedBencode(f"unterminated list at index {offset}")
            if buffer[cursor] == _END:
                return items, cursor + 1
            item, cursor = _decode(buffer, cursor, depth + 1)
            items.append(item)

    if token == _DICT:
        table: dict[bytes, BencodeValue] = {}
        cursor = offset + 1
        while True:
            if cursor >= len(buffer):
                raise MalformedBencode(f"unterminated dictionary at index {offset}")
            if buffer[cursor] == _END:
                return table, cursor + 1
            key_start, key_end = _string_bounds(buffer, cursor)
            key = bytes(buffer[key_start:key_end])
            if key in table:
                raise MalformedBencode(f"duplicate key {key!r} at index {cursor}")
            table[key], cursor = _decode(buffer, key_end, depth + 1)

    raise MalformedBencode(f"unknown token {chr(token)!r} at index {offset}")


def _skip(buffer: bytes, offset: int, depth: int) -> int:
    if offset >= len(buffer):
        raise MalformedBencode(f"unexpected end of data at index {offset}")
    if depth > MAX_DEPTH:
        raise MalformedBencode(f"nesting too deep at index {offset}")

    token = buffer[offset]
    if token == _INT:
        return _integer_end(buffer, offset)

    if _ZERO <= token <= _NINE:
        _start, end = _string_bounds(buffer, offset)
        return end

    if token == _LIST:
        cursor = offset + 1
        while True:
            if cursor >= len(buffer):
                raise MalformedBencode(f"unterminated list at index {offset}")
            if buffer[cursor] == _END:
                return cursor + 1
            cursor = _skip(buffer, cursor, depth + 1)

    if token == _DICT:
        cursor = offset + 1
        while True:
            if cursor >= len(buffer):
                raise MalformedBencode(f"unterminated dictionary at index {offset}")
            if buffer[cursor] == _END:
                return cursor + 1
            _key_start, key_end = _string_bounds(buffer, cursor)
            cursor = _skip(buffer, key_end, depth + 1)

    raise MalformedBencode(f"unknown token {chr(token)!r} at index {offset}")


def _string_bounds(buffer: bytes, offset: int) -> tuple[int, int]:
    """
    Returns the (start, end) of the payload of the string at `offset`.
    """
    cursor = offset
    length = 0
    while cursor < len(buffer) and buffer[cursor] != _COLON:
        byte = buffer[cursor]
        if not _ZERO <= byte <= _NINE:
            raise MalformedBencode(f"invalid string length at index {cursor}")
        length = length * 10 + (byte - _ZERO)
        cursor += 1

    if cursor == offset:
        raise MalformedBencode(f"expected a string at index {offset}")
    if cursor >= len(buffer):
        raise MalformedBencode(f"missing string separator after index {offset}")

    start = cursor + 1
    end = start + length
    if end > len(buffer):
        raise MalformedBencode(f"string at index {offset} exceeds the buffer")
    return start, end


def _integer_end(buffer: bytes, offset: int) -> int:
    cursor = offset + 1
    negative = cursor < len(buffer) and buffer[cursor] == _MINUS
    if negative:
        cursor += 1

    digits_start = cursor
    while cursor < len(buffer) and buffer[cursor] != _END:
        byte = buffer[cursor]
        if not _ZERO <= byte <= _NINE:
            raise MalformedBencode(f"invalid integer at index {cursor}")
        cursor += 1

    if cursor >= len(buffer):
        raise MalformedBencode(f"unterminated integer at index {offset}")

    digit_count = cursor - digits_start
    if digit_count == 0:
        raise MalformedBencode(f"empty integer at index {offset}")
    if buffer[digits_start] == _ZERO and (digit_count > 1 or negative):
        raise MalformedBencode(f"non-canonical integer at index {offset}")
    if digit_count >= 19:
        value = int(bytes(buffer[offset + 1 : cursor]))
        if not INT64_MIN <= value <= INT64_MAX:
            raise MalformedBencode(f"integer out of range at index {offset}")

    return cursor + 1


def _integer(buffer: bytes, offset: int) -> tuple[int, int]:
    end = _integer_end(buffer, offset)
    return int(bytes(buffer[offset + 1 : end - 1])), end
