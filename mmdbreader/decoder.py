"""Decoder for the self-describing values of the MMDB data section.

A value starts with a control byte. Its top three bits hold the type and
its low five bits hold the payload size. Type 0 means "extended": the real
type is ``7 + next byte``. Sizes 29, 30 and 31 say that 1, 2 or 3 more
bytes follow and should be added to 29, 285 or 65821. Pointers use the
size bits differently (see ``Decoder._decode_pointer``).

``Decoder`` only walks the byte stream. What each value becomes is up to
the bridge it was built with:

* ``NativeBridge`` produces plain Python values (the lookup path);
* ``TaggedBridge`` keeps the stored numeric type by wrapping numbers in
  ``mmdbreader.types`` classes;
* ``to_native`` turns a tagged value into the plain form.

The decoder keeps no state between calls. Offsets are passed in and
returned, so one instance can be used by many threads at once.
"""

import struct

from . import types
from .config import MAX_DATA_DEPTH
from .errors import InvalidDatabaseError
from .types import MMDBNumber, NUMBER_TYPES


class NativeBridge(object):
    def scalar(self, type_tag, value):
        return value

    def sequence(self, items):
        return items

    def mapping(self, items):
        return items


class TaggedBridge(NativeBridge):
    def scalar(self, type_tag, value):
        cls = NUMBER_TYPES.get(type_tag)
        if cls is None:
            return value
        return cls(value)


NATIVE = NativeBridge()
TAGGED = TaggedBridge()


def to_native(value):
    """Replace every ``MMDBNumber`` inside ``value`` with its plain value."""
    if isinstance(value, MMDBNumber):
        return value.value
    if isinstance(value, list):
        return [to_native(item) for item in value]
    if isinstance(value, dict):
        return {key: to_native(item) for key, item in value.items()}
    return value


class Decoder(object):
    def __init__(self, buf, pointer_base=0, bridge=NATIVE):
        self._buf = buf
        self._buf_size = len(buf)
        self._pointer_base = pointer_base
        self._bridge = bridge

    def decode(self, offset):
        """Decode the value at ``offset``.

        Returns a ``(value, next_offset)`` tuple, where ``next_offset``
        points just past the value. When the value is a pointer, that is
        just past the pointer, not past its target.
        """
        try:
            return self._decode(offset, 0)
        except struct.error as ex:
            raise InvalidDatabaseError(
                'unexpected end of data near offset {}'.format(offset)) from ex

    def _decode(self, offset, depth):
        if depth > MAX_DATA_DEPTH:
            raise InvalidDatabaseError(
                'data structures nested deeper than {} levels'.format(
                    MAX_DATA_DEPTH))

        control_byte, = struct.unpack_from('>B', self._buf, offset)
        offset += 1
        field_type = control_byte >> 5

        if field_type == types.TYPE_POINTER:
            pointer, offset = self._decode_pointer(control_byte, offset)
            self._check_pointer_target(pointer)
            value, _ = self._decode(pointer, depth + 1)
            return value, offset

        if field_type == types.TYPE_EXTENDED:
            field_type, offset = self._read_extended_type(offset)

        field_size, offset = self._read_size(control_byte, offset)
        return self._decode_payload(field_type, field_size, offset, depth)

    def _decode_payload(self, field_type, field_size, offset, depth):
        bridge = self._bridge

        if field_type == types.TYPE_MAP:
            return self._decode_map(field_size, offset, depth)

        elif field_type == types.TYPE_ARRAY:
            items = []
            for _ in range(field_size):
                item, offset = self._decode(offset, depth + 1)
                items.append(item)
            return bridge.sequence(items), offset

        elif field_type == types.TYPE_UTF8:
            raw, offset = self._read(offset, field_size)
            return self._utf8(raw, offset - field_size), offset

        elif field_type == types.TYPE_BYTES:
            raw, offset = self._read(offset, field_size)
            return bytes(raw), offset

        elif field_type == types.TYPE_BOOLEAN:
            if field_size > 1:
                raise InvalidDatabaseError(
                    'the boolean type has an invalid size of {}'.format(
                        field_size))
            return field_size == 1, offset

        elif field_type == types.TYPE_DOUBLE:
            self._check_exact_size(field_type, field_size)
            value, = struct.unpack_from('>d', self._buf, offset)
            return bridge.scalar(field_type, value), offset + 8

        elif field_type == types.TYPE_FLOAT:
            self._check_exact_size(field_type, field_size)
            # unpacking a '>f' yields a Python float, i.e. a double
            value, = struct.unpack_from('>f', self._buf, offset)
            return bridge.scalar(field_type, value), offset + 4

        elif field_type == types.TYPE_INT32:
            self._check_max_size(field_type, field_size)
            raw, offset = self._read(offset, field_size)
            value, = struct.unpack('>i', raw.rjust(4, b'\x00'))
            return bridge.scalar(field_type, value), offset

        elif field_type in (types.TYPE_UINT16, types.TYPE_UINT32,
                            types.TYPE_UINT64, types.TYPE_UINT128):
            self._check_max_size(field_type, field_size)
            raw, offset = self._read(offset, field_size)
            return bridge.scalar(field_type, int.from_bytes(raw, 'big')), \
                offset

        elif field_type in (types.TYPE_DATA_CACHE_CONTAINER,
                            types.TYPE_END_MARKER):
            raise InvalidDatabaseError(
                'unexpected {} in the data section'.format(
                    types.TYPE_NAMES[field_type]))

        raise InvalidDatabaseError(
            'unknown data type {} at offset {}'.format(field_type, offset))

    def _decode_map(self, field_size, offset, depth):
        items = {}
        for _ in range(field_size):
            key, offset = self._decode_key(offset, depth + 1)
            value, offset = self._decode(offset, depth + 1)
            items[key] = value
        return self._bridge.mapping(items), offset

    def _decode_key(self, offset, depth):
        # Map keys are text whichever string type stored them.
        control_byte, = struct.unpack_from('>B', self._buf, offset)
        offset += 1
        field_type = control_byte >> 5

        if field_type == types.TYPE_POINTER:
            pointer, offset = self._decode_pointer(control_byte, offset)
            self._check_pointer_target(pointer)
            key, _ = self._decode_key(pointer, depth + 1)
            return key, offset

        if field_type == types.TYPE_EXTENDED:
            field_type, offset = self._read_extended_type(offset)

        if field_type not in (types.TYPE_UTF8, types.TYPE_BYTES):
            raise InvalidDatabaseError(
                'map keys must be strings, got {}'.format(
                    types.TYPE_NAMES.get(field_type, field_type)))

        field_size, offset = self._read_size(control_byte, offset)
        raw, offset = self._read(offset, field_size)
        return self._utf8(raw, offset - field_size), offset

    def _decode_pointer(self, control_byte, offset):
        ss_bits = (control_byte >> 3) & 0x03
        vvv_bits = control_byte & 0x07

        if ss_bits == 0:
            b1, = struct.unpack_from('>B', self._buf, offset)
            offset += 1
            pointer = vvv_bits * 256 + b1

        elif ss_bits == 1:
            b1, b2 = struct.unpack_from('>BB', self._buf, offset)
            offset += 2
            pointer = (vvv_bits * 256 + b1) * 256 + b2 + 2048

        elif ss_bits == 2:
            b1, b2, b3 = struct.unpack_from('>BBB', self._buf, offset)
            offset += 3
            pointer = ((vvv_bits * 256 + b1) * 256 + b2) * 256 + b3 + 526336

        else:
            pointer, = struct.unpack_from('>I', self._buf, offset)
            offset += 4

        return self._pointer_base + pointer, offset

    def _check_pointer_target(self, pointer):
        if pointer >= self._buf_size:
            raise InvalidDatabaseError(
                'pointer to offset {} is past the end of the database'.format(
                    pointer))
        if self._buf[pointer] >> 5 == types.TYPE_POINTER:
            raise InvalidDatabaseError(
                'pointer at offset {} points to another pointer'.format(
                    pointer))

    def _read_extended_type(self, offset):
        next_byte, = struct.unpack_from('>B', self._buf, offset)
        field_type = 7 + next_byte
        if field_type < 8:
            raise InvalidDatabaseError(
                'extended type resolved to type number {} which is not an '
                'extended type'.format(field_type))
        return field_type, offset + 1

    def _read_size(self, control_byte, offset):
        field_size = control_byte & 0x1f
        if field_size < 29:
            return field_size, offset

        if field_size == 29:
            b1, = struct.unpack_from('>B', self._buf, offset)
            return 29 + b1, offset + 1

        elif field_size == 30:
            b1, b2 = struct.unpack_from('>BB', self._buf, offset)
            return 285 + b1 * 256 + b2, offset + 2

        b1, b2, b3 = struct.unpack_from('>BBB', self._buf, offset)
        return 65821 + b1 * 65536 + b2 * 256 + b3, offset + 3

    def _read(self, offset, size):
        end = offset + size
        if end > self._buf_size:
            raise InvalidDatabaseError(
                'value at offset {} runs past the end of the database'.format(
                    offset))
        return self._buf[offset:end], end

    def _check_exact_size(self, field_type, field_size):
        if field_size != types.TYPE_WIDTHS[field_type]:
            raise InvalidDatabaseError(
                'the {} type must have a size of {} bytes, got {}'.format(
                    types.TYPE_NAMES[field_type],
                    types.TYPE_WIDTHS[field_type], field_size))

    def _check_max_size(self, field_type, field_size):
        if field_size > types.TYPE_WIDTHS[field_type]:
            raise InvalidDatabaseError(
                'the {} type cannot have a size of {} bytes'.format(
                    types.TYPE_NAMES[field_type], field_size))

    @staticmethod
    def _utf8(raw, offset):
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as ex:
            raise InvalidDatabaseError(
                'invalid UTF-8 in string at offset {}'.format(offset)) from ex
