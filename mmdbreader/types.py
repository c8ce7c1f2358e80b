TYPE_EXTENDED = 0
TYPE_POINTER = 1
TYPE_UTF8 = 2
TYPE_DOUBLE = 3
TYPE_BYTES = 4
TYPE_UINT16 = 5
TYPE_UINT32 = 6
TYPE_MAP = 7
TYPE_INT32 = 8
TYPE_UINT64 = 9
TYPE_UINT128 = 10
TYPE_ARRAY = 11
TYPE_DATA_CACHE_CONTAINER = 12
TYPE_END_MARKER = 13
TYPE_BOOLEAN = 14
TYPE_FLOAT = 15

TYPE_NAMES = {
    TYPE_POINTER: 'pointer',
    TYPE_UTF8: 'utf8_string',
    TYPE_DOUBLE: 'double',
    TYPE_BYTES: 'bytes',
    TYPE_UINT16: 'uint16',
    TYPE_UINT32: 'uint32',
    TYPE_MAP: 'map',
    TYPE_INT32: 'int32',
    TYPE_UINT64: 'uint64',
    TYPE_UINT128: 'uint128',
    TYPE_ARRAY: 'array',
    TYPE_DATA_CACHE_CONTAINER: 'data_cache_container',
    TYPE_END_MARKER: 'end_marker',
    TYPE_BOOLEAN: 'boolean',
    TYPE_FLOAT: 'float',
}

# Payload width in bytes of the fixed-size and unsigned types.
TYPE_WIDTHS = {
    TYPE_DOUBLE: 8,
    TYPE_UINT16: 2,
    TYPE_UINT32: 4,
    TYPE_INT32: 4,
    TYPE_UINT64: 8,
    TYPE_UINT128: 16,
    TYPE_FLOAT: 4,
}


class MMDBNumber(object):
    """A number that remembers which database type it was stored as.

    Python's ``int`` and ``float`` lose the distinction between, say, a
    uint16 and a uint64. These wrappers keep it. Two wrappers compare
    equal only if both the type and the value match.
    """

    class_name = 'MMDBNumber'
    type_tag = None

    __slots__ = ('value',)

    def __init__(self, value):
        self.value = value

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.value == other.value

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash((self.type_tag, self.value))

    def __repr__(self):
        return "{}({!r})".format(self.class_name, self.value)


class Uint16(MMDBNumber):
    class_name = 'Uint16'
    type_tag = TYPE_UINT16
    __slots__ = ()


class Uint32(MMDBNumber):
    class_name = 'Uint32'
    type_tag = TYPE_UINT32
    __slots__ = ()


class Uint64(MMDBNumber):
    class_name = 'Uint64'
    type_tag = TYPE_UINT64
    __slots__ = ()


class Uint128(MMDBNumber):
    class_name = 'Uint128'
    type_tag = TYPE_UINT128
    __slots__ = ()


class Int32(MMDBNumber):
    class_name = 'Int32'
    type_tag = TYPE_INT32
    __slots__ = ()


class Float(MMDBNumber):
    class_name = 'Float'
    type_tag = TYPE_FLOAT
    __slots__ = ()


class Double(MMDBNumber):
    class_name = 'Double'
    type_tag = TYPE_DOUBLE
    __slots__ = ()


NUMBER_TYPES = {
    cls.type_tag: cls
    for cls in (Uint16, Uint32, Uint64, Uint128, Int32, Float, Double)
}
