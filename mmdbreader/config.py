"""Open modes and format constants."""

MODE_AUTO = 0
MODE_MMAP = 2
MODE_MEMORY = 8

MODE_NAMES = {
    MODE_AUTO: 'MODE_AUTO',
    MODE_MMAP: 'MODE_MMAP',
    MODE_MEMORY: 'MODE_MEMORY',
}

METADATA_START_MARKER = b'\xab\xcd\xefMaxMind.com'

# The metadata trailer is searched for only in this many trailing bytes.
METADATA_MAX_SIZE = 128 * 1024

DATA_SECTION_SEPARATOR_SIZE = 16

SUPPORTED_RECORD_SIZES = (24, 28, 32)

MAX_DATA_DEPTH = 256


def resolve_mode(mode):
    """Map a requested open mode to the one actually used.

    ``MODE_AUTO`` always picks ``MODE_MMAP``.
    """
    if mode == MODE_AUTO:
        return MODE_MMAP
    if mode in (MODE_MMAP, MODE_MEMORY):
        return mode
    raise ValueError('Unsupported open mode ({!r}). Use MODE_AUTO, '
                     'MODE_MMAP or MODE_MEMORY'.format(mode))
