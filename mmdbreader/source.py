"""Raw database bytes and the structures parsed from them."""

import logging
import mmap
import os
import threading

from .config import (DATA_SECTION_SEPARATOR_SIZE, METADATA_MAX_SIZE,
                     METADATA_START_MARKER, MODE_MEMORY, MODE_MMAP, MODE_NAMES,
                     resolve_mode)
from .decoder import Decoder
from .errors import ERR_BAD_FILE, InvalidDatabaseError
from .metadata import Metadata
from .tree import SearchTree

logger = logging.getLogger(__name__)


class DatabaseSource(object):
    """Owns the bytes of one database file.

    The bytes are either a read-only memory map (``MODE_MMAP``) or a
    ``bytes`` object holding the whole file (``MODE_MEMORY``). Nothing
    here changes after construction, so any number of threads may read
    through one source.

    A source counts its references. It starts with one, owned by whoever
    opened it. Borrowers call ``retain()`` and later ``release()``. The
    memory map is closed when the last reference goes.
    """

    def __init__(self, path, buf, mode, mapped_file=None):
        self.path = path
        self.mode = mode
        self._buf = buf
        self._mapped_file = mapped_file
        self._refs = 1
        self._refs_lock = threading.Lock()

        try:
            self.metadata = _read_metadata(buf)
            self.tree = SearchTree(buf, self.metadata)
        except InvalidDatabaseError as ex:
            self._unmap()
            raise InvalidDatabaseError(ERR_BAD_FILE.format(path)) from ex

        self.decoder = Decoder(
            buf, self.metadata.search_tree_size + DATA_SECTION_SEPARATOR_SIZE)

    @property
    def released(self):
        return self._refs == 0

    def retain(self):
        with self._refs_lock:
            if self._refs == 0:
                raise RuntimeError('database source already released')
            self._refs += 1
        return self

    def release(self):
        with self._refs_lock:
            if self._refs == 0:
                return
            self._refs -= 1
            if self._refs:
                return
        self._unmap()
        logger.debug('released database source %s', self.path)

    def _unmap(self):
        if self._mapped_file is not None:
            self._buf.close()
            self._mapped_file.close()
            self._mapped_file = None
        self._buf = None

    def __repr__(self):
        return '{}({!r}, {})'.format(type(self).__name__, self.path,
                                     MODE_NAMES[self.mode])


def _read_metadata(buf):
    size = len(buf)
    start = buf.rfind(METADATA_START_MARKER, max(0, size - METADATA_MAX_SIZE))
    if start < 0:
        raise InvalidDatabaseError('metadata section not found')
    start += len(METADATA_START_MARKER)

    meta, _ = Decoder(buf, start).decode(start)
    return Metadata.from_trailer(meta)


def open_source(path, mode):
    """Open ``path`` as a ``DatabaseSource``.

    Raises ``FileNotFoundError`` when there is no such file, ``OSError``
    on any other I/O or mapping failure, and ``InvalidDatabaseError`` when
    the file is not a valid database.
    """
    path = os.fspath(path)
    mode = resolve_mode(mode)

    if mode == MODE_MMAP:
        source = _open_mmap(path)
    else:
        with open(path, 'rb') as f:
            buf = f.read()
        if not buf:
            raise InvalidDatabaseError(ERR_BAD_FILE.format(path))
        source = DatabaseSource(path, buf, MODE_MEMORY)

    meta = source.metadata
    logger.debug('opened %s (%s): %s, ip_version=%d, node_count=%d, '
                 'record_size=%d', path, MODE_NAMES[mode], meta.database_type,
                 meta.ip_version, meta.node_count, meta.record_size)
    return source


def _open_mmap(path):
    f = open(path, 'rb')
    try:
        if os.fstat(f.fileno()).st_size == 0:
            raise InvalidDatabaseError(ERR_BAD_FILE.format(path))
        try:
            buf = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
        except (OSError, ValueError) as ex:
            raise OSError(
                'Failed to memory-map database file: {}'.format(ex)) from ex
    except BaseException:
        f.close()
        raise

    return DatabaseSource(path, buf, MODE_MMAP, mapped_file=f)
