import ipaddress
import logging
import threading
from contextlib import contextmanager

from .config import MODE_AUTO
from .errors import (ERR_BAD_DATA, ClosedDatabaseError, InvalidDatabaseError,
                     LookupFailedError)
from .iterator import AddressSpaceIterator
from .lock import ReadWriteLock
from .source import open_source

logger = logging.getLogger(__name__)

_ADDRESS_TYPES = (ipaddress.IPv4Address, ipaddress.IPv6Address)
_NETWORK_TYPES = (ipaddress.IPv4Network, ipaddress.IPv6Network)


class _Open(object):
    __slots__ = ('source',)

    def __init__(self, source):
        self.source = source


class _Closed(object):
    __slots__ = ()

    def __repr__(self):
        return 'CLOSED'


CLOSED = _Closed()


class Reader(object):
    """Reader for an MMDB file.

    A reader is either open or closed, and once closed it stays closed.
    The state sits behind a read/write lock. Operations hold the read
    side only long enough to take a reference to the database source.
    The lookup itself runs without the lock, so lookups from different
    threads run in parallel. ``close()`` takes the write side.

    The closed flag is also kept in a ``threading.Event``. The common
    "already closed?" check reads it without touching the lock.

        with Reader('GeoIP2-City.mmdb') as reader:
            record = reader.get('1.1.1.1')
    """

    def __init__(self, database, mode=MODE_AUTO):
        source = open_source(database, mode)
        self._ip_version = source.metadata.ip_version
        self._state = _Open(source)
        self._lock = ReadWriteLock()
        self._closed = threading.Event()

    @property
    def closed(self):
        return self._closed.is_set()

    def get(self, ip_address):
        """Return the record for ``ip_address``, or ``None``."""
        record, _ = self.get_with_prefix_len(ip_address)
        return record

    def get_with_prefix_len(self, ip_address):
        """Return ``(record, prefix_len)`` for ``ip_address``.

        ``prefix_len`` is the length of the network the lookup ended in,
        whether or not that network has a record. An IPv4 address looked
        up in an IPv6 database gets an IPv4 prefix length.
        """
        self._check_open()
        address = _parse_address(ip_address)
        if address.version == 6 and self._ip_version == 4:
            raise ValueError(
                'Error looking up {}. You attempted to look up an IPv6 '
                'address in an IPv4-only database'.format(address))

        with self._borrow() as source:
            try:
                offset, prefix_len = source.tree.find(address.packed)
                if offset is None:
                    return None, prefix_len
                record, _ = source.decoder.decode(offset)
            except InvalidDatabaseError as ex:
                raise InvalidDatabaseError(ERR_BAD_DATA) from ex
            except Exception as ex:
                raise LookupFailedError(
                    'Database lookup failed: {}'.format(ex)) from ex

        return record, prefix_len

    def metadata(self):
        self._check_open()
        with self._borrow() as source:
            return source.metadata

    def each(self, callback, network=None):
        """Call ``callback(network, record)`` for every network in the
        database.

        With ``network`` given, only networks inside it are visited.
        Networks arrive in search tree order, which is not sorted address
        order. A callback returning ``False`` stops the iteration.
        """
        if callback is None or not callable(callback):
            raise TypeError('each() requires a callable callback')
        self._check_open()

        AddressSpaceIterator(self, self._parse_network(network)).run(
            callback)

    def close(self):
        self._closed.set()
        with self._lock.write():
            state, self._state = self._state, CLOSED

        if state is not CLOSED:
            state.source.release()
            logger.debug('closed reader for %s', state.source.path)

    def __enter__(self):
        self._check_open()
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self):
        state = self._state
        if state is CLOSED:
            return '<{} closed>'.format(type(self).__name__)
        return '<{} {!r}>'.format(type(self).__name__, state.source.path)

    def _check_open(self):
        if self._closed.is_set():
            raise ClosedDatabaseError()

    def acquire_source(self):
        """Take a reference to the database source.

        The caller must call ``release()`` on the returned source when it
        is done with it.
        """
        self._check_open()
        with self._lock.read():
            state = self._state
            if state is CLOSED:
                raise ClosedDatabaseError()
            return state.source.retain()

    @contextmanager
    def _borrow(self):
        source = self.acquire_source()
        try:
            yield source
        finally:
            source.release()

    def _parse_network(self, network):
        if network is None:
            if self._ip_version == 4:
                return ipaddress.IPv4Network('0.0.0.0/0')
            return ipaddress.IPv6Network('::/0')

        if not isinstance(network, _NETWORK_TYPES):
            network = ipaddress.ip_network(network, strict=False)
        if network.version == 6 and self._ip_version == 4:
            raise ValueError(
                'Error iterating over {}. You attempted to iterate over an '
                'IPv6 network in an IPv4-only database'.format(network))
        return network


def _parse_address(ip_address):
    if isinstance(ip_address, _ADDRESS_TYPES):
        return ip_address
    if not isinstance(ip_address, str):
        raise ValueError('{!r} does not appear to be an IPv4 or IPv6 '
                         'address'.format(ip_address))
    return ipaddress.ip_address(ip_address)


def open_database(database, mode=MODE_AUTO):
    """Open an MMDB file and return a ``Reader`` for it.

    ``mode`` is ``MODE_MMAP`` to memory-map the file, ``MODE_MEMORY`` to
    read all of it into memory, or ``MODE_AUTO`` (which maps it).
    """
    return Reader(database, mode)
