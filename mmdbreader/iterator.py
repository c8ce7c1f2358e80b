import ipaddress
import logging

from .errors import (ERR_BAD_DATA, ClosedDatabaseError, InvalidDatabaseError,
                     LookupFailedError)

logger = logging.getLogger(__name__)


class AddressSpaceIterator(object):
    """Walks the networks inside one span of a reader's address space.

    Entries are pushed to a callback. A callback returning ``False``
    stops the walk. An iterator runs once only.

    The iterator holds its own reference to the database source for the
    length of the walk. Before each step it checks whether the reader
    was closed, and raises ``ClosedDatabaseError`` if so. Its reference
    is dropped when the walk ends, however it ends.
    """

    def __init__(self, reader, network):
        self._reader = reader
        self._network = network
        if network.version == 4:
            self._network_type = ipaddress.IPv4Network
        else:
            self._network_type = ipaddress.IPv6Network
        self._consumed = False

    def run(self, callback):
        if self._consumed:
            raise RuntimeError('an AddressSpaceIterator can only run once')
        self._consumed = True

        source = self._reader.acquire_source()
        try:
            self._walk(source, callback)
        finally:
            source.release()

    def _walk(self, source, callback):
        entries = source.tree.within(self._network)

        while True:
            if self._reader.closed:
                raise ClosedDatabaseError()

            try:
                entry = next(entries, None)
                if entry is None:
                    return
                address, prefix_len, offset = entry
                record, _ = source.decoder.decode(offset)
            except InvalidDatabaseError as ex:
                raise InvalidDatabaseError(ERR_BAD_DATA) from ex
            except Exception as ex:
                raise LookupFailedError(
                    'Database iteration failed: {}'.format(ex)) from ex

            network = self._network_type((address, prefix_len))
            if callback(network, record) is False:
                logger.debug('iteration over %s stopped by callback at %s',
                             self._network, network)
                return
