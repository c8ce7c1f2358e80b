"""Binary search tree of an MMDB file.

The tree is ``node_count`` nodes. Each node has two records of
``record_size`` bits: left for a 0 bit, right for a 1 bit. A record value
below ``node_count`` is another node. Exactly ``node_count`` means "no
data". Anything above points into the data section.
"""

import struct

from .config import DATA_SECTION_SEPARATOR_SIZE
from .errors import InvalidDatabaseError


class SearchTree(object):
    def __init__(self, buf, metadata):
        self._buf = buf
        self._buf_size = len(buf)
        self.node_count = metadata.node_count
        self.ip_version = metadata.ip_version
        self.search_tree_size = metadata.search_tree_size

        if self.search_tree_size + DATA_SECTION_SEPARATOR_SIZE > \
                self._buf_size:
            raise InvalidDatabaseError(
                'search tree of {} bytes does not fit in the file'.format(
                    self.search_tree_size))

        if metadata.record_size == 24:
            self.read_node = self._read_node_24
        elif metadata.record_size == 28:
            self.read_node = self._read_node_28
        elif metadata.record_size == 32:
            self.read_node = self._read_node_32
        else:
            raise InvalidDatabaseError(
                'unknown record size {}'.format(metadata.record_size))

        self.ipv4_start = self._find_ipv4_start()

    def _read_node_24(self, node, bit):
        offset = node * 6 + bit * 3
        b1, b2, b3 = struct.unpack_from('>BBB', self._buf, offset)
        return (b1 * 256 + b2) * 256 + b3

    def _read_node_28(self, node, bit):
        # The middle byte carries the top nibble of both records.
        offset = node * 7
        if bit == 0:
            b1, b2, b3, b4 = struct.unpack_from('>BBBB', self._buf, offset)
            return (((b4 >> 4) * 256 + b1) * 256 + b2) * 256 + b3
        b4, b5, b6, b7 = struct.unpack_from('>BBBB', self._buf, offset + 3)
        return (((b4 & 0x0f) * 256 + b5) * 256 + b6) * 256 + b7

    def _read_node_32(self, node, bit):
        record, = struct.unpack_from('>I', self._buf, node * 8 + bit * 4)
        return record

    def _find_ipv4_start(self):
        if self.ip_version == 4:
            return 0

        # IPv4 addresses live under ::/96 in an IPv6 tree.
        node = 0
        for _ in range(96):
            if node >= self.node_count:
                break
            node = self.read_node(node, 0)
        return node

    def start_node(self, bit_count):
        if self.ip_version == 6 and bit_count == 32:
            return self.ipv4_start
        return 0

    def resolve(self, record):
        """Turn a data record into an absolute offset in the file."""
        offset = record - self.node_count + self.search_tree_size
        if offset >= self._buf_size:
            raise InvalidDatabaseError(
                "the MaxMind DB file's search tree is corrupt: record {} "
                "points past the end of the file".format(record))
        return offset

    def find(self, packed):
        """Look up a packed address.

        Returns ``(offset, prefix_len)``. ``offset`` is the absolute
        offset of the record, or ``None`` when the address has no data.
        """
        bit_count = len(packed) * 8
        node_count = self.node_count
        node = self.start_node(bit_count)

        depth = 0
        while depth < bit_count and node < node_count:
            bit = 1 & (packed[depth >> 3] >> 7 - (depth % 8))
            node = self.read_node(node, bit)
            depth += 1

        if node == node_count:
            return None, depth
        if node > node_count:
            return self.resolve(node), depth

        raise InvalidDatabaseError('invalid node in search tree')

    def within(self, network):
        """Yield ``(address, prefix_len, offset)`` for each data record
        under ``network``.

        ``address`` is an integer in ``network``'s address family. The
        walk is depth-first, left before right. In an IPv6 tree, subtrees
        that alias the IPv4 start node are not walked a second time.
        """
        bit_count = network.max_prefixlen
        prefix_len = network.prefixlen
        address = int(network.network_address)
        node_count = self.node_count

        node = self.start_node(bit_count)
        depth = 0
        while depth < prefix_len and node < node_count:
            bit = (address >> (bit_count - 1 - depth)) & 1
            node = self.read_node(node, bit)
            depth += 1

        skip_aliases = (bit_count == 128 and
                        self.ip_version == 6 and
                        self.ipv4_start < node_count)

        stack = [(node, address, prefix_len)]
        while stack:
            node, address, depth = stack.pop()

            if node > node_count:
                yield address, depth, self.resolve(node)
                continue
            if node == node_count:
                continue
            if depth >= bit_count:
                raise InvalidDatabaseError('invalid node in search tree')

            depth += 1
            left = self.read_node(node, 0)
            right = self.read_node(node, 1)
            right_address = address | (1 << (bit_count - depth))

            if skip_aliases and right == self.ipv4_start:
                right = node_count
            if skip_aliases and left == self.ipv4_start and address != 0:
                left = node_count

            stack.append((right, right_address, depth))
            stack.append((left, address, depth))
