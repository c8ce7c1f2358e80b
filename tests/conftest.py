import pytest

from mmdbreader import MODE_MEMORY, MODE_MMAP
from mmdbreader.types import Uint16, Uint32, Uint64, Uint128, Int32, Float, Double

from tests.mmdb_writer import write_database


def decoder_values():
    """The record of the decoder test database, as written."""
    return {
        'array': [Uint32(1), Uint32(2), Uint32(3)],
        'boolean': True,
        'bytes': b'\x00\x00\x00*',
        'double': Double(42.123456),
        'float': Float(1.1),
        'int32': Int32(-268435456),
        'map': {
            'mapX': {
                'arrayX': [Uint32(7), Uint32(8), Uint32(9)],
                'utf8_stringX': 'hello',
            },
        },
        'uint128': Uint128(1329227995784915872903807060280344576),
        'uint16': Uint16(100),
        'uint32': Uint32(268435456),
        'uint64': Uint64(1152921504606846976),
        'utf8_string': 'unicode! ☯ - ♫',
    }


DECODER_RECORD = {
    'array': [1, 2, 3],
    'boolean': True,
    'bytes': b'\x00\x00\x00*',
    'double': 42.123456,
    'float': 1.100000023841858,
    'int32': -268435456,
    'map': {
        'mapX': {
            'arrayX': [7, 8, 9],
            'utf8_stringX': 'hello',
        },
    },
    'uint128': 1329227995784915872903807060280344576,
    'uint16': 100,
    'uint32': 268435456,
    'uint64': 1152921504606846976,
    'utf8_string': 'unicode! ☯ - ♫',
}

IPV4_NETWORKS = [
    '1.1.1.1/32',
    '1.1.1.2/31',
    '1.1.1.4/30',
    '1.1.1.8/29',
    '1.1.1.16/28',
    '1.1.1.32/32',
]

IPV6_NETWORKS = [
    '::1:ffff:ffff/128',
    '::2:0:0/122',
    '::2:0:40/124',
    '::2:0:50/125',
    '::2:0:58/127',
]


@pytest.fixture(params=[MODE_MMAP, MODE_MEMORY], ids=['mmap', 'memory'])
def mode(request):
    return request.param


@pytest.fixture
def make_db(tmp_path):
    counter = [0]

    def make(records, **kwargs):
        counter[0] += 1
        path = tmp_path / 'test-{}.mmdb'.format(counter[0])
        write_database(str(path), records, **kwargs)
        return str(path)

    return make


def ip_records(networks):
    return [(network, {'ip': network.split('/')[0]}) for network in networks]


@pytest.fixture(params=[24, 28, 32])
def record_size(request):
    return request.param


@pytest.fixture
def ipv4_db(make_db, record_size):
    return make_db(ip_records(IPV4_NETWORKS), ip_version=4,
                   record_size=record_size,
                   database_type='Test-IPv4-{}'.format(record_size))


@pytest.fixture
def ipv6_db(make_db, record_size):
    return make_db(ip_records(IPV6_NETWORKS), ip_version=6,
                   record_size=record_size,
                   database_type='Test-IPv6-{}'.format(record_size))


@pytest.fixture
def decoder_db(make_db):
    values = decoder_values()
    return make_db([('1.1.1.0/24', values), ('::2:0:0/96', values)],
                   ip_version=6, database_type='MaxMind DB Decoder Test')
