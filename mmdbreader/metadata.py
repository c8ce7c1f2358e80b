import logging

from .config import SUPPORTED_RECORD_SIZES
from .errors import InvalidDatabaseError

logger = logging.getLogger(__name__)

_FIELDS = (
    'binary_format_major_version',
    'binary_format_minor_version',
    'build_epoch',
    'database_type',
    'description',
    'ip_version',
    'languages',
    'node_count',
    'record_size',
)


class Metadata(object):
    """Snapshot of the metadata trailer of a database.

    Instances are read-only. ``description`` and ``languages`` return a
    fresh copy on every access. ``node_byte_size`` and
    ``search_tree_size`` are worked out from the stored fields each time
    they are read.
    """

    __slots__ = tuple('_' + name for name in _FIELDS)

    def __init__(self, **kwargs):
        for name in _FIELDS:
            if name not in kwargs:
                raise TypeError('missing metadata field {!r}'.format(name))
            value = kwargs.pop(name)
            if name == 'description':
                value = dict(value)
            elif name == 'languages':
                value = tuple(value)
            object.__setattr__(self, '_' + name, value)

        if kwargs:
            raise TypeError('unexpected metadata fields: {}'.format(
                ', '.join(sorted(kwargs))))

    @classmethod
    def from_trailer(cls, meta):
        """Build metadata from the decoded trailer map.

        Raises ``InvalidDatabaseError`` if a required field is missing or
        has the wrong type.
        """
        if not isinstance(meta, dict):
            raise InvalidDatabaseError('metadata is not a map')

        def require(name, kind):
            try:
                value = meta[name]
            except KeyError:
                raise InvalidDatabaseError(
                    'metadata field {!r} is missing'.format(name)) from None
            if not isinstance(value, kind) or isinstance(value, bool):
                raise InvalidDatabaseError(
                    'metadata field {!r} has an unexpected type {}'.format(
                        name, type(value).__name__))
            return value

        description = meta.get('description', {})
        languages = meta.get('languages', [])
        if not isinstance(description, dict) or \
                not all(isinstance(v, str) for v in description.values()):
            raise InvalidDatabaseError('metadata description is not a map '
                                       'of strings')
        if not isinstance(languages, list) or \
                not all(isinstance(v, str) for v in languages):
            raise InvalidDatabaseError('metadata languages is not a list '
                                       'of strings')

        result = cls(
            binary_format_major_version=require(
                'binary_format_major_version', int),
            binary_format_minor_version=require(
                'binary_format_minor_version', int),
            build_epoch=require('build_epoch', int),
            database_type=require('database_type', str),
            description=description,
            ip_version=require('ip_version', int),
            languages=languages,
            node_count=require('node_count', int),
            record_size=require('record_size', int))

        if result.ip_version not in (4, 6):
            raise InvalidDatabaseError(
                'unsupported ip_version {}'.format(result.ip_version))
        if result.record_size not in SUPPORTED_RECORD_SIZES:
            raise InvalidDatabaseError(
                'unsupported record_size {}'.format(result.record_size))
        if result.binary_format_major_version != 2:
            logger.warning('unexpected binary format major version %d',
                           result.binary_format_major_version)

        return result

    @property
    def binary_format_major_version(self):
        return self._binary_format_major_version

    @property
    def binary_format_minor_version(self):
        return self._binary_format_minor_version

    @property
    def build_epoch(self):
        return self._build_epoch

    @property
    def database_type(self):
        return self._database_type

    @property
    def description(self):
        return dict(self._description)

    @property
    def ip_version(self):
        return self._ip_version

    @property
    def languages(self):
        return list(self._languages)

    @property
    def node_count(self):
        return self._node_count

    @property
    def record_size(self):
        return self._record_size

    @property
    def node_byte_size(self):
        return self._record_size // 4

    @property
    def search_tree_size(self):
        return self._node_count * self.node_byte_size

    def __setattr__(self, name, value):
        raise AttributeError('Metadata is read-only')

    def __delattr__(self, name):
        raise AttributeError('Metadata is read-only')

    def __eq__(self, other):
        if not isinstance(other, Metadata):
            return NotImplemented
        return all(getattr(self, '_' + name) == getattr(other, '_' + name)
                   for name in _FIELDS)

    __hash__ = None

    def __repr__(self):
        return '{}({})'.format(
            type(self).__name__,
            ', '.join('{}={!r}'.format(name, getattr(self, name))
                      for name in _FIELDS))
