"""Exceptions raised by mmdbreader.

File-level failures on open use the builtin ``FileNotFoundError`` and
``OSError``. Bad arguments use ``ValueError`` and ``TypeError``.
"""

ERR_CLOSED_DB = 'Attempt to read from a closed MaxMind DB.'
ERR_BAD_DATA = ("The MaxMind DB file's data section contains bad data "
                "(unknown data type or corrupt data)")
ERR_BAD_FILE = ('Error opening database file ({}). '
                'Is this a valid MaxMind DB file?')


class MMDBError(Exception):
    pass


class InvalidDatabaseError(MMDBError, RuntimeError):
    """The database is corrupt: bad metadata, bad search tree or bad data."""


class ClosedDatabaseError(MMDBError, RuntimeError):
    def __init__(self, message=ERR_CLOSED_DB):
        super(ClosedDatabaseError, self).__init__(message)


class LookupFailedError(MMDBError, RuntimeError):
    """An unexpected failure inside the search tree engine."""
