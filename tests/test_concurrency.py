"""Concurrency tests for shared readers and the reader lock."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

from mmdbreader import ClosedDatabaseError, Reader
from mmdbreader.lock import ReadWriteLock

from tests.conftest import DECODER_RECORD, IPV4_NETWORKS

IPV4_QUERIES = ['1.1.1.{}'.format(i) for i in range(64)] + [
    '2.0.0.0', '128.0.0.1', '255.255.255.255']


class TestConcurrentReads:
    """Tests for many threads sharing one reader."""

    def test_concurrent_lookups(self, ipv4_db, mode):
        """Lookups from many threads match a single-threaded run."""
        with Reader(ipv4_db, mode) as reader:
            expected = {query: reader.get_with_prefix_len(query)
                        for query in IPV4_QUERIES}

            def lookup_worker(query):
                return query, reader.get_with_prefix_len(query)

            with ThreadPoolExecutor(max_workers=16) as executor:
                futures = [executor.submit(lookup_worker, query)
                           for query in IPV4_QUERIES * 20]
                for future in as_completed(futures):
                    query, result = future.result()
                    assert result == expected[query]

    def test_concurrent_decoding(self, decoder_db, mode):
        """Full records decode the same from every thread."""
        errors = []

        with Reader(decoder_db, mode) as reader:
            def verify_record():
                try:
                    for query in ('1.1.1.1', '::1.1.1.200', '::2:0:9'):
                        assert reader.get(query) == DECODER_RECORD
                except Exception as e:
                    errors.append(e)

            threads = [threading.Thread(target=verify_record)
                       for _ in range(50)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert errors == []

    def test_concurrent_each_and_get(self, ipv4_db):
        """Iterations and lookups can run side by side."""
        with Reader(ipv4_db) as reader:
            def each_worker():
                networks = []
                reader.each(lambda network, record: networks.append(network))
                return len(networks)

            def get_worker():
                return reader.get('1.1.1.3')

            with ThreadPoolExecutor(max_workers=8) as executor:
                walks = [executor.submit(each_worker) for _ in range(20)]
                gets = [executor.submit(get_worker) for _ in range(200)]

                for future in walks:
                    assert future.result() == len(IPV4_NETWORKS)
                for future in gets:
                    assert future.result() == {'ip': '1.1.1.2'}


class TestCloseWhileReading:
    """Tests for closing a reader that other threads are using."""

    def test_close_during_lookups(self, decoder_db, mode):
        """Every lookup either succeeds or sees a closed reader."""
        reader = Reader(decoder_db, mode)
        start = threading.Barrier(9)
        outcomes = []
        errors = []

        def lookup_worker():
            start.wait()
            for _ in range(500):
                try:
                    record = reader.get('1.1.1.1')
                except ClosedDatabaseError:
                    outcomes.append('closed')
                    return
                except Exception as e:
                    errors.append(e)
                    return
                if record != DECODER_RECORD:
                    errors.append(AssertionError(record))
                    return
                outcomes.append('ok')

        threads = [threading.Thread(target=lookup_worker) for _ in range(8)]
        for t in threads:
            t.start()
        start.wait()
        time.sleep(0.01)
        reader.close()
        for t in threads:
            t.join()

        assert errors == []
        assert reader.closed
        assert set(outcomes) <= {'ok', 'closed'}

    def test_close_from_many_threads(self, decoder_db):
        """Racing close() calls release the source exactly once."""
        reader = Reader(decoder_db)
        source = reader.acquire_source()
        source.release()

        with ThreadPoolExecutor(max_workers=8) as executor:
            for future in [executor.submit(reader.close) for _ in range(32)]:
                future.result()

        assert reader.closed
        assert source.released


class TestReadWriteLock:
    """Tests for the lock guarding reader state."""

    def test_readers_share(self):
        lock = ReadWriteLock()
        inside = threading.Barrier(4, timeout=5)
        errors = []

        def reader_worker():
            try:
                with lock.read():
                    # Only passes if all four readers are inside at once.
                    inside.wait()
            except threading.BrokenBarrierError as e:
                errors.append(e)

        threads = [threading.Thread(target=reader_worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        acquired = threading.Event()

        def writer_worker():
            with lock.write():
                acquired.set()

        lock.acquire_read()
        writer = threading.Thread(target=writer_worker)
        writer.start()
        assert not acquired.wait(0.1)

        lock.release_read()
        assert acquired.wait(5)
        writer.join()

    def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        order = []

        def writer_worker():
            with lock.write():
                order.append('writer')

        def reader_worker():
            with lock.read():
                order.append('reader')

        lock.acquire_read()
        writer = threading.Thread(target=writer_worker)
        writer.start()
        deadline = time.monotonic() + 5
        while lock._writers_waiting == 0 and time.monotonic() < deadline:
            time.sleep(0.001)

        late_reader = threading.Thread(target=reader_worker)
        late_reader.start()
        time.sleep(0.05)
        assert order == []

        lock.release_read()
        writer.join(5)
        late_reader.join(5)
        assert order == ['writer', 'reader']
