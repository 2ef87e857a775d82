"""Test chunk scheduling and outcome accounting"""

import pytest

from chunkup.exceptions import ConfigError, LifecycleError
from chunkup.upload import ChunkState, UploadState

from conftest import Recorder


def drain(queue, defer):
    """Complete submitted chunks one by one, running deferred work in between"""
    done = 0
    defer.run_all()
    while done < len(queue.items):
        queue.items[done].succeed()
        done += 1
        defer.run_all()


class TestPartitioning:
    """Test that automatic sequencing covers the file exactly"""

    @pytest.mark.parametrize("size,chunk_size", [
        (10, 4), (12, 4), (1, 4), (4, 4), (1000, 7), (5, 1),
    ])
    def test_chunks_partition_file(self, make_uploader, queue, defer, size, chunk_size):
        uploader = make_uploader(size)
        uploader.start({'chunk_size': chunk_size})
        drain(queue, defer)

        records = list(uploader.chunks)
        assert records[0].start == 0
        assert records[-1].end == size
        for prev, cur in zip(records, records[1:]):
            assert prev.end == cur.start
        assert all(r.state is ChunkState.DONE for r in records)
        assert uploader.state is UploadState.DONE

    def test_slots_fill_up_to_end_of_file(self, make_uploader, queue, defer):
        queue.spare = 2
        uploader = make_uploader(10)
        uploader.start({'chunk_size': 4})
        defer.run_all()

        assert [(r.seq, r.start, r.end) for r in uploader.chunks] == [
            (1, 0, 4), (2, 4, 8), (3, 8, 10)
        ]
        assert [item.blob.size for item in queue.items] == [4, 4, 2]

    def test_no_spare_slots_submits_one(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        uploader.start({'chunk_size': 4})

        assert len(queue.items) == 1
        assert defer.calls == []

    def test_chunk_request_params(self, make_uploader, queue, defer):
        queue.spare = 1
        uploader = make_uploader(10, name="photo.jpg")
        uploader.start({'chunk_size': 4, 'params': {'album': '7'}})
        defer.run_all()

        assert [item.options.params for item in queue.items] == [
            {'album': '7', 'name': 'photo.jpg', 'chunk': 0, 'chunks': 3},
            {'album': '7', 'name': 'photo.jpg', 'chunk': 1, 'chunks': 3},
            {'album': '7', 'name': 'photo.jpg', 'chunk': 2, 'chunks': 3},
        ]
        # Per-chunk params never leak into the uploader's options
        assert 'chunk' not in uploader.options.params


class TestOutcomes:
    """Test progress and completion accounting"""

    def test_out_of_order_completion(self, make_uploader, queue, defer):
        queue.spare = 2
        uploader = make_uploader(10)
        events = Recorder(uploader)
        uploader.start({'chunk_size': 4})
        defer.run_all()

        for index in (1, 0, 2):
            queue.items[index].succeed({'status': 200, 'response': f'#{index}'})
            defer.run_all()

        assert [args[0] for args in events.named('progress')] == [4, 8, 10]
        assert all(args[1] == 10 for args in events.named('progress'))
        assert len(events.named('chunkuploaded')) == 3
        assert events.named('done') == [({'status': 200, 'response': '#2'},)]
        assert len(queue.items) == 3

    def test_in_flight_progress_adds_to_completed(self, make_uploader, queue, defer):
        queue.spare = 1
        uploader = make_uploader(10)
        events = Recorder(uploader)
        uploader.start({'chunk_size': 4})
        defer.run_all()

        queue.items[0].succeed()
        queue.items[1].report(3)

        assert [args for args in events.named('progress')] == [(4, 10), (7, 10)]

    def test_chunkuploaded_payload(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        events = Recorder(uploader)
        uploader.start({'chunk_size': 4})

        queue.items[0].succeed({'status': 201, 'response': 'ok'})

        assert events.named('chunkuploaded') == [({
            'seq': 1, 'start': 0, 'end': 4, 'total': 10,
            'status': 201, 'response': 'ok'
        },)]

    def test_continuation_is_deferred(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        uploader.start({'chunk_size': 4})

        queue.items[0].succeed()
        assert len(queue.items) == 1
        assert len(defer.calls) == 1

        defer.run_all()
        assert len(queue.items) == 2

    def test_transfer_destroyed_after_outcome(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        uploader.start({'chunk_size': 4})
        queue.items[0].succeed()
        assert queue.items[0].destroyed


class TestFailures:
    """Test stop_on_fail policy and retries"""

    def test_stop_on_fail(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        events = Recorder(uploader)
        uploader.start({'chunk_size': 4})

        queue.items[0].fail({'status': 503})
        defer.run_all()

        assert events.named('failed') == [({'status': 503},)]
        assert len(events.named('chunkuploadfailed')) == 1
        assert uploader.state is UploadState.FAILED
        assert len(queue.items) == 1

    def test_stop_on_fail_halts_keep_going_loop(self, make_uploader, queue, defer):
        queue.spare = 1
        uploader = make_uploader(100)
        uploader.start({'chunk_size': 10})
        queue.items[0].fail()
        submitted = len(queue.items)

        defer.run_all()
        assert len(queue.items) == submitted

    def test_failure_without_stop(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        events = Recorder(uploader)
        uploader.start({'chunk_size': 4, 'stop_on_fail': False})

        queue.items[0].fail()

        assert [name for name, _ in events.events] == ['chunkuploadfailed']
        assert uploader.state is UploadState.RUNNING
        assert uploader.failed_chunks() == [1]

    def test_retry_completes_upload(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        events = Recorder(uploader)
        uploader.start({'chunk_size': 4, 'stop_on_fail': False})

        queue.items[0].fail()
        assert uploader.upload_chunk(1, keep_going=True) is True
        drain(queue, defer)

        assert uploader.failed_chunks() == []
        assert uploader.chunks.completed_bytes() == 10
        assert len(events.named('done')) == 1
        assert [r.seq for r in uploader.chunks] == [1, 2, 3]

    def test_stale_outcome_ignored(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        events = Recorder(uploader)
        uploader.start({'chunk_size': 4})

        first = queue.items[0]
        uploader.upload_chunk(1)
        first.succeed()

        assert events.named('chunkuploaded') == []
        assert uploader.chunks.get(1).state is ChunkState.PROCESSING

        queue.items[1].succeed()
        assert len(events.named('chunkuploaded')) == 1


class TestPlanChunk:
    """Test explicit chunk submission"""

    def test_out_of_range_is_not_an_error(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        uploader.start({'chunk_size': 4})

        assert uploader.upload_chunk(4) is False
        assert uploader.upload_chunk(0) is False
        assert len(queue.items) == 1

    def test_per_call_options_keep_chunk_size(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        uploader.start({'chunk_size': 4})

        uploader.upload_chunk(2, {'chunk_size': 1, 'headers': {'X-Retry': '1'}})

        assert uploader.options.chunk_size == 4
        assert queue.items[-1].blob.size == 4
        assert queue.items[-1].options.headers == {'X-Retry': '1'}

    def test_requires_running(self, make_uploader):
        uploader = make_uploader(10)
        with pytest.raises(LifecycleError):
            uploader.upload_chunk(1)

    def test_requires_chunking(self, make_uploader, queue):
        uploader = make_uploader(10)
        uploader.start()
        with pytest.raises(ConfigError):
            uploader.upload_chunk(1)

    def test_uploaded_chunk_not_resent(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        uploader.start({'chunk_size': 4})
        queue.items[0].succeed()
        defer.run_all()

        assert uploader.upload_chunk(1) is False
        assert len(queue.items) == 2
        assert uploader.chunks.get(1).state is ChunkState.DONE
        assert uploader.chunks.completed_bytes() == 4

    def test_automatic_sequencing_skips_explicit_chunks(self, make_uploader, queue, defer):
        uploader = make_uploader(10)
        events = Recorder(uploader)
        uploader.start({'chunk_size': 4})

        assert uploader.upload_chunk(2) is True
        drain(queue, defer)

        assert [item.options.params['chunk'] for item in queue.items] == [0, 1, 2]
        assert [args[0] for args in events.named('progress')] == [4, 8, 10]
        assert len(events.named('done')) == 1
