"""Client transfer scheduler tests"""

import hashlib
import threading
import time

import pytest

from resumable_upload.client import ChunkUploadFailed, TransferScheduler, TransferState
from resumable_upload.shared import ChunkStatus, IntegrityMismatch


class FakeApi:
    """In-memory stand-in for UploadApiClient"""

    def __init__(self, completed=None, failing=None, fail_times=None, valid=True, on_chunk=None):
        self.completed = list(completed or [])
        self.failing = set(failing or [])
        self.fail_times = dict(fail_times or {})
        self.valid = valid
        self.on_chunk = on_chunk
        self.handshakes = []
        self.chunk_calls = []
        self.finalize_calls = []
        self.written = {}
        self._lock = threading.Lock()

    def handshake(self, filename, total_size, total_chunks, file_hash):
        self.handshakes.append((filename, total_size, total_chunks, file_hash))
        return {"uploadId": "upload-1", "existingChunks": []}

    def upload_chunk(self, upload_id, index, offset, data, on_progress=None):
        with self._lock:
            self.chunk_calls.append(index)
        if self.on_chunk:
            self.on_chunk(index)
        if index in self.failing:
            raise ConnectionError(f"chunk {index} refused")
        if self.fail_times.get(index, 0) > 0:
            self.fail_times[index] -= 1
            raise ConnectionError(f"chunk {index} dropped")
        if on_progress:
            on_progress(len(data))
        with self._lock:
            self.written[offset] = data
        return {"status": "uploaded"}

    def finalize(self, upload_id, file_hash):
        self.finalize_calls.append((upload_id, file_hash))
        return {
            "isValid": self.valid,
            "finalHash": file_hash if self.valid else "0" * 32,
            "fileContents": ["readme.txt"] if self.valid else [],
        }

    def completed_chunks(self, upload_id):
        return list(self.completed)

    def assembled(self):
        return b"".join(self.written[offset] for offset in sorted(self.written))


class ServiceApi:
    """Adapter driving an UploadService in-process"""

    def __init__(self, service):
        self.service = service

    def handshake(self, filename, total_size, total_chunks, file_hash):
        upload = self.service.handshake(filename, total_size, total_chunks, file_hash)
        return {"uploadId": upload.id, "existingChunks": []}

    def upload_chunk(self, upload_id, index, offset, data, on_progress=None):
        self.service.receive_chunk(upload_id, index, offset, data)
        if on_progress:
            on_progress(len(data))
        return {"status": "uploaded"}

    def finalize(self, upload_id, file_hash):
        result = self.service.finalize(upload_id, file_hash)
        return {
            "isValid": result.is_valid,
            "finalHash": result.session.final_hash,
            "fileContents": result.entries,
        }

    def completed_chunks(self, upload_id):
        return self.service.get_status(upload_id).completed_chunk_indexes


@pytest.fixture
def source_file(temp_dir):
    """12 byte file planned as chunks of 5, 5 and 2 bytes"""
    path = temp_dir / "source.bin"
    path.write_bytes(b"abcdefghijkl")
    return path


def make_scheduler(api, **kwargs):
    kwargs.setdefault("chunk_size", 5)
    kwargs.setdefault("sleep", lambda seconds: None)
    return TransferScheduler(api=api, **kwargs)


class TestHappyPath:

    def test_uploads_all_chunks_and_finalizes(self, source_file):
        api = FakeApi()
        scheduler = make_scheduler(api)
        scheduler.select_file(source_file)

        assert scheduler.start() is TransferState.COMPLETED
        assert sorted(api.chunk_calls) == [0, 1, 2]
        assert api.assembled() == b"abcdefghijkl"
        assert api.handshakes == [("source.bin", 12, 3, hashlib.md5(b"abcdefghijkl").hexdigest())]
        assert api.finalize_calls == [("upload-1", scheduler.file_hash)]
        assert scheduler.files_in_container == ["readme.txt"]
        assert all(c.status is ChunkStatus.SUCCESS for c in scheduler.chunks)

    def test_empty_file_finalizes_without_chunks(self, temp_dir):
        path = temp_dir / "empty.bin"
        path.write_bytes(b"")
        api = FakeApi()
        scheduler = make_scheduler(api)
        scheduler.select_file(path)

        assert scheduler.start() is TransferState.COMPLETED
        assert api.chunk_calls == []
        assert len(api.finalize_calls) == 1

    def test_end_to_end_against_service(self, service, temp_dir, zip_bytes):
        path = temp_dir / "archive.zip"
        path.write_bytes(zip_bytes)
        scheduler = make_scheduler(ServiceApi(service), chunk_size=4096)
        scheduler.select_file(path)

        assert scheduler.start() is TransferState.COMPLETED
        assert scheduler.final_hash == hashlib.md5(zip_bytes).hexdigest()
        assert scheduler.files_in_container == ["readme.txt", "data/"]


class TestPauseResume:

    def test_resume_uploads_only_unacknowledged_chunks(self, source_file):
        scheduler = None

        def pause_during_first_chunk(index):
            if index == 0:
                scheduler.pause()

        api = FakeApi(completed=[2], on_chunk=pause_during_first_chunk)
        scheduler = make_scheduler(api, max_workers=1)
        scheduler.select_file(source_file)
        scheduler.adopt_session("upload-1")

        assert scheduler.start() is TransferState.PAUSED
        assert api.chunk_calls == [0]
        assert api.handshakes == []
        assert scheduler.chunks[0].status is ChunkStatus.SUCCESS
        assert scheduler.chunks[1].status is ChunkStatus.PENDING

        assert scheduler.resume() is TransferState.COMPLETED
        assert api.chunk_calls == [0, 1]
        assert len(api.finalize_calls) == 1

    def test_pause_outside_upload_is_ignored(self, source_file):
        scheduler = make_scheduler(FakeApi())
        scheduler.select_file(source_file)

        scheduler.pause()
        assert scheduler.state is TransferState.IDLE

    def test_resume_requires_paused(self, source_file):
        scheduler = make_scheduler(FakeApi())
        scheduler.select_file(source_file)

        with pytest.raises(RuntimeError):
            scheduler.resume()

    def test_adopt_session_marks_server_chunks(self, source_file):
        scheduler = make_scheduler(FakeApi(completed=[0, 2, 7]))
        scheduler.select_file(source_file)

        scheduler.adopt_session("upload-9")

        assert scheduler.upload_id == "upload-9"
        assert [c.status for c in scheduler.chunks] == [
            ChunkStatus.SUCCESS, ChunkStatus.PENDING, ChunkStatus.SUCCESS,
        ]


class TestRetries:

    def test_retry_exhaustion_fails_without_finalize(self, source_file):
        sleeps = []
        api = FakeApi(failing=[1])
        scheduler = make_scheduler(api, max_workers=1, backoff_base=1.0, sleep=sleeps.append)
        scheduler.select_file(source_file)

        assert scheduler.start() is TransferState.FAILED
        assert sleeps == [2.0, 4.0]
        assert api.chunk_calls.count(1) == 3
        assert scheduler.chunks[1].status is ChunkStatus.ERROR
        assert scheduler.chunks[1].retry_count == 3
        assert isinstance(scheduler.error, ChunkUploadFailed)
        assert api.finalize_calls == []

    def test_transient_failure_recovers(self, source_file):
        sleeps = []
        api = FakeApi(fail_times={0: 1})
        scheduler = make_scheduler(api, sleep=sleeps.append)
        scheduler.select_file(source_file)

        assert scheduler.start() is TransferState.COMPLETED
        assert sleeps == [2.0]
        assert scheduler.chunks[0].retry_count == 1

    def test_unreadable_file_fails(self, source_file):
        api = FakeApi()
        scheduler = make_scheduler(api)
        scheduler.select_file(source_file)
        scheduler.file_hash = "abc"
        scheduler.upload_id = "upload-1"
        scheduler.state = TransferState.UPLOADING
        source_file.unlink()

        assert scheduler._run() is TransferState.FAILED
        assert isinstance(scheduler.error, OSError)


class TestConcurrency:

    def test_at_most_max_workers_in_flight(self, temp_dir):
        path = temp_dir / "big.bin"
        path.write_bytes(bytes(range(256)) * 4)
        active = 0
        peak = 0
        lock = threading.Lock()

        class SlowApi(FakeApi):
            def upload_chunk(self, *args, **kwargs):
                nonlocal active, peak
                with lock:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.01)
                try:
                    return super().upload_chunk(*args, **kwargs)
                finally:
                    with lock:
                        active -= 1

        api = SlowApi()
        scheduler = make_scheduler(api, chunk_size=64, max_workers=3)
        scheduler.select_file(path)

        assert scheduler.start() is TransferState.COMPLETED
        assert sorted(api.chunk_calls) == list(range(16))
        assert peak <= 3


class TestFinalizeOutcome:

    def test_invalid_verdict_fails(self, source_file):
        scheduler = make_scheduler(FakeApi(valid=False))
        scheduler.select_file(source_file)

        assert scheduler.start() is TransferState.FAILED
        assert isinstance(scheduler.error, IntegrityMismatch)

    def test_handshake_error_fails(self, source_file):
        class BrokenApi(FakeApi):
            def handshake(self, *args):
                raise ConnectionError("server down")

        scheduler = make_scheduler(BrokenApi())
        scheduler.select_file(source_file)

        assert scheduler.start() is TransferState.FAILED
        assert scheduler.upload_id is None


class TestProgress:

    def test_speed_and_eta(self, source_file):
        now = [0.0]
        scheduler = make_scheduler(FakeApi(), clock=lambda: now[0])
        scheduler.select_file(source_file)
        scheduler.started_at = 0.0
        scheduler.chunks[0].status = ChunkStatus.SUCCESS
        scheduler.chunks[1].status = ChunkStatus.UPLOADING
        scheduler.chunks[1].progress = 1
        now[0] = 2.0

        snapshot = scheduler.progress()

        assert snapshot.uploaded_bytes == 6
        assert snapshot.speed == pytest.approx(3.0)
        assert snapshot.eta == pytest.approx(2.0)
        assert snapshot.percent == pytest.approx(50.0)

    def test_no_elapsed_time_reports_zero(self, source_file):
        scheduler = make_scheduler(FakeApi(), clock=lambda: 5.0)
        scheduler.select_file(source_file)

        snapshot = scheduler.progress()
        assert snapshot.speed == 0.0
        assert snapshot.eta == 0.0

    def test_callback_sees_completion(self, source_file):
        snapshots = []
        scheduler = make_scheduler(FakeApi(), on_progress=snapshots.append)
        scheduler.select_file(source_file)

        scheduler.start()

        assert snapshots[-1].uploaded_bytes == 12
        assert all(s.uploaded_bytes <= 12 for s in snapshots)


def test_select_file_resets_state(source_file, temp_dir):
    scheduler = make_scheduler(FakeApi(valid=False))
    scheduler.select_file(source_file)
    scheduler.start()
    assert scheduler.state is TransferState.FAILED

    other = temp_dir / "other.bin"
    other.write_bytes(b"xyz")
    scheduler.select_file(other)

    assert scheduler.state is TransferState.IDLE
    assert scheduler.upload_id is None
    assert scheduler.error is None
    assert len(scheduler.chunks) == 1


def test_select_missing_file(temp_dir):
    scheduler = make_scheduler(FakeApi())
    with pytest.raises(FileNotFoundError):
        scheduler.select_file(temp_dir / "nope.bin")


class TestCli:

    def test_completed_upload_exits_zero(self, source_file, monkeypatch, capsys):
        from resumable_upload.client import cli

        monkeypatch.setattr(cli, "UploadApiClient", lambda url: FakeApi())

        assert cli.main([str(source_file), "--chunk-size", "5"]) == 0
        assert "readme.txt" in capsys.readouterr().out

    def test_failed_upload_prints_resume_hint(self, source_file, monkeypatch, capsys):
        from resumable_upload.client import cli

        monkeypatch.setattr(cli, "UploadApiClient", lambda url: FakeApi(valid=False))

        assert cli.main([str(source_file), "--chunk-size", "5"]) == 1
        assert "--resume upload-1" in capsys.readouterr().out

    def test_interrupt_pauses_before_queued_chunks(self, temp_dir, monkeypatch, capsys):
        from resumable_upload.client import cli
        from resumable_upload.client import scheduler as scheduler_module

        path = temp_dir / "many.bin"
        path.write_bytes(b"x" * 100)
        api = FakeApi(on_chunk=lambda index: time.sleep(0.05))

        def interrupted_wait(futures):
            time.sleep(0.01)
            raise KeyboardInterrupt

        monkeypatch.setattr(cli, "UploadApiClient", lambda url: api)
        monkeypatch.setattr(scheduler_module, "wait", interrupted_wait)

        assert cli.main([str(path), "--chunk-size", "5"]) == 130
        assert len(api.chunk_calls) <= scheduler_module.MAX_WORKERS
        assert api.finalize_calls == []
        assert "--resume upload-1" in capsys.readouterr().out


def test_interrupt_leaves_scheduler_paused(source_file, monkeypatch):
    from resumable_upload.client import scheduler as scheduler_module

    api = FakeApi(on_chunk=lambda index: time.sleep(0.05))
    scheduler = make_scheduler(api, max_workers=1)
    scheduler.select_file(source_file)

    def interrupted_wait(futures):
        time.sleep(0.01)
        raise KeyboardInterrupt

    monkeypatch.setattr(scheduler_module, "wait", interrupted_wait)

    with pytest.raises(KeyboardInterrupt):
        scheduler.start()

    assert scheduler.state is TransferState.PAUSED
    assert api.chunk_calls in ([], [0])
    assert scheduler.chunks[1].status is ChunkStatus.PENDING
