import logging

import pytest

import job_worker
from job_worker import GracefulExit, QueueWorker, WorkerConfig, build_config
from transcribe_worker.db.models import QueueMessageStatus


class RecordingOrchestrator:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.seen = []

    def handle(self, job_id, action, payload=None):
        self.seen.append((job_id, action))
        if job_id in self.failing:
            raise RuntimeError("boom")


def make_config(**overrides):
    values = dict(queue_name="test", batch_size=5, poll_interval=0.1, run_once=True)
    values.update(overrides)
    return WorkerConfig(**values)


def test_build_config_defaults():
    config = build_config([])

    assert config.batch_size == 10
    assert config.max_workers == 1
    assert config.run_once is False


def test_build_config_flags():
    config = build_config(
        ["--queue", "audio", "--batch-size", "0", "--poll-interval", "3", "--max-workers", "4", "--once"]
    )

    assert config == WorkerConfig(
        queue_name="audio",
        batch_size=1,
        poll_interval=3.0,
        max_workers=4,
        run_once=True,
        backoff_max=30.0,
    )


def test_run_once_processes_a_batch(queue):
    for job_id in ("a", "b", "c"):
        queue.send({"jobId": job_id, "action": "transcribe_audio"})
    orchestrator = RecordingOrchestrator(failing={"b"})
    worker = QueueWorker(make_config(batch_size=2), queue, orchestrator)

    assert worker.run_once() == 2
    assert orchestrator.seen == [("a", "transcribe_audio"), ("b", "transcribe_audio")]
    assert queue.count(QueueMessageStatus.DONE) == 1
    assert queue.count(QueueMessageStatus.PENDING) == 2


def test_run_once_on_empty_queue(queue):
    worker = QueueWorker(make_config(), queue, RecordingOrchestrator())

    assert worker.run_once() == 0


def test_receive_errors_are_logged(caplog):
    class BrokenQueue:
        def receive_batch(self, max_messages):
            raise RuntimeError("database is locked")

    worker = QueueWorker(make_config(), BrokenQueue(), RecordingOrchestrator())

    with caplog.at_level(logging.ERROR):
        assert worker.run_once() == 0

    assert "Failed to receive batch" in caplog.text


def test_start_with_once_logs_summary(queue, caplog):
    queue.send({"jobId": "a", "action": "process_video"})
    worker = QueueWorker(make_config(), queue, RecordingOrchestrator())

    with caplog.at_level(logging.INFO):
        worker.start()

    summary = [r for r in caplog.records if r.getMessage() == "Worker summary"]
    assert summary and summary[0].batches == 1 and summary[0].acknowledged == 1


def test_idle_backoff_grows_to_cap(queue, monkeypatch):
    sleeps = []
    monkeypatch.setattr(job_worker.time, "sleep", sleeps.append)
    worker = QueueWorker(make_config(poll_interval=1, backoff_max=4), queue, RecordingOrchestrator())

    for _ in range(4):
        worker._sleep()

    assert sleeps == [1, 2, 4, 4]


def test_shutdown_stops_loop(queue, monkeypatch):
    worker = QueueWorker(make_config(run_once=False), queue, RecordingOrchestrator())

    def stop(_seconds):
        raise GracefulExit()

    monkeypatch.setattr(job_worker.time, "sleep", stop)

    worker.start()
    worker.request_shutdown()

    assert not worker.busy


@pytest.mark.parametrize("argv", [["--batch-size", "abc"], ["--unknown"]])
def test_build_config_rejects_bad_arguments(argv):
    with pytest.raises(SystemExit):
        build_config(argv)
