import os
import threading

from services import cleanup
from services.cleanup import CleanupToken, arm_cleanup, remove_artifact
from services.extractor import ExtractionJob


def _artifact(tmp_path, name="audio_1_abcdefgh.mp3", data=b"data"):
    path = tmp_path / name
    path.write_bytes(data)
    return str(path)


def test_fire_removes_once(tmp_path):
    path = _artifact(tmp_path)
    token = CleanupToken(path)

    assert token.fire() is True
    assert not os.path.exists(path)
    assert token.fired
    assert token.fire() is False


def test_fire_on_missing_file_is_silent(tmp_path, caplog):
    token = CleanupToken(str(tmp_path / "never_written.mp3"))

    with caplog.at_level("ERROR"):
        assert token.fire() is True
        assert token.fire() is False

    assert caplog.records == []


def test_second_fire_does_not_touch_the_filesystem(tmp_path, monkeypatch):
    path = _artifact(tmp_path)
    token = CleanupToken(path)
    token.fire()

    calls = []
    monkeypatch.setattr(cleanup, "remove_artifact", lambda p: calls.append(p))
    token.fire()

    assert calls == []


def test_concurrent_fires_have_one_winner(tmp_path):
    token = CleanupToken(_artifact(tmp_path))
    results = []
    barrier = threading.Barrier(8)

    def fire():
        barrier.wait()
        results.append(token.fire())

    threads = [threading.Thread(target=fire) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert results.count(False) == 7


def test_intermediate_files_are_removed_too(tmp_path):
    path = _artifact(tmp_path)
    _artifact(tmp_path, "audio_1_abcdefgh.webm.part")
    _artifact(tmp_path, "audio_1_abcdefgh.webm")
    _artifact(tmp_path, "audio_2_zzzzzzzz.mp3")

    assert remove_artifact(path) == 3
    assert os.listdir(tmp_path) == ["audio_2_zzzzzzzz.mp3"]


def test_remove_errors_are_logged_not_raised(tmp_path, monkeypatch, caplog):
    path = _artifact(tmp_path)

    def deny(p):
        raise PermissionError("denied")

    monkeypatch.setattr(cleanup.os, "remove", deny)
    with caplog.at_level("ERROR"):
        assert remove_artifact(path) == 0

    assert "Error removing file" in caplog.text


def test_arm_cleanup_owns_the_job_path(tmp_path):
    job = ExtractionJob(source_url="https://youtu.be/dQw4w9WgXcQ", output_path=_artifact(tmp_path))
    token = arm_cleanup(job)

    assert token.output_path == job.output_path
    assert not token.fired
