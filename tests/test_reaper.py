import os
import time

from services import reaper
from services.reaper import PeriodicReaper, sweep_old_files


def _aged_file(directory, name, age_seconds, now):
    path = directory / name
    path.write_bytes(b"audio")
    mtime = now - age_seconds
    os.utime(path, (mtime, mtime))
    return path


def test_only_files_past_retention_are_removed(tmp_path):
    now = time.time()
    recent = _aged_file(tmp_path, "audio_recent.mp3", 10 * 60, now)
    old = _aged_file(tmp_path, "audio_old.mp3", 2 * 60 * 60, now)

    removed = sweep_old_files(str(tmp_path), max_age=60 * 60, now=now)

    assert removed == ["audio_old.mp3"]
    assert recent.exists()
    assert not old.exists()


def test_directories_are_left_alone(tmp_path):
    now = time.time()
    sub = tmp_path / "nested"
    sub.mkdir()
    os.utime(sub, (now - 7200, now - 7200))

    assert sweep_old_files(str(tmp_path), max_age=3600, now=now) == []
    assert sub.is_dir()


def test_one_failed_removal_does_not_stop_the_sweep(tmp_path, monkeypatch, caplog):
    now = time.time()
    _aged_file(tmp_path, "audio_locked.mp3", 7200, now)
    _aged_file(tmp_path, "audio_free.mp3", 7200, now)
    real_remove = os.remove

    def remove(path):
        if path.endswith("audio_locked.mp3"):
            raise PermissionError("locked")
        real_remove(path)

    monkeypatch.setattr(reaper.os, "remove", remove)
    with caplog.at_level("ERROR"):
        removed = sweep_old_files(str(tmp_path), max_age=3600, now=now)

    assert removed == ["audio_free.mp3"]
    assert (tmp_path / "audio_locked.mp3").exists()
    assert "audio_locked.mp3" in caplog.text


def test_missing_directory_is_logged(tmp_path, caplog):
    with caplog.at_level("ERROR"):
        assert sweep_old_files(str(tmp_path / "gone")) == []
    assert "Error during cleanup" in caplog.text


def test_periodic_reaper_sweeps_until_stopped(tmp_path):
    old = _aged_file(tmp_path, "audio_old.mp3", 7200, time.time())
    thread = PeriodicReaper(str(tmp_path), interval=0.05, max_age=3600)
    thread.start()
    try:
        deadline = time.monotonic() + 3
        while old.exists() and time.monotonic() < deadline:
            time.sleep(0.02)
    finally:
        thread.stop(timeout=2)

    assert not old.exists()
    assert not thread.is_alive()
