"""Tests for the command line entry point."""

import json
import os
from unittest.mock import patch

from course_tracker.database.kv_store import SQLiteKVStore
from course_tracker.main import run
from course_tracker.models.session import SessionContext
from course_tracker.scanner.frame_extractor import FrameExtractionError


def test_show_prints_saved_progress(tmp_path, capsys):
    db_file = str(tmp_path / "store.db")
    folder = str(tmp_path / "Course A")
    context = SessionContext(folder_path=os.path.abspath(folder))
    store = SQLiteKVStore(db_file)
    store.set_sync(context.progress_key, json.dumps({"1": 100.0, "2": 42.0}))
    store.set_sync(context.notes_key, json.dumps({"2": "Check slide 4\nmore"}))

    assert run(["--store", db_file, "show", folder]) == 0

    out = capsys.readouterr().out
    assert "100.0%" in out
    assert "42.0%" in out
    assert "Check slide 4" in out
    assert "more" not in out


def test_show_empty_folder(tmp_path, capsys):
    assert run(["--store", str(tmp_path / "store.db"), "show", str(tmp_path)]) == 0
    assert "No saved progress" in capsys.readouterr().out


def test_thumbs_reports_failures(tmp_path, capsys):
    async def fake_extract(self, file_path):
        if file_path.endswith("bad.mp4"):
            raise FrameExtractionError("no video stream")
        return "data:image/jpeg;base64,AAA"

    good = str(tmp_path / "good.mp4")
    bad = str(tmp_path / "bad.mp4")
    with patch("course_tracker.scanner.frame_extractor.FFmpegFrameExtractor.extract", fake_extract):
        code = run(["--store", str(tmp_path / "store.db"), "thumbs", good, bad])

    out = capsys.readouterr().out
    assert code == 1
    assert f"❌ {bad}" in out
    assert "1 of 2 videos have a thumbnail (1 cache entries)" in out
