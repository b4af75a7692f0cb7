import argparse
import asyncio
import logging
import os
from typing import List, Optional

from course_tracker.config import config
from course_tracker.database.json_maps import load_notes_map, load_progress_map
from course_tracker.database.kv_store import SQLiteKVStore, StoreError
from course_tracker.models.session import SessionContext
from course_tracker.models.video_ref import VideoRef
from course_tracker.scanner.thumbnails import ThumbnailCacheGenerator


async def show_folder(store: SQLiteKVStore, folder_path: str) -> int:
    context = SessionContext(folder_path=os.path.abspath(folder_path))
    progress = await load_progress_map(store, context.progress_key)
    notes = await load_notes_map(store, context.notes_key)

    if not progress and not notes:
        print(f"No saved progress or notes for {context.folder_path}")
        return 0

    print(f"📂 {context.folder_path}")
    for video_id in sorted(set(progress) | set(notes)):
        pct = progress.get(video_id, 0.0)
        status = "✅" if pct >= 100 else ("▶️" if pct > 0 else "  ")
        line = f"  {status} #{video_id:<4} {pct:6.1f}%"
        note = notes.get(video_id)
        if note:
            first_line = note.strip().splitlines()[0] if note.strip() else ""
            line += f"  📝 {first_line[:60]}"
        print(line)
    return len(progress)


async def fill_thumbnails(store: SQLiteKVStore, files: List[str]) -> int:
    videos = [
        VideoRef(id=index, title=os.path.splitext(os.path.basename(path))[0], file_path=os.path.abspath(path))
        for index, path in enumerate(files, start=1)
    ]
    generator = ThumbnailCacheGenerator(store)

    def report(batch: List[VideoRef]) -> None:
        done = sum(1 for v in batch if v.thumbnail)
        print(f"  {done}/{len(batch)} thumbnails ready")

    results = await generator.ensure_thumbnails(videos, on_batch=report)
    failed = [v for v in results if not v.thumbnail]
    for video in failed:
        print(f"  ❌ {video.file_path}")
    print(f"✅ {len(results) - len(failed)} of {len(results)} videos have a thumbnail ({await store.count()} cache entries)")
    return len(failed)


def run(args_list: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Course Tracker: saved progress, notes and thumbnail cache")
    parser.add_argument("--store", default=None, help="Path of the SQLite store (defaults to the data directory).")
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print saved progress and notes for a folder.")
    show.add_argument("folder")

    thumbs = sub.add_parser("thumbs", help="Generate missing thumbnails for the given video files.")
    thumbs.add_argument("files", nargs="+")

    args = parser.parse_args(args_list)

    logging.basicConfig(level=config.settings.log_level.upper(), format="%(message)s")
    store = SQLiteKVStore(args.store or config.store_file)

    try:
        if args.command == "show":
            asyncio.run(show_folder(store, args.folder))
            return 0
        failed = asyncio.run(fill_thumbnails(store, args.files))
        return 1 if failed else 0
    except KeyboardInterrupt:
        print("\n⚠️ Interrupted.")
        return 130
    except StoreError as e:
        print(f"❌ Store error: {e}")
        return 1


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
