"""Tests for debounced note persistence."""

import asyncio
import json

from course_tracker.core.guard import FolderSwitchGuard
from course_tracker.core.notes import NotesStore

from conftest import MemoryStore


async def _open(notes: NotesStore, guard: FolderSwitchGuard, folder: str):
    context = guard.activate(folder)
    notes.reset(context)
    await notes.load(context)
    return context


class TestDebounce:
    """Tests for the quiet-period write."""

    def test_rapid_edits_write_once_with_last_text(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            context = await _open(notes, guard, "/courses/A")

            notes.update_note(1, "f")
            notes.update_note(1, "fo")
            notes.update_note(1, "foo")
            in_memory = notes.get(1)
            await asyncio.sleep(0.1)
            await notes.drain()
            return in_memory, store.writes_to(context.notes_key)

        in_memory, writes = asyncio.run(scenario())
        assert in_memory == "foo"
        assert len(writes) == 1
        assert json.loads(writes[0]) == {"1": "foo"}

    def test_nothing_written_inside_window(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            await _open(notes, guard, "/courses/A")
            notes.update_note(1, "draft")
            await asyncio.sleep(0.005)
            return list(store.sets), notes.pending

        sets, pending = asyncio.run(scenario())
        assert sets == []
        assert pending == 1

    def test_switching_video_keeps_previous_edit(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            context = await _open(notes, guard, "/courses/A")

            notes.update_note(1, "first video")
            notes.update_note(2, "second video")
            await asyncio.sleep(0.1)
            await notes.drain()
            return json.loads(store.data[context.notes_key])

        assert asyncio.run(scenario()) == {"1": "first video", "2": "second video"}

    def test_flush_writes_immediately(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            context = await _open(notes, guard, "/courses/A")
            notes.update_note(3, "remember this")
            fired = notes.flush()
            await notes.drain()
            return fired, store.writes_to(context.notes_key)

        fired, writes = asyncio.run(scenario())
        assert fired == 1
        assert json.loads(writes[-1]) == {"3": "remember this"}


class TestFolderSwitch:
    """Tests for notes across folder switches."""

    def test_pending_edit_is_saved_to_its_own_folder(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            ctx_a = await _open(notes, guard, "/courses/A")
            notes.update_note(1, "from A")

            ctx_b = await _open(notes, guard, "/courses/B")
            await asyncio.sleep(0.1)
            await notes.drain()
            return store, ctx_a, ctx_b, notes.notes

        store, ctx_a, ctx_b, current = asyncio.run(scenario())
        assert json.loads(store.data[ctx_a.notes_key]) == {"1": "from A"}
        assert ctx_b.notes_key not in store.data
        assert current == {}

    def test_timer_for_stale_folder_is_discarded(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            await _open(notes, guard, "/courses/A")
            notes.update_note(1, "from A")

            # Guard switched without going through reset first
            guard.activate("/courses/B")
            await asyncio.sleep(0.1)
            await notes.drain()
            return store.sets

        assert asyncio.run(scenario()) == []

    def test_notes_load_back_per_folder(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            await _open(notes, guard, "/courses/A")
            notes.update_note(1, "A notes")
            await _open(notes, guard, "/courses/B")
            await notes.drain()
            await _open(notes, guard, "/courses/A")
            return notes.get(1)

        assert asyncio.run(scenario()) == "A notes"

    def test_malformed_notes_reset_to_empty(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            context = guard.activate("/courses/A")
            store.data[context.notes_key] = json.dumps(["not", "a", "map"])
            notes.reset(context)
            await notes.load(context)
            return notes.notes

        assert asyncio.run(scenario()) == {}

    def test_edit_made_while_loading_survives_switch(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            ctx_a = guard.activate("/courses/A")
            store.data[ctx_a.notes_key] = json.dumps({"2": "older note"})
            store.read_gate = asyncio.Event()
            notes.reset(ctx_a)
            load_a = asyncio.ensure_future(notes.load(ctx_a))
            await asyncio.sleep(0)

            notes.update_note(1, "important note")
            ctx_b = guard.activate("/courses/B")
            notes.reset(ctx_b)
            load_b = asyncio.ensure_future(notes.load(ctx_b))

            store.read_gate.set()
            await asyncio.gather(load_a, load_b)
            await notes.drain()
            return store, ctx_a, ctx_b, notes.notes

        store, ctx_a, ctx_b, current = asyncio.run(scenario())
        assert json.loads(store.data[ctx_a.notes_key]) == {"1": "important note", "2": "older note"}
        assert ctx_b.notes_key not in store.data
        assert current == {}

    def test_reset_writes_pending_edit_once(self, settings):
        async def scenario():
            store = MemoryStore()
            guard = FolderSwitchGuard()
            notes = NotesStore(store, guard, settings)
            ctx_a = await _open(notes, guard, "/courses/A")
            notes.update_note(1, "draft")
            await _open(notes, guard, "/courses/B")
            pending = notes.pending
            await asyncio.sleep(0.1)
            await notes.drain()
            return store.writes_to(ctx_a.notes_key), pending

        writes, pending = asyncio.run(scenario())
        assert pending == 0
        assert [json.loads(w) for w in writes] == [{"1": "draft"}]
