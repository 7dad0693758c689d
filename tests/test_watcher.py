import threading

from watchdog.events import FileCreatedEvent, FileMovedEvent, DirCreatedEvent

from library_tool.watcher import StorageFolderHandler


class FakeLibrary:
    def __init__(self):
        self.scans = 0
        self.scanned = threading.Event()

    def rescan(self):
        self.scans += 1
        self.scanned.set()


def test_burst_of_changes_triggers_one_scan():
    lib = FakeLibrary()
    handler = StorageFolderHandler(lib, debounce_delay=0.2)

    for i in range(5):
        handler.on_created(FileCreatedEvent(f"/music/{i}.mp3"))

    assert lib.scanned.wait(2)
    handler.debounce_timer.join()
    assert lib.scans == 1


def test_partial_uploads_and_other_files_are_ignored():
    lib = FakeLibrary()
    handler = StorageFolderHandler(lib, debounce_delay=0.05)

    handler.on_created(FileCreatedEvent("/music/1-a.mp3.part"))
    handler.on_created(FileCreatedEvent("/music/music-list.json"))
    handler.on_created(DirCreatedEvent("/music/covers"))

    assert handler.debounce_timer is None
    assert not lib.scanned.wait(0.2)


def test_finished_upload_rename_triggers_scan():
    lib = FakeLibrary()
    handler = StorageFolderHandler(lib, debounce_delay=0.05)

    handler.on_moved(FileMovedEvent("/music/1-a.mp3.part", "/music/1-a.mp3"))

    assert lib.scanned.wait(2)
    handler.cancel()
