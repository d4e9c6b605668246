import threading

from pwupdate.roster import build_record
from pwupdate.store import RecordStore


def test_replace_and_snapshot():
    store = RecordStore()
    assert store.snapshot() == ()

    assert store.replace([build_record("Anna", "Berg"), build_record("Ben", "Kurz")]) == 2
    before = store.snapshot()
    store.replace([build_record("Cleo", "Lang")])

    assert [r.given_name for r in before] == ["Anna", "Ben"]
    assert [r.given_name for r in store.snapshot()] == ["Cleo"]
    assert len(store.snapshot()) == 1


def test_readers_never_see_partial_collections():
    store = RecordStore()
    small = [build_record("A", "B")] * 3
    large = [build_record("C", "D")] * 50
    sizes = set()
    stop = threading.Event()

    def writer():
        for i in range(500):
            store.replace(small if i % 2 else large)
        stop.set()

    def reader():
        while not stop.is_set():
            sizes.add(len(store.snapshot()))

    threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sizes <= {0, 3, 50}
