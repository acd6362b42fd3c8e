# dc_core/cascade/tests/test_concurrency.py
import asyncio
import threading

from dc_core.cascade.catalog import DependencyCatalog
from dc_core.cascade.executor import CascadeExecutor, _in_flight, _mark_in_flight
from dc_core.cascade.tests.helpers import MemoryStore


def _clinic():
    store = MemoryStore({"patients": {}, "appointments": {"patient": "patients"}})
    executor = CascadeExecutor(store, DependencyCatalog({"patients": [("appointments", "patient")]}))
    return store, executor


def test_hook_in_one_thread_is_not_skipped_by_cascade_in_another():
    store, executor = _clinic()
    a = store.add("patients")
    b = store.add("patients")
    store.add("appointments", patient=a.pk)
    store.add("appointments", patient=b.pk)
    store.add("appointments", patient=b.pk)

    a_deleting_root = threading.Event()
    b_done = threading.Event()
    seen = {}
    errors = []

    def _pause_on_a_root(record):
        if record.collection == "patients" and record.pk == a.pk:
            seen["a_markers"] = set(_in_flight.get())
            a_deleting_root.set()
            b_done.wait(timeout=5)

    store.on_delete = _pause_on_a_root

    def run_a():
        try:
            seen["a_result"] = executor.cascade_delete("patients", a.pk)
        except Exception as exc:
            errors.append(exc)

    def run_b():
        try:
            assert a_deleting_root.wait(timeout=5)
            seen["b_markers"] = set(_in_flight.get())
            with store.atomic():
                executor.handle_before_delete("patients", b)
        except Exception as exc:
            errors.append(exc)
        finally:
            b_done.set()

    threads = [threading.Thread(target=run_a), threading.Thread(target=run_b)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert errors == []
    assert seen["a_markers"] == {("patients", str(a.pk))}
    assert seen["b_markers"] == set()
    assert seen["a_result"].removed == {"appointments": 1}
    assert store.count("appointments", {"patient": b.pk}) == 0
    assert store.get_for_update("patients", a.pk) is None
    assert _in_flight.get() == frozenset()


def test_in_flight_marker_is_private_to_its_task():
    async def scenario():
        entered = asyncio.Event()
        released = asyncio.Event()

        async def holder():
            with _mark_in_flight("patients", "A"):
                entered.set()
                await released.wait()
                return set(_in_flight.get())

        async def observer():
            await entered.wait()
            markers = set(_in_flight.get())
            released.set()
            return markers

        return await asyncio.gather(holder(), observer())

    held, observed = asyncio.run(scenario())

    assert held == {("patients", "A")}
    assert observed == set()
