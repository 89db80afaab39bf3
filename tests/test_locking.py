"""Tests for the operation gate."""

from __future__ import annotations

import threading
import time

from honorsave.core.locking import OperationGate


class TestOperationGate:
    def test_busy_only_while_writing(self) -> None:
        gate = OperationGate()
        assert not gate.busy
        with gate.write():
            assert gate.busy
        assert not gate.busy

    def test_readers_share(self) -> None:
        gate = OperationGate()
        with gate.read():
            with gate.read():
                assert not gate.busy

    def test_writes_are_exclusive(self) -> None:
        gate = OperationGate()
        active = 0
        peak = 0
        lock = threading.Lock()

        def work() -> None:
            nonlocal active, peak
            with gate.write():
                with lock:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.01)
                with lock:
                    active -= 1

        threads = [threading.Thread(target=work) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert peak == 1

    def test_reader_waits_for_writer(self) -> None:
        gate = OperationGate()
        events: list[str] = []
        entered = threading.Event()

        def reader() -> None:
            entered.set()
            with gate.read():
                events.append("read")

        with gate.write():
            thread = threading.Thread(target=reader)
            thread.start()
            entered.wait(timeout=5)
            time.sleep(0.05)
            events.append("write-done")
        thread.join(timeout=5)
        assert events == ["write-done", "read"]

    def test_writer_waits_for_reader(self) -> None:
        gate = OperationGate()
        events: list[str] = []
        entered = threading.Event()

        def writer() -> None:
            entered.set()
            with gate.write():
                events.append("write")

        with gate.read():
            thread = threading.Thread(target=writer)
            thread.start()
            entered.wait(timeout=5)
            time.sleep(0.05)
            events.append("read-done")
        thread.join(timeout=5)
        assert events == ["read-done", "write"]

    def test_released_after_exception(self) -> None:
        gate = OperationGate()
        try:
            with gate.write():
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert not gate.busy
        with gate.read():
            pass
