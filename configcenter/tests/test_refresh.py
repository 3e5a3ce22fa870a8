import threading
import time
from unittest import mock

from django.test import SimpleTestCase

from configcenter.exceptions import NotFound, StoreError
from configcenter.namespace import Namespace
from configcenter.refresh import RefreshLoop
from configcenter.stores.inmemory import InMemoryConfigStore


class BootstrapTests(SimpleTestCase):
    def setUp(self):
        self.store = InMemoryConfigStore()
        # two processes sharing one database
        self.writer = Namespace("asr", self.store).start(refresh=False)
        self.reader = Namespace("asr", self.store).start(refresh=False)

    def test_other_process_sees_activation_after_refresh(self):
        self.writer.save_config("k1", "k1", {"bot_id": "A"})
        self.writer.enable_config("k1", 1)

        with self.assertRaises(NotFound):
            self.reader.get("k1")

        self.assertTrue(self.reader.bootstrap())
        self.assertEqual(self.reader.get("k1"), {"bot_id": "A"})

    def test_refresh_drops_keys_removed_elsewhere(self):
        self.writer.save_config("k1", "k1", {"bot_id": "A"})
        self.writer.enable_config("k1", 1)
        self.reader.bootstrap()

        self.writer.remove_config("k1")
        self.reader.bootstrap()

        with self.assertRaises(NotFound):
            self.reader.get("k1")

    def test_configs_without_enabled_version_are_absent(self):
        self.writer.save_config("k1", "k1", {"bot_id": "A"})
        self.reader.bootstrap()
        self.assertNotIn("k1", self.reader.cache)

    def test_namespaces_are_isolated(self):
        other = Namespace("tts", self.store).start(refresh=False)
        other.save_config("k1", "k1", {"voice": "x"})
        other.enable_config("k1", 1)

        self.reader.bootstrap()
        with self.assertRaises(NotFound):
            self.reader.get("k1")

    def test_store_failure_keeps_previous_values(self):
        self.writer.save_config("k1", "k1", {"bot_id": "A"})
        self.writer.enable_config("k1", 1)
        self.reader.bootstrap()

        loop = RefreshLoop(self.reader.bootstrap, interval=60, name="asr")
        failure = StoreError("connection refused", operation="find_configs_with_enabled_version")
        with mock.patch.object(self.store, "find_configs_with_enabled_version", side_effect=failure):
            with self.assertLogs("configcenter.refresh", level="ERROR"):
                loop.tick()

        self.assertEqual(loop.failures, 1)
        self.assertEqual(loop.last_error, "connection refused")
        self.assertEqual(self.reader.get("k1"), {"bot_id": "A"})

        loop.tick()
        self.assertIsNone(loop.last_error)
        self.assertIsNotNone(loop.last_success)

    def test_refresh_racing_with_activation_is_discarded(self):
        self.writer.save_config("k1", "k1", {"bot_id": "A"})
        self.writer.save_config("k1", "k1", {"bot_id": "B"})
        self.writer.enable_config("k1", 1)
        self.writer.bootstrap()

        fetch = self.store.find_configs_with_enabled_version

        def slow_fetch(namespace):
            rows = fetch(namespace)
            # activation commits after the rows were read
            self.writer.enable_config("k1", 2)
            return rows

        with mock.patch.object(self.store, "find_configs_with_enabled_version", side_effect=slow_fetch):
            self.assertFalse(self.writer.bootstrap())

        self.assertEqual(self.writer.get("k1"), {"bot_id": "B"})

    def test_no_torn_reads_during_refresh_and_activation(self):
        self.writer.save_config("k1", "k1", {"bot_id": "A"})
        self.writer.save_config("k1", "k1", {"bot_id": "B"})
        self.writer.enable_config("k1", 1)

        stop = threading.Event()
        seen = set()

        def activate():
            number = 1
            while not stop.is_set():
                number = 2 if number == 1 else 1
                self.writer.enable_config("k1", number)

        def refresh():
            while not stop.is_set():
                self.writer.bootstrap()

        def read():
            while not stop.is_set():
                seen.add(self.writer.get("k1")["bot_id"])

        threads = [threading.Thread(target=fn) for fn in (activate, refresh, read, read)]
        for thread in threads:
            thread.start()
        time.sleep(0.3)
        stop.set()
        for thread in threads:
            thread.join(5)

        self.assertTrue(seen)
        self.assertLessEqual(seen, {"A", "B"})


class RefreshLoopTests(SimpleTestCase):
    def setUp(self):
        self.store = InMemoryConfigStore()
        self.writer = Namespace("asr", self.store).start(refresh=False)

    def test_background_loop_picks_up_changes(self):
        reader = Namespace("asr", self.store, refresh_interval=0.01).start()
        self.addCleanup(reader.stop, 2)

        self.writer.save_config("k1", "k1", {"bot_id": "A"})
        self.writer.enable_config("k1", 1)

        deadline = time.monotonic() + 5
        while "k1" not in reader.cache and time.monotonic() < deadline:
            time.sleep(0.01)
        self.assertEqual(reader.get("k1"), {"bot_id": "A"})

        status = reader.status()
        self.assertTrue(status["refresh"]["running"])
        self.assertEqual(status["cached_keys"], 1)

    def test_stop_ends_the_thread(self):
        loop = RefreshLoop(lambda: None, interval=0.01, name="asr")
        loop.start()
        loop.stop(timeout=2)
        self.assertTrue(loop.stopped)
        self.assertFalse(loop.is_alive())

    def test_stopped_loop_closes_its_connections(self):
        closed_by = []
        loop = RefreshLoop(lambda: None, interval=0.01, name="asr")
        with mock.patch(
            "configcenter.refresh.connections.close_all",
            side_effect=lambda: closed_by.append(threading.current_thread()),
        ):
            loop.start()
            loop.stop(timeout=2)
        self.assertEqual(closed_by, [loop])

    def test_unexpected_errors_do_not_kill_the_loop(self):
        calls = []

        def refresh():
            calls.append(1)
            raise RuntimeError("bug")

        loop = RefreshLoop(refresh, interval=0.01, name="asr")
        with self.assertLogs("configcenter.refresh", level="ERROR"):
            loop.start()
            deadline = time.monotonic() + 5
            while len(calls) < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
            loop.stop(timeout=2)

        self.assertGreaterEqual(loop.failures, 3)
        self.assertEqual(loop.last_error, "bug")
