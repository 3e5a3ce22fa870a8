import threading
from unittest import mock

from django.test import SimpleTestCase

from configcenter.exceptions import EncodeError, NotFound, StoreError
from configcenter.namespace import Namespace
from configcenter.stores.inmemory import InMemoryConfigStore
from configcenter.tests.fixtures import CozeConfig, UserRoleConfig


class VersionManagerTests(SimpleTestCase):
    def setUp(self):
        self.store = InMemoryConfigStore()
        self.namespace = Namespace("asr", self.store).start(refresh=False)

    def enabled_numbers(self, key):
        config = self.store.find_config("asr", key, versions="all")
        return [v.number for v in config.loaded_versions if v.enabled]

    def test_activation_switches_served_value(self):
        self.assertEqual(self.namespace.save_config("k1", "k1", {"bot_id": "A"}), 1)
        self.assertEqual(self.namespace.save_config("k1", "k1", {"bot_id": "B"}), 2)

        self.namespace.enable_config("k1", 2)
        self.assertEqual(self.namespace.get("k1", CozeConfig), CozeConfig(bot_id="B"))

        self.namespace.enable_config("k1", 1)
        self.assertEqual(self.namespace.get("k1", CozeConfig), CozeConfig(bot_id="A"))
        self.assertEqual(self.enabled_numbers("k1"), [1])

    def test_saved_version_is_not_served_until_enabled(self):
        self.namespace.save_config("k1", "k1", {"bot_id": "A"})
        with self.assertRaises(NotFound):
            self.namespace.get("k1")

        self.namespace.enable_config("k1", 1)
        self.namespace.save_version("k1", {"bot_id": "B"})
        self.assertEqual(self.namespace.get("k1"), {"bot_id": "A"})

    def test_unknown_key_is_not_found(self):
        with self.assertRaises(NotFound):
            self.namespace.get("never-saved", dict)

    def test_version_numbers_increase_by_one(self):
        numbers = [self.namespace.save_config("k1", "k1", {"n": n}) for n in range(3)]
        numbers.append(self.namespace.save_version("k1", {"n": 3}))
        self.assertEqual(numbers, [1, 2, 3, 4])

    def test_numbering_continues_after_delete_and_recreate(self):
        self.namespace.save_config("k1", "k1", {"n": 1})
        self.namespace.save_config("k1", "k1", {"n": 2})
        self.namespace.remove_config("k1")

        self.assertEqual(self.namespace.save_config("k1", "k1", {"n": 3}), 3)
        versions, total = self.namespace.list_versions("k1")
        self.assertEqual(total, 1)
        self.assertEqual(versions[0].number, 3)

    def test_save_config_overwrites_metadata(self):
        self.namespace.save_config("roles", "Roles", {"llm": "a"}, "first", "alice")
        self.namespace.save_config("roles", "User roles", {"llm": "b"}, "second", "bob")

        config = self.store.find_config("asr", "roles")
        self.assertEqual((config.name, config.description, config.operator), ("User roles", "second", "bob"))
        self.assertEqual(len(self.namespace.list_configs()), 1)

    def test_save_version_keeps_metadata(self):
        self.namespace.save_config("roles", "Roles", {"llm": "a"}, "first", "alice")
        self.namespace.save_version("roles", {"llm": "b"}, operator="bob")

        config = self.store.find_config("asr", "roles", versions="latest")
        self.assertEqual(config.operator, "alice")
        self.assertEqual(config.loaded_versions[0].operator, "bob")

    def test_save_version_requires_existing_config(self):
        with self.assertRaises(NotFound):
            self.namespace.save_version("missing", {"llm": "a"})

    def test_unserializable_payload_stores_nothing(self):
        with self.assertRaises(EncodeError):
            self.namespace.save_config("k1", "k1", {"bad": object()})
        self.assertEqual(self.namespace.list_configs(), [])

    def test_failed_version_insert_rolls_back_metadata(self):
        self.namespace.save_config("k1", "Original", {"n": 1})
        with mock.patch.object(self.store, "save_version", side_effect=StoreError("disk full")):
            with self.assertRaises(StoreError):
                self.namespace.save_config("k1", "Renamed", {"n": 2})

        self.assertEqual(self.store.find_config("asr", "k1").name, "Original")
        self.assertEqual(self.store.latest_version_number("asr", "k1"), 1)

    def test_enable_missing_version_keeps_previous_state(self):
        self.namespace.save_config("k1", "k1", {"bot_id": "A"})
        self.namespace.enable_config("k1", 1)

        with self.assertRaises(NotFound) as ctx:
            self.namespace.enable_config("k1", 7)
        self.assertEqual(ctx.exception.version, 7)

        self.assertEqual(self.enabled_numbers("k1"), [1])
        self.assertEqual(self.namespace.get("k1"), {"bot_id": "A"})

    def test_enable_missing_key(self):
        with self.assertRaises(NotFound):
            self.namespace.enable_config("missing", 1)

    def test_enable_store_failure_leaves_cache_untouched(self):
        self.namespace.save_config("k1", "k1", {"bot_id": "A"})
        self.namespace.save_config("k1", "k1", {"bot_id": "B"})
        self.namespace.enable_config("k1", 1)

        with mock.patch.object(self.store, "enable_version", side_effect=StoreError("lost connection")):
            with self.assertRaises(StoreError):
                self.namespace.enable_config("k1", 2)

        self.assertEqual(self.namespace.get("k1"), {"bot_id": "A"})
        self.assertEqual(self.enabled_numbers("k1"), [1])

    def test_remove_is_visible_before_next_refresh(self):
        self.namespace.save_config("k1", "k1", {"bot_id": "A"})
        self.namespace.enable_config("k1", 1)
        self.namespace.get("k1", CozeConfig)

        self.namespace.remove_config("k1")

        with self.assertRaises(NotFound):
            self.namespace.get("k1", CozeConfig)
        self.assertIsNone(self.store.find_config("asr", "k1"))

    def test_remove_missing_key(self):
        with self.assertRaises(NotFound):
            self.namespace.remove_config("missing")

    def test_remove_store_failure_keeps_cache(self):
        self.namespace.save_config("k1", "k1", {"bot_id": "A"})
        self.namespace.enable_config("k1", 1)

        with mock.patch.object(self.store, "soft_delete_config", side_effect=StoreError("timeout")):
            with self.assertRaises(StoreError):
                self.namespace.remove_config("k1")

        self.assertEqual(self.namespace.get("k1"), {"bot_id": "A"})

    def test_list_versions_pages_newest_first(self):
        for n in range(5):
            self.namespace.save_config("k1", "k1", {"n": n})

        versions, total = self.namespace.list_versions("k1", page=2, size=2)
        self.assertEqual(total, 5)
        self.assertEqual([v.number for v in versions], [3, 2])

        with self.assertRaises(ValueError):
            self.namespace.list_versions("k1", page=0)

    def test_get_enabled_version(self):
        self.namespace.save_config("k1", "k1", {"n": 1})
        with self.assertRaises(NotFound):
            self.namespace.get_enabled_version("k1")

        self.namespace.save_config("k1", "k1", {"n": 2})
        self.namespace.enable_config("k1", 2)
        self.assertEqual(self.namespace.get_enabled_version("k1").number, 2)

    def test_concurrent_activation_keeps_one_enabled_version(self):
        keys = ["coze", "roles", "speech"]
        for key in keys:
            for n in range(4):
                self.namespace.save_config(key, key, UserRoleConfig(llm=f"m{n}", user="u", role="r"))

        errors = []

        def activate(key, offset):
            try:
                for i in range(40):
                    self.namespace.enable_config(key, (i + offset) % 4 + 1)
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

        threads = [
            threading.Thread(target=activate, args=(key, offset))
            for offset in range(3)
            for key in keys
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        self.assertEqual(errors, [])
        for key in keys:
            enabled = self.enabled_numbers(key)
            self.assertEqual(len(enabled), 1)
            served = self.namespace.get(key, UserRoleConfig)
            self.assertEqual(served.llm, f"m{enabled[0] - 1}")
