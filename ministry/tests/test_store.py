import os
import unittest
import uuid

from ministry.store import (
    InMemoryKeyValueStore,
    RedisKeyValueStore,
    decode_key,
    encode_key,
    sort_key,
)


async def collect(store, prefix=(), reverse=False):
    return [key async for key, _ in store.scan(prefix, reverse=reverse)]


class KeyEncodingTests(unittest.TestCase):
    def test_encoding_preserves_order(self):
        keys = [
            ("a",),
            ("a", "b"),
            ("a", -5),
            ("a", 0),
            ("a", 9),
            ("a", 10),
            ("a", 1_700_000_000_000, "x"),
            ("ab",),
            ("b", 1),
        ]
        by_tuple = sorted(keys, key=sort_key)
        by_encoding = sorted(keys, key=encode_key)
        self.assertEqual(by_tuple, by_encoding)

    def test_decode_roundtrip(self):
        key = ("rateLimit", "1.2.3.4:prayer", 1_700_000_000_123, "abc")
        self.assertEqual(decode_key(encode_key(key)), key)

    def test_rejects_bool_and_nul(self):
        with self.assertRaises(TypeError):
            encode_key(("flags", True))
        with self.assertRaises(ValueError):
            encode_key(("bad\x00part",))


class InMemoryStoreTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = InMemoryKeyValueStore()

    async def test_get_set_delete(self):
        await self.store.set(("links", "1"), {"title": "Home"})
        self.assertEqual(await self.store.get(("links", "1")), {"title": "Home"})
        await self.store.delete(("links", "1"))
        self.assertIsNone(await self.store.get(("links", "1")))
        # Deleting an absent key is a no-op.
        await self.store.delete(("links", "1"))

    async def test_values_are_copies(self):
        value = {"tags": ["a"]}
        await self.store.set(("k",), value)
        value["tags"].append("b")
        fetched = await self.store.get(("k",))
        self.assertEqual(fetched, {"tags": ["a"]})
        fetched["tags"].append("c")
        self.assertEqual(await self.store.get(("k",)), {"tags": ["a"]})

    async def test_scan_prefix_order_and_reverse(self):
        await self.store.set(("events", 300, "b"), 3)
        await self.store.set(("events", 100, "z"), 1)
        await self.store.set(("events", 300, "a"), 2)
        await self.store.set(("eventsX", 1), 0)
        await self.store.set(("events",), "not under the prefix")

        ascending = await collect(self.store, ("events",))
        self.assertEqual(
            ascending,
            [("events", 100, "z"), ("events", 300, "a"), ("events", 300, "b")],
        )
        descending = await collect(self.store, ("events",), reverse=True)
        self.assertEqual(descending, list(reversed(ascending)))

    async def test_empty_prefix_scans_everything(self):
        await self.store.set(("a",), 1)
        await self.store.set(("b", 2), 2)
        self.assertEqual(len(await collect(self.store)), 2)

    async def test_scan_tolerates_deletes(self):
        for i in range(5):
            await self.store.set(("items", i), i)
        seen = []
        async for key, value in self.store.scan(("items",)):
            seen.append(value)
            await self.store.delete(("items", value + 1))
        self.assertEqual(seen, [0, 2, 4])


@unittest.skipUnless(
    os.environ.get("MINISTRY_TEST_REDIS_URL"), "MINISTRY_TEST_REDIS_URL not set"
)
class RedisStoreTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = RedisKeyValueStore(
            url=os.environ["MINISTRY_TEST_REDIS_URL"],
            namespace=f"ministry-test-{uuid.uuid4().hex}",
            page_size=2,
        )

    async def asyncTearDown(self):
        await self.store.client.delete(self.store._values_key, self.store._keys_key)
        await self.store.close()

    async def test_roundtrip_and_paged_scan(self):
        for ts in (5, 1, 3, 2, 4):
            await self.store.set(("views", ts, f"id{ts}"), {"ts": ts})
        await self.store.set(("viewsX",), "outside")

        self.assertEqual(await self.store.get(("views", 3, "id3")), {"ts": 3})
        ascending = [v["ts"] async for _, v in self.store.scan(("views",))]
        self.assertEqual(ascending, [1, 2, 3, 4, 5])
        descending = [v["ts"] async for _, v in self.store.scan(("views",), reverse=True)]
        self.assertEqual(descending, [5, 4, 3, 2, 1])

        await self.store.delete(("views", 3, "id3"))
        self.assertIsNone(await self.store.get(("views", 3, "id3")))
        self.assertEqual(len([k async for k, _ in self.store.scan(("views",))]), 4)


if __name__ == "__main__":
    unittest.main()
