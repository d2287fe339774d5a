"""Tests for the message ring buffer and the sent-message cache."""

from jarvis.buffer import MessageBuffer, SentMessageCache


class TestMessageBuffer:

    def test_recent_oldest_first(self):
        buf = MessageBuffer(capacity=10)
        for i in range(5):
            buf.record("g", "ana", f"msg {i}", timestamp=i + 1)
        assert [m.text for m in buf.recent("g", 3)] == ["msg 2", "msg 3", "msg 4"]

    def test_capacity_evicts_oldest(self):
        buf = MessageBuffer(capacity=3)
        for i in range(5):
            buf.record("g", "ana", f"msg {i}")
        assert buf.size("g") == 3
        assert buf.recent("g", 10)[0].text == "msg 2"

    def test_scopes_separate(self):
        buf = MessageBuffer()
        buf.record("a", "x", "hello")
        buf.record("b", "y", "bye")
        assert [m.text for m in buf.recent("a", 5)] == ["hello"]

    def test_least_recent_scope_evicted(self):
        buf = MessageBuffer(max_scopes=2)
        buf.record("a", "x", "1")
        buf.record("b", "x", "2")
        buf.record("a", "x", "3")
        buf.record("c", "x", "4")
        assert buf.scope_count == 2
        assert buf.size("b") == 0
        assert buf.size("a") == 2 and buf.size("c") == 1

    def test_blank_text_ignored(self):
        buf = MessageBuffer()
        buf.record("g", "x", "   ")
        buf.record("g", "x", "")
        assert buf.size("g") == 0

    def test_recent_edge_cases(self):
        buf = MessageBuffer()
        assert buf.recent("nope", 5) == []
        buf.record("g", "x", "hi")
        assert buf.recent("g", 0) == []

    def test_clear(self):
        buf = MessageBuffer()
        buf.record("a", "x", "1")
        buf.record("b", "x", "2")
        buf.clear("a")
        assert buf.size("a") == 0 and buf.size("b") == 1
        buf.clear()
        assert buf.size("b") == 0


class TestSentMessageCache:

    def test_put_get(self):
        cache = SentMessageCache()
        cache.put("M1", {"text": "hi"})
        assert cache.get("M1") == {"text": "hi"}
        assert cache.get("M2") is None

    def test_evicts_oldest(self):
        cache = SentMessageCache(capacity=2)
        cache.put("M1", {})
        cache.put("M2", {})
        cache.put("M3", {})
        assert len(cache) == 2
        assert cache.get("M1") is None
        assert cache.get("M3") == {}

    def test_reput_refreshes(self):
        cache = SentMessageCache(capacity=2)
        cache.put("M1", {"v": 1})
        cache.put("M2", {})
        cache.put("M1", {"v": 2})
        cache.put("M3", {})
        assert cache.get("M1") == {"v": 2}
        assert cache.get("M2") is None

    def test_empty_id_ignored(self):
        cache = SentMessageCache()
        cache.put("", {"x": 1})
        assert len(cache) == 0
