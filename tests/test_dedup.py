from ccstat.dedup import DeduplicationStore


class TestDeduplicationStore:
    def test_first_call_returns_true(self) -> "None":
        store = DeduplicationStore()
        assert store.is_new(message_id="msg_1", request_id="req_1") is True

    def test_second_call_same_key_returns_false(self) -> "None":
        store = DeduplicationStore()
        store.is_new(message_id="msg_1", request_id="req_1")
        assert store.is_new(message_id="msg_1", request_id="req_1") is False

    def test_different_request_ids_are_independent(self) -> "None":
        store = DeduplicationStore()
        assert store.is_new(message_id="msg_1", request_id="req_1") is True
        assert store.is_new(message_id="msg_1", request_id="req_2") is True
        assert len(store) == 2

    def test_missing_identifier_is_never_a_duplicate(self) -> "None":
        store = DeduplicationStore()
        for _ in range(3):
            assert store.is_new(message_id="msg_1", request_id=None) is True
            assert store.is_new(message_id=None, request_id="req_1") is True
        assert len(store) == 0

    def test_make_key(self) -> "None":
        assert DeduplicationStore.make_key("msg_1", "req_1") == "msg_1:req_1"
        assert DeduplicationStore.make_key(None, "req_1") is None
