class DeduplicationStore:
    """
    DeduplicationStore: tracks the (message id, request id) pairs
    already loaded during one pass over the usage logs.

    The same assistant response can be written to more than one
    log file, e.g. when a conversation is resumed. Records missing
    either identifier cannot be matched and are never treated as
    duplicates.
    """

    def __init__(self) -> "None":
        self._seen: "set[str]" = set()

    @staticmethod
    def make_key(message_id: "str | None", request_id: "str | None") -> "str | None":
        """
        constructs the identity key for a record, or None when
        either identifier is missing.
        """
        if message_id is None or request_id is None:
            return None
        return f"{message_id}:{request_id}"

    def is_new(self, message_id: "str | None", request_id: "str | None") -> "bool":
        """
        checks if the given record is new. If so, mark it as seen
        and returns True.
        """
        key = self.make_key(message_id, request_id)
        if key is None:
            return True

        if key in self._seen:
            return False

        self._seen.add(key)
        return True

    def __len__(self) -> "int":
        return len(self._seen)
