from typing import Any, Iterable, Mapping


def next_id(records: Iterable[Mapping[str, Any]]) -> int:
    """Return max(existing ids) + 1, or 1 for an empty partition.

    Recomputed from the records on every insert, so the caller must hold the
    partition lock between computing the id and saving the new record.
    """
    return max((int(row["id"]) for row in records), default=0) + 1
