from typing import Any, Mapping, Sequence

from .errors import NotFoundError


def authorize(record: Mapping[str, Any], acting_user_id: int) -> bool:
    return record.get("user_id") == acting_user_id


def find_owned_index(records: Sequence[Mapping[str, Any]], record_id: int, acting_user_id: int, label: str) -> int:
    """Locate a record by id that belongs to the acting user.

    A missing record and one owned by somebody else both raise the same
    NotFoundError, so other users' ids are indistinguishable from missing ones.
    """
    for index, row in enumerate(records):
        if row.get("id") == record_id and authorize(row, acting_user_id):
            return index
    raise NotFoundError(f"{label} not found: {record_id}")


def owned_by(records: Sequence[Mapping[str, Any]], acting_user_id: int) -> list[Mapping[str, Any]]:
    return [row for row in records if authorize(row, acting_user_id)]
