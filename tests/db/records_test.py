import pytest

from db.records import RecordStore


@pytest.fixture(params=["record_store", "sql_store"])
def store(request: pytest.FixtureRequest) -> RecordStore:
    return request.getfixturevalue(request.param)


def test_put_get_and_overwrite(store: RecordStore) -> None:
    assert store.get("account", "a") is None

    store.put("account", "a", '{"v":1}')
    store.put("account", "a", '{"v":2}')

    assert store.get("account", "a") == '{"v":2}'
    assert store.get("transaction", "a") is None


def test_delete_reports_whether_a_record_existed(store: RecordStore) -> None:
    store.put("balance", "a", "{}")

    assert store.delete("balance", "a") is True
    assert store.delete("balance", "a") is False
    assert store.get("balance", "a") is None


def test_list_is_scoped_and_ordered_by_record_id(store: RecordStore) -> None:
    store.put("transaction", "b", "second")
    store.put("transaction", "a", "first")
    store.put("account", "c", "other")

    assert store.list("transaction") == ["first", "second"]
    assert store.list("balance") == []
