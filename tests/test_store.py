import pytest
from sqlalchemy import select, text

from core.database_models import Message
from core.errors import StoreError
from core.store import SubscriptionStore


def test_create_tables_is_idempotent(store):
    store.create_tables()
    store.create_tables()
    assert store.list_subscriber_emails() == []


def test_sqlite_parent_directory_is_created(tmp_path):
    db_path = tmp_path / 'nested' / 'dir' / 'subs.db'
    store = SubscriptionStore.from_url(f"sqlite:///{db_path}")
    store.create_tables()
    assert db_path.exists()
    store.close()


def test_upsert_ignores_existing_subscriber(store):
    store.upsert_subscriber_ignoring_conflict('a@example.com')
    first_id = store.find_subscriber_id('a@example.com')

    store.upsert_subscriber_ignoring_conflict('a@example.com')

    assert store.count_subscribers() == 1
    assert store.find_subscriber_id('a@example.com') == first_id


def test_find_missing_subscriber_raises(store):
    with pytest.raises(StoreError) as exc_info:
        store.find_subscriber_id('nobody@example.com')
    assert exc_info.value.step == 'find_subscriber_id'


def test_insert_message_assigns_id_and_timestamp(store):
    store.upsert_subscriber_ignoring_conflict('a@example.com')
    subscriber_id = store.find_subscriber_id('a@example.com')

    message_id = store.insert_message(subscriber_id, 'hello')

    with store.Session() as session:
        message = session.execute(select(Message).where(Message.id == message_id)).scalar_one()
        assert message.message == 'hello'
        assert message.subscriber_id == subscriber_id
        assert message.created_at is not None


def test_insert_message_requires_existing_subscriber(store):
    with pytest.raises(StoreError) as exc_info:
        store.insert_message(9999, 'orphan')
    assert exc_info.value.step == 'insert_message'
    assert 'FOREIGN KEY' in str(exc_info.value)


def test_list_subscriber_emails(store):
    for email in ('a@example.com', 'b@example.com', 'c@example.com'):
        store.upsert_subscriber_ignoring_conflict(email)

    assert sorted(store.list_subscriber_emails()) == ['a@example.com', 'b@example.com', 'c@example.com']


def test_count_messages_per_email(store):
    for email in ('a@example.com', 'b@example.com'):
        store.upsert_subscriber_ignoring_conflict(email)
    a_id = store.find_subscriber_id('a@example.com')
    store.insert_message(a_id, 'one')
    store.insert_message(a_id, 'two')

    assert store.count_messages() == 2
    assert store.count_messages('a@example.com') == 2
    assert store.count_messages('b@example.com') == 0


def test_driver_errors_surface_as_store_error(store):
    with store.engine.begin() as conn:
        conn.execute(text('DROP TABLE messages'))
        conn.execute(text('DROP TABLE subscribers'))

    with pytest.raises(StoreError) as exc_info:
        store.upsert_subscriber_ignoring_conflict('a@example.com')
    assert exc_info.value.step == 'upsert_subscriber'
    assert 'no such table' in str(exc_info.value)

    with pytest.raises(StoreError):
        store.list_subscriber_emails()


def test_ping(store):
    store.ping()
