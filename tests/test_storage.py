"""
Tests for Peer Review Storage
=============================
Backend contract: lookups, compare-and-swap transitions and persistence.
"""

import sqlite3

import pytest

from peer_review.config_logging import AppConfig, ConflictError
from peer_review.models import PaperStatus
from peer_review.storage import MemoryStorage, SQLiteStorage, create_storage


@pytest.fixture
def owner(storage):
    return storage.create_user('owner', 'hash', 'user')


@pytest.fixture
def stored_paper(storage, owner):
    return storage.create_paper(owner.id, 'Title', 'Abstract', '/tmp/p.txt', 1200, 'Raincode')


@pytest.fixture
def first_id(storage):
    return storage.create_user('reviewer_1', 'hash', 'professor', 'Raincode').id


@pytest.fixture
def second_id(storage):
    return storage.create_user('reviewer_2', 'hash', 'professor', 'Raincode').id


class TestUsers:

    def test_create_and_lookup(self, storage, owner):
        assert storage.get_user(owner.id).username == 'owner'
        assert storage.get_user_by_username('owner').id == owner.id
        assert storage.get_user(999) is None
        assert storage.get_user_by_username('missing') is None

    def test_duplicate_username(self, storage, owner):
        with pytest.raises(ConflictError):
            storage.create_user('owner', 'hash', 'user')

    def test_list_users_by_role(self, storage, owner):
        storage.create_user('prof', 'hash', 'professor', 'Raincode')
        assert [u.username for u in storage.list_users()] == ['owner', 'prof']
        assert [u.username for u in storage.list_users(role='professor')] == ['prof']


class TestPapers:

    def test_create_paper(self, storage, stored_paper):
        fetched = storage.get_paper(stored_paper.id)
        assert fetched.title == 'Title'
        assert fetched.status == PaperStatus.PENDING.value
        assert fetched.assigned_to is None
        assert storage.get_paper(999) is None

    def test_returned_papers_are_copies(self, storage, stored_paper):
        fetched = storage.get_paper(stored_paper.id)
        fetched.assigned_to = 77
        assert storage.get_paper(stored_paper.id).assigned_to is None

    def test_claim_is_compare_and_swap(self, storage, stored_paper, first_id, second_id):
        claimed = storage.claim_paper(stored_paper.id, first_id)
        assert claimed.assigned_to == first_id
        assert storage.claim_paper(stored_paper.id, second_id) is None
        assert storage.get_paper(stored_paper.id).assigned_to == first_id

    def test_claim_missing_paper(self, storage):
        assert storage.claim_paper(999, 1) is None

    def test_record_review_requires_assignee(self, storage, stored_paper, first_id, second_id):
        assert storage.record_review(stored_paper.id, first_id, 'c', 3, 'f') is None
        storage.claim_paper(stored_paper.id, first_id)
        assert storage.record_review(stored_paper.id, second_id, 'c', 3, 'f') is None
        assert storage.list_reviews(stored_paper.id) == []

    def test_record_review_once(self, storage, stored_paper, first_id):
        storage.claim_paper(stored_paper.id, first_id)
        review = storage.record_review(stored_paper.id, first_id, 'Good', 4, 'Nice work')
        assert review.rating == 4
        assert storage.record_review(stored_paper.id, first_id, 'Again', 5, 'f') is None

        paper = storage.get_paper(stored_paper.id)
        assert paper.status == PaperStatus.REVIEWED.value
        assert paper.feedback == 'Nice work'
        assert [r.comment for r in storage.list_reviews(stored_paper.id)] == ['Good']

    def test_reviewed_paper_cannot_be_claimed(self, storage, stored_paper, first_id, second_id):
        storage.claim_paper(stored_paper.id, first_id)
        storage.record_review(stored_paper.id, first_id, 'Good', 4, 'f')
        assert storage.claim_paper(stored_paper.id, second_id) is None

    def test_pending_listing(self, storage, owner, stored_paper, first_id):
        other = storage.create_paper(owner.id, 'Other', 'A', '/tmp/q.txt', 1200, 'IIT Delhi')
        assert [p.id for p in storage.list_pending_papers('Raincode')] == [stored_paper.id]
        storage.claim_paper(stored_paper.id, first_id)
        assert storage.list_pending_papers('Raincode') == []
        assert [p.id for p in storage.list_pending_papers('IIT Delhi')] == [other.id]
        assert [p.id for p in storage.list_papers_assigned_to(first_id)] == [stored_paper.id]
        assert len(storage.list_papers()) == 2
        assert len(storage.list_papers_by_owner(owner.id)) == 2


class TestSQLitePersistence:

    def test_state_survives_reopen(self, tmp_path):
        db_path = tmp_path / 'nested' / 'review.db'
        first = SQLiteStorage(db_path)
        user = first.create_user('owner', 'hash', 'user')
        paper = first.create_paper(user.id, 'T', 'A', '/tmp/p.txt', 1500, 'Raincode')
        first.claim_paper(paper.id, user.id)
        first.close()

        second = SQLiteStorage(db_path)
        try:
            reopened = second.get_paper(paper.id)
            assert reopened.assigned_to == user.id
            assert reopened.submitted_at == paper.submitted_at
            assert second.get_user_by_username('owner').id == user.id
        finally:
            second.close()


class TestCreateStorage:

    def test_memory(self):
        assert isinstance(create_storage(AppConfig(storage_backend='memory')), MemoryStorage)

    def test_sqlite(self, tmp_path):
        config = AppConfig(storage_backend='sqlite', database_path=tmp_path / 'x.db')
        backend = create_storage(config)
        try:
            assert isinstance(backend, SQLiteStorage)
        finally:
            backend.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_storage(AppConfig(storage_backend='redis'))


class _CommitFailsOnce:
    """Connection stand-in whose first COMMIT reports a busy database."""

    def __init__(self, conn):
        self._conn = conn
        self.armed = True

    def execute(self, sql, *args):
        if sql == "COMMIT" and self.armed:
            self.armed = False
            raise sqlite3.OperationalError("database is locked")
        return self._conn.execute(sql, *args)

    def __getattr__(self, name):
        return getattr(self._conn, name)


class TestSQLiteTransactions:

    def test_failed_commit_rolls_back(self, tmp_path):
        backend = SQLiteStorage(tmp_path / 'review.db')
        try:
            real = backend._get_connection()
            backend._local.connection = _CommitFailsOnce(real)

            with pytest.raises(sqlite3.OperationalError):
                backend.create_user('owner', 'hash', 'user')
            assert not real.in_transaction
            assert backend.get_user_by_username('owner') is None

            user = backend.create_user('owner', 'hash', 'user')
            assert backend.get_user(user.id).username == 'owner'
        finally:
            backend.close()

    def test_error_inside_transaction_rolls_back(self, tmp_path):
        backend = SQLiteStorage(tmp_path / 'review.db')
        try:
            with pytest.raises(RuntimeError):
                with backend._transaction() as conn:
                    conn.execute("INSERT INTO users (username, password_hash, role) "
                                 "VALUES ('ghost', 'h', 'user')")
                    raise RuntimeError("abort")
            assert not backend._get_connection().in_transaction
            assert backend.get_user_by_username('ghost') is None
        finally:
            backend.close()
