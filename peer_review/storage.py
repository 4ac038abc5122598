"""
Peer Review Storage
===================
Persistence for users, papers and reviews behind one abstract interface.

Backends:
- MemoryStorage: process-local dictionaries, for tests and demos
- SQLiteStorage: SQLite file with thread-local connections

State-changing workflow steps are compare-and-swap operations here
(claim_paper, record_review) so that concurrent callers cannot both win.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .config_logging import AppConfig, ConflictError, get_logger
from .models import Paper, PaperStatus, Review, User

logger = get_logger('storage')


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PaperStorage(ABC):
    """Abstract interface for user, paper and review persistence.

    get_* methods return None for unknown ids instead of raising.
    """

    # Users

    @abstractmethod
    def create_user(self, username: str, password_hash: str, role: str,
                    institute: Optional[str] = None) -> User:
        """Create a user. Raises ConflictError if the username is taken."""
        pass

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    def list_users(self, role: Optional[str] = None) -> List[User]:
        pass

    # Papers

    @abstractmethod
    def create_paper(self, owner_id: int, title: str, abstract: str, file_path: str,
                     price: int, institute: str) -> Paper:
        """Create a pending, unassigned paper."""
        pass

    @abstractmethod
    def get_paper(self, paper_id: int) -> Optional[Paper]:
        pass

    @abstractmethod
    def list_papers(self) -> List[Paper]:
        pass

    @abstractmethod
    def list_papers_by_owner(self, owner_id: int) -> List[Paper]:
        pass

    @abstractmethod
    def list_pending_papers(self, institute: str) -> List[Paper]:
        """Pending, unassigned papers targeting exactly this institute."""
        pass

    @abstractmethod
    def list_papers_assigned_to(self, professor_id: int) -> List[Paper]:
        pass

    @abstractmethod
    def claim_paper(self, paper_id: int, professor_id: int) -> Optional[Paper]:
        """Set assigned_to if the paper is pending and unassigned.

        Returns the updated paper, or None if the precondition did not hold.
        """
        pass

    # Reviews

    @abstractmethod
    def record_review(self, paper_id: int, reviewer_id: int, comment: str, rating: int,
                      feedback: str) -> Optional[Review]:
        """Create a review and mark the paper reviewed in one step.

        Only applies while the paper is pending and assigned to reviewer_id;
        returns None otherwise and changes nothing.
        """
        pass

    @abstractmethod
    def list_reviews(self, paper_id: int) -> List[Review]:
        pass

    def close(self):
        """Release backend resources."""
        pass


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================

class MemoryStorage(PaperStorage):
    """Dictionary-backed storage guarded by a single lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[int, User] = {}
        self._papers: Dict[int, Paper] = {}
        self._reviews: Dict[int, Review] = {}
        self._next_user_id = 1
        self._next_paper_id = 1
        self._next_review_id = 1

    def create_user(self, username, password_hash, role, institute=None) -> User:
        with self._lock:
            if any(u.username == username for u in self._users.values()):
                raise ConflictError("Username already exists", username=username)
            user = User(id=self._next_user_id, username=username, password_hash=password_hash,
                        role=role, institute=institute)
            self._users[user.id] = user
            self._next_user_id += 1
            return replace(user)

    def get_user(self, user_id) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def get_user_by_username(self, username) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return replace(user)
            return None

    def list_users(self, role=None) -> List[User]:
        with self._lock:
            return [replace(u) for u in self._users.values() if role is None or u.role == role]

    def create_paper(self, owner_id, title, abstract, file_path, price, institute) -> Paper:
        with self._lock:
            paper = Paper(
                id=self._next_paper_id,
                title=title,
                abstract=abstract,
                file_path=file_path,
                owner_id=owner_id,
                institute=institute,
                price=price,
                status=PaperStatus.PENDING.value,
                submitted_at=_now(),
            )
            self._papers[paper.id] = paper
            self._next_paper_id += 1
            return replace(paper)

    def get_paper(self, paper_id) -> Optional[Paper]:
        with self._lock:
            paper = self._papers.get(paper_id)
            return replace(paper) if paper else None

    def _select_papers(self, predicate) -> List[Paper]:
        with self._lock:
            return [replace(p) for p in self._papers.values() if predicate(p)]

    def list_papers(self) -> List[Paper]:
        return self._select_papers(lambda p: True)

    def list_papers_by_owner(self, owner_id) -> List[Paper]:
        return self._select_papers(lambda p: p.owner_id == owner_id)

    def list_pending_papers(self, institute) -> List[Paper]:
        return self._select_papers(
            lambda p: p.status == PaperStatus.PENDING.value
            and p.assigned_to is None
            and p.institute == institute
        )

    def list_papers_assigned_to(self, professor_id) -> List[Paper]:
        return self._select_papers(lambda p: p.assigned_to == professor_id)

    def claim_paper(self, paper_id, professor_id) -> Optional[Paper]:
        with self._lock:
            paper = self._papers.get(paper_id)
            if paper is None or paper.assigned_to is not None or paper.is_reviewed:
                return None
            paper.assigned_to = professor_id
            return replace(paper)

    def record_review(self, paper_id, reviewer_id, comment, rating, feedback) -> Optional[Review]:
        with self._lock:
            paper = self._papers.get(paper_id)
            if paper is None or paper.assigned_to != reviewer_id or paper.is_reviewed:
                return None
            review = Review(
                id=self._next_review_id,
                paper_id=paper_id,
                reviewer_id=reviewer_id,
                comment=comment,
                rating=rating,
                submitted_at=_now(),
            )
            self._reviews[review.id] = review
            self._next_review_id += 1
            paper.status = PaperStatus.REVIEWED.value
            paper.feedback = feedback
            return review

    def list_reviews(self, paper_id) -> List[Review]:
        with self._lock:
            return [r for r in self._reviews.values() if r.paper_id == paper_id]


# =============================================================================
# SQLITE BACKEND
# =============================================================================

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'user',
        institute TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS papers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        abstract TEXT NOT NULL,
        file_path TEXT NOT NULL,
        owner_id INTEGER NOT NULL,
        institute TEXT NOT NULL,
        price INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        submitted_at TEXT NOT NULL,
        assigned_to INTEGER,
        feedback TEXT,
        FOREIGN KEY (owner_id) REFERENCES users(id),
        FOREIGN KEY (assigned_to) REFERENCES users(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reviews (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        paper_id INTEGER NOT NULL,
        reviewer_id INTEGER NOT NULL,
        comment TEXT NOT NULL,
        rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
        submitted_at TEXT NOT NULL,
        FOREIGN KEY (paper_id) REFERENCES papers(id),
        FOREIGN KEY (reviewer_id) REFERENCES users(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_papers_pending ON papers(status, institute, assigned_to)",
    "CREATE INDEX IF NOT EXISTS idx_papers_owner ON papers(owner_id)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_paper ON reviews(paper_id)",
)


class SQLiteStorage(PaperStorage):
    """SQLite storage with one connection per thread."""

    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._init_tables()

    def _get_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, 'connection', None)
        if conn is None:
            # Autocommit mode; transactions are opened explicitly
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False,
                                   isolation_level=None, timeout=30)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    @contextmanager
    def _transaction(self):
        """Write transaction holding the database write lock from the start."""
        conn = self._get_connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    def _init_tables(self):
        with self._transaction() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
        logger.info("SQLite storage ready", db_path=str(self.db_path))

    def _fetch_papers(self, where: str = "", params: tuple = ()) -> List[Paper]:
        rows = self._get_connection().execute(
            f"SELECT * FROM papers {where} ORDER BY id", params
        ).fetchall()
        return [Paper.from_row(row) for row in rows]

    def create_user(self, username, password_hash, role, institute=None) -> User:
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "INSERT INTO users (username, password_hash, role, institute) VALUES (?, ?, ?, ?)",
                    (username, password_hash, role, institute),
                )
                user_id = cursor.lastrowid
        except sqlite3.IntegrityError:
            raise ConflictError("Username already exists", username=username)
        return User(id=user_id, username=username, password_hash=password_hash,
                    role=role, institute=institute)

    def get_user(self, user_id) -> Optional[User]:
        row = self._get_connection().execute(
            "SELECT * FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        return User.from_row(row) if row else None

    def get_user_by_username(self, username) -> Optional[User]:
        row = self._get_connection().execute(
            "SELECT * FROM users WHERE username = ?", (username,)
        ).fetchone()
        return User.from_row(row) if row else None

    def list_users(self, role=None) -> List[User]:
        conn = self._get_connection()
        if role is None:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        else:
            rows = conn.execute("SELECT * FROM users WHERE role = ? ORDER BY id", (role,)).fetchall()
        return [User.from_row(row) for row in rows]

    def create_paper(self, owner_id, title, abstract, file_path, price, institute) -> Paper:
        submitted_at = _now()
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO papers
                (title, abstract, file_path, owner_id, institute, price, status, submitted_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (title, abstract, file_path, owner_id, institute, price,
                 PaperStatus.PENDING.value, submitted_at.isoformat()),
            )
            paper_id = cursor.lastrowid
        return Paper(id=paper_id, title=title, abstract=abstract, file_path=file_path,
                     owner_id=owner_id, institute=institute, price=price,
                     status=PaperStatus.PENDING.value, submitted_at=submitted_at)

    def get_paper(self, paper_id) -> Optional[Paper]:
        papers = self._fetch_papers("WHERE id = ?", (paper_id,))
        return papers[0] if papers else None

    def list_papers(self) -> List[Paper]:
        return self._fetch_papers()

    def list_papers_by_owner(self, owner_id) -> List[Paper]:
        return self._fetch_papers("WHERE owner_id = ?", (owner_id,))

    def list_pending_papers(self, institute) -> List[Paper]:
        return self._fetch_papers(
            "WHERE status = ? AND assigned_to IS NULL AND institute = ?",
            (PaperStatus.PENDING.value, institute),
        )

    def list_papers_assigned_to(self, professor_id) -> List[Paper]:
        return self._fetch_papers("WHERE assigned_to = ?", (professor_id,))

    def claim_paper(self, paper_id, professor_id) -> Optional[Paper]:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE papers SET assigned_to = ?
                WHERE id = ? AND assigned_to IS NULL AND status = ?
                """,
                (professor_id, paper_id, PaperStatus.PENDING.value),
            )
            claimed = cursor.rowcount == 1
        return self.get_paper(paper_id) if claimed else None

    def record_review(self, paper_id, reviewer_id, comment, rating, feedback) -> Optional[Review]:
        submitted_at = _now()
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE papers SET status = ?, feedback = ?
                WHERE id = ? AND assigned_to = ? AND status = ?
                """,
                (PaperStatus.REVIEWED.value, feedback, paper_id, reviewer_id,
                 PaperStatus.PENDING.value),
            )
            if cursor.rowcount != 1:
                return None
            cursor = conn.execute(
                """
                INSERT INTO reviews (paper_id, reviewer_id, comment, rating, submitted_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (paper_id, reviewer_id, comment, rating, submitted_at.isoformat()),
            )
            review_id = cursor.lastrowid
        return Review(id=review_id, paper_id=paper_id, reviewer_id=reviewer_id,
                      comment=comment, rating=rating, submitted_at=submitted_at)

    def list_reviews(self, paper_id) -> List[Review]:
        rows = self._get_connection().execute(
            "SELECT * FROM reviews WHERE paper_id = ? ORDER BY id", (paper_id,)
        ).fetchall()
        return [Review.from_row(row) for row in rows]

    def close(self):
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()


def create_storage(config: AppConfig) -> PaperStorage:
    """Build the storage backend named by the configuration."""
    if config.storage_backend == 'sqlite':
        return SQLiteStorage(config.database_path)
    if config.storage_backend == 'memory':
        return MemoryStorage()
    raise ValueError(f"Unknown storage backend: {config.storage_backend}")
