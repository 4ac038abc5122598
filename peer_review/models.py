"""
Peer Review Data Models
=======================
Dataclasses for users, papers and reviews, plus the constants the review
workflow is defined over.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

INSTITUTES = (
    "Raincode",
    "IIT Delhi",
    "IIT Bombay",
    "IIT Madras",
    "IIT Kanpur",
    "IIT Kharagpur",
    "IIM Ahmedabad",
    "IIM Bangalore",
    "IIM Calcutta",
)

MIN_PRICE = 1000
MAX_PRICE = 3000
MIN_RATING = 1
MAX_RATING = 5
DEFAULT_FEEDBACK = "Paper has been reviewed"


class Role(str, Enum):
    """User roles; fixed at registration."""
    USER = "user"
    PROFESSOR = "professor"


class PaperStatus(str, Enum):
    """Paper lifecycle. Assignment is tracked by assigned_to while PENDING."""
    PENDING = "pending"
    REVIEWED = "reviewed"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class Actor:
    """Identity of the caller as supplied by the session layer."""
    id: int
    role: str
    institute: Optional[str] = None

    @property
    def is_professor(self) -> bool:
        return self.role == Role.PROFESSOR.value


@dataclass
class User:
    id: int
    username: str
    password_hash: str
    role: str = Role.USER.value
    institute: Optional[str] = None

    @property
    def is_professor(self) -> bool:
        return self.role == Role.PROFESSOR.value

    def as_actor(self) -> Actor:
        return Actor(id=self.id, role=self.role, institute=self.institute)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'username': self.username,
            'role': self.role,
            'institute': self.institute,
        }

    @classmethod
    def from_row(cls, row) -> 'User':
        return cls(
            id=row['id'],
            username=row['username'],
            password_hash=row['password_hash'],
            role=row['role'],
            institute=row['institute'],
        )


@dataclass
class Paper:
    """
    A submitted paper.

    status is PENDING until a review is recorded; assigned_to is set when a
    professor of the same institute claims it. REVIEWED is terminal.
    """
    id: int
    title: str
    abstract: str
    file_path: str
    owner_id: int
    institute: str
    price: int
    status: str = PaperStatus.PENDING.value
    submitted_at: Optional[datetime] = None
    assigned_to: Optional[int] = None
    feedback: Optional[str] = None

    @property
    def is_assigned(self) -> bool:
        return self.assigned_to is not None

    @property
    def is_reviewed(self) -> bool:
        return self.status == PaperStatus.REVIEWED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'abstract': self.abstract,
            'file_path': self.file_path,
            'owner_id': self.owner_id,
            'institute': self.institute,
            'price': self.price,
            'status': self.status,
            'submitted_at': _iso(self.submitted_at),
            'assigned_to': self.assigned_to,
            'feedback': self.feedback,
        }

    @classmethod
    def from_row(cls, row) -> 'Paper':
        return cls(
            id=row['id'],
            title=row['title'],
            abstract=row['abstract'],
            file_path=row['file_path'],
            owner_id=row['owner_id'],
            institute=row['institute'],
            price=row['price'],
            status=row['status'],
            submitted_at=_parse_time(row['submitted_at']),
            assigned_to=row['assigned_to'],
            feedback=row['feedback'],
        )


@dataclass(frozen=True)
class Review:
    id: int
    paper_id: int
    reviewer_id: int
    comment: str
    rating: int
    submitted_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'paper_id': self.paper_id,
            'reviewer_id': self.reviewer_id,
            'comment': self.comment,
            'rating': self.rating,
            'submitted_at': _iso(self.submitted_at),
        }

    @classmethod
    def from_row(cls, row) -> 'Review':
        return cls(
            id=row['id'],
            paper_id=row['paper_id'],
            reviewer_id=row['reviewer_id'],
            comment=row['comment'],
            rating=row['rating'],
            submitted_at=_parse_time(row['submitted_at']),
        )
