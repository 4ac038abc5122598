"""
Review Workflow
===============
Paper lifecycle and access control for the review marketplace.

    submit          assign (professor, same institute)     review (assignee)
    ------> pending ----------------------------------> pending+assigned ----> reviewed

Every rejected transition raises one of the PeerReviewError subclasses and
leaves storage untouched. Claims and reviews are applied through the storage
compare-and-swap operations, so concurrent professors cannot both win.
"""

from typing import List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from .config_logging import (
    AuthenticationError, ConflictError, ForbiddenError, NotFoundError,
    ValidationError, get_logger,
)
from .models import (
    DEFAULT_FEEDBACK, MAX_PRICE, MAX_RATING, MIN_PRICE, MIN_RATING,
    Actor, Paper, Review, Role, User,
)
from .storage import PaperStorage

logger = get_logger('workflow')

MIN_PASSWORD_LENGTH = 6
DEFAULT_PROFESSOR = {
    'username': 'professor',
    'password': 'password',
    'institute': 'Raincode',
}


def _require_text(value, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return value.strip()


def _require_int_in_range(value, field_name: str, low: int, high: int) -> int:
    # bool is an int subclass; True must not pass as rating 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer", field=field_name, value=value)
    if not low <= value <= high:
        raise ValidationError(f"{field_name} must be between {low} and {high}",
                              field=field_name, value=value, min=low, max=high)
    return value


class ReviewWorkflow:
    """Paper submission, assignment and review over an injected storage."""

    def __init__(self, storage: PaperStorage):
        self.storage = storage

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def register_user(self, username: str, password: str, role: str = Role.USER.value,
                      institute: Optional[str] = None) -> User:
        username = _require_text(username, 'username')
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"password must be at least {MIN_PASSWORD_LENGTH} characters",
                                  field='password')
        if role not in (Role.USER.value, Role.PROFESSOR.value):
            raise ValidationError(f"Invalid role: {role}", field='role')
        if institute is not None and not str(institute).strip():
            institute = None
        if role == Role.PROFESSOR.value and institute is None:
            raise ValidationError("Professors must belong to an institute", field='institute')

        user = self.storage.create_user(username, generate_password_hash(password), role, institute)
        logger.info("User registered", user_id=user.id, role=role, institute=institute)
        return user

    def authenticate(self, username: str, password: str) -> User:
        if not isinstance(username, str) or not isinstance(password, str):
            logger.warning("Malformed login attempt")
            raise AuthenticationError("Invalid username or password")
        user = self.storage.get_user_by_username(username)
        if user is None or not check_password_hash(user.password_hash, password):
            logger.warning("Failed login attempt", username=username)
            raise AuthenticationError("Invalid username or password")
        return user

    def get_user(self, user_id: int) -> User:
        user = self.storage.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found", resource='user', resource_id=user_id)
        return user

    def list_professors(self, institute: Optional[str] = None) -> List[User]:
        professors = self.storage.list_users(role=Role.PROFESSOR.value)
        if institute is not None:
            professors = [p for p in professors if p.institute == institute]
        return professors

    def seed_default_professor(self) -> User:
        """Create the demo professor account unless it already exists."""
        existing = self.storage.get_user_by_username(DEFAULT_PROFESSOR['username'])
        if existing is not None:
            return existing
        return self.register_user(
            DEFAULT_PROFESSOR['username'], DEFAULT_PROFESSOR['password'],
            role=Role.PROFESSOR.value, institute=DEFAULT_PROFESSOR['institute'],
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def submit_paper(self, owner_id: int, title: str, abstract: str, file_path: str,
                     price: int, institute: str) -> Paper:
        """Create a pending, unassigned paper targeting `institute`."""
        title = _require_text(title, 'title')
        abstract = _require_text(abstract, 'abstract')
        file_path = _require_text(file_path, 'file_path')
        institute = _require_text(institute, 'institute')
        price = _require_int_in_range(price, 'price', MIN_PRICE, MAX_PRICE)
        self.get_user(owner_id)

        paper = self.storage.create_paper(owner_id, title, abstract, file_path, price, institute)
        logger.info("Paper submitted", paper_id=paper.id, owner_id=owner_id, institute=institute)
        return paper

    def assign_paper(self, actor: Actor, paper_id: int) -> Paper:
        """Claim a pending paper for the acting professor.

        Claiming a paper the actor already holds returns it unchanged.
        """
        with logger.log_operation('assign_paper', paper_id=paper_id, actor_id=actor.id):
            if not actor.is_professor:
                raise ForbiddenError("Only professors can claim papers")

            paper = self._get_paper(paper_id)
            if paper.institute != actor.institute:
                raise ForbiddenError("Paper belongs to a different institute")
            if paper.is_reviewed:
                raise ConflictError("Paper has already been reviewed", paper_id=paper_id)
            if paper.assigned_to == actor.id:
                return paper
            if paper.is_assigned:
                raise ConflictError("Paper is already assigned", paper_id=paper_id)

            claimed = self.storage.claim_paper(paper_id, actor.id)
            if claimed is None:
                # Lost a race; report against the state that won
                current = self._get_paper(paper_id)
                if current.assigned_to == actor.id and not current.is_reviewed:
                    return current
                raise ConflictError("Paper is already assigned", paper_id=paper_id)
            return claimed

    def submit_review(self, actor: Actor, paper_id: int, comment: str, rating: int,
                      feedback: Optional[str] = None) -> Review:
        """Record the assignee's review and close the paper."""
        with logger.log_operation('submit_review', paper_id=paper_id, actor_id=actor.id):
            if not actor.is_professor:
                raise ForbiddenError("Only professors can review papers")
            rating = _require_int_in_range(rating, 'rating', MIN_RATING, MAX_RATING)
            comment = _require_text(comment, 'comment')
            if feedback is None or not str(feedback).strip():
                feedback = DEFAULT_FEEDBACK

            paper = self._get_paper(paper_id)
            if paper.assigned_to != actor.id:
                raise ForbiddenError("Paper is not assigned to you")
            if paper.is_reviewed:
                raise ConflictError("Paper has already been reviewed", paper_id=paper_id)

            review = self.storage.record_review(paper_id, actor.id, comment, rating, feedback)
            if review is None:
                raise ConflictError("Paper has already been reviewed", paper_id=paper_id)
            return review

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_pending_for_institute(self, institute: str) -> List[Paper]:
        return self.storage.list_pending_papers(institute)

    def list_assigned_to(self, professor_id: int) -> List[Paper]:
        return self.storage.list_papers_assigned_to(professor_id)

    def list_papers_for_owner(self, owner_id: int) -> List[Paper]:
        return self.storage.list_papers_by_owner(owner_id)

    def list_all_papers(self) -> List[Paper]:
        return self.storage.list_papers()

    def list_reviews_visible_to(self, actor: Actor, paper_id: int) -> List[Review]:
        """Reviews of a paper, visible to its owner and its assigned professor."""
        paper = self._get_paper(paper_id)
        if actor.id not in (paper.owner_id, paper.assigned_to):
            raise ForbiddenError("You cannot view reviews for this paper")
        return self.storage.list_reviews(paper_id)

    def get_paper_for(self, actor: Actor, paper_id: int) -> Paper:
        """A paper as seen by its owner, its assignee or a professor of its institute."""
        paper = self._get_paper(paper_id)
        if actor.id in (paper.owner_id, paper.assigned_to):
            return paper
        if actor.is_professor and actor.institute == paper.institute:
            return paper
        raise ForbiddenError("You cannot view this paper")

    def _get_paper(self, paper_id: int) -> Paper:
        paper = self.storage.get_paper(paper_id)
        if paper is None:
            raise NotFoundError("Paper not found", resource='paper', resource_id=paper_id)
        return paper
