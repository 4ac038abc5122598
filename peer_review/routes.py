"""
Peer Review Flask Routes
========================
JSON API over the review workflow and the heuristics engines.

Endpoints:
- GET  /api/health, /api/institutes
- POST /api/register, /api/login, /api/logout; GET /api/user
- POST /api/papers (multipart upload); GET /api/papers, /api/papers/all
- GET  /api/papers/<id>, /api/papers/<id>/reviews, /api/papers/<id>/analysis
- GET  /api/professor/pending-papers, /api/professor/assigned-papers
- POST /api/professor/assign-paper/<id>, /api/professor/review-paper/<id>
- POST /api/check/grammar, /api/check/format
"""

import time
import uuid
from functools import wraps

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.utils import secure_filename

from .config_logging import (
    AuthenticationError, FileError, PeerReviewError, ValidationError, VERSION, get_logger,
)
from .extraction import extract_text
from .format_checker import check_format
from .grammar_checker import check_grammar
from .models import INSTITUTES, Actor
from .workflow import ReviewWorkflow

logger = get_logger('routes')

api = Blueprint('peer_review', __name__, url_prefix='/api')


# =============================================================================
# HELPERS
# =============================================================================

def get_workflow() -> ReviewWorkflow:
    return current_app.extensions['peer_review_workflow']


def current_actor() -> Actor:
    """Actor for the logged-in session user."""
    user_id = session.get('user_id')
    if user_id is None:
        raise AuthenticationError()
    user = get_workflow().storage.get_user(user_id)
    if user is None:
        session.pop('user_id', None)
        raise AuthenticationError()
    return user.as_actor()


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    return data


def _int_field(data: dict, field_name: str):
    value = data.get(field_name)
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)


def _text_field(data: dict) -> str:
    text = data.get('text', '')
    if not isinstance(text, str):
        raise ValidationError("text must be a string", field='text')
    return text


def _ok(data, status: int = 200):
    return jsonify({'success': True, 'data': data}), status


def handle_errors(f):
    """Convert PeerReviewError and unexpected failures into JSON error responses."""
    @wraps(f)
    def decorated(*args, **kwargs):
        start_time = time.time()
        try:
            result = f(*args, **kwargs)
        except PeerReviewError as e:
            body = e.to_dict()
            body['error']['correlation_id'] = getattr(g, 'correlation_id', 'unknown')
            return jsonify(body), e.status_code
        except Exception as e:
            logger.exception(f"Unexpected error in {f.__name__}: {e}")
            return jsonify({
                'success': False,
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An internal error occurred',
                    'correlation_id': getattr(g, 'correlation_id', 'unknown')
                }
            }), 500

        elapsed = time.time() - start_time
        if elapsed > 5.0:
            logger.warning(f"Slow API call: {f.__name__} took {elapsed:.1f}s")
        return result
    return decorated


# =============================================================================
# GENERAL
# =============================================================================

@api.route('/health', methods=['GET'])
def health():
    return jsonify({'success': True, 'status': 'ok', 'version': VERSION})


@api.route('/institutes', methods=['GET'])
def institutes():
    return _ok(list(INSTITUTES))


# =============================================================================
# AUTHENTICATION
# =============================================================================

@api.route('/register', methods=['POST'])
@handle_errors
def register():
    data = _json_body()
    user = get_workflow().register_user(
        data.get('username'),
        data.get('password'),
        role=data.get('role') or 'user',
        institute=data.get('institute'),
    )
    session['user_id'] = user.id
    return _ok(user.to_dict(), 201)


@api.route('/login', methods=['POST'])
@handle_errors
def login():
    data = _json_body()
    user = get_workflow().authenticate(data.get('username'), data.get('password'))
    session['user_id'] = user.id
    return _ok(user.to_dict())


@api.route('/logout', methods=['POST'])
def logout():
    session.pop('user_id', None)
    return jsonify({'success': True})


@api.route('/user', methods=['GET'])
@handle_errors
def get_current_user():
    actor = current_actor()
    return _ok(get_workflow().get_user(actor.id).to_dict())


# =============================================================================
# PAPERS
# =============================================================================

@api.route('/papers', methods=['POST'])
@handle_errors
def upload_paper():
    actor = current_actor()
    config = current_app.config['PEER_REVIEW_CONFIG']

    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise ValidationError("No file uploaded", field='file')

    filename = secure_filename(upload.filename)
    if not filename.lower().endswith(tuple(config.allowed_extensions)):
        raise FileError(
            f"File type not allowed. Supported: {', '.join(config.allowed_extensions)}",
            file_path=filename,
        )

    data = request.form.to_dict()
    price = _int_field(data, 'price')

    config.upload_dir.mkdir(parents=True, exist_ok=True)
    stored_path = config.upload_dir / f"{uuid.uuid4().hex}_{filename}"
    upload.save(str(stored_path))

    try:
        paper = get_workflow().submit_paper(
            actor.id, data.get('title'), data.get('abstract'), str(stored_path),
            price, data.get('institute'),
        )
    except Exception:
        stored_path.unlink(missing_ok=True)
        raise
    return _ok(paper.to_dict(), 201)


@api.route('/papers', methods=['GET'])
@handle_errors
def list_my_papers():
    actor = current_actor()
    papers = get_workflow().list_papers_for_owner(actor.id)
    return _ok([p.to_dict() for p in papers])


@api.route('/papers/all', methods=['GET'])
@handle_errors
def list_all_papers():
    papers = get_workflow().list_all_papers()
    return _ok([p.to_dict() for p in papers])


@api.route('/papers/<int:paper_id>', methods=['GET'])
@handle_errors
def get_paper(paper_id: int):
    actor = current_actor()
    return _ok(get_workflow().get_paper_for(actor, paper_id).to_dict())


@api.route('/papers/<int:paper_id>/reviews', methods=['GET'])
@handle_errors
def list_paper_reviews(paper_id: int):
    actor = current_actor()
    reviews = get_workflow().list_reviews_visible_to(actor, paper_id)
    return _ok([r.to_dict() for r in reviews])


@api.route('/papers/<int:paper_id>/analysis', methods=['GET'])
@handle_errors
def analyze_paper(paper_id: int):
    """Grammar and format reports for a stored paper."""
    actor = current_actor()
    paper = get_workflow().get_paper_for(actor, paper_id)
    text = extract_text(paper.file_path)
    return _ok({
        'paper_id': paper.id,
        'grammar': check_grammar(text).to_dict(),
        'format': check_format(text).to_dict(),
    })


# =============================================================================
# PROFESSOR WORKFLOW
# =============================================================================

@api.route('/professor/pending-papers', methods=['GET'])
@handle_errors
def pending_papers():
    actor = current_actor()
    if not actor.is_professor:
        return _ok([])
    papers = get_workflow().list_pending_for_institute(actor.institute)
    return _ok([p.to_dict() for p in papers])


@api.route('/professor/assigned-papers', methods=['GET'])
@handle_errors
def assigned_papers():
    actor = current_actor()
    papers = get_workflow().list_assigned_to(actor.id)
    return _ok([p.to_dict() for p in papers])


@api.route('/professor/assign-paper/<int:paper_id>', methods=['POST'])
@handle_errors
def assign_paper(paper_id: int):
    actor = current_actor()
    paper = get_workflow().assign_paper(actor, paper_id)
    return _ok(paper.to_dict())


@api.route('/professor/review-paper/<int:paper_id>', methods=['POST'])
@handle_errors
def review_paper(paper_id: int):
    actor = current_actor()
    data = _json_body()
    review = get_workflow().submit_review(
        actor, paper_id, data.get('comment'), _int_field(data, 'rating'),
        feedback=data.get('feedback'),
    )
    return _ok(review.to_dict(), 201)


# =============================================================================
# HEURISTICS
# =============================================================================

@api.route('/check/grammar', methods=['POST'])
@handle_errors
def grammar_check():
    return _ok(check_grammar(_text_field(_json_body())).to_dict())


@api.route('/check/format', methods=['POST'])
@handle_errors
def format_check():
    return _ok(check_format(_text_field(_json_body())).to_dict())
