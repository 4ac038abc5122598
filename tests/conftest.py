"""
Shared pytest configuration.

Module-level loggers are created on import, so the logging environment is
set here before any peer_review module loads.
"""

import os

os.environ.setdefault('PRS_LOG_TO_FILE', 'false')
os.environ.setdefault('PRS_LOG_LEVEL', 'WARNING')

import pytest  # noqa: E402

from peer_review.storage import MemoryStorage, SQLiteStorage  # noqa: E402
from peer_review.workflow import ReviewWorkflow  # noqa: E402


@pytest.fixture(params=['memory', 'sqlite'])
def storage(request, tmp_path):
    """Each storage backend, fresh per test."""
    if request.param == 'memory':
        backend = MemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / 'peer_review.db')
    yield backend
    backend.close()


@pytest.fixture
def workflow(storage):
    return ReviewWorkflow(storage)


@pytest.fixture
def student(workflow):
    return workflow.register_user('student', 'secret123')


@pytest.fixture
def professor(workflow):
    return workflow.register_user('prof_a', 'secret123', role='professor', institute='Raincode')


@pytest.fixture
def other_professor(workflow):
    return workflow.register_user('prof_b', 'secret123', role='professor', institute='Raincode')


@pytest.fixture
def paper(workflow, student):
    return workflow.submit_paper(student.id, 'On Heuristics', 'An abstract.',
                                 '/tmp/paper.txt', 1500, 'Raincode')
