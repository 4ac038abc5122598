#!/usr/bin/env python3
"""
PaperReview API Tests
=====================
End-to-end tests of the Flask API: sessions, the upload/assign/review flow,
heuristics endpoints and error responses.

Run with: python -m pytest tests/test_app.py
"""

import io
import shutil
import tempfile
import unittest
from pathlib import Path

from peer_review.app import create_app
from peer_review.config_logging import AppConfig, configure_logging
from peer_review.storage import MemoryStorage

from pdf_samples import SECTION_HEADINGS, build_pdf

PAPER_TEXT = (
    b"Abstract\nThis study examines heuristics.\n\n"
    b"Introduction\nThe data is collected (Smith, 2020).\n"
)


class APITestCase(unittest.TestCase):
    """Shared app, storage and clients."""

    def setUp(self):
        self.upload_dir = tempfile.mkdtemp()
        config = AppConfig(
            secret_key='x' * 32,
            storage_backend='memory',
            upload_dir=Path(self.upload_dir),
            log_to_file=False,
            log_to_console=False,
        )
        self.storage = MemoryStorage()
        self.app = create_app(config, storage=self.storage)
        self.app.config['TESTING'] = True
        self.student = self.app.test_client()
        self.professor = self.app.test_client()

    def tearDown(self):
        shutil.rmtree(self.upload_dir, ignore_errors=True)

    def register(self, client, username, **extra):
        payload = {'username': username, 'password': 'secret123', **extra}
        return client.post('/api/register', json=payload)

    def login_default_professor(self, client):
        return client.post('/api/login', json={'username': 'professor', 'password': 'password'})

    def upload(self, client, filename='paper.txt', price='1500', institute='Raincode',
               content=PAPER_TEXT):
        return client.post('/api/papers', data={
            'title': 'On Heuristics',
            'abstract': 'A short abstract.',
            'price': price,
            'institute': institute,
            'file': (io.BytesIO(content), filename),
        }, content_type='multipart/form-data')


class TestGeneral(APITestCase):

    def test_health(self):
        response = self.student.get('/api/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['status'], 'ok')

    def test_security_headers(self):
        response = self.student.get('/api/health')
        self.assertEqual(response.headers.get('X-Content-Type-Options'), 'nosniff')
        self.assertEqual(response.headers.get('X-Frame-Options'), 'DENY')
        self.assertIn('X-Correlation-ID', response.headers)

    def test_institutes(self):
        data = self.student.get('/api/institutes').get_json()['data']
        self.assertIn('Raincode', data)
        self.assertEqual(len(data), 9)


class TestAuthentication(APITestCase):

    def test_register_sets_session(self):
        response = self.register(self.student, 'alice')
        self.assertEqual(response.status_code, 201)
        self.assertNotIn('password_hash', response.get_json()['data'])

        user = self.student.get('/api/user').get_json()['data']
        self.assertEqual(user['username'], 'alice')

    def test_duplicate_registration(self):
        self.register(self.student, 'alice')
        response = self.register(self.professor, 'alice')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()['error']['code'], 'CONFLICT')

    def test_invalid_registration(self):
        response = self.student.post('/api/register', json={'username': 'bob', 'password': 'x'})
        self.assertEqual(response.status_code, 400)
        error = response.get_json()['error']
        self.assertEqual(error['code'], 'VALIDATION_ERROR')
        self.assertIn('correlation_id', error)

    def test_login_and_logout(self):
        response = self.login_default_professor(self.professor)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['data']['role'], 'professor')

        self.professor.post('/api/logout')
        self.assertEqual(self.professor.get('/api/user').status_code, 401)

    def test_bad_login(self):
        response = self.student.post('/api/login', json={'username': 'professor', 'password': 'nope'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()['error']['code'], 'AUTH_ERROR')

    def test_non_string_credentials(self):
        for payload in ({'username': 'professor', 'password': 123456},
                        {'username': 42, 'password': 'password'},
                        {'username': 'professor', 'password': None}):
            response = self.student.post('/api/login', json=payload)
            self.assertEqual(response.status_code, 401)
            self.assertEqual(response.get_json()['error']['code'], 'AUTH_ERROR')

    def test_requires_login(self):
        self.assertEqual(self.student.get('/api/papers').status_code, 401)
        self.assertEqual(self.student.post('/api/professor/assign-paper/1').status_code, 401)


class TestReviewFlow(APITestCase):

    def setUp(self):
        super().setUp()
        self.register(self.student, 'student')
        self.login_default_professor(self.professor)

    def test_full_flow(self):
        response = self.upload(self.student)
        self.assertEqual(response.status_code, 201)
        paper = response.get_json()['data']
        self.assertEqual(paper['status'], 'pending')
        self.assertIsNone(paper['assigned_to'])

        pending = self.professor.get('/api/professor/pending-papers').get_json()['data']
        self.assertEqual([p['id'] for p in pending], [paper['id']])

        response = self.professor.post(f"/api/professor/assign-paper/{paper['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.get_json()['data']['assigned_to'])
        self.assertEqual(self.professor.get('/api/professor/pending-papers').get_json()['data'], [])

        assigned = self.professor.get('/api/professor/assigned-papers').get_json()['data']
        self.assertEqual([p['id'] for p in assigned], [paper['id']])

        response = self.professor.post(f"/api/professor/review-paper/{paper['id']}",
                                       json={'comment': 'Clear and concise.', 'rating': 4})
        self.assertEqual(response.status_code, 201)

        mine = self.student.get('/api/papers').get_json()['data']
        self.assertEqual(mine[0]['status'], 'reviewed')
        self.assertEqual(mine[0]['feedback'], 'Paper has been reviewed')

        reviews = self.student.get(f"/api/papers/{paper['id']}/reviews").get_json()['data']
        self.assertEqual(len(reviews), 1)
        self.assertEqual(reviews[0]['rating'], 4)

        response = self.professor.post(f"/api/professor/review-paper/{paper['id']}",
                                       json={'comment': 'Again.', 'rating': 5})
        self.assertEqual(response.status_code, 409)

    def test_analysis(self):
        paper = self.upload(self.student).get_json()['data']
        response = self.student.get(f"/api/papers/{paper['id']}/analysis")
        self.assertEqual(response.status_code, 200)
        data = response.get_json()['data']
        self.assertIn('Abstract', data['format']['detected_sections'])
        self.assertEqual(data['format']['citation_style'], 'apa')
        rule_ids = [e['rule_id'] for e in data['grammar']['errors']]
        self.assertIn('GRM010', rule_ids)

    def test_pdf_analysis(self):
        response = self.upload(self.student, filename='paper.pdf',
                               content=build_pdf(SECTION_HEADINGS))
        self.assertEqual(response.status_code, 201)
        paper = response.get_json()['data']

        response = self.student.get(f"/api/papers/{paper['id']}/analysis")
        self.assertEqual(response.status_code, 200)
        report = response.get_json()['data']['format']
        self.assertEqual(report['format_score'], 100)
        self.assertEqual(report['missing_required_sections'], [])

    def test_unreadable_pdf_analysis(self):
        paper = self.upload(self.student, filename='paper.pdf',
                            content=b'not really a pdf').get_json()['data']
        response = self.student.get(f"/api/papers/{paper['id']}/analysis")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error']['code'], 'FILE_ERROR')

    def test_upload_removed_when_storage_fails(self):
        def broken_create_paper(*args, **kwargs):
            raise RuntimeError("disk full")

        self.storage.create_paper = broken_create_paper
        response = self.upload(self.student)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()['error']['code'], 'INTERNAL_ERROR')
        self.assertEqual(list(Path(self.upload_dir).iterdir()), [])

    def test_rejected_file_type(self):
        response = self.upload(self.student, filename='paper.exe')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error']['code'], 'FILE_ERROR')

    def test_missing_file(self):
        response = self.student.post('/api/papers', data={'title': 'T'},
                                     content_type='multipart/form-data')
        self.assertEqual(response.status_code, 400)

    def test_invalid_price(self):
        for price in ('abc', '999', '3001'):
            response = self.upload(self.student, price=price)
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.get_json()['error']['code'], 'VALIDATION_ERROR')
        self.assertEqual(list(Path(self.upload_dir).iterdir()), [])
        self.assertEqual(self.storage.list_papers(), [])

    def test_student_cannot_assign(self):
        paper = self.upload(self.student).get_json()['data']
        response = self.student.post(f"/api/professor/assign-paper/{paper['id']}")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.student.get('/api/professor/pending-papers').get_json()['data'], [])

    def test_other_institute(self):
        paper = self.upload(self.student, institute='IIT Delhi').get_json()['data']
        self.assertEqual(self.professor.get('/api/professor/pending-papers').get_json()['data'], [])
        response = self.professor.post(f"/api/professor/assign-paper/{paper['id']}")
        self.assertEqual(response.status_code, 403)

    def test_second_professor_conflict(self):
        paper = self.upload(self.student).get_json()['data']
        self.professor.post(f"/api/professor/assign-paper/{paper['id']}")

        rival = self.app.test_client()
        self.register(rival, 'rival', role='professor', institute='Raincode')
        response = rival.post(f"/api/professor/assign-paper/{paper['id']}")
        self.assertEqual(response.status_code, 409)

    def test_invalid_rating(self):
        paper = self.upload(self.student).get_json()['data']
        self.professor.post(f"/api/professor/assign-paper/{paper['id']}")
        for rating in (0, 6, 'five'):
            response = self.professor.post(f"/api/professor/review-paper/{paper['id']}",
                                           json={'comment': 'Fine.', 'rating': rating})
            self.assertEqual(response.status_code, 400)

    def test_unknown_paper(self):
        response = self.professor.post('/api/professor/assign-paper/999')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error']['code'], 'NOT_FOUND')


class TestLoggingConfig(unittest.TestCase):
    """The config handed to create_app drives the module loggers."""

    def setUp(self):
        self.work_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        configure_logging(AppConfig(log_to_file=False, log_to_console=False,
                                    log_level='WARNING'))
        shutil.rmtree(self.work_dir, ignore_errors=True)

    def test_log_dir_from_app_config(self):
        log_dir = self.work_dir / 'logs'
        config = AppConfig(
            secret_key='x' * 32,
            upload_dir=self.work_dir / 'uploads',
            log_dir=log_dir,
            log_level='INFO',
            log_to_file=True,
            log_to_console=False,
        )
        client = create_app(config, storage=MemoryStorage()).test_client()
        client.post('/api/register', json={'username': 'alice', 'password': 'secret123'})

        workflow_log = log_dir / 'workflow.log'
        self.assertTrue(workflow_log.exists())
        self.assertIn('User registered', workflow_log.read_text(encoding='utf-8'))


class TestHeuristicsEndpoints(APITestCase):

    def test_grammar_check(self):
        response = self.student.post('/api/check/grammar', json={'text': 'This is a apple.'})
        self.assertEqual(response.status_code, 200)
        errors = response.get_json()['data']['errors']
        self.assertEqual(errors[0]['correction'], 'an a')

    def test_format_check(self):
        response = self.student.post('/api/check/format', json={'text': 'Abstract and Introduction only.'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['data']['format_score'], 25)

    def test_non_string_text(self):
        response = self.student.post('/api/check/grammar', json={'text': 42})
        self.assertEqual(response.status_code, 400)


if __name__ == '__main__':
    unittest.main()
