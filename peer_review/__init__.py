"""
PaperReview
===========
Peer-review marketplace backend: students submit research papers, professors
of the target institute claim and review them, and pattern-based heuristics
estimate grammar and academic-format quality.
"""

from .config_logging import VERSION as __version__
from .grammar_checker import GrammarChecker, GrammarReport, check_grammar
from .format_checker import FormatChecker, FormatReport, check_format
from .models import Actor, Paper, PaperStatus, Review, Role, User, INSTITUTES
from .storage import PaperStorage, MemoryStorage, SQLiteStorage, create_storage
from .workflow import ReviewWorkflow

__all__ = [
    'GrammarChecker', 'GrammarReport', 'check_grammar',
    'FormatChecker', 'FormatReport', 'check_format',
    'Actor', 'Paper', 'PaperStatus', 'Review', 'Role', 'User', 'INSTITUTES',
    'PaperStorage', 'MemoryStorage', 'SQLiteStorage', 'create_storage',
    'ReviewWorkflow',
]
