"""
Shared pytest fixtures for bracket engine tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - skip the threaded locking tests
"""
import pytest
import sys
import os
from datetime import datetime, timedelta

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket.models import Participant
from bracket.service import BracketService
from bracket.storage import InMemoryMatchStore, YamlMatchStore


def make_participants(names, status='accepted'):
    """Participants registered one minute apart, in the order given."""
    start = datetime(2026, 1, 1, 9, 0, 0)
    return [
        Participant(id=name, registered_at=start + timedelta(minutes=i), status=status)
        for i, name in enumerate(names)
    ]


@pytest.fixture
def four_participants():
    """A, B, C, D registered in that order."""
    return make_participants(['A', 'B', 'C', 'D'])


@pytest.fixture
def eight_participants():
    """P1..P8 registered in that order."""
    return make_participants([f'P{i}' for i in range(1, 9)])


@pytest.fixture
def memory_store():
    return InMemoryMatchStore()


@pytest.fixture
def yaml_store(tmp_path):
    return YamlMatchStore(str(tmp_path / "data"), lock_timeout=5)


@pytest.fixture
def service(memory_store):
    return BracketService(memory_store)


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the Flask app at a temporary data directory."""
    import app as app_module

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    return str(data_dir)


@pytest.fixture
def client(temp_data_dir):
    """Create a test client backed by the temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
