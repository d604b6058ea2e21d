"""
Match persistence used by the advancement engine and the bracket service.

The engine only talks to the MatchStore interface. Two implementations
ship with the package: an in-memory store and a YAML file store that guards
each tournament's file with a FileLock.
"""
import copy
import os
import re
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, List, Optional

import yaml
from filelock import FileLock

from bracket.elimination import find_next_match
from bracket.errors import ValidationError
from bracket.models import Match

_SAFE_TOURNAMENT_ID = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')


def _new_match_id() -> str:
    return uuid.uuid4().hex


class MatchStore(ABC):
    """Read/write access to the match collection, keyed by id and tournament."""

    @abstractmethod
    def has_matches(self, tournament_id) -> bool:
        ...

    @abstractmethod
    def insert_matches(self, matches: List[Match]) -> List[Match]:
        """Bulk insert new matches, returning copies with ids assigned."""

    @abstractmethod
    def get_match(self, match_id) -> Optional[Match]:
        ...

    @abstractmethod
    def list_matches(self, tournament_id) -> List[Match]:
        """All matches of a tournament ordered by match number."""

    @abstractmethod
    def update_matches(self, matches: List[Match]):
        """Persist changes to existing matches as one batch."""

    @abstractmethod
    def lock(self, tournament_id):
        """Context manager giving exclusive write access to one tournament."""

    def find_match_by_source(self, tournament_id, round: int, source_match_number: int) -> Optional[Match]:
        """The match in round fed by source_match_number, or None."""
        matches = self.list_matches(tournament_id)
        source = next((m for m in matches if m.match_number == source_match_number), None)
        if source is None or source.round != round - 1:
            return None
        return find_next_match(matches, source)


class InMemoryMatchStore(MatchStore):
    def __init__(self):
        self._matches: Dict[str, Match] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.RLock()

    def has_matches(self, tournament_id) -> bool:
        with self._guard:
            return any(m.tournament_id == tournament_id for m in self._matches.values())

    def insert_matches(self, matches: List[Match]) -> List[Match]:
        inserted = []
        with self._guard:
            for match in matches:
                stored = copy.copy(match)
                if stored.id is None:
                    stored.id = _new_match_id()
                if stored.id in self._matches:
                    raise ValidationError(f'Match {stored.id} already exists')
                inserted.append(stored)
            for stored in inserted:
                self._matches[stored.id] = stored
        return [copy.copy(m) for m in inserted]

    def get_match(self, match_id) -> Optional[Match]:
        with self._guard:
            match = self._matches.get(match_id)
            return copy.copy(match) if match is not None else None

    def list_matches(self, tournament_id) -> List[Match]:
        with self._guard:
            matches = [copy.copy(m) for m in self._matches.values() if m.tournament_id == tournament_id]
        return sorted(matches, key=lambda m: m.match_number)

    def update_matches(self, matches: List[Match]):
        with self._guard:
            missing = [m.id for m in matches if m.id not in self._matches]
            if missing:
                raise KeyError(f'Unknown matches: {missing}')
            for match in matches:
                self._matches[match.id] = copy.copy(match)

    @contextmanager
    def lock(self, tournament_id):
        with self._guard:
            tournament_lock = self._locks.setdefault(tournament_id, threading.RLock())
        with tournament_lock:
            yield


class YamlMatchStore(MatchStore):
    """
    Matches stored as YAML, one file per tournament:

        <data_dir>/tournaments/<tournament_id>/matches.yaml
        <data_dir>/matches_index.yaml   (match id -> tournament id)
    """

    def __init__(self, data_dir: str, lock_timeout: float = 10):
        self.data_dir = data_dir
        self.lock_timeout = lock_timeout
        self.index_file = os.path.join(data_dir, 'matches_index.yaml')
        self._index_lock = FileLock(os.path.join(data_dir, '.index.lock'), timeout=lock_timeout)
        self._locks: Dict[str, FileLock] = {}
        self._guard = threading.Lock()
        os.makedirs(data_dir, exist_ok=True)

    def _tournament_dir(self, tournament_id) -> str:
        tournament_id = str(tournament_id)
        if not _SAFE_TOURNAMENT_ID.match(tournament_id) or tournament_id in ('.', '..'):
            raise ValidationError(f'Invalid tournament id: {tournament_id!r}')
        return os.path.join(self.data_dir, 'tournaments', tournament_id)

    def _matches_file(self, tournament_id) -> str:
        return os.path.join(self._tournament_dir(tournament_id), 'matches.yaml')

    def _file_lock(self, tournament_id) -> FileLock:
        tournament_dir = self._tournament_dir(tournament_id)
        with self._guard:
            file_lock = self._locks.get(tournament_dir)
            if file_lock is None:
                os.makedirs(tournament_dir, exist_ok=True)
                file_lock = FileLock(os.path.join(tournament_dir, '.lock'), timeout=self.lock_timeout)
                self._locks[tournament_dir] = file_lock
        return file_lock

    def _load_tournament(self, tournament_id) -> List[Match]:
        path = self._matches_file(tournament_id)
        if not os.path.exists(path):
            return []
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if not data:
            return []
        return [Match.from_dict(item) for item in data.get('matches', [])]

    def _save_tournament(self, tournament_id, matches: List[Match]):
        path = self._matches_file(tournament_id)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        ordered = sorted(matches, key=lambda m: m.match_number)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump({'matches': [m.to_dict() for m in ordered]}, f, default_flow_style=False)

    def _load_index(self) -> Dict:
        if not os.path.exists(self.index_file):
            return {}
        with open(self.index_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        return data or {}

    def _save_index(self, index: Dict):
        with open(self.index_file, 'w', encoding='utf-8') as f:
            yaml.dump(index, f, default_flow_style=False)

    def has_matches(self, tournament_id) -> bool:
        with self.lock(tournament_id):
            return bool(self._load_tournament(tournament_id))

    def insert_matches(self, matches: List[Match]) -> List[Match]:
        by_tournament: Dict[str, List[Match]] = {}
        for match in matches:
            stored = copy.copy(match)
            if stored.id is None:
                stored.id = _new_match_id()
            by_tournament.setdefault(stored.tournament_id, []).append(stored)

        inserted = []
        for tournament_id, new_matches in by_tournament.items():
            with self.lock(tournament_id), self._index_lock:
                index = self._load_index()
                clashes = [m.id for m in new_matches if m.id in index]
                if clashes:
                    raise ValidationError(f'Matches already exist: {clashes}')
                existing = self._load_tournament(tournament_id)
                self._save_tournament(tournament_id, existing + new_matches)
                for match in new_matches:
                    index[match.id] = tournament_id
                self._save_index(index)
            inserted.extend(new_matches)
        return [copy.copy(m) for m in inserted]

    def get_match(self, match_id) -> Optional[Match]:
        with self._index_lock:
            tournament_id = self._load_index().get(match_id)
        if tournament_id is None:
            return None
        with self.lock(tournament_id):
            for match in self._load_tournament(tournament_id):
                if match.id == match_id:
                    return match
        return None

    def list_matches(self, tournament_id) -> List[Match]:
        with self.lock(tournament_id):
            return sorted(self._load_tournament(tournament_id), key=lambda m: m.match_number)

    def update_matches(self, matches: List[Match]):
        by_tournament: Dict[str, List[Match]] = {}
        for match in matches:
            by_tournament.setdefault(match.tournament_id, []).append(match)

        for tournament_id, changed in by_tournament.items():
            with self.lock(tournament_id):
                existing = {m.id: m for m in self._load_tournament(tournament_id)}
                missing = [m.id for m in changed if m.id not in existing]
                if missing:
                    raise KeyError(f'Unknown matches: {missing}')
                for match in changed:
                    existing[match.id] = copy.copy(match)
                self._save_tournament(tournament_id, list(existing.values()))

    @contextmanager
    def lock(self, tournament_id):
        with self._file_lock(tournament_id):
            yield
