"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch
import uuid

import pytest
from httpx import AsyncClient, ASGITransport

os.environ["ANTHROPIC_API_KEY"] = "test-key"
os.environ["SUPABASE_URL"] = "test-url"
os.environ["SUPABASE_KEY"] = "test-key"

from backend.voicefidelity.services.generator import TextGenerator  # noqa: E402


class MockSupabaseClient:
    """Mock Supabase client that handles multiple tables and operations."""

    def __init__(self):
        self.auth = Mock()
        self._tables = {}
        self._setup_auth()

    def _setup_auth(self):
        """Setup auth mock."""
        mock_user = Mock()
        mock_user.id = "test-user-id"
        mock_user.email = "test@example.com"
        self.auth.get_user.return_value = Mock(user=mock_user)

    def table(self, table_name):
        """Get or create a mock table."""
        if table_name not in self._tables:
            self._tables[table_name] = MockTable(table_name)
        return self._tables[table_name]

    def reset(self):
        self._tables = {}


class MockTable:
    """Mock table that stores rows; every query gets its own builder."""

    def __init__(self, name):
        self.name = name
        self._data = []
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _next_timestamp(self):
        # Strictly increasing so ordering by created_at follows insertion order
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def insert(self, data):
        return MockQuery(self, "insert", payload=data)

    def select(self, *columns):
        return MockQuery(self, "select")

    def update(self, data):
        return MockQuery(self, "update", payload=data)

    def upsert(self, data, on_conflict="", ignore_duplicates=False):
        query = MockQuery(self, "upsert", payload=data)
        query.conflict_columns = [c.strip() for c in on_conflict.split(",") if c.strip()]
        query.ignore_duplicates = ignore_duplicates
        return query

    @property
    def rows(self):
        return [dict(row) for row in self._data]


class MockQuery:
    """Chainable query supporting the filters the services use."""

    def __init__(self, table, operation, payload=None):
        self.table = table
        self.operation = operation
        self.payload = payload
        self.filters = []
        self.ordering = None
        self.row_limit = None
        self.conflict_columns = []
        self.ignore_duplicates = False

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def is_(self, column, value):
        """Add IS filter (for NULL checks)."""
        if value in (None, "null"):
            self.filters.append(lambda row: row.get(column) is None)
        else:
            self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def _upsert(self):
        """Insert rows; on a conflict-column match, update or (ignore_duplicates) skip."""
        items = self.payload if isinstance(self.payload, list) else [self.payload]
        result = []
        for item in items:
            existing = next(
                (
                    row for row in self.table._data
                    if self.conflict_columns and all(row.get(c) == item.get(c) for c in self.conflict_columns)
                ),
                None,
            )
            if existing is None:
                row = dict(item)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", self.table._next_timestamp())
                self.table._data.append(row)
                result.append(dict(row))
            elif not self.ignore_duplicates:
                existing.update(item)
                result.append(dict(existing))
        return result

    def execute(self):
        mock_response = Mock()
        if self.operation == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            result = []
            for item in items:
                row = dict(item)
                if not row.get("id"):
                    row["id"] = str(uuid.uuid4())
                if not row.get("created_at"):
                    row["created_at"] = self.table._next_timestamp()
                self.table._data.append(row)
                result.append(dict(row))
            mock_response.data = result
        elif self.operation == "upsert":
            mock_response.data = self._upsert()
        elif self.operation == "update":
            result = []
            for row in self.table._data:
                if self._matches(row):
                    row.update(self.payload)
                    result.append(dict(row))
            mock_response.data = result
        else:
            indexed = [(i, row) for i, row in enumerate(self.table._data) if self._matches(row)]
            if self.ordering:
                column, desc = self.ordering
                indexed.sort(key=lambda pair: (pair[1].get(column) or "", pair[0]), reverse=desc)
            result = [dict(row) for _, row in indexed]
            if self.row_limit is not None:
                result = result[: self.row_limit]
            mock_response.data = result
        return mock_response


def create_mock_supabase_client():
    """Create a mock Supabase client."""
    return MockSupabaseClient()


@pytest.fixture(scope="session")
def mock_supabase():
    """Mock supabase client for entire test session."""
    mock_client = create_mock_supabase_client()
    with patch("supabase.create_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def db(mock_supabase):
    """Fresh tables for one test."""
    mock_supabase.reset()
    return mock_supabase


class FakeGenerator(TextGenerator):
    """
    Text generator double.

    ``responder(text, mode, constraints)`` returns the candidate text, or
    raises to simulate a provider failure. Every call is recorded.
    """

    provider = "fake"
    model = "fake-model"

    def __init__(self, responder=None):
        self.responder = responder or (lambda text, mode, constraints: text)
        self.calls = []

    async def generate(self, text, mode, constraints):
        self.calls.append(constraints)
        return self.responder(text, mode, constraints)


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture(scope="session")
def app(mock_supabase):
    """Create FastAPI app with mocked dependencies."""
    # Import app after mocking
    from backend.voicefidelity.main import app
    return app


@pytest.fixture
async def client(app, db):
    """Async HTTP client for testing with auth header."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": "Bearer test-token"}
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def sample_text():
    """A passage long enough to fingerprint and enforce."""
    return (
        "I spent the first year of the company saying yes to everything. Every feature request, "
        "every partnership call, every conference panel. It felt like momentum. It wasn't.\n\n"
        "What it actually did was spread four people across eleven priorities. We shipped a lot "
        "of half-finished things, and customers noticed. I don't regret the energy, but I do "
        "regret not learning to say no sooner. Focus isn't a strategy you pick once; it's a habit "
        "you defend every week."
    )


@pytest.fixture
def make_score():
    """Build a CandidateScore from raw dimension scores and thresholds."""
    from backend.voicefidelity.models.evaluation import (
        CandidateScore,
        ResolvedThresholds,
        ScoringWeights,
        VoiceScores,
    )
    from backend.voicefidelity.models.fingerprint import Fingerprint
    from backend.voicefidelity.services.scoring import failed_dimensions, selection_score

    def build(semantic, stylistic, scope, combined, thresholds=(0.75, 0.60, 0.60, 0.68)):
        resolved = ResolvedThresholds(
            semantic=thresholds[0],
            stylistic=thresholds[1],
            scope=thresholds[2],
            combined=thresholds[3],
            weights=ScoringWeights(semantic=0.20, stylistic=0.65, scope=0.15),
        )
        scores = VoiceScores(semantic=semantic, stylistic=stylistic, scope=scope, combined=combined)
        failed = failed_dimensions(scores, resolved)
        return CandidateScore(
            scores=scores,
            thresholds=resolved,
            passed=not failed,
            failed_dimensions=failed,
            selection_score=selection_score(scores, resolved),
            original_fingerprint=Fingerprint(),
            candidate_fingerprint=Fingerprint(),
            comparison_fingerprint=Fingerprint(),
        )

    return build
