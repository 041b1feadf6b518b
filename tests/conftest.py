import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from league_wallet.clients.sms_client import NotificationResult  # noqa: E402
from league_wallet.models import models  # noqa: E402

OWNER_ID = "owner-1"


class FakeNotifier:
    """Records every send; fails while ``fail_with`` is set."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    async def send(self, destination, message):
        if self.fail_with:
            return NotificationResult(success=False, error=self.fail_with)
        self.sent.append((destination, message))
        return NotificationResult(success=True, id=f"SM{len(self.sent)}")


@pytest.fixture
def engine(tmp_path):
    """
    Disposable SQLite database per test.
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def league(session_factory):
    """League with three members A, B and C; prize 10.00, low score fee 5.00."""
    with session_factory() as session:
        league = models.League(
            name="Sunday Legends",
            owner_id=OWNER_ID,
            weekly_high_score_prize_cents=1000,
            weekly_low_score_fee_cents=500,
            weekly_low_score_fee_enabled=True,
        )
        session.add(league)
        session.flush()
        for user_id, name, phone in [
            ("A", "Alice", "+15550000001"),
            ("B", "Bob", "+15550000002"),
            ("C", "Carol", "+15550000003"),
        ]:
            session.add(models.LeagueMember(league_id=league.id, user_id=user_id, display_name=name, phone_number=phone))
        session.commit()
        return league.id


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client(session_factory, notifier):
    from league_wallet import main

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[main.get_db] = override_get_db
    main.app.dependency_overrides[main.get_notifier] = lambda: notifier
    main.app.dependency_overrides[main.require_bearer_token] = lambda: None
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()
