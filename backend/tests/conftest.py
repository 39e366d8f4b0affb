import os

# Avant tout import backend.* : l'engine applicatif ne doit pas viser Postgres
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.core.config import Settings
from backend.app.db.base import Base
from backend.app.db.models.models_v1 import Article, ArticleSupplier, Supplier, User
from backend.app.db.models.core_types import MovementDirection, Role
from backend.services import inventory


@pytest.fixture(scope="function")
def engine():
    eng = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Session:
    """
    Session DB isolée par test.

    Base SQLite en mémoire recréée pour chaque test : aucun état partagé,
    même après commit().
    """
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin(db_session) -> User:
    user = User(id=1, name="ADMIN", role=Role.admin, active=True)
    db_session.add(user)
    db_session.flush()
    return user


@pytest.fixture
def make_article(db_session, admin):
    """Crée un article ; le stock initial passe par le journal (invariant ledger)."""

    def _make(reference, *, stock=0, stock_min=0, purchase_price="10.00", **kwargs):
        a = Article(
            reference=reference,
            designation=kwargs.pop("designation", f"Article {reference}"),
            stock=0,
            stock_min=stock_min,
            purchase_price=Decimal(purchase_price) if purchase_price is not None else None,
            **kwargs,
        )
        db_session.add(a)
        db_session.flush()
        if stock > 0:
            inventory.apply_movement(
                db_session, a.id, MovementDirection.inbound, stock, "initial stock", admin.id
            )
        return a

    return _make


@pytest.fixture
def make_supplier(db_session):
    def _make(name, *, email=None, **kwargs):
        s = Supplier(name=name, email=email or f"{name.lower()}@example.com", **kwargs)
        db_session.add(s)
        db_session.flush()
        return s

    return _make


@pytest.fixture
def make_link(db_session):
    def _make(article, supplier, *, is_principal=False, supplier_price=None, **kwargs):
        link = ArticleSupplier(
            article_id=article.id,
            supplier_id=supplier.id,
            is_principal=is_principal,
            supplier_price=Decimal(supplier_price) if supplier_price is not None else None,
            **kwargs,
        )
        db_session.add(link)
        db_session.flush()
        return link

    return _make


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+pysqlite://",
        vat_rate=Decimal("20"),
        smtp_host="smtp.example.com",
        smtp_port=2525,
        smtp_use_tls=False,
        mail_sender="achats@example.com",
        mail_sender_name="Service achats",
        default_actor_id=1,
    )


@pytest.fixture
def client(db_session, admin, settings):
    from fastapi.testclient import TestClient

    from backend.app.api.deps import get_db
    from backend.app.core.config import get_settings
    from backend.app.main import app

    db_session.commit()

    def _get_db():
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


class FakeSMTP:
    """Serveur SMTP factice : garde les messages au lieu de les envoyer."""

    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self, context=None):
        pass

    def login(self, username, password):
        pass

    def send_message(self, message):
        FakeSMTP.sent.append((self.host, self.port, message))


@pytest.fixture
def fake_smtp(monkeypatch):
    from backend.services import mailer

    FakeSMTP.sent = []
    monkeypatch.setattr(mailer.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP
