import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import main
from vibeledger.core.constants import PlanDurationEnum
from vibeledger.core.config import settings
from vibeledger.core.database import Base, create_db_engine, get_db, init_db
from vibeledger.crud.user import user as crud_user
from vibeledger.crud.wallet import wallet as crud_wallet
from vibeledger.models.campaign import BankName, Campaign
from vibeledger.models.subscription import SubscriptionPlan
from vibeledger.schemas.user import ActorContext
from tests.helpers.ledger import auth_headers


@pytest.fixture(scope="function")
def database_engine(tmp_path):
    # file database so that worker threads share it
    test_db_url = settings.TEST_DATABASE_URL or f"sqlite:///{tmp_path / 'test.db'}"
    engine = create_db_engine(test_db_url)
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture(scope="function")
def session_factory(database_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=database_engine)

@pytest.fixture(scope="function")
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.rollback()
        db.close()

@pytest.fixture(scope="function")
def client(session_factory):
    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def user_factory(db_session):
    def _user_factory(full_name="Test User", is_admin=False, is_active=True, with_wallet=True, balance="0", user_id=None):
        user_data = {
            "full_name": full_name,
            "email": f"user-{uuid.uuid4()}@test.com",
            "is_active": is_active,
            "is_admin": is_admin,
        }
        if user_id is not None:
            user_data["id"] = user_id
        user = crud_user.create(db_session, obj_in=user_data)
        if with_wallet:
            crud_wallet.create(db_session, obj_in={"user_id": user.id, "amount": Decimal(balance), "status": True})
        return user
    return _user_factory

@pytest.fixture
def admin_user(user_factory):
    return user_factory(full_name="Ledger Admin", is_admin=True, with_wallet=False)

@pytest.fixture
def admin_context(admin_user):
    return ActorContext(user_id=admin_user.id, is_admin=True)

@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def plan_factory(db_session):
    def _plan_factory(price="30.00", plan_duration="Monthly", plan_name=None):
        plan = SubscriptionPlan(
            plan_name=plan_name or f"{plan_duration} plan",
            price=Decimal(price),
            plan_duration=PlanDurationEnum(plan_duration),
            status=True,
        )
        db_session.add(plan)
        db_session.commit()
        db_session.refresh(plan)
        return plan
    return _plan_factory

@pytest.fixture
def campaign_factory(db_session):
    def _campaign_factory(title="Community Stage", funding_goal="1000.00", status=True, approved_status=True, fund_amount="0"):
        campaign = Campaign(
            title=title,
            funding_goal=Decimal(funding_goal),
            fund_amount=Decimal(fund_amount),
            fund_still_needed=Decimal(funding_goal) - Decimal(fund_amount),
            status=status,
            approved_status=approved_status,
        )
        db_session.add(campaign)
        db_session.commit()
        db_session.refresh(campaign)
        return campaign
    return _campaign_factory

@pytest.fixture
def bank(db_session):
    bank = BankName(name="First Test Bank", status=True)
    db_session.add(bank)
    db_session.commit()
    db_session.refresh(bank)
    return bank

