import os
from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from healthlink.database import Base  # noqa: E402
from healthlink.models import appointment, availability, medical_record  # noqa: E402,F401
from healthlink.models.availability import DayOfWeek  # noqa: E402
from healthlink.models.user import Role, User  # noqa: E402
from healthlink.services.dashboard import dashboard_cache  # noqa: E402
from healthlink.services.slots import SlotInput, set_availability  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_dashboard_cache():
    dashboard_cache.clear()
    yield
    dashboard_cache.clear()


@pytest.fixture
def make_user(db):
    counter = {'value': 0}

    def factory(role: Role, full_name: str = '', is_active: bool = True) -> User:
        counter['value'] += 1
        user = User(
            email=f"{role.value}{counter['value']}@healthlink.test",
            full_name=full_name or f"{role.value.title()} {counter['value']}",
            role=role.value,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def doctor(make_user) -> User:
    return make_user(Role.DOCTOR, 'Dr. Amara Osei')


@pytest.fixture
def patient(make_user) -> User:
    return make_user(Role.PATIENT, 'Lena Park')


@pytest.fixture
def second_patient(make_user) -> User:
    return make_user(Role.PATIENT, 'Tomas Ruiz')


@pytest.fixture
def admin(make_user) -> User:
    return make_user(Role.ADMIN, 'Clinic Admin')


@pytest.fixture
def monday_morning(db, doctor):
    """Doctor works Monday 09:00-12:00."""
    return set_availability(db, doctor.id, [SlotInput(DayOfWeek.MONDAY, time(9, 0), time(12, 0))])
