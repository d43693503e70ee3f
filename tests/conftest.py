import os

os.environ["DATABASE_URL"] = "sqlite://"

import pytest

from database.database import Base, SessionLocal, engine, init_db
from database.models import CategoryModel, UserModel


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db):
    user = UserModel(name="Alice", email="alice@example.com")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def other_user(db):
    user = UserModel(name="Bob", email="bob@example.com")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def food(db):
    category = CategoryModel(name="Food", type="expense", icon="🍔", color="#ef4444")
    db.add(category)
    db.commit()
    return category


@pytest.fixture
def transport(db):
    category = CategoryModel(name="Transport", type="expense", icon="🚗", color="#f97316")
    db.add(category)
    db.commit()
    return category


@pytest.fixture
def salary(db):
    category = CategoryModel(name="Salary", type="income", icon="💼", color="#22c55e")
    db.add(category)
    db.commit()
    return category
