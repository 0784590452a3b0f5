from datetime import datetime

import pytest

import auth
import db
from models import Gym


@pytest.fixture(scope="session")
def admin_hash():
    return auth.hash_password("admin123")


@pytest.fixture(scope="session")
def manager_hash():
    return auth.hash_password("gym-secret")


@pytest.fixture
def store(tmp_path, admin_hash, manager_hash):
    s = db.Store(tmp_path / "test_gym.db")
    s.init_db(admin_hash)
    s.add_gym(Gym(
        id="GYM001",
        name="Iron Paradise",
        manager_password_hash=manager_hash,
        created_at=datetime(2024, 1, 1, 9, 0),
        city="Metropolis",
    ))
    return s
