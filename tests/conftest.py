from types import SimpleNamespace

import pandas as pd
import pytest

from app import create_app
from models import db

NOW = pd.Timestamp('2024-06-15 12:00:00')


@pytest.fixture
def app():
    app = create_app({'TESTING': True, 'SQLALCHEMY_DATABASE_URI': 'sqlite://', 'SECRET_KEY': 'test'})
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, email='ada@example.com', name='Ada'):
    client.post('/register', json={'name': name, 'email': email, 'password': 'secret'})
    resp = client.post('/login', json={'email': email, 'password': 'secret'})
    assert resp.status_code == 200
    return resp.get_json()['id']


@pytest.fixture
def auth_client(client):
    login(client)
    return client


def ms(when):
    return int(pd.Timestamp(when).value // 1_000_000)


def account(id=1, initial_balance=0.0, name='Checking', atype='bank'):
    return SimpleNamespace(id=id, name=name, atype=atype, initial_balance=initial_balance)


def category(id, name, ttype='expense', color=None):
    return SimpleNamespace(id=id, name=name, ttype=ttype, color=color)


def txn(id, amount, ttype, when, account_id=1, category_id=None, is_subscription=False):
    return SimpleNamespace(id=id, account_id=account_id, category_id=category_id, amount=amount,
                           ttype=ttype, date=ms(when), note=None, is_subscription=is_subscription)
