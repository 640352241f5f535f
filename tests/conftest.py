from decimal import Decimal
import pytest
from app import create_app
from engine.errors import LLMError
from models import db
import storage


class FakeLLM:
    """Scripted stand-in for ``SmartieLLM``."""

    def __init__(self, json_reply=None, chat_text='', tool_calls=None, fail=False):
        self.json_reply = json_reply
        self.chat_text = chat_text
        self.tool_calls = tool_calls or []
        self.fail = fail
        self.prompts = []

    def complete_json(self, prompt):
        self.prompts.append(prompt)
        if self.fail or self.json_reply is None:
            raise LLMError('offline')
        return self.json_reply

    def chat(self, system_prompt, message, tools=None, **kwargs):
        self.prompts.append(system_prompt)
        if self.fail:
            raise LLMError('offline')
        return self.chat_text, list(self.tool_calls)


@pytest.fixture
def llm():
    return FakeLLM(fail=True)


@pytest.fixture
def app(llm, tmp_path):
    db_uri = f"sqlite:///{tmp_path / 'smartspend.db'}"
    app = create_app({'SQLALCHEMY_DATABASE_URI': db_uri, 'TESTING': True}, llm=llm)
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def user_id(app):
    with app.app_context():
        u = storage.create_user(email='alex@example.com', name='Alex', monthly_income=Decimal('3000.00'),
                                onboarding_completed=True)
        db.session.commit()
        return u.id


@pytest.fixture
def user(ctx, user_id):
    return storage.get_user(user_id)
