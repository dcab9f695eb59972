import pytest

from app import create_app
from core.audit_log import AuditLogWriter
from core.errors import NotifyError
from core.pipeline import SubscriptionPipeline
from core.store import SubscriptionStore


class RecordingNotifier:
    """Stands in for the SMTP notifier and records every send"""

    def __init__(self, error: Exception = None):
        self.sent = []
        self.error = error

    def send(self, to_address, link):
        self.sent.append((to_address, link))
        if self.error is not None:
            raise self.error


@pytest.fixture
def store(tmp_path):
    store = SubscriptionStore.from_url(f"sqlite:///{tmp_path / 'subscribers' / 'test.db'}")
    store.create_tables()
    yield store
    store.close()


@pytest.fixture
def audit_log_path(tmp_path):
    return tmp_path / 'subscribers_emails.txt'


@pytest.fixture
def audit_log(audit_log_path):
    return AuditLogWriter(audit_log_path)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return RecordingNotifier(NotifyError("SMTP error: (535, 'authentication failed')"))


@pytest.fixture
def pipeline(store, audit_log, notifier):
    return SubscriptionPipeline(store, audit_log, notifier)


@pytest.fixture
def app_factory(tmp_path, audit_log_path):
    created = []

    def factory(**overrides):
        config = {
            'DATABASE_URL': f"sqlite:///{tmp_path / 'app.db'}",
            'AUDIT_LOG_PATH': str(audit_log_path),
        }
        config.update(overrides)
        app = create_app('testing', overrides=config)
        created.append(app)
        return app

    yield factory

    for app in created:
        app.extensions['subscription_pipeline'].store.close()


@pytest.fixture
def app(app_factory, notifier):
    app = app_factory()
    app.extensions['subscription_pipeline'].notifier = notifier
    return app


@pytest.fixture
def client(app):
    return app.test_client()
