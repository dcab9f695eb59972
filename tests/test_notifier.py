from email.errors import HeaderParseError

import aiosmtplib
import pytest

from core import notifier as notifier_module
from core.errors import NotifyError
from core.notifier import CONFIRMATION_SUBJECT, Notifier


@pytest.fixture
def smtp_calls(monkeypatch):
    calls = []

    async def fake_send(message, **kwargs):
        calls.append((message, kwargs))
        return {}, 'OK'

    monkeypatch.setattr(notifier_module.aiosmtplib, 'send', fake_send)
    return calls


def make_notifier(**kwargs):
    options = {
        'host': 'smtp.example.com',
        'port': 587,
        'sender': 'noreply@example.com',
        'password': 'secret',
        'timeout': 5,
    }
    options.update(kwargs)
    return Notifier(**options)


def test_build_message_is_plain_text_with_link():
    msg = make_notifier().build_message('a@example.com', 'http://localhost:8080/verify?email=a%40example.com')

    assert msg['Subject'] == CONFIRMATION_SUBJECT
    assert msg['From'] == 'noreply@example.com'
    assert msg['To'] == 'a@example.com'
    assert msg['Message-ID'].endswith('@example.com>')
    assert msg.get_content_type() == 'text/plain'
    body = msg.get_payload(decode=True).decode('utf-8')
    assert body == 'Click the link to confirm:\nhttp://localhost:8080/verify?email=a%40example.com'


def test_send_uses_authenticated_starttls_with_timeout(smtp_calls):
    make_notifier().send('a@example.com', 'http://link')

    assert len(smtp_calls) == 1
    message, kwargs = smtp_calls[0]
    assert message['To'] == 'a@example.com'
    assert kwargs['hostname'] == 'smtp.example.com'
    assert kwargs['port'] == 587
    assert kwargs['username'] == 'noreply@example.com'
    assert kwargs['password'] == 'secret'
    assert kwargs['start_tls'] is True
    assert kwargs['use_tls'] is False
    assert kwargs['timeout'] == 5


def test_send_uses_implicit_tls_on_465(smtp_calls):
    make_notifier(port=465).send('a@example.com', 'http://link')

    _, kwargs = smtp_calls[0]
    assert kwargs['use_tls'] is True
    assert kwargs['start_tls'] is False


def test_unconfigured_sender_raises_without_connecting(smtp_calls):
    with pytest.raises(NotifyError):
        make_notifier(sender=None).send('a@example.com', 'http://link')
    assert smtp_calls == []


@pytest.mark.parametrize('error', [
    aiosmtplib.SMTPAuthenticationError(535, 'authentication failed'),
    aiosmtplib.SMTPRecipientsRefused([]),
    aiosmtplib.SMTPConnectError('connection refused'),
    ConnectionRefusedError('connection refused'),
])
def test_transport_failures_raise_notify_error(monkeypatch, error):
    async def failing_send(message, **kwargs):
        raise error

    monkeypatch.setattr(notifier_module.aiosmtplib, 'send', failing_send)

    with pytest.raises(NotifyError):
        make_notifier().send('a@example.com', 'http://link')


@pytest.mark.parametrize('error', [
    HeaderParseError('header value appears to contain an embedded header'),
    ValueError('recipient address is not valid'),
])
def test_unserializable_message_raises_notify_error(monkeypatch, error):
    async def rejecting_send(message, **kwargs):
        raise error

    monkeypatch.setattr(notifier_module.aiosmtplib, 'send', rejecting_send)

    with pytest.raises(NotifyError) as exc_info:
        make_notifier().send('a@example.com\nBcc: victim@example.com', 'http://link')
    assert exc_info.value.__cause__ is error
