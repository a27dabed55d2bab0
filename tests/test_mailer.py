from sqlalchemy.orm import Session

import taskflow.models as models
from taskflow.config import Settings
from taskflow.services import EmailNotifier
from taskflow.services import mailer


class RecordingSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def send_message(self, message):
        RecordingSMTP.sent.append(message)


class BrokenSMTP(RecordingSMTP):
    def __init__(self, host, port, timeout=None):
        raise OSError("connection refused")


def _task(db_session: Session, admin, alice) -> models.Task:
    task = models.Task(title="Quarterly report", assigned_to=alice.id, created_by=admin.id)
    db_session.add(task)
    db_session.commit()
    return task


def _smtp_settings(**overrides) -> Settings:
    values = {"SMTP_ENABLED": True, "SMTP_HOST": "smtp.acme.io", "SMTP_PORT": 2525}
    values.update(overrides)
    return Settings(**values)


def test_disabled_smtp_reports_success(db_session: Session, admin, alice):
    task = _task(db_session, admin, alice)
    notifier = EmailNotifier(db_session, Settings(SMTP_ENABLED=False))

    assert notifier.notify_assignment(task.id, alice.id, admin.id) is True
    assert notifier.notify_status_change(task.id, alice.id, "completed") is True


def test_missing_task_reports_failure(db_session: Session, alice):
    notifier = EmailNotifier(db_session, Settings(SMTP_ENABLED=False))
    assert notifier.notify_assignment(9999, alice.id, alice.id) is False
    assert notifier.notify_status_change(9999, alice.id, "pending") is False


def test_assignment_email_is_sent(db_session: Session, admin, alice, monkeypatch):
    RecordingSMTP.sent = []
    monkeypatch.setattr(mailer.smtplib, "SMTP", RecordingSMTP)
    task = _task(db_session, admin, alice)

    assert EmailNotifier(db_session, _smtp_settings()).notify_assignment(task.id, alice.id, admin.id) is True

    message = RecordingSMTP.sent[0]
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == "New Task Assigned: Quarterly report"
    assert "Admin Tester assigned you a new task." in message.get_content()


def test_smtp_failure_is_reported_not_raised(db_session: Session, admin, alice, monkeypatch):
    monkeypatch.setattr(mailer.smtplib, "SMTP", BrokenSMTP)
    task = _task(db_session, admin, alice)
    notifier = EmailNotifier(db_session, _smtp_settings())

    assert notifier.notify_assignment(task.id, alice.id, admin.id) is False
    assert notifier.notify_status_change(task.id, alice.id, "in_progress") is False
