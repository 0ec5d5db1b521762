import pytest

from application.dtos.payments import TransactionDTO
from infrastructure.tasks import TaskDispatcher, celery_app
from infrastructure.tasks.tasks import payments as payment_tasks


class _Engine:
    def __init__(self):
        self.disposed = 0

    async def dispose(self):
        self.disposed += 1


class _StubService:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def reconcile_stale(self, *, min_age_minutes=None, limit=None):
        self.calls.append(("reconcile", min_age_minutes, limit))
        return {"checked": 3, "changed": 1, "failed": 0}

    async def check_status(self, provider, transaction_id):
        self.calls.append(("status", provider, transaction_id))
        if self.fail:
            raise RuntimeError("gateway unreachable")
        return TransactionDTO(
            transaction_id=transaction_id, order_id=1, provider=provider, amount="1180.00", status="success"
        )


@pytest.fixture
def stub_service(monkeypatch):
    service = _StubService()
    engine = _Engine()
    monkeypatch.setattr(payment_tasks, "build_payment_service", lambda: service)
    monkeypatch.setattr(payment_tasks, "engine", engine)
    service.engine = engine
    return service


def test_dispatcher_schedules_delayed_status_check(monkeypatch):
    sent = []
    monkeypatch.setattr(celery_app, "send_task", lambda name, **kwargs: sent.append((name, kwargs)))

    TaskDispatcher().schedule_status_check("phonepe", "TXN_1_1")

    name, kwargs = sent[0]
    assert name == "payments.check_status"
    assert kwargs["kwargs"] == {"provider": "phonepe", "transaction_id": "TXN_1_1"}
    assert kwargs["countdown"] == 900
    assert kwargs["queue"] == "default"


def test_beat_schedules_reconcile():
    entry = celery_app.conf.beat_schedule["payments-reconcile-stale"]
    assert entry["task"] == "payments.reconcile_stale"
    assert entry["options"]["queue"] == "low"


def test_reconcile_task(stub_service):
    result = payment_tasks.task_reconcile_stale.apply(kwargs={"min_age_minutes": 30})

    assert result.successful()
    assert result.get() == {"checked": 3, "changed": 1, "failed": 0}
    assert stub_service.calls == [("reconcile", 30, None)]
    assert stub_service.engine.disposed == 1


def test_check_status_task(stub_service):
    result = payment_tasks.task_check_status.apply(kwargs={"provider": "paytm", "transaction_id": "TXN_2_1"})

    assert result.get() == {"transaction_id": "TXN_2_1", "status": "success"}


def test_check_status_task_retries_then_fails(stub_service):
    stub_service.fail = True

    result = payment_tasks.task_check_status.apply(kwargs={"provider": "paytm", "transaction_id": "TXN_2_1"})

    assert result.failed()
    assert len(stub_service.calls) == payment_tasks.task_check_status.max_retries + 1
