from domain.order.entity import Order
from domain.security.policy import Action, Subject, authorize


def _order(customer_id="user-1", agent_id=None) -> Order:
    return Order(id=1, order_number="TB-20261016-000001", customer_name="Asha", customer_id=customer_id, agent_id=agent_id)


def test_anonymous_is_denied():
    assert not authorize(None, Action.ORDER_READ, _order())


def test_customer_reads_only_own_orders():
    customer = Subject(user_id="user-1")
    assert authorize(customer, Action.ORDER_READ, _order())
    assert not authorize(Subject(user_id="user-2"), Action.ORDER_READ, _order())
    assert not authorize(customer, Action.SHIPPING_UPDATE)


def test_agent_reads_attributed_orders():
    agent = Subject(user_id="agent-user", role="sales_agent", agent_id=4)
    assert authorize(agent, Action.ORDER_READ, _order(customer_id="user-9", agent_id=4))
    assert not authorize(agent, Action.ORDER_READ, _order(customer_id="user-9", agent_id=5))
    assert authorize(agent, Action.AGENT_REDEEM)


def test_manager_and_admin_grants():
    manager = Subject(user_id="m-1", role="manager")
    admin = Subject(user_id="a-1", role="admin")
    assert authorize(manager, Action.ORDER_CANCEL, _order(customer_id="user-9"))
    assert authorize(manager, Action.PAYMENT_UPDATE)
    assert not authorize(manager, Action.SETTINGS_WRITE)
    assert authorize(admin, Action.SETTINGS_WRITE)
    assert authorize(Subject(user_id="s-1", role="superadmin"), "agent:manage")


def test_unknown_role_falls_back_to_customer():
    subject = Subject(user_id="user-1", role="intern")
    assert authorize(subject, Action.ORDER_CREATE)
    assert not authorize(subject, Action.ORDER_READ_ANY)
