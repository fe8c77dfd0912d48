"""
Tests for webhook reconciliation: token check, event filtering, idempotent
order finalization and the gift reservation flow.
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from weddingpay.errors import Unauthorized, ValidationError
from weddingpay.models import Customer, Gift, GiftReservation, Order
from weddingpay.services.notifications import NotificationDispatcher
from weddingpay.services.order_store import OrderStore
from weddingpay.services.reconciler import WebhookReconciler

TOKEN = "secret-token"


@pytest.fixture
def jobs():
    return []


@pytest.fixture
def reconciler(session, audit, jobs):
    notifier = NotificationDispatcher(enqueue=lambda job, *args: jobs.append(job.__name__))
    return WebhookReconciler(session, webhook_token=TOKEN, audit=audit, notifier=notifier)


@pytest.fixture
def order(session, make_customer, make_product):
    make_customer("cust-1", "ana@example.com", "12345678909")
    make_product("planner", 100)
    make_product("site-premium", 50)
    store = OrderStore(session)
    created = store.create("cust-1", ["planner", "site-premium"], Decimal("150"), payment_method="PIX")
    store.attach_gateway_payment_id(created.id, "pay_1")
    return created


def confirmed(payment_id="pay_1", event="PAYMENT_CONFIRMED", reference=None):
    payment = {"id": payment_id, "status": "CONFIRMED"}
    if reference is not None:
        payment["externalReference"] = reference
    return {"event": event, "payment": payment}


class TestToken:

    def test_wrong_token_is_rejected(self, reconciler, order, audit):
        with pytest.raises(Unauthorized):
            reconciler.handle(confirmed(), "wrong")
        assert "webhook.unauthorized" in audit.actions()

    def test_missing_token_is_rejected(self, reconciler, order):
        with pytest.raises(Unauthorized):
            reconciler.handle(confirmed(), None)

    def test_no_configured_token_accepts_any(self, session, order):
        result = WebhookReconciler(session).handle(confirmed(), None)
        assert result.result == "processed"


class TestEvents:

    @pytest.mark.parametrize("event", ["PAYMENT_CREATED", "PAYMENT_OVERDUE", "PAYMENT_REFUNDED"])
    def test_other_events_are_ignored(self, reconciler, order, session, event):
        result = reconciler.handle(confirmed(event=event), TOKEN)

        assert result.result == "ignored"
        assert session.get(Order, order.id).status == "pending"

    @pytest.mark.parametrize("event", ["PAYMENT_CONFIRMED", "PAYMENT_RECEIVED", "payment_confirmed"])
    def test_confirmation_events(self, reconciler, order, event):
        assert reconciler.handle(confirmed(event=event), TOKEN).result == "processed"

    def test_malformed_envelope(self, reconciler):
        with pytest.raises(ValidationError):
            reconciler.handle({"payment": {"id": "pay_1"}}, TOKEN)

    def test_confirmation_without_payment_id(self, reconciler):
        with pytest.raises(ValidationError):
            reconciler.handle({"event": "PAYMENT_CONFIRMED", "payment": {}}, TOKEN)

    def test_unknown_payment(self, reconciler, order):
        assert reconciler.handle(confirmed("pay_404"), TOKEN).result == "not_found"


class TestOrderFinalization:

    def test_pays_order_and_grants_access(self, reconciler, order, session, jobs):
        result = reconciler.handle(confirmed(), TOKEN)

        assert result.result == "processed"
        assert result.granted == ["planner", "site-premium"]
        assert session.get(Order, order.id).status == "paid"
        assert session.get(Customer, "cust-1").access == ["planner", "site-premium"]
        assert jobs == ["send_receipt_email", "record_purchase_event"]

    def test_replay_is_idempotent(self, reconciler, order, session, jobs, audit):
        reconciler.handle(confirmed(), TOKEN)
        replay = reconciler.handle(confirmed(), TOKEN)

        assert replay.result == "already_processed"
        assert session.get(Order, order.id).status == "paid"
        assert session.get(Customer, "cust-1").access == ["planner", "site-premium"]
        assert len(jobs) == 2
        assert len(audit.find("access.granted")) == 1

    def test_lost_race_reports_already_processed(self, reconciler, order, session):
        # this delivery read the order as pending before the other one committed
        stale = SimpleNamespace(id=order.id, status="pending", customer_id="cust-1",
                                ordered_product_ids=["planner", "site-premium"],
                                gateway_payment_id="pay_1")
        OrderStore(session).transition(order.id, "paid")

        result = reconciler.confirm_order(stale)

        assert result.result == "already_processed"
        assert session.get(Customer, "cust-1").access == []

    def test_cancelled_order_is_not_granted(self, reconciler, order, session):
        OrderStore(session).transition(order.id, "cancelled")

        result = reconciler.handle(confirmed(), TOKEN)

        assert result.result == "ignored"
        assert result.reason == "order_cancelled"
        assert session.get(Order, order.id).status == "cancelled"
        assert session.get(Customer, "cust-1").access == []

    def test_notification_failure_does_not_undo_payment(self, session, order, audit):
        def broken_enqueue(job, *args):
            raise ConnectionError("redis down")

        notifier = NotificationDispatcher(enqueue=broken_enqueue)
        result = WebhookReconciler(session, audit=audit, notifier=notifier).handle(confirmed())

        assert result.result == "processed"
        assert session.get(Order, order.id).status == "paid"

    def test_grant_failure_is_flagged(self, session, order, audit):
        session.delete(session.get(Customer, "cust-1"))
        session.commit()

        result = WebhookReconciler(session, audit=audit).handle(confirmed())

        assert result.result == "processed"
        assert result.reason == "access_grant_failed"
        assert audit.find("access.grant_failed")[0].level == "critical"


class TestUnlinkedOrder:

    @pytest.fixture
    def unlinked(self, session, make_customer, make_product):
        make_customer("cust-1", "ana@example.com", "12345678909")
        make_product("planner", 100)
        return OrderStore(session).create("cust-1", ["planner"], Decimal("100"), payment_method="PIX")

    def test_found_by_external_reference_and_linked(self, reconciler, unlinked, session, audit):
        order_id = unlinked.id
        payload = confirmed("pay_9", reference=order_id)

        result = reconciler.handle(payload, TOKEN)

        assert result.result == "processed"
        order = session.get(Order, order_id)
        assert order.status == "paid"
        assert order.gateway_payment_id == "pay_9"
        assert session.get(Customer, "cust-1").access == ["planner"]
        assert "order.payment_linked" in audit.actions()

        assert reconciler.handle(payload, TOKEN).result == "already_processed"

    def test_reference_to_order_of_another_payment(self, reconciler, order, session):
        result = reconciler.handle(confirmed("pay_other", reference=order.id), TOKEN)

        assert result.result == "not_found"
        assert session.get(Order, order.id).status == "pending"

    def test_unknown_reference(self, reconciler, unlinked):
        assert reconciler.handle(confirmed("pay_9", reference="missing"), TOKEN).result == "not_found"


class TestGiftFlow:

    def test_purchase_increments_gift(self, reconciler, make_gift, session):
        gift, reservation = make_gift(reservation_quantity=2, payment_id="pay_gift_1")

        result = reconciler.handle(confirmed("pay_gift_1", reference=f"gift:{reservation.id}"), TOKEN)

        assert result.result == "processed"
        assert session.get(GiftReservation, reservation.id).status == "purchased"
        assert session.get(Gift, gift.id).quantity_purchased == 2

    def test_replay_does_not_double_count(self, reconciler, make_gift, session):
        gift, reservation = make_gift(payment_id="pay_gift_1")
        payload = confirmed("pay_gift_1", reference=f"gift:{reservation.id}")

        reconciler.handle(payload, TOKEN)
        replay = reconciler.handle(payload, TOKEN)

        assert replay.result == "already_processed"
        assert session.get(Gift, gift.id).quantity_purchased == 1

    def test_reservation_found_by_reference(self, reconciler, make_gift, session):
        gift, reservation = make_gift(payment_id=None)

        result = reconciler.handle(confirmed("pay_other", reference=f"gift:{reservation.id}"), TOKEN)

        assert result.result == "processed"
        assert result.reservation_id == reservation.id

    def test_unknown_reservation(self, reconciler):
        result = reconciler.handle(confirmed("pay_x", reference="gift:missing"), TOKEN)
        assert result.result == "not_found"

    def test_cancelled_reservation_is_ignored(self, reconciler, make_gift, session):
        gift, reservation = make_gift(payment_id="pay_gift_1")
        reservation.status = "cancelled"
        session.commit()

        result = reconciler.handle(confirmed("pay_gift_1", reference=f"gift:{reservation.id}"), TOKEN)

        assert result.result == "ignored"
        assert session.get(Gift, gift.id).quantity_purchased == 0
