from __future__ import annotations

from django.test import SimpleTestCase, TestCase

from orders import events
from orders import workflow as wf
from orders.exceptions import ConflictError, NotFoundError, ProviderError, ValidationError
from orders.models import OrderTimelineEvent, Payment

from .fakes import FakeGateway
from .helpers import build_services, order_payload


class PhaseAmountTests(TestCase):
    def setUp(self):
        self.svc = build_services()

    def test_full_payment_is_the_total(self):
        order = self.svc.orders.create_order(order_payload())
        self.assertEqual(self.svc.ledger.phase_amount_cents(order, wf.PHASE_FULL), 39950)

    def test_deposit_rounds_to_nearest_cent(self):
        # 17034 x 0.4 = 6813.6
        order = self.svc.orders.create_order(
            order_payload(workflow=wf.WORKFLOW_LEGACY, quantity=51, unit_price="3.34", sizes={"L": 51})
        )
        deposit = self.svc.ledger.phase_amount_cents(order, wf.PHASE_DEPOSIT)
        balance = self.svc.ledger.phase_amount_cents(order, wf.PHASE_BALANCE)
        self.assertEqual(deposit, 6814)
        self.assertEqual(balance, 10220)
        self.assertEqual(deposit + balance, order.total_cents)

    def test_shipping_fee_requires_a_fee(self):
        order = self.svc.orders.create_order(order_payload())
        with self.assertRaises(ValidationError) as ctx:
            self.svc.ledger.phase_amount_cents(order, wf.PHASE_SHIPPING_FEE)
        self.assertEqual(ctx.exception.code, "no_shipping_fee")


class RecordStatusTests(TestCase):
    def setUp(self):
        self.svc = build_services()
        self.order = self.svc.orders.create_order(order_payload())

    def test_forward_move_writes_event(self):
        payment, changed = self.svc.ledger.record_status(
            self.order, wf.PHASE_FULL, Payment.PROCESSING, source=OrderTimelineEvent.SYSTEM
        )
        self.assertTrue(changed)
        self.assertEqual(payment.status, Payment.PROCESSING)
        latest = self.svc.timeline.get_timeline(self.order)[0]
        self.assertEqual(latest.event_type, events.PAYMENT_UPDATED)
        self.assertEqual(latest.event_data["from_status"], Payment.PENDING)
        self.assertEqual(latest.event_data["to_status"], Payment.PROCESSING)

    def test_settled_payment_never_moves_back(self):
        self.svc.ledger.record_status(self.order, wf.PHASE_FULL, Payment.SUCCEEDED, source=OrderTimelineEvent.SYSTEM)
        payment, changed = self.svc.ledger.record_status(
            self.order,
            wf.PHASE_FULL,
            Payment.PROCESSING,
            source=OrderTimelineEvent.WEBHOOK,
            stripe_payment_intent_id="pi_late",
        )
        self.assertFalse(changed)
        self.assertEqual(payment.status, Payment.SUCCEEDED)
        self.assertEqual(Payment.objects.get(pk=payment.pk).stripe_payment_intent_id, "pi_late")

    def test_processing_never_moves_back_to_an_earlier_open_state(self):
        self.svc.ledger.record_status(self.order, wf.PHASE_FULL, Payment.PROCESSING, source=OrderTimelineEvent.WEBHOOK)
        payment, changed = self.svc.ledger.record_status(
            self.order, wf.PHASE_FULL, Payment.REQUIRES_PAYMENT_METHOD, source=OrderTimelineEvent.API
        )
        self.assertFalse(changed)
        self.assertEqual(payment.status, Payment.PROCESSING)


class PaymentStatusRuleTests(SimpleTestCase):
    def test_open_states_only_move_forward(self):
        self.assertTrue(Payment.can_move(Payment.PENDING, Payment.PROCESSING))
        self.assertFalse(Payment.can_move(Payment.REQUIRES_PAYMENT_METHOD, Payment.REQUIRES_ACTION))
        self.assertFalse(Payment.can_move(Payment.PROCESSING, Payment.PENDING))
        self.assertFalse(Payment.can_move(Payment.PROCESSING, Payment.REQUIRES_PAYMENT_METHOD))
        self.assertFalse(Payment.can_move(Payment.REQUIRES_ACTION, Payment.PENDING))

    def test_open_states_settle_or_fail(self):
        for status in (Payment.PENDING, Payment.REQUIRES_ACTION, Payment.PROCESSING):
            self.assertTrue(Payment.can_move(status, Payment.SUCCEEDED))
            self.assertTrue(Payment.can_move(status, Payment.FAILED))
            self.assertTrue(Payment.can_move(status, Payment.CANCELED))

    def test_unpaid_rows_cannot_be_refunded(self):
        self.assertFalse(Payment.can_move(Payment.PENDING, Payment.REFUNDED))
        self.assertFalse(Payment.can_move(Payment.PROCESSING, Payment.PARTIALLY_REFUNDED))
        self.assertFalse(Payment.can_move(Payment.FAILED, Payment.REFUNDED))

    def test_failed_attempt_can_be_retried(self):
        self.assertTrue(Payment.can_move(Payment.FAILED, Payment.PROCESSING))
        self.assertTrue(Payment.can_move(Payment.CANCELED, Payment.SUCCEEDED))
        self.assertFalse(Payment.can_move(Payment.FAILED, Payment.PENDING))

    def test_refunds_follow_success(self):
        self.assertTrue(Payment.can_move(Payment.SUCCEEDED, Payment.PARTIALLY_REFUNDED))
        self.assertTrue(Payment.can_move(Payment.PARTIALLY_REFUNDED, Payment.REFUNDED))
        self.assertFalse(Payment.can_move(Payment.SUCCEEDED, Payment.FAILED))
        self.assertFalse(Payment.can_move(Payment.REFUNDED, Payment.SUCCEEDED))


class CheckoutSessionTests(TestCase):
    def setUp(self):
        self.gateway = FakeGateway()
        self.svc = build_services(self.gateway)
        self.order = self.svc.orders.create_order(order_payload())

    def test_checkout_moves_row_to_processing(self):
        result = self.svc.ledger.create_checkout_session(self.order, wf.PHASE_FULL)

        self.assertEqual(result.session_id, "cs_test_1")
        self.assertTrue(result.url.startswith("https://"))
        payment = Payment.objects.get(order=self.order, phase=wf.PHASE_FULL)
        self.assertEqual(payment.status, Payment.PROCESSING)
        self.assertEqual(payment.stripe_checkout_session_id, "cs_test_1")
        self.assertEqual(payment.metadata["checkout_url"], result.url)
        self.assertEqual(self.gateway.calls, [("create_checkout_session", wf.PHASE_FULL, 39950)])

    def test_repeat_checkout_reuses_the_row(self):
        self.svc.ledger.create_checkout_session(self.order, wf.PHASE_FULL)
        second = self.svc.ledger.create_checkout_session(self.order, wf.PHASE_FULL)

        rows = Payment.objects.filter(order=self.order, phase=wf.PHASE_FULL)
        self.assertEqual(rows.count(), 1)
        self.assertEqual(rows.get().stripe_checkout_session_id, second.session_id)

    def test_paid_phase_cannot_be_charged_again(self):
        self.svc.orders.pay(self.order.pk, self.order.user, guest_email=self.order.guest_email)
        with self.assertRaises(ConflictError) as ctx:
            self.svc.ledger.create_checkout_session(self.order, wf.PHASE_FULL)
        self.assertEqual(ctx.exception.code, "already_paid")
        self.assertEqual(self.gateway.calls, [])

    def test_provider_failure_writes_nothing(self):
        self.gateway.fail = True
        with self.assertRaises(ProviderError):
            self.svc.ledger.create_checkout_session(self.order, wf.PHASE_FULL)

        payment = Payment.objects.get(order=self.order, phase=wf.PHASE_FULL)
        self.assertEqual(payment.status, Payment.PENDING)
        self.assertEqual(payment.stripe_checkout_session_id, "")
        self.assertFalse(
            OrderTimelineEvent.objects.filter(order=self.order, event_type=events.CHECKOUT_STARTED).exists()
        )

    def test_phase_must_belong_to_workflow(self):
        with self.assertRaises(ValidationError) as ctx:
            self.svc.ledger.create_checkout_session(self.order, wf.PHASE_BALANCE)
        self.assertEqual(ctx.exception.code, "invalid_phase")


class InvoiceTests(TestCase):
    def setUp(self):
        self.gateway = FakeGateway()
        self.svc = build_services(self.gateway)
        self.order = self.svc.orders.create_order(order_payload())

    def test_create_invoice(self):
        result = self.svc.ledger.create_invoice(self.order, wf.PHASE_FULL, days_until_due=14)

        self.assertEqual(result.invoice_id, "in_test_1")
        payment = result.payment
        self.assertEqual(payment.status, Payment.REQUIRES_PAYMENT_METHOD)
        self.assertEqual(payment.stripe_invoice_id, "in_test_1")
        self.assertEqual(payment.metadata["hosted_invoice_url"], result.hosted_invoice_url)
        self.assertEqual(self.gateway.calls, [("create_invoice", wf.PHASE_FULL, 39950, 14)])

    def test_resend_invoice(self):
        created = self.svc.ledger.create_invoice(self.order, wf.PHASE_FULL)
        result = self.svc.ledger.resend_invoice(created.invoice_id)

        self.assertEqual(result.payment.pk, created.payment.pk)
        latest = self.svc.timeline.get_timeline(self.order)[0]
        self.assertEqual(latest.event_type, events.INVOICE_SENT)
        self.assertTrue(latest.event_data["resent"])

    def test_resend_unknown_invoice(self):
        with self.assertRaises(NotFoundError):
            self.svc.ledger.resend_invoice("in_missing")
