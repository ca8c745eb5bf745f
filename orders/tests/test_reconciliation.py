from __future__ import annotations

from django.test import TestCase

from orders import workflow as wf
from orders.exceptions import ReconciliationError, ValidationError
from orders.models import Order, OrderTimelineEvent, Payment

from .fakes import FakeGateway, event
from .helpers import build_services, order_payload


class ReconcileBase(TestCase):
    def setUp(self):
        self.gateway = FakeGateway()
        self.svc = build_services(self.gateway)
        self.order = self.svc.orders.create_order(order_payload())

    def start_checkout(self, phase=wf.PHASE_FULL, order=None):
        return self.svc.ledger.create_checkout_session(order or self.order, phase)

    def paid_session_event(self, session_id, event_id="evt_1"):
        self.gateway.pay_session(session_id)
        return event("checkout.session.completed", dict(self.gateway.sessions[session_id]), event_id)

    def reload(self):
        return Order.objects.get(pk=self.order.pk)

    def payment(self, phase=wf.PHASE_FULL):
        return Payment.objects.get(order=self.order, phase=phase)


class WebhookEventTests(ReconcileBase):
    def test_completed_session_pays_the_order(self):
        checkout = self.start_checkout()
        out = self.svc.reconciliation.handle_event(self.paid_session_event(checkout.session_id))

        self.assertTrue(out["handled"])
        self.assertEqual(out["result"]["order_status"], wf.PAID)
        self.assertTrue(out["result"]["advanced"])
        self.assertEqual(self.reload().status, wf.PAID)

        payment = self.payment()
        self.assertEqual(payment.status, Payment.SUCCEEDED)
        self.assertEqual(payment.stripe_checkout_session_id, checkout.session_id)
        self.assertEqual(payment.stripe_payment_intent_id, "pi_test_1")

        sources = set(
            OrderTimelineEvent.objects.filter(order=self.order, event_type="status_changed")
            .values_list("trigger_source", flat=True)
        )
        self.assertEqual(sources, {OrderTimelineEvent.WEBHOOK})

    def test_redelivered_success_is_a_no_op(self):
        checkout = self.start_checkout()
        evt = self.paid_session_event(checkout.session_id)
        self.svc.reconciliation.handle_event(evt)
        events_before = OrderTimelineEvent.objects.filter(order=self.order).count()

        again = self.svc.reconciliation.handle_event(evt)

        self.assertFalse(again["result"]["changed"])
        self.assertFalse(again["result"]["advanced"])
        self.assertEqual(Payment.objects.filter(order=self.order).count(), 1)
        self.assertEqual(OrderTimelineEvent.objects.filter(order=self.order).count(), events_before)
        self.assertEqual(self.reload().status, wf.PAID)

    def test_intent_processing_keeps_order_submitted(self):
        intent = {"id": "pi_async", "metadata": {"order_id": str(self.order.pk), "phase": wf.PHASE_FULL}}
        out = self.svc.reconciliation.handle_event(event("payment_intent.processing", intent))

        self.assertTrue(out["result"]["changed"])
        self.assertEqual(self.payment().status, Payment.PROCESSING)
        self.assertEqual(self.reload().status, wf.SUBMITTED)

    def test_failed_payment_can_be_retried(self):
        intent = {"id": "pi_card", "metadata": {"order_id": str(self.order.pk), "phase": wf.PHASE_FULL}}
        self.svc.reconciliation.handle_event(event("payment_intent.payment_failed", intent))
        self.assertEqual(self.payment().status, Payment.FAILED)
        self.assertEqual(self.reload().status, wf.SUBMITTED)

        self.svc.reconciliation.handle_event(event("payment_intent.succeeded", intent, "evt_2"))
        self.assertEqual(self.payment().status, Payment.SUCCEEDED)
        self.assertEqual(self.reload().status, wf.PAID)

    def test_legacy_metadata_keys_are_accepted(self):
        intent = {"id": "pi_old", "metadata": {"orderId": str(self.order.pk), "phase": "full"}}
        out = self.svc.reconciliation.handle_event(event("payment_intent.succeeded", intent))
        self.assertEqual(out["result"]["phase"], wf.PHASE_FULL)
        self.assertEqual(self.reload().status, wf.PAID)

    def test_falls_back_to_stored_session_id(self):
        checkout = self.start_checkout()
        self.gateway.pay_session(checkout.session_id)
        session = dict(self.gateway.sessions[checkout.session_id], metadata={})

        self.svc.reconciliation.handle_event(event("checkout.session.completed", session))
        self.assertEqual(self.reload().status, wf.PAID)

    def test_uncorrelated_event_raises(self):
        intent = {"id": "pi_unknown", "metadata": {}}
        with self.assertRaises(ReconciliationError):
            self.svc.reconciliation.handle_event(event("payment_intent.succeeded", intent))
        self.assertEqual(self.payment().status, Payment.PENDING)

    def test_missing_order_raises(self):
        intent = {"id": "pi_x", "metadata": {"order_id": "999999", "phase": wf.PHASE_FULL}}
        with self.assertRaises(ReconciliationError):
            self.svc.reconciliation.handle_event(event("payment_intent.succeeded", intent))

    def test_phase_from_other_workflow_raises(self):
        intent = {"id": "pi_x", "metadata": {"order_id": str(self.order.pk), "phase": wf.PHASE_DEPOSIT}}
        with self.assertRaises(ReconciliationError):
            self.svc.reconciliation.handle_event(event("payment_intent.succeeded", intent))
        self.assertFalse(Payment.objects.filter(order=self.order, phase=wf.PHASE_DEPOSIT).exists())

    def test_expired_session_cancels_the_attempt(self):
        checkout = self.start_checkout()
        session = dict(self.gateway.sessions[checkout.session_id], status="expired")
        self.svc.reconciliation.handle_event(event("checkout.session.expired", session))
        self.assertEqual(self.payment().status, Payment.CANCELED)
        self.assertEqual(self.reload().status, wf.SUBMITTED)

    def test_unknown_event_type_is_ignored(self):
        out = self.svc.reconciliation.handle_event(event("customer.created", {"id": "cus_1"}))
        self.assertEqual(out, {"handled": False, "type": "customer.created"})

    def test_invoice_paid(self):
        invoice = self.svc.ledger.create_invoice(self.order, wf.PHASE_FULL)
        obj = dict(self.gateway.invoices[invoice.invoice_id], status="paid", payment_intent="pi_inv_1")

        self.svc.reconciliation.handle_event(event("invoice.paid", obj))

        payment = self.payment()
        self.assertEqual(payment.status, Payment.SUCCEEDED)
        self.assertEqual(payment.stripe_invoice_id, invoice.invoice_id)
        self.assertEqual(payment.stripe_payment_intent_id, "pi_inv_1")
        self.assertEqual(self.reload().status, wf.PAID)

    def test_refunds_update_the_payment_only(self):
        checkout = self.start_checkout()
        self.svc.reconciliation.handle_event(self.paid_session_event(checkout.session_id))
        charge = {"id": "ch_test_1", "payment_intent": "pi_test_1", "amount": 39950, "amount_refunded": 1000}

        self.svc.reconciliation.handle_event(event("charge.refunded", charge, "evt_r1"))
        self.assertEqual(self.payment().status, Payment.PARTIALLY_REFUNDED)

        self.svc.reconciliation.handle_event(event("charge.refunded", dict(charge, amount_refunded=39950), "evt_r2"))
        self.assertEqual(self.payment().status, Payment.REFUNDED)
        self.assertEqual(self.reload().status, wf.PAID)

    def test_late_success_does_not_regress_status(self):
        self.svc.transitions.transition(self.order.pk, wf.PAID)
        self.svc.transitions.transition(self.order.pk, wf.IN_PRODUCTION)
        intent = {"id": "pi_late", "metadata": {"order_id": str(self.order.pk), "phase": wf.PHASE_FULL}}

        out = self.svc.reconciliation.handle_event(event("payment_intent.succeeded", intent))

        self.assertFalse(out["result"]["advanced"])
        self.assertEqual(self.reload().status, wf.IN_PRODUCTION)
        self.assertEqual(self.payment().stripe_payment_intent_id, "pi_late")

    def test_shipping_fee_on_order_without_fee_is_unresolvable(self):
        intent = {"id": "pi_fee", "metadata": {"order_id": str(self.order.pk), "phase": wf.PHASE_SHIPPING_FEE}}
        with self.assertRaises(ReconciliationError) as ctx:
            self.svc.reconciliation.handle_event(event("payment_intent.succeeded", intent))
        self.assertEqual(ctx.exception.code, "unresolvable")
        self.assertEqual(ctx.exception.detail["reason"], "no_shipping_fee")
        self.assertFalse(Payment.objects.filter(order=self.order, phase=wf.PHASE_SHIPPING_FEE).exists())

    def test_customer_paid_shipping_fee_does_not_ship(self):
        order = self.svc.orders.create_order(order_payload(shipping_fee_cents=1500))
        self.svc.transitions.transition(order.pk, wf.PAID)
        self.svc.transitions.transition(order.pk, wf.IN_PRODUCTION)
        checkout = self.start_checkout(wf.PHASE_SHIPPING_FEE, order=order)

        out = self.svc.reconciliation.handle_event(self.paid_session_event(checkout.session_id))

        self.assertFalse(out["result"]["advanced"])
        order.refresh_from_db()
        self.assertEqual(order.status, wf.IN_PRODUCTION)
        self.assertIsNotNone(order.shipping_paid_at)
        self.assertFalse(order.shipping_fee_due)


class ClientReconcileTests(ReconcileBase):
    def test_reconcile_by_session(self):
        checkout = self.start_checkout()
        self.gateway.pay_session(checkout.session_id)

        result = self.svc.reconciliation.reconcile(session_id=checkout.session_id)

        self.assertTrue(result.changed)
        self.assertTrue(result.advanced)
        self.assertEqual(self.reload().status, wf.PAID)
        self.assertEqual(self.payment().status, Payment.SUCCEEDED)

    def test_reconcile_by_order_and_phase(self):
        checkout = self.start_checkout()
        self.gateway.pay_session(checkout.session_id)

        result = self.svc.reconciliation.reconcile(order_id=self.order.pk, phase="full")
        self.assertEqual(result.to_dict()["payment_status"], Payment.SUCCEEDED)
        self.assertEqual(self.reload().status, wf.PAID)

    def test_open_session_changes_nothing(self):
        checkout = self.start_checkout()
        result = self.svc.reconciliation.reconcile(session_id=checkout.session_id)
        self.assertFalse(result.changed)
        self.assertEqual(self.payment().status, Payment.PROCESSING)
        self.assertEqual(self.reload().status, wf.SUBMITTED)

    def test_reconcile_and_webhook_converge(self):
        checkout = self.start_checkout()
        evt = self.paid_session_event(checkout.session_id)
        self.svc.reconciliation.reconcile(session_id=checkout.session_id)
        out = self.svc.reconciliation.handle_event(evt)

        self.assertFalse(out["result"]["changed"])
        self.assertEqual(
            OrderTimelineEvent.objects.filter(order=self.order, event_type="status_changed").count(), 1
        )

    def test_stale_intent_status_does_not_move_payment_back(self):
        intent = {"id": "pi_async", "metadata": {"order_id": str(self.order.pk), "phase": wf.PHASE_FULL}}
        self.svc.reconciliation.handle_event(event("payment_intent.processing", intent))
        self.gateway.intents["pi_async"] = dict(intent, status="requires_payment_method")

        result = self.svc.reconciliation.reconcile(order_id=self.order.pk, phase=wf.PHASE_FULL)

        self.assertFalse(result.changed)
        self.assertEqual(self.payment().status, Payment.PROCESSING)
        self.assertEqual(self.reload().status, wf.SUBMITTED)

    def test_payment_never_sent_to_stripe(self):
        with self.assertRaises(ReconciliationError):
            self.svc.reconciliation.reconcile(order_id=self.order.pk, phase=wf.PHASE_FULL)

    def test_reference_required(self):
        with self.assertRaises(ValidationError):
            self.svc.reconciliation.reconcile()


class LegacyReconcileTests(TestCase):
    def setUp(self):
        self.gateway = FakeGateway()
        self.svc = build_services(self.gateway)
        self.order = self.svc.orders.create_order(
            order_payload(workflow=wf.WORKFLOW_LEGACY, quantity=51, unit_price="3.33", sizes={"M": 51})
        )
        for state in (wf.QUOTED, wf.DEPOSIT_PENDING):
            self.svc.transitions.transition(self.order.pk, state)

    def test_deposit_payment_advances_legacy_order(self):
        checkout = self.svc.ledger.create_checkout_session(self.order, wf.PHASE_DEPOSIT)
        self.assertEqual(checkout.payment.amount_cents, 6793)
        self.gateway.pay_session(checkout.session_id)

        self.svc.reconciliation.reconcile(session_id=checkout.session_id)

        order = Order.objects.get(pk=self.order.pk)
        self.assertEqual(order.status, wf.DEPOSIT_PAID)
        self.assertEqual(str(order.total_paid_amount), "67.93")
