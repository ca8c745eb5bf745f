from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from orders import events
from orders import workflow as wf
from orders.exceptions import NotFoundError, ValidationError
from orders.models import Order, Payment

from .helpers import GUEST, build_services, order_payload


class CreateOrderTests(TestCase):
    def setUp(self):
        self.svc = build_services()

    def test_guest_order_is_submitted_with_pending_full_payment(self):
        order = self.svc.orders.create_order(order_payload())

        self.assertEqual(order.status, wf.SUBMITTED)
        self.assertEqual(order.workflow, wf.WORKFLOW_SIMPLIFIED)
        self.assertEqual(order.total_amount, Decimal("399.50"))
        self.assertEqual(order.guest_email, GUEST)
        self.assertIsNone(order.user)
        self.assertTrue(order.order_number.startswith("ORD-"))

        payments = list(order.payments.all())
        self.assertEqual(len(payments), 1)
        self.assertEqual(payments[0].phase, wf.PHASE_FULL)
        self.assertEqual(payments[0].status, Payment.PENDING)
        self.assertEqual(payments[0].amount_cents, 39950)

    def test_created_event_and_lead_time_snapshot(self):
        order = self.svc.orders.create_order(order_payload())

        timeline = self.svc.timeline.get_timeline(order)
        self.assertEqual([e.event_type for e in timeline], [events.ORDER_CREATED])
        self.assertEqual(timeline[0].event_data["total_amount"], "399.50")
        self.assertEqual(timeline[0].trigger_source, "api")
        self.assertEqual(order.lead_time_snapshot["production"]["max_days"], 10)

    def test_signed_in_customer_owns_the_order(self):
        user = get_user_model().objects.create_user("dana", "dana@example.com", "pw")
        order = self.svc.orders.create_order(order_payload(guest_email=""), user)
        self.assertEqual(order.user, user)
        self.assertEqual(order.guest_email, "")
        self.assertEqual(order.owner_email, "dana@example.com")

    def test_placements_can_come_from_customization(self):
        order = self.svc.orders.create_order(
            order_payload(print_locations=[], customization={"placements": ["left_chest"]})
        )
        self.assertEqual(order.print_locations, ["left_chest"])

    def test_matching_client_total_is_accepted(self):
        order = self.svc.orders.create_order(order_payload(total_amount="399.51"))
        self.assertEqual(order.total_amount, Decimal("399.50"))

    def test_legacy_split_covers_the_total(self):
        order = self.svc.orders.create_order(
            order_payload(workflow=wf.WORKFLOW_LEGACY, quantity=51, unit_price="3.33", sizes={"M": 51})
        )
        self.assertEqual(order.status, wf.QUOTE_REQUESTED)
        amounts = {p.phase: p.amount_cents for p in order.payments.all()}
        self.assertEqual(amounts, {wf.PHASE_DEPOSIT: 6793, wf.PHASE_BALANCE: 10190})
        self.assertEqual(sum(amounts.values()), order.total_cents)
        self.assertEqual(order.deposit_amount, Decimal("67.93"))
        self.assertEqual(order.balance_amount, Decimal("101.90"))
        self.assertIsNone(order.shipping_fee_cents)

    @override_settings(STOREFRONT_DEFAULT_SHIPPING_FEE_CENTS=1500)
    def test_default_shipping_fee(self):
        order = self.svc.orders.create_order(order_payload())
        self.assertEqual(order.shipping_fee_cents, 1500)
        self.assertTrue(order.shipping_fee_due)

    def test_explicit_zero_shipping_fee_means_none(self):
        order = self.svc.orders.create_order(order_payload(shipping_fee_cents=0))
        self.assertIsNone(order.shipping_fee_cents)
        self.assertFalse(order.shipping_fee_due)


class CreateOrderValidationTests(TestCase):
    def setUp(self):
        self.svc = build_services()

    def assertRejected(self, code, **overrides):
        with self.assertRaises(ValidationError) as ctx:
            self.svc.orders.create_order(order_payload(**overrides))
        self.assertEqual(ctx.exception.code, code)
        self.assertFalse(Order.objects.exists())
        return ctx.exception

    def test_below_moq(self):
        err = self.assertRejected("below_moq", quantity=49, sizes={"M": 49})
        self.assertEqual(err.detail["moq"], 50)

    def test_sizes_must_add_up(self):
        err = self.assertRejected("sizes_mismatch", sizes={"M": 40})
        self.assertEqual(err.detail, {"sizes_total": 40, "quantity": 50})

    def test_sizes_required(self):
        self.assertRejected("invalid_sizes", sizes={})

    def test_placement_required(self):
        self.assertRejected("missing_placement", print_locations=[], customization={})

    def test_identity_required(self):
        self.assertRejected("missing_identity", guest_email="")

    def test_guest_email_must_be_valid(self):
        self.assertRejected("invalid_email", guest_email="not-an-email")

    def test_total_mismatch(self):
        err = self.assertRejected("total_mismatch", total_amount="400.00")
        self.assertEqual(err.detail["expected"], "399.50")

    def test_unit_price_must_be_positive(self):
        self.assertRejected("invalid_amount", unit_price="0")

    def test_unknown_workflow(self):
        self.assertRejected("unknown_workflow", workflow="wholesale")

    def test_product_required(self):
        self.assertRejected("missing_product", product_name="  ")


class OrderAccessTests(TestCase):
    def setUp(self):
        self.svc = build_services()
        User = get_user_model()
        self.staff = User.objects.create_user("ops", "ops@example.com", "pw", is_staff=True)
        self.customer = User.objects.create_user("dana", "dana@example.com", "pw")
        self.other = User.objects.create_user("eve", "eve@example.com", "pw")
        self.guest_order = self.svc.orders.create_order(order_payload())
        self.user_order = self.svc.orders.create_order(order_payload(guest_email=""), self.customer)

    def test_guest_sees_order_with_matching_email(self):
        order = self.svc.orders.get_order(self.guest_order.pk, guest_email=GUEST.upper())
        self.assertEqual(order.pk, self.guest_order.pk)

    def test_guest_with_other_email_gets_not_found(self):
        with self.assertRaises(NotFoundError):
            self.svc.orders.get_order(self.guest_order.pk, guest_email="someone@example.com")

    def test_customer_cannot_see_another_customers_order(self):
        with self.assertRaises(NotFoundError):
            self.svc.orders.get_order(self.user_order.pk, self.other)

    def test_staff_sees_everything(self):
        ids = {o.pk for o in self.svc.orders.list_orders(self.staff)}
        self.assertEqual(ids, {self.guest_order.pk, self.user_order.pk})

    def test_lists_are_scoped(self):
        self.assertEqual([o.pk for o in self.svc.orders.list_orders(self.customer)], [self.user_order.pk])
        self.assertEqual([o.pk for o in self.svc.orders.list_orders(guest_email=GUEST)], [self.guest_order.pk])

    def test_anonymous_list_needs_guest_email(self):
        with self.assertRaises(ValidationError):
            self.svc.orders.list_orders(None)
