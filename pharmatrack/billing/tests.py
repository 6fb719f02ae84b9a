"""
Test suite for Billing module
Tests: plan pricing, Paystack checkout, webhook handling, subscription management and reminders
"""
import hmac
import json
import hashlib
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch, MagicMock
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.billing.models import SubscriptionPayment
from pharmatrack.billing.paystack import verify_signature
from pharmatrack.billing.plans import calculate_charge_amount, infer_plan_from_amount, get_plan_limits
from pharmatrack.billing.services import send_subscription_reminders, expire_lapsed_subscriptions
from pharmatrack.core.models import AuditLog
from pharmatrack.notifications.models import Notification, SentAlert
from pharmatrack.pharmacies.models import Pharmacy

WEBHOOK_URL = '/api/v1/billing/webhook/paystack/'


def paystack_response(data, ok=True, status_code=200):
    response = MagicMock()
    response.ok = ok
    response.status_code = status_code
    response.json.return_value = {'status': ok, 'message': 'ok' if ok else 'Declined', 'data': data}
    return response


def sign(body):
    return hmac.new(b'sk_test_pharmatrack', body, hashlib.sha512).hexdigest()


class PlanPricingTests(TestCase):
    """Test charge amounts and plan inference"""

    def test_hybrid_plan_charges_setup_fee(self):
        self.assertEqual(calculate_charge_amount('starter', 'monthly'), 15000000)
        self.assertEqual(calculate_charge_amount('starter', 'annual'), 15000000)

    def test_annual_billing_uses_discounted_fee(self):
        self.assertEqual(calculate_charge_amount('pro', 'monthly'), 3500000)
        self.assertEqual(calculate_charge_amount('pro', 'annual'), 25200000)
        self.assertEqual(calculate_charge_amount('lite', 'annual'), 5400000)

    def test_enterprise_requires_sales(self):
        with self.assertRaisesMessage(ValueError, 'Enterprise plan requires contacting sales'):
            calculate_charge_amount('enterprise')

    def test_unknown_plan(self):
        with self.assertRaisesMessage(ValueError, 'Invalid plan selected'):
            calculate_charge_amount('platinum')

    def test_infer_plan_from_amount(self):
        self.assertEqual(infer_plan_from_amount(15000000), 'starter')
        self.assertEqual(infer_plan_from_amount(3500000), 'pro')
        self.assertEqual(infer_plan_from_amount(750000), 'lite')
        self.assertEqual(infer_plan_from_amount(20000000), 'enterprise')

    def test_unknown_plan_limits_fall_back_to_starter(self):
        limits = get_plan_limits('mystery')
        self.assertEqual(limits['plan'], 'starter')
        self.assertFalse(limits['can_add_branches'])


class SignatureTests(TestCase):
    """Test webhook signature verification"""

    def test_valid_signature(self):
        body = b'{"event": "charge.success"}'
        self.assertTrue(verify_signature(body, sign(body)))

    def test_tampered_body_rejected(self):
        body = b'{"event": "charge.success"}'
        self.assertFalse(verify_signature(body + b' ', sign(body)))

    def test_missing_signature_rejected(self):
        self.assertFalse(verify_signature(b'{}', None))


class CreatePaymentAPITests(TestCase):
    """Test checkout initialization endpoints"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    @patch('pharmatrack.billing.paystack.requests.post')
    def test_create_subscription_payment(self, mock_post):
        mock_post.return_value = paystack_response({
            'authorization_url': 'https://checkout.paystack.com/abc',
            'access_code': 'abc',
            'reference': 'ref-pro-1',
        })
        response = self.client.post(
            '/api/v1/billing/create-payment/', {'plan': 'pro', 'billing_period': 'monthly'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['reference'], 'ref-pro-1')
        self.assertEqual(response.data['amount'], 35000.0)

        payload = mock_post.call_args.kwargs['json']
        self.assertEqual(payload['amount'], 3500000)
        self.assertEqual(payload['metadata']['plan'], 'pro')
        self.assertEqual(payload['metadata']['pharmacy_id'], self.pharmacy.id)

        payment = SubscriptionPayment.objects.get(paystack_reference='ref-pro-1')
        self.assertEqual(payment.status, 'pending')
        self.assertEqual(payment.amount, Decimal('35000.00'))

    @patch('pharmatrack.billing.paystack.requests.post')
    def test_enterprise_plan_rejected(self, mock_post):
        response = self.client.post('/api/v1/billing/create-payment/', {'plan': 'enterprise'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Enterprise plan requires contacting sales')
        mock_post.assert_not_called()

    @patch('pharmatrack.billing.paystack.requests.post')
    def test_gateway_failure(self, mock_post):
        mock_post.return_value = paystack_response({}, ok=False, status_code=400)
        response = self.client.post('/api/v1/billing/create-payment/', {'plan': 'lite'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Failed to initialize payment')
        self.assertFalse(SubscriptionPayment.objects.exists())

    def test_staff_cannot_create_payment(self):
        member = TestDataFactory.create_staff(self.pharmacy, role='manager')
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.post('/api/v1/billing/create-payment/', {'plan': 'pro'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @patch('pharmatrack.billing.paystack.requests.post')
    def test_featured_payment(self, mock_post):
        medication = TestDataFactory.create_medication(self.pharmacy, name='Amoxicillin 500mg')
        mock_post.return_value = paystack_response({
            'authorization_url': 'https://checkout.paystack.com/feat',
            'access_code': 'feat',
            'reference': 'ref-feat-1',
        })
        response = self.client.post(
            '/api/v1/billing/featured-payment/', {'medication': medication.id, 'duration': 14}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        payload = mock_post.call_args.kwargs['json']
        self.assertEqual(payload['amount'], 150000)
        self.assertEqual(payload['metadata']['type'], 'featured_product')

        payment = SubscriptionPayment.objects.get(paystack_reference='ref-feat-1')
        self.assertEqual(payment.purpose, 'featured')
        self.assertEqual(payment.duration_days, 14)

    def test_featured_payment_invalid_duration(self):
        medication = TestDataFactory.create_medication(self.pharmacy)
        response = self.client.post(
            '/api/v1/billing/featured-payment/', {'medication': medication.id, 'duration': 10}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_plan_catalogue_is_public(self):
        response = AuthenticatedAPIClient().get('/api/v1/billing/plans/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([plan['plan'] for plan in response.data['plans']], ['lite', 'starter', 'pro', 'enterprise'])


class WebhookTests(TestCase):
    """Test Paystack webhook processing"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner, email='billing@pharmacy.test')
        self.client = AuthenticatedAPIClient()

    def post_event(self, event, signature=None):
        body = json.dumps(event).encode('utf-8')
        extra = {}
        if signature is not False:
            extra['HTTP_X_PAYSTACK_SIGNATURE'] = signature or sign(body)
        return self.client.post(WEBHOOK_URL, data=body, content_type='application/json', **extra)

    def test_missing_signature(self):
        response = self.post_event({'event': 'charge.success', 'data': {}}, signature=False)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Missing signature')

    def test_invalid_signature(self):
        response = self.post_event({'event': 'charge.success', 'data': {}}, signature='deadbeef')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Invalid signature')

    def test_charge_success_activates_subscription(self):
        SubscriptionPayment.objects.create(
            pharmacy=self.pharmacy, plan='pro', amount=Decimal('35000.00'), paystack_reference='ref-pro'
        )
        response = self.post_event({
            'event': 'charge.success',
            'data': {
                'id': 987654,
                'reference': 'ref-pro',
                'amount': 3500000,
                'customer': {'email': 'billing@pharmacy.test', 'customer_code': 'CUS_pro'},
                'metadata': {'pharmacy_id': self.pharmacy.id, 'plan': 'pro', 'billing_period': 'monthly'},
            },
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['received'])

        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.subscription_status, 'active')
        self.assertEqual(self.pharmacy.subscription_plan, 'pro')
        self.assertEqual(self.pharmacy.max_users, 999)
        self.assertEqual(self.pharmacy.paystack_customer_code, 'CUS_pro')
        days = (self.pharmacy.subscription_ends_at - timezone.now()).days
        self.assertIn(days, (29, 30))

        payment = SubscriptionPayment.objects.get(paystack_reference='ref-pro')
        self.assertEqual(payment.status, 'completed')
        self.assertEqual(payment.paystack_transaction_id, '987654')

    def test_charge_success_found_by_email_and_amount(self):
        self.post_event({
            'event': 'charge.success',
            'data': {
                'reference': 'ref-lite',
                'amount': 750000,
                'customer': {'email': 'BILLING@pharmacy.test'},
            },
        })
        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.subscription_plan, 'lite')
        self.assertEqual(self.pharmacy.subscription_status, 'active')

    def test_annual_payment_extends_a_year(self):
        self.post_event({
            'event': 'charge.success',
            'data': {
                'reference': 'ref-annual',
                'amount': 25200000,
                'customer': {'email': 'billing@pharmacy.test'},
                'metadata': {'pharmacy_id': self.pharmacy.id, 'plan': 'pro', 'billing_period': 'annual'},
            },
        })
        self.pharmacy.refresh_from_db()
        self.assertGreaterEqual((self.pharmacy.subscription_ends_at - timezone.now()).days, 364)

    @patch('pharmatrack.billing.paystack.requests.post')
    def test_starter_setup_creates_recurring_subscription(self, mock_post):
        mock_post.side_effect = [
            paystack_response({'plan_code': 'PLN_starter'}),
            paystack_response({'subscription_code': 'SUB_starter', 'email_token': 'tok_123'}),
        ]
        self.post_event({
            'event': 'charge.success',
            'data': {
                'reference': 'ref-setup',
                'amount': 15000000,
                'customer': {'email': 'billing@pharmacy.test', 'customer_code': 'CUS_starter'},
                'metadata': {'pharmacy_id': self.pharmacy.id, 'plan': 'starter'},
            },
        })
        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.subscription_plan, 'starter')
        self.assertEqual(self.pharmacy.paystack_subscription_code, 'SUB_starter')
        self.assertEqual(self.pharmacy.paystack_email_token, 'tok_123')

        plan_call, subscription_call = mock_post.call_args_list
        self.assertTrue(plan_call.args[0].endswith('/plan'))
        self.assertEqual(plan_call.kwargs['json']['amount'], 1000000)
        self.assertEqual(subscription_call.kwargs['json']['customer'], 'CUS_starter')

    @patch('pharmatrack.billing.paystack.requests.post')
    def test_recurring_setup_failure_keeps_payment(self, mock_post):
        mock_post.return_value = paystack_response({}, ok=False, status_code=400)
        response = self.post_event({
            'event': 'charge.success',
            'data': {
                'reference': 'ref-setup-2',
                'amount': 15000000,
                'customer': {'email': 'billing@pharmacy.test', 'customer_code': 'CUS_starter'},
                'metadata': {'pharmacy_id': self.pharmacy.id, 'plan': 'starter'},
            },
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.subscription_status, 'active')
        self.assertIsNone(self.pharmacy.paystack_subscription_code)

    def test_featured_charge_features_product(self):
        medication = TestDataFactory.create_medication(self.pharmacy)
        SubscriptionPayment.objects.create(
            pharmacy=self.pharmacy, purpose='featured', medication=medication, duration_days=7,
            amount=Decimal('1000.00'), paystack_reference='ref-feat'
        )
        self.post_event({
            'event': 'charge.success',
            'data': {
                'reference': 'ref-feat',
                'amount': 100000,
                'customer': {'email': 'billing@pharmacy.test'},
                'metadata': {
                    'pharmacy_id': self.pharmacy.id,
                    'medication_id': medication.id,
                    'duration': 7,
                    'type': 'featured_product',
                },
            },
        })
        medication.refresh_from_db()
        self.assertTrue(medication.is_featured)
        self.assertTrue(medication.is_public)
        self.assertTrue(medication.is_currently_featured)

        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.subscription_status, 'trial')
        self.assertEqual(SubscriptionPayment.objects.get(paystack_reference='ref-feat').status, 'completed')

    def test_subscription_create_stores_code(self):
        self.post_event({
            'event': 'subscription.create',
            'data': {
                'subscription_code': 'SUB_new',
                'email_token': 'tok_new',
                'customer': {'email': 'billing@pharmacy.test'},
            },
        })
        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.paystack_subscription_code, 'SUB_new')

    def test_invoice_payment_failed_expires(self):
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(
            paystack_subscription_code='SUB_fail', subscription_status='active'
        )
        self.post_event({
            'event': 'invoice.payment_failed',
            'data': {'subscription': {'subscription_code': 'SUB_fail'}},
        })
        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.subscription_status, 'expired')

    def test_subscription_disable_cancels(self):
        for event in ('subscription.disable', 'subscription.not_renew'):
            Pharmacy.objects.filter(pk=self.pharmacy.pk).update(
                paystack_subscription_code='SUB_off', subscription_status='active'
            )
            self.post_event({'event': event, 'data': {'subscription_code': 'SUB_off'}})
            self.pharmacy.refresh_from_db()
            self.assertEqual(self.pharmacy.subscription_status, 'cancelled')

    def test_unknown_event_acknowledged(self):
        response = self.post_event({'event': 'transfer.success', 'data': {}})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['handled'])


class ManageSubscriptionAPITests(TestCase):
    """Test owner subscription actions"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.url = '/api/v1/billing/manage-subscription/'

    def test_toggle_auto_renew_without_gateway_subscription(self):
        response = self.client.post(self.url, {'action': 'toggle_auto_renew'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['auto_renew'])
        self.pharmacy.refresh_from_db()
        self.assertFalse(self.pharmacy.auto_renew)
        self.assertTrue(AuditLog.objects.filter(action='subscription_change', pharmacy=self.pharmacy).exists())

    @patch('pharmatrack.billing.paystack.requests.post')
    def test_toggle_ignores_gateway_failure(self, mock_post):
        mock_post.return_value = paystack_response({}, ok=False, status_code=400)
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(
            paystack_subscription_code='SUB_x', paystack_customer_code='CUS_x'
        )
        response = self.client.post(self.url, {'action': 'toggle_auto_renew'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(mock_post.call_args.args[0].endswith('/subscription/disable'))
        self.assertEqual(mock_post.call_args.kwargs['json'], {'code': 'SUB_x', 'token': 'CUS_x'})

    def test_cancel(self):
        response = self.client.post(
            self.url, {'action': 'cancel', 'cancellation_reason': 'Closing the shop'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pharmacy.refresh_from_db()
        self.assertEqual(self.pharmacy.subscription_status, 'cancelled')
        self.assertFalse(self.pharmacy.auto_renew)
        self.assertEqual(self.pharmacy.cancellation_reason, 'Closing the shop')
        self.assertIsNotNone(self.pharmacy.cancelled_at)

    def test_invalid_action(self):
        response = self.client.post(self.url, {'action': 'pause'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid action')

    def test_manager_cannot_manage(self):
        member = TestDataFactory.create_staff(self.pharmacy, role='manager')
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.post(self.url, {'action': 'cancel'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SubscriptionReminderTests(TestCase):
    """Test expiry reminders and lapsing"""

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy(alert_phone='08031112222')
        self.pharmacy.trial_ends_at = timezone.now() + timedelta(days=2, hours=1)
        self.pharmacy.save()

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_reminder_sent_once_per_day(self, mock_post):
        mock_post.return_value = MagicMock(ok=True, status_code=200)
        mock_post.return_value.json.return_value = {'code': 'ok', 'message_id': 'msg-1'}

        reminded = send_subscription_reminders()
        self.assertEqual(len(reminded), 1)
        pharmacy, days_left, sms_sent = reminded[0]
        self.assertEqual(days_left, 3)
        self.assertTrue(sms_sent)

        notification = Notification.objects.get(pharmacy=self.pharmacy, type='subscription')
        self.assertIn('3 Days', notification.title)
        self.assertEqual(SentAlert.objects.get(pharmacy=self.pharmacy).recipient, '2348031112222')

        self.assertEqual(send_subscription_reminders(), [])
        self.assertEqual(Notification.objects.filter(pharmacy=self.pharmacy, type='subscription').count(), 1)

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_sms_failure_still_notifies(self, mock_post):
        mock_post.return_value = MagicMock(ok=False, status_code=400)
        mock_post.return_value.json.return_value = {'message': 'Insufficient balance'}

        reminded = send_subscription_reminders()
        self.assertFalse(reminded[0][2])
        self.assertTrue(Notification.objects.filter(pharmacy=self.pharmacy, type='subscription').exists())
        self.assertEqual(SentAlert.objects.get(pharmacy=self.pharmacy).status, 'failed')

    def test_pharmacies_outside_window_skipped(self):
        self.pharmacy.trial_ends_at = timezone.now() + timedelta(days=10)
        self.pharmacy.save()
        self.assertEqual(send_subscription_reminders(), [])

    def test_expire_lapsed(self):
        self.pharmacy.trial_ends_at = timezone.now() - timedelta(hours=1)
        self.pharmacy.save()
        active = TestDataFactory.create_pharmacy()
        Pharmacy.objects.filter(pk=active.pk).update(
            subscription_status='active', subscription_ends_at=timezone.now() + timedelta(days=20)
        )

        self.assertEqual(expire_lapsed_subscriptions(), 1)
        self.pharmacy.refresh_from_db()
        active.refresh_from_db()
        self.assertEqual(self.pharmacy.subscription_status, 'expired')
        self.assertEqual(active.subscription_status, 'active')
