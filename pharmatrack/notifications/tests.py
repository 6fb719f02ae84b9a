"""
Test suite for Notifications module
Tests: Termii client, alert templates, alert engine and notification endpoints
"""
from datetime import date, timedelta
from io import StringIO
from unittest.mock import patch, MagicMock

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.core.models import AuditLog
from pharmatrack.catalog.models import Medication
from pharmatrack.pharmacies.models import Pharmacy, Branch
from pharmatrack.notifications.models import Notification, SentAlert
from pharmatrack.notifications.services import (
    create_notification, run_alert_engine, send_alert, send_daily_summary
)
from pharmatrack.notifications.templates import build_alert_message, build_daily_digest
from pharmatrack.notifications.termii import (
    TermiiError, format_phone_number, get_sender_id, send_sms, send_whatsapp
)


def termii_response(ok=True, payload=None):
    response = MagicMock()
    response.ok = ok
    response.status_code = 200 if ok else 400
    response.json.return_value = payload if payload is not None else {
        'code': 'ok', 'message_id': 'TM-1001', 'balance': 420,
    }
    return response


class TermiiClientTests(TestCase):
    """Test phone formatting, sender ids and provider calls"""

    def test_format_phone_number(self):
        self.assertEqual(format_phone_number('0803 123 4567'), '2348031234567')
        self.assertEqual(format_phone_number('+2348031234567'), '2348031234567')
        self.assertEqual(format_phone_number('447700900123'), '447700900123')

    def test_sender_id(self):
        pharmacy = Pharmacy(name='HealthPlus Lekki Branch')
        self.assertEqual(get_sender_id(pharmacy), 'HealthPlus')
        pharmacy.termii_sender_id = 'HPLUS'
        self.assertEqual(get_sender_id(pharmacy), 'HPLUS')
        self.assertEqual(get_sender_id(None), 'PharmaTrack')

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_send_sms(self, mock_post):
        mock_post.return_value = termii_response()
        data = send_sms('08031234567', 'Hello', 'HPLUS')
        self.assertEqual(data['message_id'], 'TM-1001')

        url = mock_post.call_args[0][0]
        payload = mock_post.call_args[1]['json']
        self.assertTrue(url.endswith('/sms/send'))
        self.assertEqual(payload['to'], '2348031234567')
        self.assertEqual(payload['from'], 'HPLUS')
        self.assertEqual(payload['channel'], 'generic')
        self.assertEqual(payload['api_key'], 'test-termii-key')

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_send_whatsapp(self, mock_post):
        mock_post.return_value = termii_response()
        send_whatsapp('08031234567', 'Hello', 'HPLUS')
        payload = mock_post.call_args[1]['json']
        self.assertTrue(mock_post.call_args[0][0].endswith('/api/send'))
        self.assertEqual(payload['channel'], 'whatsapp')
        self.assertEqual(payload['device_id'], 'test-device')

    @override_settings(TERMII_WHATSAPP_DEVICE_ID='')
    @patch('pharmatrack.notifications.termii.requests.post')
    def test_whatsapp_requires_device(self, mock_post):
        with self.assertRaises(TermiiError):
            send_whatsapp('08031234567', 'Hello', 'HPLUS')
        mock_post.assert_not_called()

    @override_settings(TERMII_API_KEY='')
    def test_missing_api_key(self):
        with self.assertRaises(TermiiError):
            send_sms('08031234567', 'Hello', 'HPLUS')

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_provider_rejection(self, mock_post):
        mock_post.return_value = termii_response(ok=False, payload={'message': 'Insufficient balance'})
        with self.assertRaises(TermiiError) as ctx:
            send_sms('08031234567', 'Hello', 'HPLUS')
        self.assertEqual(str(ctx.exception), 'Insufficient balance')
        self.assertEqual(ctx.exception.status_code, 400)


class TemplateTests(TestCase):
    """Test alert message bodies"""

    def test_expiring(self):
        body = build_alert_message('expiring', 'HealthPlus', item_name='Amoxil', item_value=12500, days_left=5)
        self.assertIn('Product: Amoxil', body)
        self.assertIn('Days Left: 5 days', body)
        self.assertIn('₦12,500.00', body)

    def test_low_stock_default_reorder(self):
        body = build_alert_message('low_stock', 'HealthPlus', item_name='Zinc', current_stock=3)
        self.assertIn('3 units left', body)
        self.assertIn('Suggested Reorder: 50 units', body)

    def test_custom_and_unknown(self):
        self.assertEqual(build_alert_message('custom', 'HealthPlus', message='Hi'), '📢 HealthPlus Alert\n\nHi')
        self.assertEqual(build_alert_message('weird', None, message='Hi'), '📢 PharmaTrack Alert\n\nHi')

    def test_daily_digest(self):
        today = date(2026, 3, 2)
        expiring = [
            Medication(name=f'Item {i}', expiry_date=today + timedelta(days=i), current_stock=2,
                       selling_price=100, unit_price=50)
            for i in range(5)
        ]
        low = [Medication(name='Zinc', current_stock=1)]
        digest = build_daily_digest(None, expiring, low, today)
        self.assertIn('5 Items Expiring Soon', digest)
        self.assertIn('• Item 0: EXPIRED (₦200.00)', digest)
        self.assertIn('• Item 1: 1 days (₦200.00)', digest)
        self.assertIn('...and 2 more', digest)
        self.assertIn('• Zinc: 1 left', digest)


class AlertEngineTests(TestCase):
    """Test notification generation"""

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy()

    def test_run_alert_engine(self):
        TestDataFactory.create_medication(self.pharmacy, name='Expired', stock=5, expiry_days=-1, reorder_level=0)
        TestDataFactory.create_medication(self.pharmacy, name='Expiring', stock=50, expiry_days=5)
        TestDataFactory.create_medication(self.pharmacy, name='Low', stock=3)
        TestDataFactory.create_medication(self.pharmacy, name='Healthy', stock=50)

        counts = run_alert_engine(self.pharmacy)
        self.assertEqual(counts, {'expired': 1, 'expiring': 1, 'low_stock': 1})

        expiring = Notification.objects.get(type='expiring')
        self.assertEqual(expiring.priority, 'high')
        self.assertEqual(expiring.metadata['days_left'], 5)
        self.assertEqual(Notification.objects.get(type='expired').priority, 'critical')
        self.assertIsNone(Medication.objects.get(name='Healthy').last_notified_at)

        counts = run_alert_engine(self.pharmacy)
        self.assertEqual(counts, {'expired': 0, 'expiring': 0, 'low_stock': 0})

    def test_renotify_after_a_day(self):
        TestDataFactory.create_medication(self.pharmacy, name='Low', stock=3)
        run_alert_engine(self.pharmacy)
        counts = run_alert_engine(self.pharmacy, now=timezone.now() + timedelta(hours=25))
        self.assertEqual(counts['low_stock'], 1)
        self.assertEqual(Notification.objects.filter(type='low_stock').count(), 2)

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_send_alert_records_failure(self, mock_post):
        mock_post.return_value = termii_response(ok=False, payload={'message': 'Invalid sender'})
        with self.assertRaises(TermiiError):
            send_alert(self.pharmacy, 'custom', '08031234567', message='Hello')
        alert = SentAlert.objects.get()
        self.assertEqual(alert.status, 'failed')
        self.assertEqual(alert.error_message, 'Invalid sender')
        self.assertEqual(alert.recipient, '2348031234567')

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_daily_summary(self, mock_post):
        mock_post.return_value = termii_response()
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(alert_phone='08099998888')
        self.pharmacy.refresh_from_db()
        TestDataFactory.create_medication(self.pharmacy, name='Low', stock=3)

        alert = send_daily_summary(self.pharmacy)
        self.assertEqual(alert.alert_type, 'daily_summary')
        self.assertEqual(alert.recipient, '2348099998888')
        self.assertIn('1 Items Low on Stock', alert.message)

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_daily_summary_skips_when_nothing_to_report(self, mock_post):
        TestDataFactory.create_medication(self.pharmacy, name='Healthy', stock=50)
        self.assertIsNone(send_daily_summary(self.pharmacy))
        mock_post.assert_not_called()


class NotificationAPITests(TestCase):
    """Test notification and alert endpoints"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.main = Branch.objects.get(pharmacy=self.pharmacy, is_main=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_list_and_mark_read(self):
        first = create_notification(self.pharmacy, 'system', 'Welcome', 'Hello')
        create_notification(self.pharmacy, 'low_stock', 'Zinc low', 'Zinc', priority='high')

        response = self.client.get('/api/v1/notifications/', {'type': 'low_stock'})
        self.assertEqual([n['title'] for n in response.data], ['Zinc low'])

        response = self.client.get('/api/v1/notifications/unread-count/')
        self.assertEqual(response.data['unread_count'], 2)

        response = self.client.post(f'/api/v1/notifications/{first.id}/read/')
        self.assertTrue(response.data['is_read'])

        response = self.client.post('/api/v1/notifications/mark-all-read/')
        self.assertEqual(response.data['updated'], 1)

    def test_staff_see_own_branch_only(self):
        ikeja = TestDataFactory.create_branch(self.pharmacy, name='Ikeja')
        create_notification(self.pharmacy, 'system', 'Everyone', 'x')
        create_notification(self.pharmacy, 'system', 'Main only', 'x', branch=self.main)
        create_notification(self.pharmacy, 'system', 'Ikeja only', 'x', branch=ikeja)

        member = TestDataFactory.create_staff(self.pharmacy, branch=ikeja)
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.get('/api/v1/notifications/')
        self.assertEqual(sorted(n['title'] for n in response.data), ['Everyone', 'Ikeja only'])

    def test_foreign_notification(self):
        foreign = create_notification(TestDataFactory.create_pharmacy(), 'system', 'Other', 'x')
        response = self.client.post(f'/api/v1/notifications/{foreign.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_send_alert(self, mock_post):
        mock_post.return_value = termii_response()
        response = self.client.post('/api/v1/alerts/send/', {
            'alert_type': 'low_stock',
            'item_name': 'Zinc',
            'current_stock': 2,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message_id'], 'TM-1001')
        self.assertEqual(response.data['balance'], 420)
        self.assertEqual(mock_post.call_args[1]['json']['to'], '2348031234567')
        self.assertTrue(AuditLog.objects.filter(action='alert_sent').exists())

        response = self.client.get('/api/v1/alerts/')
        self.assertEqual(len(response.data), 1)

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_send_alert_provider_error(self, mock_post):
        mock_post.return_value = termii_response(ok=False, payload={'message': 'Insufficient balance'})
        response = self.client.post('/api/v1/alerts/send/', {
            'alert_type': 'custom', 'message': 'Restock today',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(SentAlert.objects.get().status, 'failed')

    def test_custom_alert_requires_message(self):
        response = self.client.post('/api/v1/alerts/send/', {'alert_type': 'custom'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_recipient(self):
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(phone=None, alert_phone=None)
        response = self.client.post('/api/v1/alerts/send/', {
            'alert_type': 'custom', 'message': 'Hi',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Missing recipient phone')

    def test_staff_cannot_send_alerts(self):
        member = TestDataFactory.create_staff(self.pharmacy, permissions=['view_dashboard'])
        client = AuthenticatedAPIClient()
        client.authenticate_user(member.user)
        response = client.post('/api/v1/alerts/send/', {'alert_type': 'custom', 'message': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_run_alerts(self):
        TestDataFactory.create_medication(self.pharmacy, name='Low', stock=1)
        response = self.client.post('/api/v1/notifications/run-alerts/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['low_stock'], 1)


class RunAlertEngineCommandTests(TestCase):

    def setUp(self):
        self.pharmacy = TestDataFactory.create_pharmacy(name='HealthPlus Lekki')
        TestDataFactory.create_medication(self.pharmacy, name='Low', stock=3)

    def test_command_creates_notifications(self):
        out = StringIO()
        call_command('run_alert_engine', stdout=out)
        self.assertIn('HealthPlus Lekki: 0 expired, 0 expiring, 1 low stock', out.getvalue())
        self.assertEqual(Notification.objects.filter(pharmacy=self.pharmacy, type='low_stock').count(), 1)

    def test_inactive_subscription_skipped(self):
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(subscription_status='expired')
        out = StringIO()
        call_command('run_alert_engine', pharmacy=self.pharmacy.id, stdout=out)
        self.assertIn('subscription inactive, skipped', out.getvalue())
        self.assertFalse(Notification.objects.exists())

    @patch('pharmatrack.notifications.termii.requests.post')
    def test_send_summary(self, mock_post):
        mock_post.return_value = termii_response()
        Pharmacy.objects.filter(pk=self.pharmacy.pk).update(alert_phone='08099998888')
        out = StringIO()
        call_command('run_alert_engine', '--send-summary', stdout=out)
        self.assertIn('Daily summary sent to 2348099998888', out.getvalue())
        self.assertTrue(SentAlert.objects.filter(alert_type='daily_summary', status='sent').exists())
