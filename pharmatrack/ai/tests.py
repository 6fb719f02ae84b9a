"""
Test suite for AI module
Tests: Gemini client retries, action dispatch, caching and insight metrics
"""
import json
from datetime import date
from unittest.mock import patch, MagicMock

import requests
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from pharmatrack.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from pharmatrack.ai.gemini import GeminiClient, AIServiceError, RateLimitError, parse_json_content
from pharmatrack.ai.dispatcher import (
    dispatch, resolve_action, make_action_cache_key, split_data_uri,
    compute_inventory_metrics, summarize_sales, attention_items, UnknownActionError
)

TODAY = date(2026, 3, 1)


def gemini_response(answer=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = ''
    text = json.dumps(answer) if not isinstance(answer, str) else answer
    response.json.return_value = {'candidates': [{'content': {'parts': [{'text': text}]}}]}
    return response


class GeminiClientTests(TestCase):
    """Test the generateContent wrapper"""

    def test_parse_json_content(self):
        self.assertEqual(parse_json_content('```json\n{"ok": true}\n```'), {'ok': True})
        with self.assertRaises(AIServiceError):
            parse_json_content('not json')

    @patch('pharmatrack.ai.gemini.time.sleep')
    @patch('pharmatrack.ai.gemini.requests.post')
    def test_retries_on_rate_limit(self, mock_post, mock_sleep):
        mock_post.side_effect = [
            gemini_response(status_code=429),
            gemini_response(status_code=429),
            gemini_response({'answer': 42}),
        ]
        client = GeminiClient(api_key='key', initial_delay=1.0)
        self.assertEqual(client.generate_json([{'text': 'hi'}]), {'answer': 42})
        self.assertEqual([c[0][0] for c in mock_sleep.call_args_list], [1.0, 2.0])

        body = mock_post.call_args[1]['json']
        self.assertEqual(body['generationConfig']['responseMimeType'], 'application/json')
        self.assertEqual(mock_post.call_args[1]['params'], {'key': 'key'})

    @patch('pharmatrack.ai.gemini.time.sleep')
    @patch('pharmatrack.ai.gemini.requests.post')
    def test_rate_limit_exhausted(self, mock_post, mock_sleep):
        mock_post.return_value = gemini_response(status_code=429)
        client = GeminiClient(api_key='key', max_retries=2)
        with self.assertRaises(RateLimitError):
            client.generate_json([{'text': 'hi'}])
        self.assertEqual(mock_post.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)

    @patch('pharmatrack.ai.gemini.time.sleep')
    @patch('pharmatrack.ai.gemini.requests.post')
    def test_transport_failure(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.ConnectionError('down')
        client = GeminiClient(api_key='key', max_retries=1)
        with self.assertRaises(AIServiceError):
            client.generate_json([{'text': 'hi'}])
        self.assertEqual(mock_post.call_count, 2)

    @patch('pharmatrack.ai.gemini.requests.post')
    def test_error_and_empty_responses(self, mock_post):
        client = GeminiClient(api_key='key')
        mock_post.return_value = gemini_response(status_code=500)
        with self.assertRaises(AIServiceError):
            client.generate_json([{'text': 'hi'}])

        empty = MagicMock(status_code=200, ok=True)
        empty.json.return_value = {'candidates': []}
        mock_post.return_value = empty
        with self.assertRaises(AIServiceError):
            client.generate_json([{'text': 'hi'}])

    def test_missing_api_key(self):
        with self.assertRaises(AIServiceError):
            GeminiClient(api_key='').generate_json([{'text': 'hi'}])


class DispatcherTests(TestCase):
    """Test action resolution, caching and local short-circuits"""

    def setUp(self):
        cache.clear()
        self.client = MagicMock()

    def test_resolve_action(self):
        self.assertEqual(resolve_action('interaction_check'), 'check_drug_interactions')
        self.assertEqual(resolve_action('ai_search'), 'ai_search')
        with self.assertRaises(UnknownActionError):
            resolve_action('write_prescription')

    def test_cache_key_ignores_key_order(self):
        self.assertEqual(
            make_action_cache_key('ai_search', {'a': 1, 'b': 2}),
            make_action_cache_key('ai_search', {'b': 2, 'a': 1}),
        )
        self.assertNotEqual(
            make_action_cache_key('ai_search', {'a': 1}),
            make_action_cache_key('smart_upsell', {'a': 1}),
        )

    def test_single_medication_skips_provider(self):
        result = dispatch('check_drug_interactions', {'medications': [{'name': 'Aspirin'}]}, client=self.client)
        self.assertEqual(result['overall_safety'], 'safe')
        self.client.generate_from_prompt.assert_not_called()

    def test_too_many_medications(self):
        payload = {'medications': [{'name': f'Drug {i}'} for i in range(51)]}
        with self.assertRaises(AIServiceError):
            dispatch('check_drug_interactions', payload, client=self.client)

    def test_results_are_cached(self):
        self.client.generate_from_prompt.return_value = {'interactions': [], 'overall_safety': 'caution'}
        payload = {'medications': [{'name': 'Warfarin'}, {'name': 'Aspirin'}]}
        first = dispatch('interaction_check', payload, client=self.client)
        second = dispatch('check_drug_interactions', payload, client=self.client)
        self.assertEqual(first, second)
        self.assertEqual(self.client.generate_from_prompt.call_count, 1)
        user_content = self.client.generate_from_prompt.call_args[0][1]
        self.assertIn('Warfarin, Aspirin', user_content)

    def test_short_search_query(self):
        result = dispatch('ai_search', {'query': 'a'}, client=self.client)
        self.assertEqual(result['interpretation'], 'Query too short')

    def test_empty_cart_upsell(self):
        result = dispatch('upsell_suggestion', {'cart_items': []}, client=self.client)
        self.assertEqual(result['suggestions'], [])

    def test_upsell_uses_pharmacy_inventory(self):
        pharmacy = TestDataFactory.create_pharmacy()
        TestDataFactory.create_medication(pharmacy, name='Vitamin C', category='Vitamins')
        TestDataFactory.create_medication(pharmacy, name='Paracetamol')
        TestDataFactory.create_medication(pharmacy, name='Old Syrup', expiry_days=-3)
        self.client.generate_from_prompt.return_value = {'suggestions': []}

        dispatch('smart_upsell', {'cart_items': [{'name': 'Paracetamol', 'category': 'Tablet'}]},
                 pharmacy=pharmacy, client=self.client)
        user_content = self.client.generate_from_prompt.call_args[0][1]
        self.assertIn('Vitamin C (Vitamins, ₦100)', user_content)
        self.assertNotIn('Old Syrup', user_content)
        self.assertNotIn('Paracetamol (Tablet, ', user_content)

    def test_scan_invoice_requires_image(self):
        with self.assertRaises(AIServiceError):
            dispatch('scan_invoice', {}, client=self.client)

    def test_scan_invoice_lifts_nested_items(self):
        self.client.generate_json.return_value = {'result': {'items': [{'name': 'Zinc'}]}}
        result = dispatch('scan_invoice', {'image_base64': 'data:image/png;base64,QUJD'}, client=self.client)
        self.assertEqual(result['items'], [{'name': 'Zinc'}])
        inline = self.client.generate_json.call_args[0][0][1]['inlineData']
        self.assertEqual(inline, {'mimeType': 'image/png', 'data': 'QUJD'})

    def test_split_data_uri(self):
        self.assertEqual(split_data_uri('data:image/webp;base64,AAA'), ('image/webp', 'AAA'))
        self.assertEqual(split_data_uri('AAA'), ('image/jpeg', 'AAA'))


class InsightMetricTests(TestCase):
    """Test the numbers computed before calling the model"""

    def setUp(self):
        self.medications = [
            {'name': 'Amoxil', 'category': 'Capsule', 'current_stock': 10, 'reorder_level': 5,
             'expiry_date': '2026-02-20', 'selling_price': 500},
            {'name': 'Zinc', 'category': 'Tablet', 'current_stock': 0, 'reorder_level': 10,
             'expiry_date': '2027-01-01', 'selling_price': 200},
            {'name': 'Vitamin C', 'category': 'Vitamins', 'current_stock': 20, 'reorder_level': 5,
             'expiry_date': '2026-03-15', 'selling_price': None, 'unit_price': 100},
            {'name': 'Ibuprofen', 'category': 'Tablet', 'current_stock': 100, 'reorder_level': 10,
             'expiry_date': '2027-06-01', 'selling_price': 50},
        ]

    def test_compute_inventory_metrics(self):
        metrics = compute_inventory_metrics(self.medications, TODAY)
        self.assertEqual(metrics['total_products'], 4)
        self.assertEqual(metrics['total_inventory_value'], 12000.0)
        self.assertEqual(metrics['expired'], 1)
        self.assertEqual(metrics['expiring_30_days'], 1)
        self.assertEqual(metrics['low_stock'], 1)
        self.assertEqual(metrics['out_of_stock'], 1)
        self.assertEqual(metrics['top_categories'][0], {'category': 'Capsule', 'value': 5000.0})

    def test_summarize_sales(self):
        summary = summarize_sales([{'total_price': 1000}, {'total': '500'}])
        self.assertEqual(summary, {'transactions': 2, 'revenue': 1500.0, 'average_transaction': 750.0})
        self.assertEqual(summarize_sales([])['average_transaction'], 0.0)

    def test_attention_items(self):
        lines = attention_items(self.medications, TODAY)
        self.assertEqual(lines, [
            'Amoxil: EXPIRED',
            'Zinc: OUT OF STOCK',
            'Vitamin C: expires in 14 days',
        ])


class PharmacyAIAPITests(TestCase):
    """Test the AI endpoint"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.pharmacy = TestDataFactory.create_pharmacy(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_actions(self):
        response = self.client.get('/api/v1/ai/actions/')
        self.assertIn('scan_invoice', response.data['actions'])
        self.assertEqual(response.data['aliases']['business_analysis'], 'generate_insights')

    def test_missing_and_unknown_action(self):
        response = self.client.post('/api/v1/ai/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/ai/', {'action': 'diagnose'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(response.data['action_failed'])

    def test_payload_must_be_object(self):
        response = self.client.post('/api/v1/ai/', {'action': 'ai_search', 'payload': ['x']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch('pharmatrack.ai.gemini.requests.post')
    def test_generate_insights(self, mock_post):
        TestDataFactory.create_medication(self.pharmacy, name='Zinc', stock=2)
        medication = TestDataFactory.create_medication(self.pharmacy, name='Amoxil', stock=50)
        TestDataFactory.create_sale(self.pharmacy, self.owner, medication, quantity=2)
        mock_post.return_value = gemini_response({'summary': 'Healthy', 'insights': []})

        response = self.client.post('/api/v1/ai/', {'action': 'business_analysis'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary'], 'Healthy')
        self.assertEqual(response.data['computed_metrics']['sales']['transactions'], 1)
        self.assertEqual(response.data['computed_metrics']['low_stock'], 1)

        prompt = mock_post.call_args[1]['json']['contents'][0]['parts'][0]['text']
        self.assertIn('Zinc: low stock', prompt)

    @patch('pharmatrack.ai.gemini.time.sleep')
    @patch('pharmatrack.ai.gemini.requests.post')
    def test_rate_limited(self, mock_post, mock_sleep):
        mock_post.return_value = gemini_response(status_code=429)
        response = self.client.post('/api/v1/ai/', {
            'action': 'ai_search', 'payload': {'query': 'something for malaria'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)

    @patch('pharmatrack.ai.gemini.requests.post')
    def test_provider_error(self, mock_post):
        mock_post.return_value = gemini_response(status_code=503)
        response = self.client.post('/api/v1/ai/', {
            'action': 'ai_search', 'payload': {'query': 'cough syrup for kids'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    def test_non_member(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_user())
        response = client.post('/api/v1/ai/', {'action': 'ai_search'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
