from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect
from support import make_session_factory

from smartshelf.auth import issue_token
from smartshelf.db import get_db
from smartshelf.main import create_app
from smartshelf.routers.catalog import get_catalog_client


class ApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, session_factory = make_session_factory()

        def _get_db():
            with session_factory() as db:
                yield db

        self.app = create_app(create_tables=False)
        self.app.dependency_overrides[get_db] = _get_db
        self.client = TestClient(self.app)
        self.token = issue_token('clerk@example.com')
        self.headers = {'Authorization': f'Bearer {self.token}'}

    def tearDown(self) -> None:
        self.client.close()
        self.engine.dispose()

    def _create_item(self, **overrides) -> dict:
        body = {'sku': 'W-1', 'name': 'Widget', 'quantity': 10, 'price': '3.20'}
        body.update(overrides)
        response = self.client.post('/api/inventory', json=body, headers=self.headers)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_health_is_public_and_has_security_headers(self) -> None:
        response = self.client.get('/api/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')
        self.assertEqual(response.headers['X-Content-Type-Options'], 'nosniff')

    def test_protected_routes_require_token(self) -> None:
        response = self.client.get('/api/inventory')
        self.assertEqual(response.status_code, 401)
        self.assertIn('error', response.json())

        response = self.client.get('/api/inventory', headers={'Authorization': 'Bearer nonsense'})
        self.assertEqual(response.status_code, 403)

    def test_query_token_is_accepted(self) -> None:
        response = self.client.get(f'/api/pallets?token={self.token}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['pallets'], [])

    def test_item_lifecycle(self) -> None:
        created = self._create_item(minQuantity=2, metadata={'color': 'red'})
        self.assertEqual(created['price'], '3.20')
        self.assertEqual(created['minQuantity'], 2)
        self.assertEqual(created['metadata'], {'color': 'red'})
        self.assertIsNone(created['pallet'])

        response = self.client.patch(
            f"/api/inventory/{created['id']}/quantity",
            json={'quantity': 4, 'operation': 'subtract'},
            headers=self.headers,
        )
        self.assertEqual(response.json()['quantity'], 6)

        response = self.client.get('/api/inventory?search=widg&sortBy=sku&sortOrder=ASC', headers=self.headers)
        body = response.json()
        self.assertEqual([item['sku'] for item in body['items']], ['W-1'])
        self.assertEqual(body['pagination'], {'total': 1, 'page': 1, 'limit': 50, 'totalPages': 1})

        response = self.client.delete(f"/api/inventory/{created['id']}", headers=self.headers)
        self.assertEqual(response.json(), {'message': 'Item deleted successfully', 'id': created['id']})
        response = self.client.get(f"/api/inventory/{created['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 404)

    def test_error_mapping(self) -> None:
        self._create_item()
        response = self.client.post('/api/inventory', json={'sku': 'W-1', 'name': 'Dup'}, headers=self.headers)
        self.assertEqual(response.status_code, 409)

        response = self.client.post('/api/inventory', json={'sku': 'W-2', 'name': 'Neg', 'quantity': -1}, headers=self.headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['fields'], ['quantity'])

        response = self.client.post(
            '/api/inventory', json={'sku': 'W-3', 'name': 'Extra', 'colour': 'red'}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['fields'], ['colour'])

        response = self.client.get('/api/inventory?sortBy=secret', headers=self.headers)
        self.assertEqual(response.status_code, 400)

    def test_insufficient_stock_leaves_quantity(self) -> None:
        created = self._create_item(quantity=3)
        response = self.client.patch(
            f"/api/inventory/{created['id']}/quantity",
            json={'quantity': 4, 'operation': 'subtract'},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.get(f"/api/inventory/{created['id']}", headers=self.headers)
        self.assertEqual(response.json()['quantity'], 3)

    def test_stats_summary(self) -> None:
        self._create_item(quantity=1, minQuantity=5)
        response = self.client.get('/api/inventory/stats/summary', headers=self.headers)
        self.assertEqual(
            response.json(),
            {'totalItems': 1, 'activeItems': 1, 'lowStockItems': 1, 'totalValue': '3.20'},
        )

    def test_pallet_assignment_and_delete_guard(self) -> None:
        item = self._create_item()
        pallet = self.client.post('/api/pallets', json={'palletNumber': 'PAL-1'}, headers=self.headers).json()

        response = self.client.post(f"/api/pallets/{pallet['id']}/items/{item['id']}", headers=self.headers)
        self.assertEqual(response.json()['item']['palletId'], pallet['id'])

        detail = self.client.get(f"/api/pallets/{pallet['id']}", headers=self.headers).json()
        self.assertEqual([entry['sku'] for entry in detail['items']], ['W-1'])

        response = self.client.delete(f"/api/pallets/{pallet['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 409)

        self.client.delete(f"/api/pallets/{pallet['id']}/items/{item['id']}", headers=self.headers)
        response = self.client.delete(f"/api/pallets/{pallet['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 200)

    def test_logs_record_actor_and_cleanup(self) -> None:
        created = self._create_item()
        body = self.client.get('/api/logs?action=CREATE', headers=self.headers).json()
        self.assertEqual(len(body['logs']), 1)
        entry = body['logs'][0]
        self.assertEqual(entry['entityId'], created['id'])
        self.assertEqual(entry['actor'], 'clerk@example.com')

        single = self.client.get(f"/api/logs/{entry['id']}", headers=self.headers).json()
        self.assertEqual(single['action'], 'CREATE')

        response = self.client.delete('/api/logs/cleanup?days=30', headers=self.headers)
        self.assertEqual(response.json()['deletedCount'], 0)

        stats = self.client.get('/api/logs/stats/summary', headers=self.headers).json()
        self.assertEqual(stats['totalLogs'], 2)

        response = self.client.get('/api/logs?startDate=yesterday', headers=self.headers)
        self.assertEqual(response.status_code, 400)

    def test_auth_routes(self) -> None:
        response = self.client.post('/api/auth/verify', json={'token': self.token})
        self.assertEqual(response.json()['user']['email'], 'clerk@example.com')

        response = self.client.post('/api/auth/verify', json={})
        self.assertEqual(response.status_code, 400)

        response = self.client.post('/api/auth/verify', json={'token': 'bogus'})
        self.assertEqual(response.status_code, 401)

        response = self.client.get('/api/auth/me', headers=self.headers)
        self.assertEqual(response.json()['user']['email'], 'clerk@example.com')

        response = self.client.post('/api/auth/refresh', headers=self.headers)
        self.assertIn('token', response.json())

    def test_catalog_routes_use_injected_client(self) -> None:
        catalog = MagicMock()
        catalog.list_products.return_value = [
            {'id': 1, 'title': 'Mug', 'variants': [{'id': 11, 'sku': 'MUG-1', 'price': '7.00', 'inventory_quantity': 2}]},
        ]
        self.app.dependency_overrides[get_catalog_client] = lambda: catalog

        response = self.client.post('/api/shopify/sync', headers=self.headers)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()['results'], {'created': 1, 'updated': 0, 'errors': []})

        response = self.client.get('/api/inventory?search=MUG', headers=self.headers)
        self.assertEqual(response.json()['items'][0]['externalVariantId'], '11')

    def test_catalog_without_credentials_is_rejected(self) -> None:
        response = self.client.post('/api/shopify/sync', headers=self.headers)
        self.assertEqual(response.status_code, 400)

    def test_live_updates_stream_events(self) -> None:
        with self.client.websocket_connect(f'/ws?token={self.token}') as websocket:
            created = self._create_item()
            message = websocket.receive_json()
        self.assertEqual(message['event'], 'inventory:created')
        self.assertEqual(message['data']['id'], created['id'])
        self.assertEqual(self.app.state.publisher.subscriber_count, 0)

    def test_live_updates_reject_bad_token(self) -> None:
        with self.assertRaises(WebSocketDisconnect):
            with self.client.websocket_connect('/ws?token=bogus'):
                pass


if __name__ == '__main__':
    unittest.main()
