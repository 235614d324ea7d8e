"""HTTP surface: envelope, auth, camelCase wire format and localized errors."""
from datetime import timedelta

import pytest

from tradeflow.models import Order
from tradeflow.utils.dates import utcnow


class TestEnvelopeAndAuth:

    def test_missing_token(self, client, session, tenant1):
        response = client.get('/customer-portal/cart')
        assert response.status_code == 401
        body = response.get_json()
        assert body['success'] is False
        assert body['error']['code'] == 'UNAUTHORIZED'

    def test_garbage_token(self, client, session, tenant1):
        response = client.get('/customer-portal/cart', headers={'Authorization': 'Bearer nope'})
        assert response.status_code == 401
        assert response.get_json()['error']['details']['reason'] == 'Invalid token'

    def test_staff_token_on_portal(self, client, session, rep_headers):
        response = client.get('/customer-portal/cart', headers=rep_headers)
        assert response.status_code == 403
        assert response.get_json()['error']['code'] == 'FORBIDDEN'

    def test_customer_token_on_warehouse(self, client, session, customer_headers):
        response = client.get('/warehouse/receiving', headers=customer_headers)
        assert response.status_code == 403

    def test_unknown_route(self, client, session):
        response = client.get('/nowhere')
        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'NOT_FOUND'

    def test_non_object_body(self, client, session, customer_headers):
        response = client.post('/customer-portal/orders', json=[1, 2], headers=customer_headers)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'VALIDATION_ERROR'

    def test_metrics_endpoint(self, client, session):
        client.get('/nowhere')
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'http_requests_total' in response.data


class TestPortalApi:

    def test_cart_and_checkout_flow(self, client, session, customer_headers, product_a, auto_percent):
        product_id = product_a.id
        discount_id = auto_percent.id

        response = client.put('/customer-portal/cart', headers=customer_headers,
                              json={'items': [{'productId': product_id, 'quantity': 2}]})
        assert response.status_code == 200
        cart = response.get_json()['data']
        assert cart['subtotal'] == 100000.0
        assert cart['discountSource'] == 'auto'
        assert cart['discount']['discountId'] == discount_id
        assert cart['items'][0]['unitPrice'] == 50000.0

        response = client.post('/customer-portal/orders', headers=customer_headers, json={
            'items': [{'productId': product_id, 'quantity': 2, 'unitPrice': 1}],
            'deliveryAddress': '12 Navoi St',
        })
        assert response.status_code == 201
        order = response.get_json()['data']
        assert order['status'] == 'pending'
        assert order['totalAmount'] == 90000.0
        assert order['orderNumber'].startswith('AC01')

        response = client.get('/customer-portal/cart', headers=customer_headers)
        assert response.get_json()['data']['items'] == []

        response = client.get('/customer-portal/orders', headers=customer_headers)
        body = response.get_json()
        assert body['meta'] == {'page': 1, 'limit': 20, 'total': 1, 'totalPages': 1, 'hasMore': False}
        assert body['data'][0]['id'] == order['orderId']

        response = client.get(f"/customer-portal/orders/{order['orderId']}", headers=customer_headers)
        detail = response.get_json()['data']
        assert detail['items'][0]['productName'] == 'Green Tea 100g'
        assert detail['history'][0]['toStatus'] == 'pending'

    def test_empty_checkout_localized(self, client, session, auth_headers, tenant1, customer1):
        headers = auth_headers(1001, tenant1.id, 'customer', customer_id=customer1.id, locale='ru-RU,ru;q=0.9')
        response = client.post('/customer-portal/orders', headers=headers, json={'items': []})
        assert response.status_code == 400
        error = response.get_json()['error']
        assert error['code'] == 'EMPTY_CART'
        assert error['message'] != 'Your cart is empty'
        assert error['details']['reason'] == 'Cart is empty'

    @pytest.mark.parametrize('accept_language, message', [
        ('ru;q=0, en;q=0.5', 'Your cart is empty'),
        ('ru;q=0', 'Your cart is empty'),
        ('fr-FR,uz;q=0.5', "Savatingiz bo'sh"),
        ('de', 'Your cart is empty'),
    ])
    def test_locale_negotiation(self, client, session, auth_headers, tenant1, customer1,
                                accept_language, message):
        headers = auth_headers(1001, tenant1.id, 'customer', customer_id=customer1.id, locale=accept_language)
        response = client.post('/customer-portal/orders', headers=headers, json={'items': []})
        assert response.get_json()['error']['message'] == message

    def test_insufficient_stock_details(self, client, session, customer_headers, product_b):
        product_id = product_b.id
        response = client.post('/customer-portal/orders', headers=customer_headers, json={
            'items': [{'productId': product_id, 'quantity': 9}], 'deliveryAddress': 'x'
        })
        assert response.status_code == 409
        error = response.get_json()['error']
        assert error['code'] == 'INSUFFICIENT_STOCK'
        assert error['details']['available'] == 5
        assert error['details']['productId'] == product_id

    def test_order_limit(self, client, session, customer_headers, product_a):
        """TestingConfig allows three open orders."""
        payload = {'items': [{'productId': product_a.id, 'quantity': 1}], 'deliveryAddress': 'x'}
        for _ in range(3):
            assert client.post('/customer-portal/orders', headers=customer_headers, json=payload).status_code == 201
        response = client.post('/customer-portal/orders', headers=customer_headers, json=payload)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'ORDER_LIMIT_REACHED'

    def test_cancel_and_reorder(self, client, session, customer_headers, product_a):
        product_id = product_a.id
        created = client.post('/customer-portal/orders', headers=customer_headers, json={
            'items': [{'productId': product_id, 'quantity': 2}], 'deliveryAddress': 'x'
        }).get_json()['data']

        response = client.post(f"/customer-portal/reorder/{created['orderId']}", headers=customer_headers)
        assert response.status_code == 201
        reorder = response.get_json()['data']
        assert reorder['skipped'] == []

        response = client.post(f"/customer-portal/orders/{created['orderId']}/cancel", headers=customer_headers,
                               json={'reason': 'Duplicate'})
        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'cancelled'

        response = client.post(f"/customer-portal/orders/{created['orderId']}/cancel", headers=customer_headers)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'ORDER_NOT_CANCELLABLE'

        assert session.query(Order).count() == 2

    def test_validate_discount_code(self, client, session, customer_headers, product_a, promo_code):
        product_id = product_a.id
        response = client.post('/customer-portal/discounts/validate', headers=customer_headers, json={
            'code': 'spring', 'items': [{'productId': product_id, 'quantity': 1}]
        })
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['discountAmount'] == 15000.0
        assert data['newTotal'] == 35000.0

        response = client.post('/customer-portal/discounts/validate', headers=customer_headers, json={
            'code': 'spring', 'cartTotal': 5000
        })
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'MIN_ORDER_AMOUNT'

        response = client.post('/customer-portal/discounts/validate', headers=customer_headers, json={
            'code': 'missing', 'cartTotal': 5000
        })
        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'DISCOUNT_NOT_FOUND'

    def test_preview_without_match_is_null(self, client, session, customer_headers, auto_percent):
        response = client.post('/customer-portal/discounts/preview', headers=customer_headers,
                               json={'cartTotal': 1000, 'itemCount': 1})
        assert response.status_code == 200
        assert response.get_json()['data'] is None

    def test_available_discounts(self, client, session, customer_headers, auto_percent, promo_code):
        response = client.get('/customer-portal/discounts/available', headers=customer_headers)
        names = [d['name'] for d in response.get_json()['data']]
        assert names == ['Ten percent', 'Spring promo']

    def test_cart_code_lifecycle(self, client, session, customer_headers, product_a, promo_code):
        product_id = product_a.id
        client.put('/customer-portal/cart', headers=customer_headers,
                   json={'items': [{'productId': product_id, 'quantity': 1}]})

        data = client.post('/customer-portal/cart/discount', headers=customer_headers,
                           json={'code': 'SPRING'}).get_json()['data']
        assert data['appliedCode'] == 'SPRING'
        assert data['total'] == 35000.0

        data = client.put('/customer-portal/cart', headers=customer_headers,
                          json={'items': [{'productId': product_id, 'quantity': 2}]}).get_json()['data']
        assert data['discountInvalidated'] is True
        assert data['appliedCode'] is None

        data = client.delete('/customer-portal/cart/discount', headers=customer_headers).get_json()['data']
        assert data['discount'] is None


class TestDiscountAdminApi:

    def test_admin_creates_discount(self, client, session, admin_headers):
        response = client.post('/discounts', headers=admin_headers, json={
            'name': 'Weekend', 'type': 'percentage', 'value': 5, 'minQty': 3,
            'expiresAt': (utcnow() + timedelta(days=2)).isoformat(),
        })
        assert response.status_code == 201
        created = response.get_json()['data']
        assert created['isAutomatic'] is True
        assert created['minQty'] == 3

        response = client.patch(f"/discounts/{created['id']}", headers=admin_headers, json={'active': False})
        assert response.get_json()['data']['active'] is False

        response = client.get('/discounts', headers=admin_headers)
        assert len(response.get_json()['data']) == 1

    def test_rep_cannot_manage_discounts(self, client, session, rep_headers):
        response = client.post('/discounts', headers=rep_headers, json={'name': 'x'})
        assert response.status_code == 403


class TestVisitsApi:

    def test_visit_flow(self, client, session, rep_headers, customer1):
        customer_id = customer1.id
        planned = (utcnow().date() + timedelta(days=1)).isoformat()

        response = client.post('/visits', headers=rep_headers, json={
            'customerId': customer_id, 'plannedDate': planned, 'plannedTime': '10:00'
        })
        assert response.status_code == 201
        visit = response.get_json()['data']
        assert visit['status'] == 'planned'
        assert visit['customerName'] == 'Corner Shop'

        response = client.patch(f"/visits/{visit['id']}/start", headers=rep_headers, json={})
        assert response.get_json()['data']['status'] == 'in_progress'

        response = client.patch(f"/visits/{visit['id']}/start", headers=rep_headers, json={})
        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'INVALID_STATUS_TRANSITION'

        response = client.patch(f"/visits/{visit['id']}/complete", headers=rep_headers,
                                json={'outcome': 'no_order', 'outcomeNotes': 'Owner away'})
        assert response.get_json()['data']['status'] == 'completed'

        response = client.get(f'/visits/today?date={planned}', headers=rep_headers)
        data = response.get_json()['data']
        assert data['stats']['completed'] == 1
        assert data['visits'][0]['outcome'] == 'no_order'

        response = client.get(f'/visits/stats?date={planned}', headers=rep_headers)
        stats = response.get_json()['data']
        assert stats['today'] == {'total': 1, 'completed': 1, 'inProgress': 0}
        assert stats['thisWeek']['completed'] >= 1
        assert stats['thisWeek']['ordersPlaced'] == 0

    def test_quick_visit_missing_outcome(self, client, session, rep_headers, customer1):
        response = client.post('/visits', headers=rep_headers, json={'mode': 'quick', 'customerId': customer1.id})
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'MISSING_REQUIRED_FIELD'

    def test_supervisor_non_numeric_rep(self, client, session, auth_headers, tenant1, customer1):
        headers = auth_headers(5001, tenant1.id, 'supervisor')
        planned = (utcnow().date() + timedelta(days=1)).isoformat()
        response = client.post('/visits', headers=headers, json={
            'customerId': customer1.id, 'plannedDate': planned, 'salesRepId': 'abc'
        })
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'VALIDATION_ERROR'

    def test_other_rep_forbidden(self, client, session, rep_headers, auth_headers, tenant1, customer1):
        tenant_id, customer_id = tenant1.id, customer1.id
        planned = (utcnow().date() + timedelta(days=1)).isoformat()
        visit = client.post('/visits', headers=rep_headers, json={
            'customerId': customer_id, 'plannedDate': planned
        }).get_json()['data']

        other = auth_headers(2999, tenant_id, 'sales_rep')
        response = client.patch(f"/visits/{visit['id']}/cancel", headers=other, json={})
        assert response.status_code == 403


class TestWarehouseApi:

    def test_receiving_flow(self, client, session, warehouse_headers, auth_headers, tenant1, product_a):
        tenant_id, product_id = tenant1.id, product_a.id

        response = client.post('/warehouse/receiving', headers=warehouse_headers, json={
            'supplierName': 'Tea Importers LLC',
            'items': [{'productId': product_id, 'qtyOrdered': 10, 'unitCost': 30000}],
        })
        assert response.status_code == 201
        po = response.get_json()['data']
        assert po['status'] == 'draft'

        response = client.post(f"/warehouse/receiving/{po['id']}/scan", headers=warehouse_headers,
                               json={'barcode': '4780000000011'})
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'PO_NOT_READY'

        response = client.post(f"/warehouse/receiving/{po['id']}/submit", headers=warehouse_headers)
        assert response.status_code == 403

        supervisor = auth_headers(5001, tenant_id, 'supervisor')
        response = client.post(f"/warehouse/receiving/{po['id']}/submit", headers=supervisor)
        assert response.get_json()['data']['status'] == 'ordered'

        for _ in range(2):
            response = client.post(f"/warehouse/receiving/{po['id']}/scan", headers=warehouse_headers,
                                   json={'barcode': '4780000000011', 'quantity': 6})
        result = response.get_json()['data']
        assert result['qtyReceived'] == 12
        assert result['isOverReceived'] is True
        assert result['poStatus'] == 'received'

        response = client.get(f"/warehouse/receiving/{po['id']}", headers=warehouse_headers)
        assert response.get_json()['data']['totalReceived'] == 12
