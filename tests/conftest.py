import pytest
from datetime import timedelta
from decimal import Decimal

from tradeflow import create_app, database
from tradeflow.middleware import issue_token
from tradeflow.models import Tenant, Customer, Product, ProductStock, Discount, DiscountType
from tradeflow.utils.dates import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite, no Redis)."""
    return create_app('config.TestingConfig')


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema per test; yields the scoped session."""
    database.create_all()
    session = database.get_session()
    yield session
    session.rollback()
    session.remove()
    database.drop_all()


def make_product(session, tenant, name, price, stock, sku=None, barcode=None, active=True, cost=0):
    """Create a product with its stock row."""
    product = Product(
        tenant_id=tenant.id,
        name=name,
        sku=sku,
        barcode=barcode,
        price=Decimal(str(price)),
        cost=Decimal(str(cost)),
        active=active
    )
    session.add(product)
    session.flush()
    session.add(ProductStock(product_id=product.id, on_hand_qty=stock))
    session.commit()
    return product


def make_discount(session, tenant, name, type_, value, code=None, **kwargs):
    discount = Discount(
        tenant_id=tenant.id,
        name=name,
        code=code,
        type=DiscountType(type_).value,
        value=Decimal(str(value)),
        active=kwargs.pop('active', True),
        **kwargs
    )
    session.add(discount)
    session.commit()
    return discount


@pytest.fixture
def product_factory(session):
    """Build extra products: product_factory(tenant, name, price, stock, sku=..., barcode=...)."""
    return lambda *args, **kwargs: make_product(session, *args, **kwargs)


@pytest.fixture
def discount_factory(session):
    """Build discounts: discount_factory(tenant, name, type, value, code=..., **fields)."""
    return lambda *args, **kwargs: make_discount(session, *args, **kwargs)


@pytest.fixture(scope='function')
def tenant1(session):
    """Create first test tenant."""
    tenant = Tenant(slug='acme', name='Acme Distribution', order_number_prefix='AC', timezone='UTC', active=True)
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant2(session):
    """Create second test tenant for isolation tests."""
    tenant = Tenant(slug='globex', name='Globex Wholesale', timezone='Asia/Tashkent', active=True)
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture(scope='function')
def customer1(session, tenant1):
    customer = Customer(tenant_id=tenant1.id, name='Corner Shop', phone='+998901234567',
                        address='12 Navoi St', active=True)
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def customer2(session, tenant1):
    customer = Customer(tenant_id=tenant1.id, name='Market 24', address='7 Amir Temur Ave', active=True)
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def product_a(session, tenant1):
    return make_product(session, tenant1, 'Green Tea 100g', 50000, 10, sku='TEA-100', barcode='4780000000011')


@pytest.fixture(scope='function')
def product_b(session, tenant1):
    return make_product(session, tenant1, 'Sugar 1kg', 25000, 5, sku='SUG-1', barcode='4780000000028')


@pytest.fixture(scope='function')
def product_other_tenant(session, tenant2):
    return make_product(session, tenant2, 'Rice 5kg', 90000, 50, sku='TEA-100', barcode='4780000000011')


@pytest.fixture(scope='function')
def auto_percent(session, tenant1):
    """Automatic 10% discount from 100,000."""
    return make_discount(session, tenant1, 'Ten percent', 'percentage', 10, min_order_amount=Decimal('100000'))


@pytest.fixture(scope='function')
def promo_code(session, tenant1):
    """Manual fixed-amount code SPRING for orders from 10,000."""
    return make_discount(session, tenant1, 'Spring promo', 'fixed_amount', 15000, code='SPRING',
                         min_order_amount=Decimal('10000'),
                         expires_at=utcnow() + timedelta(days=30))


@pytest.fixture(scope='function')
def auth_headers(app):
    """Factory for Authorization headers."""
    def _headers(user_id, tenant_id, role, customer_id=None, locale=None):
        token = issue_token(user_id, tenant_id, role, customer_id=customer_id,
                            secret_key=app.config['SECRET_KEY'])
        headers = {'Authorization': f'Bearer {token}'}
        if locale:
            headers['Accept-Language'] = locale
        return headers
    return _headers


@pytest.fixture(scope='function')
def customer_headers(auth_headers, tenant1, customer1):
    return auth_headers(1001, tenant1.id, 'customer', customer_id=customer1.id)


@pytest.fixture(scope='function')
def rep_headers(auth_headers, tenant1):
    return auth_headers(2001, tenant1.id, 'sales_rep')


@pytest.fixture(scope='function')
def admin_headers(auth_headers, tenant1):
    return auth_headers(3001, tenant1.id, 'tenant_admin')


@pytest.fixture(scope='function')
def warehouse_headers(auth_headers, tenant1):
    return auth_headers(4001, tenant1.id, 'warehouse')
