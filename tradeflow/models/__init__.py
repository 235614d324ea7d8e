"""Models package - exports all SQLAlchemy models."""
# Core Models
from tradeflow.models.tenant import Tenant
from tradeflow.models.customer import Customer

# Catalog & inventory
from tradeflow.models.product import Product
from tradeflow.models.product_stock import ProductStock
from tradeflow.models.stock_move import StockMove, StockMoveType, StockReferenceType
from tradeflow.models.stock_move_line import StockMoveLine

# Ordering
from tradeflow.models.discount import Discount, DiscountType
from tradeflow.models.shopping_cart import ShoppingCart
from tradeflow.models.cart_item import CartItem
from tradeflow.models.order import Order, OrderStatus, PaymentStatus
from tradeflow.models.order_item import OrderItem
from tradeflow.models.order_status_history import OrderStatusHistory

# Field sales
from tradeflow.models.visit import Visit, VisitStatus, VisitType, VisitOutcome, VisitMode

# Warehouse
from tradeflow.models.purchase_order import PurchaseOrder, POStatus
from tradeflow.models.purchase_order_item import PurchaseOrderItem

__all__ = [
    'Tenant', 'Customer',
    'Product', 'ProductStock',
    'StockMove', 'StockMoveType', 'StockReferenceType', 'StockMoveLine',
    'Discount', 'DiscountType', 'ShoppingCart', 'CartItem',
    'Order', 'OrderStatus', 'PaymentStatus', 'OrderItem', 'OrderStatusHistory',
    'Visit', 'VisitStatus', 'VisitType', 'VisitOutcome', 'VisitMode',
    'PurchaseOrder', 'POStatus', 'PurchaseOrderItem',
]
