from .auth import User, SessionToken
from .catalog import Category, Product
from .orders import Order, OrderItem, ReturnRequest, ReturnRequestItem

__all__ = [
    'User', 'SessionToken',
    'Category', 'Product',
    'Order', 'OrderItem', 'ReturnRequest', 'ReturnRequestItem',
]
