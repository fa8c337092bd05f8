from .product_link import ProductLink
from .order_link import OrderLink
from .job import Job

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ProductLink',
    'OrderLink',
    'Job',
]
