# discount_service/models/__init__.py
# Import all models so SQLAlchemy can resolve relationships by name

from discount_service.db.base_class import Base
from discount_service.models.discount import Discount
from discount_service.models.voucher_code import VoucherCode
from discount_service.models.discount_usage import DiscountUsage
