# discount_service/crud/__init__.py

from .crud_discount import discount
from .crud_voucher_code import voucher_code
from .crud_discount_usage import discount_usage
