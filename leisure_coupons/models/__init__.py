# leisure_coupons/models/__init__.py
# Import all models here so SQLAlchemy registers them into Base.metadata.

from leisure_coupons.models.reservation import Reservation  # noqa: F401
from leisure_coupons.models.leisure_product import LeisureProduct, Partner  # noqa: F401

from leisure_coupons.models.coupon import Coupon  # noqa: F401
from leisure_coupons.models.coupon_usage_log import CouponUsageLog  # noqa: F401
