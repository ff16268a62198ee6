from datetime import timedelta

from discount_service.models.discount import Discount
from discount_service.models.voucher_code import VoucherCode
from discount_service.utils.timeutils import utcnow


def make_discount(**kwargs):
    data = {"is_active": True, "starts_at": None, "ends_at": None, "used_count": 0, "usage_limit": None}
    data.update(kwargs)
    return Discount(**data)


def test_discount_status():
    now = utcnow()
    assert make_discount().status_at(now) == "active"
    assert make_discount(is_active=False).status_at(now) == "inactive"
    assert make_discount(ends_at=now - timedelta(hours=1)).status_at(now) == "expired"
    assert make_discount(starts_at=now + timedelta(hours=1)).status_at(now) == "scheduled"


def test_inactive_beats_expired():
    now = utcnow()
    discount = make_discount(is_active=False, ends_at=now - timedelta(days=1))
    assert discount.status_at(now) == "inactive"


def test_naive_datetimes_treated_as_utc():
    now = utcnow()
    discount = make_discount(ends_at=(now - timedelta(hours=1)).replace(tzinfo=None))
    assert discount.status_at(now) == "expired"


def test_remaining_uses():
    assert make_discount().remaining_uses is None
    assert make_discount(usage_limit=10, used_count=3).remaining_uses == 7
    assert make_discount(usage_limit=2, used_count=5).remaining_uses == 0
    assert make_discount(usage_limit=2, used_count=2).usage_limit_reached


def test_voucher_code_effective_status():
    assert VoucherCode(status="active", used_count=0, usage_limit=None).effective_status == "active"
    assert VoucherCode(status="active", used_count=1, usage_limit=1).effective_status == "used"
    assert VoucherCode(status="deactivated", used_count=0, usage_limit=1).effective_status == "deactivated"


def test_voucher_code_can_delete():
    assert VoucherCode(used_count=0).can_delete
    assert not VoucherCode(used_count=2).can_delete
