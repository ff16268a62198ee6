from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from discount_service import crud
from discount_service.core.exceptions import StorageFailure
from discount_service.db.session import create_db_engine
from discount_service.models import Base
from discount_service.models.discount import Discount
from discount_service.schemas.discount import RejectionReason
from discount_service.services.discounts.usage_recorder import record_usage

from tests.utils.discount import TENANT_ID, create_random_discount, create_voucher_code


def test_record_usage_updates_counters_and_ledger(db_session):
    discount = create_random_discount(db_session, TENANT_ID, kind="voucher", code="MAIN")
    voucher_code = create_voucher_code(db_session, TENANT_ID, discount.id, code="VC-1")

    result = record_usage(
        db_session, TENANT_ID, discount.id, "order_1", Decimal("12.50"),
        voucher_code_id=voucher_code.id, customer_id="cust_1",
    )

    assert result.success
    assert result.usage.discount_id == discount.id
    assert result.usage.voucher_code_id == voucher_code.id
    assert result.usage.customer_id == "cust_1"
    assert result.usage.discount_amount == Decimal("12.50")

    db_session.refresh(discount)
    db_session.refresh(voucher_code)
    assert discount.used_count == 1
    assert voucher_code.used_count == 1
    assert voucher_code.used_at is not None
    assert crud.discount_usage.count_by_discount(db_session, discount_id=discount.id) == 1


def test_amount_rounded_to_cents(db_session):
    discount = create_random_discount(db_session, TENANT_ID, code="SUMMER")

    result = record_usage(db_session, TENANT_ID, discount.id, "order_1", 1.999)

    assert result.usage.discount_amount == Decimal("2.00")


def test_discount_limit_guard(db_session):
    discount = create_random_discount(db_session, TENANT_ID, code="ONCE", usage_limit=1)

    first = record_usage(db_session, TENANT_ID, discount.id, "order_1", 5)
    second = record_usage(db_session, TENANT_ID, discount.id, "order_2", 5)

    assert first.success
    assert not second.success
    assert second.reason == RejectionReason.LIMIT_REACHED

    db_session.refresh(discount)
    assert discount.used_count == 1
    # The failed attempt leaves no ledger row behind
    assert crud.discount_usage.count_by_discount(db_session, discount_id=discount.id) == 1


def test_code_limit_guard_rolls_back_discount_increment(db_session):
    discount = create_random_discount(db_session, TENANT_ID, kind="voucher", code="MAIN")
    voucher_code = create_voucher_code(
        db_session, TENANT_ID, discount.id, code="VC-ONCE", usage_limit=1
    )

    record_usage(db_session, TENANT_ID, discount.id, "order_1", 5, voucher_code_id=voucher_code.id)
    result = record_usage(
        db_session, TENANT_ID, discount.id, "order_2", 5, voucher_code_id=voucher_code.id
    )

    assert result.reason == RejectionReason.CODE_LIMIT_REACHED
    db_session.refresh(discount)
    db_session.refresh(voucher_code)
    assert discount.used_count == 1
    assert voucher_code.used_count == 1
    assert voucher_code.effective_status == "used"


def test_code_from_another_discount_rejected(db_session):
    discount = create_random_discount(db_session, TENANT_ID, kind="voucher", code="MAIN")
    other = create_random_discount(db_session, TENANT_ID, kind="voucher", code="OTHER")
    foreign_code = create_voucher_code(db_session, TENANT_ID, other.id, code="VC-OTHER")

    result = record_usage(
        db_session, TENANT_ID, discount.id, "order_1", 5, voucher_code_id=foreign_code.id
    )

    assert result.reason == RejectionReason.CODE_LIMIT_REACHED
    db_session.refresh(discount)
    assert discount.used_count == 0


def test_unknown_discount(db_session):
    result = record_usage(db_session, TENANT_ID, "disc_missing", "order_1", 5)
    assert result.reason == RejectionReason.NOT_FOUND


def test_storage_error_raises_storage_failure(monkeypatch):
    failing_crud = MagicMock()
    failing_crud.get_for_update.side_effect = OperationalError("SELECT", {}, Exception("db down"))
    monkeypatch.setattr(
        "discount_service.services.discounts.usage_recorder.discount_crud", failing_crud
    )
    db = MagicMock()

    with pytest.raises(StorageFailure):
        record_usage(db, TENANT_ID, "disc_1", "order_1", 5)

    db.rollback.assert_called_once()
    db.commit.assert_not_called()


def test_concurrent_redemptions_never_exceed_limit(tmp_path):
    """Ten parallel redemptions against a limit of three: exactly three win."""
    engine = create_db_engine(
        f"sqlite:///{tmp_path / 'race.db'}", connect_args={"timeout": 30}
    )
    Base.metadata.create_all(bind=engine)
    SessionFactory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = SessionFactory()
    discount_id = create_random_discount(setup, TENANT_ID, code="RACE", usage_limit=3).id
    setup.close()

    def redeem(n):
        db = SessionFactory()
        try:
            return record_usage(db, TENANT_ID, discount_id, f"order_{n}", 5).success
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(redeem, range(10)))

    check = SessionFactory()
    try:
        assert results.count(True) == 3
        assert check.get(Discount, discount_id).used_count == 3
        assert crud.discount_usage.count_by_discount(check, discount_id=discount_id) == 3
    finally:
        check.close()
        engine.dispose()
