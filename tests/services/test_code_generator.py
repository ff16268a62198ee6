import random

import pytest

from discount_service.core.exceptions import GenerationExhausted
from discount_service.services.discounts.code_generator import (
    CODE_ALPHABET,
    generate_unique_codes,
    next_copy_code,
    random_code,
)


def test_random_code_uses_base36_alphabet():
    code = random_code(length=8, rng=random.Random(1))
    assert len(code) == 8
    assert all(ch in CODE_ALPHABET for ch in code)


def test_random_code_with_prefix():
    code = random_code(length=8, prefix="SUMMER")
    assert code.startswith("SUMMER-")
    assert len(code) == len("SUMMER-") + 8


def test_generated_codes_are_distinct_and_avoid_existing():
    existing = {"AAAA1111", "BBBB2222"}
    codes = generate_unique_codes(20, existing=existing, rng=random.Random(42))

    assert len(codes) == 20
    assert len(set(codes)) == 20
    assert not set(codes) & existing


def test_existing_codes_compared_case_insensitively():
    # Every one-character code is taken (lowercase letters included).
    existing = [ch.lower() for ch in CODE_ALPHABET]
    with pytest.raises(GenerationExhausted):
        generate_unique_codes(1, existing=existing, length=1, max_attempts_per_code=5)


def test_generation_exhausted_reports_progress():
    existing = set(CODE_ALPHABET[:-1])  # only "Z" is free
    rng = random.Random(7)
    with pytest.raises(GenerationExhausted) as exc_info:
        generate_unique_codes(
            2, existing=existing, length=1, max_attempts_per_code=500, rng=rng
        )
    assert exc_info.value.details == {"generated": 1, "requested": 2}


def test_zero_quantity_returns_nothing():
    assert generate_unique_codes(0) == []


class TestNextCopyCode:

    def test_first_copy(self):
        assert next_copy_code("SUMMER", lambda code: False) == "SUMMER_COPY"

    def test_skips_taken_copies(self):
        taken = {"SUMMER_COPY"}
        assert next_copy_code("SUMMER", taken.__contains__) == "SUMMER_COPY1"

    def test_counter_keeps_going(self):
        taken = {"SUMMER_COPY", "SUMMER_COPY1", "SUMMER_COPY2"}
        assert next_copy_code("SUMMER", taken.__contains__) == "SUMMER_COPY3"

    def test_gives_up_after_max_attempts(self):
        with pytest.raises(GenerationExhausted):
            next_copy_code("SUMMER", lambda code: True, max_attempts=5)

    def test_long_code_is_cut_to_fit(self):
        code = next_copy_code("ABCDEFGHIJKLMNOP", lambda code: False, max_length=20)
        assert code == "ABCDEFGHIJKLMNO_COPY"
        assert len(code) == 20

    def test_cut_grows_with_counter(self):
        taken = {"ABCDEFGHIJKLMNO_COPY"}
        code = next_copy_code("ABCDEFGHIJKLMNOP", taken.__contains__, max_length=20)
        assert code == "ABCDEFGHIJKLMN_COPY1"

    def test_short_code_untouched_by_max_length(self):
        assert next_copy_code("SUMMER", lambda code: False, max_length=20) == "SUMMER_COPY"
