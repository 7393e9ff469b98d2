"""Unit tests for human-readable order numbers."""

import random
from datetime import datetime, timezone

from src.im_common.order_number import ORDER_NUMBER_PATTERN, generate_order_number


def test_format_uses_year_and_month() -> None:
    number = generate_order_number(datetime(2026, 3, 14, tzinfo=timezone.utc))
    assert number.startswith("ORD-202603-")
    assert ORDER_NUMBER_PATTERN.match(number)


def test_suffix_is_zero_padded() -> None:
    class _Seven(random.Random):
        def randint(self, a: int, b: int) -> int:
            return 7

    number = generate_order_number(datetime(2026, 12, 1, tzinfo=timezone.utc), rng=_Seven())
    assert number == "ORD-202612-0007"


def test_seeded_rng_is_reproducible() -> None:
    when = datetime(2026, 1, 1, tzinfo=timezone.utc)
    a = generate_order_number(when, rng=random.Random(42))
    b = generate_order_number(when, rng=random.Random(42))
    assert a == b


def test_custom_prefix() -> None:
    number = generate_order_number(datetime(2026, 5, 1, tzinfo=timezone.utc), prefix="INS")
    assert number.startswith("INS-202605-")
    assert ORDER_NUMBER_PATTERN.match(number)


def test_defaults_to_current_month() -> None:
    number = generate_order_number()
    assert number[4:10] == datetime.now(timezone.utc).strftime("%Y%m")


def test_suffix_stays_in_range() -> None:
    rng = random.Random(0)
    for _ in range(200):
        suffix = int(generate_order_number(rng=rng).rsplit("-", 1)[1])
        assert 0 <= suffix <= 9999
