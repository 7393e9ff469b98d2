"""Human-readable order numbers: ORD-YYYYMM-NNNN.

The suffix is drawn uniformly from 0000-9999 and is NOT unique; the
store-assigned UUID stays the primary key. Two orders created in the same
month may share an order number.
"""

import random
import re
from datetime import datetime

from config.settings import settings
from src.im_common.datetime_utils import utc_now

_rng = random.SystemRandom()

ORDER_NUMBER_PATTERN = re.compile(r"^[A-Z]+-\d{6}-\d{4}$")


def generate_order_number(
    now: datetime | None = None,
    rng: random.Random | None = None,
    prefix: str | None = None,
) -> str:
    """Generate an order number for the month of `now` (defaults to UTC now)."""
    when = now or utc_now()
    suffix = (rng or _rng).randint(0, 9999)
    return f"{prefix or settings.ORDER_NUMBER_PREFIX}-{when:%Y%m}-{suffix:04d}"
