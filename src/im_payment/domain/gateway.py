"""Payment capability consumed by the order core.

The provider (card processor, wallet, the development simulator) lives
outside this service; the core only sees this Protocol.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_id: str
    amount: int  # cents
    currency: str
    method: str = ""
    message: str = ""


class PaymentGatewayProtocol(Protocol):
    async def process_payment(self, amount: int, currency: str) -> PaymentResult: ...

    async def refund_payment(self, transaction_id: str, amount: int) -> PaymentResult: ...
