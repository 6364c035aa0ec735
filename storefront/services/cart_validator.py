from typing import Iterable, List

from ..schemas.cart import CartLine
from .availability import AvailabilityCalculator


class CartValidator:
    """
    Cross-checks cart lines against the current catalog snapshot.
    Pure: the same lines and snapshot always give the same messages.
    """

    def __init__(self, availability: AvailabilityCalculator):
        self.availability = availability

    def validate(self, lines: Iterable[CartLine]) -> List[str]:
        violations = []
        for line in lines:
            if self.availability.catalog.find(line.item_id) is None:
                violations.append(f'"{line.name}" is no longer available in inventory.')
                continue
            max_qty = self.availability.get_max_quantity(line.item_id)
            if line.quantity > max_qty:
                violations.append(
                    f'"{line.name}": Only {max_qty} units available, '
                    f'but you have {line.quantity} in cart.'
                )
        return violations
