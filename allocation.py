"""
Weekly payment allocation.

A member's payment is applied to that member's pending installments in
week order. An installment the payment cannot fully cover is closed out as
"paid" with whatever was left, and the shortfall is added to the next
pending week's expected amount. When the money runs out, the carried
shortfall keeps rolling forward so every later pending week absorbs it.

Pure calculation: no I/O. Callers persist `AllocationResult.changed`.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List

from schemas import Installment

ZERO = Decimal("0")


@dataclass
class AllocationResult:
    installments: List[Installment]
    changed: List[Installment] = field(default_factory=list)
    carry_over: Decimal = ZERO
    unallocated: Decimal = ZERO

    @property
    def allocated(self) -> Decimal:
        return sum((i.paid_amount for i in self.changed if i.status == "paid"), ZERO)


def _stored(inst: Installment):
    return inst.expected_amount, inst.paid_amount, inst.status


def allocate(installments: Iterable[Installment], payment) -> AllocationResult:
    remaining = Decimal(str(payment))
    if remaining < 0:
        raise ValueError(f"payment cannot be negative: {payment}")

    carry_over = ZERO
    updated: List[Installment] = []
    changed: List[Installment] = []

    for inst in sorted(installments, key=lambda i: i.week_no):
        if inst.status == "paid":
            updated.append(inst)
            continue

        expected = inst.expected_amount + carry_over

        if remaining <= 0:
            new = inst.model_copy(update={"expected_amount": expected, "status": "pending"})
            carry_over = expected
        elif remaining >= expected:
            new = inst.model_copy(
                update={"expected_amount": expected, "paid_amount": expected, "status": "paid"}
            )
            remaining -= expected
            carry_over = ZERO
        else:
            # partial payment still closes the week
            new = inst.model_copy(
                update={"expected_amount": expected, "paid_amount": remaining, "status": "paid"}
            )
            carry_over = expected - remaining
            remaining = ZERO

        updated.append(new)
        if _stored(new) != _stored(inst):
            changed.append(new)

    return AllocationResult(
        installments=updated,
        changed=changed,
        carry_over=carry_over,
        unallocated=remaining,
    )
