from typing import Iterable, Mapping, Union

from solsnake.models import Payment, to_finite

DEFAULT_POT_FRACTION = 0.9


def compute_pot(payments: Iterable[Union[Payment, Mapping]], fraction: float = DEFAULT_POT_FRACTION) -> float:
    """Sum confirmed payment amounts and keep ``fraction`` of it for the pot."""
    total = 0.0
    for p in payments or []:
        if isinstance(p, Mapping):
            p = Payment.from_dict(p)
        elif not isinstance(p, Payment):
            continue
        if p.confirmed:
            total += to_finite(p.amount)
    return max(0.0, to_finite(total * to_finite(fraction)))


def pot_for_day(store, date_key: str, fraction: float = DEFAULT_POT_FRACTION) -> float:
    return compute_pot(store.list('daily_payments', date=date_key), fraction)
