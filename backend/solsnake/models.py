from solsnake import db
from dataclasses import dataclass
from typing import Any, Mapping
import math
import time

ANONYMOUS_WALLET = 'Anonymous'


def to_finite(value: Any, fallback: float = 0) -> float:
    """Coerce numbers and numeric strings; anything else becomes ``fallback``."""
    if isinstance(value, bool):
        return fallback
    try:
        parsed = float(value)
    except (TypeError, ValueError, OverflowError):
        # ints beyond float range raise OverflowError
        return fallback
    if isinstance(value, int) and math.isfinite(parsed):
        return value
    return parsed if math.isfinite(parsed) else fallback


def now_ms() -> int:
    return int(time.time() * 1000)


def payment_id(wallet: str, date: str) -> str:
    return f"{wallet}_{date}"


def winner_id(date: str, wallet: str) -> str:
    return f"winner_{date}_{wallet}"


def legacy_winner_id(date: str) -> str:
    return f"winner_{date}"


class StateRecord(db.Model):
    __tablename__ = 'state_record'
    entity_type = db.Column(db.String(32), primary_key=True)
    id = db.Column(db.String(255), primary_key=True)
    date = db.Column(db.String(10), nullable=True, index=True)
    data = db.Column(db.JSON, nullable=False)
    updated_at = db.Column(db.Float, nullable=True)

    def to_dict(self):
        payload = dict(self.data or {})
        payload['id'] = self.id
        return payload


@dataclass
class PlayerScore:
    id: str
    wallet: str
    score: float
    date: str
    timestamp: float
    x_username: str = ''

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PlayerScore':
        data = data or {}
        return cls(
            id=str(data.get('id') or ''),
            wallet=str(data.get('wallet') or ANONYMOUS_WALLET),
            score=to_finite(data.get('score')),
            date=str(data.get('date') or ''),
            timestamp=to_finite(data.get('timestamp')),
            x_username=str(data.get('xUsername') or ''),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'wallet': self.wallet,
            'xUsername': self.x_username,
            'score': self.score,
            'date': self.date,
            'timestamp': self.timestamp,
        }


@dataclass
class Payment:
    id: str
    wallet: str
    amount: float
    date: str
    signature: str = ''
    timestamp: float = 0
    confirmed: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Payment':
        data = data or {}
        wallet = str(data.get('wallet') or ANONYMOUS_WALLET)
        date = str(data.get('date') or '')
        return cls(
            id=str(data.get('id') or payment_id(wallet, date)),
            wallet=wallet,
            amount=to_finite(data.get('amount')),
            date=date,
            signature=str(data.get('signature') or ''),
            timestamp=to_finite(data.get('timestamp')),
            # Only a literal boolean true counts as confirmed
            confirmed=data.get('confirmed') is True,
        )

    def to_dict(self):
        return {
            'id': self.id,
            'wallet': self.wallet,
            'amount': self.amount,
            'date': self.date,
            'signature': self.signature,
            'timestamp': self.timestamp,
            'confirmed': self.confirmed,
        }


@dataclass
class Winner:
    id: str
    wallet: str
    score: float
    date: str
    timestamp: float
    daily_pot: float = 0
    x_username: str = ''

    @property
    def is_legacy(self) -> bool:
        return bool(self.date) and self.id == legacy_winner_id(self.date)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Winner':
        data = data or {}
        return cls(
            id=str(data.get('id') or ''),
            wallet=str(data.get('wallet') or ANONYMOUS_WALLET),
            score=to_finite(data.get('score')),
            date=str(data.get('date') or ''),
            timestamp=to_finite(data.get('timestamp')),
            daily_pot=max(0.0, to_finite(data.get('dailyPot'))),
            x_username=str(data.get('xUsername') or ''),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'wallet': self.wallet,
            'xUsername': self.x_username,
            'score': self.score,
            'date': self.date,
            'timestamp': self.timestamp,
            'dailyPot': self.daily_pot,
        }
