"""Daily competition rollover.

The engine keeps the live leaderboard bounded while a day is open, and once a
day is over writes its winner rows and purges that day's scores. The store
only offers idempotent single-key writes, so every write here recomputes the
full desired state from what is currently stored; re-running any step is safe.

Store failures stop at this boundary: they are logged and turned into a
degraded return value, and the next timer tick retries.
"""
import logging
import random
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from solsnake.models import (
    ANONYMOUS_WALLET,
    Payment,
    PlayerScore,
    Winner,
    legacy_winner_id,
    payment_id,
    to_finite,
    winner_id,
)
from .clock import Period, PeriodClock
from .pot import DEFAULT_POT_FRACTION, pot_for_day
from .ranking import rank, top_n, winner_set
from .store import EntityStore, StoreError

logger = logging.getLogger(__name__)


def _ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _random_suffix(length=9) -> str:
    return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))


@dataclass
class SubmitResult:
    entry: Optional[PlayerScore]
    accepted: bool = True
    saved: bool = False
    made_leaderboard: bool = False
    new_top: bool = False
    leaderboard: List[PlayerScore] = field(default_factory=list)

    def to_dict(self):
        return {
            'entry': self.entry.to_dict() if self.entry else None,
            'accepted': self.accepted,
            'saved': self.saved,
            'madeLeaderboard': self.made_leaderboard,
            'newTop': self.new_top,
            'leaderboard': [e.to_dict() for e in self.leaderboard],
        }


@dataclass
class FinalizeResult:
    date: str
    winners: List[Winner] = field(default_factory=list)
    daily_pot: float = 0.0
    removed_winner_ids: List[str] = field(default_factory=list)
    deleted_score_ids: List[str] = field(default_factory=list)
    failed_score_ids: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            'date': self.date,
            'winners': [w.to_dict() for w in self.winners],
            'dailyPot': self.daily_pot,
            'removedWinnerIds': list(self.removed_winner_ids),
            'deletedScoreIds': list(self.deleted_score_ids),
            'failedScoreIds': list(self.failed_score_ids),
        }


@dataclass
class TickResult:
    period: Period
    finalized: Optional[FinalizeResult] = None


class RolloverEngine:
    def __init__(self, store: EntityStore, clock: PeriodClock, leaderboard_size: int = 5,
                 pot_fraction: float = DEFAULT_POT_FRACTION, require_payment: bool = False):
        self.store = store
        self.clock = clock
        self.leaderboard_size = int(leaderboard_size)
        self.pot_fraction = float(pot_fraction)
        self.require_payment = bool(require_payment)
        # Process-local guard; not a lock across instances
        self.last_reset_key: Optional[str] = None

    @classmethod
    def from_config(cls, store: EntityStore, config) -> 'RolloverEngine':
        return cls(
            store,
            PeriodClock.from_config(config),
            leaderboard_size=int(config.get('LEADERBOARD_SIZE', 5)),
            pot_fraction=float(config.get('POT_FRACTION', DEFAULT_POT_FRACTION)),
            require_payment=bool(config.get('REQUIRE_PAYMENT', False)),
        )

    def _date_or_today(self, date: Optional[str], now: Optional[datetime] = None) -> str:
        return date or self.clock.current_period(now).day_key

    # ---- Payments ----

    def record_payment(self, wallet: str, amount, signature: str = '', date: Optional[str] = None,
                       confirmed: bool = True, now: Optional[datetime] = None) -> Optional[Payment]:
        """Upsert the single payment record for (wallet, day)."""
        now = now or _utcnow()
        date = self._date_or_today(date, now)
        wallet = wallet or ANONYMOUS_WALLET
        payment = Payment(
            id=payment_id(wallet, date),
            wallet=wallet,
            amount=max(0.0, to_finite(amount)),
            date=date,
            signature=signature or '',
            timestamp=_ms(now),
            confirmed=confirmed is True,
        )
        try:
            self.store.put('daily_payments', payment.id, payment.to_dict())
        except StoreError as exc:
            logger.warning(f"[payment-failed] wallet={wallet} date={date}: {exc}")
            return None
        logger.info(f"[payment] wallet={wallet} date={date} amount={payment.amount} confirmed={payment.confirmed}")
        return payment

    def has_paid(self, wallet: str, date: Optional[str] = None) -> bool:
        return bool(self._payment_confirmed(wallet, self._date_or_today(date)))

    def _payment_confirmed(self, wallet: str, date: str) -> Optional[bool]:
        """None when the payment record could not be read."""
        try:
            record = self.store.get('daily_payments', payment_id(wallet, date))
        except StoreError as exc:
            logger.warning(f"[payment-check-failed] wallet={wallet} date={date}: {exc}")
            return None
        return bool(record) and Payment.from_dict(record).confirmed

    def daily_pot(self, date: Optional[str] = None) -> float:
        date = self._date_or_today(date)
        try:
            return pot_for_day(self.store, date, self.pot_fraction)
        except StoreError as exc:
            logger.warning(f"[pot-failed] date={date}: {exc}")
            return 0.0

    # ---- Live leaderboard ----

    def leaderboard(self, date: Optional[str] = None) -> List[PlayerScore]:
        date = self._date_or_today(date)
        try:
            return top_n(self.store.list('players', date=date), self.leaderboard_size)
        except StoreError as exc:
            logger.warning(f"[leaderboard-failed] date={date}: {exc}")
            return []

    def submit_score(self, wallet: str, score, x_username: str = '',
                     now: Optional[datetime] = None) -> SubmitResult:
        period = self.clock.current_period(now)
        date = period.day_key
        wallet = wallet or ANONYMOUS_WALLET
        submitted_at = _ms(period.now)
        entry = PlayerScore(
            id=f"{wallet}_{submitted_at}_{_random_suffix()}",
            wallet=wallet,
            score=to_finite(score),
            date=date,
            timestamp=submitted_at,
            x_username=x_username or '',
        )

        if self.require_payment:
            paid = self._payment_confirmed(wallet, date)
            if paid is None:
                return SubmitResult(entry=entry, saved=False)
            if not paid:
                logger.info(f"[score-rejected] wallet={wallet} date={date} no confirmed payment")
                return SubmitResult(entry=entry, accepted=False)

        try:
            snapshot = rank(self.store.list('players', date=date))
        except StoreError as exc:
            logger.warning(f"[score-snapshot-failed] date={date}: {exc}")
            snapshot = None

        # Signals come from the pre-insertion snapshot; best effort under concurrent writers
        made_leaderboard = new_top = False
        if snapshot is not None:
            previous = top_n(snapshot, self.leaderboard_size)
            if len(previous) >= self.leaderboard_size:
                made_leaderboard = entry.score > previous[-1].score
            else:
                made_leaderboard = all(p.score != entry.score for p in previous)
            new_top = not previous or entry.score > previous[0].score

        try:
            self.store.put('players', entry.id, entry.to_dict())
        except StoreError as exc:
            logger.warning(f"[score-failed] wallet={wallet} date={date} score={entry.score}: {exc}")
            return SubmitResult(entry=entry, saved=False)

        if snapshot is None:
            return SubmitResult(entry=entry, saved=True, leaderboard=self.leaderboard(date))

        candidates = snapshot + [entry]
        kept = top_n(candidates, self.leaderboard_size)
        keep_ids = {e.id for e in kept}
        for stale in candidates:
            if stale.id in keep_ids:
                continue
            try:
                self.store.delete('players', stale.id)
            except StoreError as exc:
                logger.warning(f"[score-prune-failed] id={stale.id} date={date}: {exc}")

        logger.info(
            f"[score] wallet={wallet} date={date} score={entry.score} "
            f"made_leaderboard={made_leaderboard} new_top={new_top} kept={len(kept)}"
        )
        return SubmitResult(
            entry=entry,
            saved=True,
            made_leaderboard=made_leaderboard,
            new_top=new_top,
            leaderboard=kept,
        )

    # ---- Winners ----

    def winners(self, date: Optional[str] = None) -> List[Winner]:
        try:
            rows = self.store.list('daily_winners', date=date)
        except StoreError as exc:
            logger.warning(f"[winners-failed] date={date}: {exc}")
            return []
        winners = [Winner.from_dict(r) for r in rows]
        winners.sort(key=lambda w: (w.date, w.score, w.id), reverse=True)
        return winners

    def _winner_keep_set(self, date: str, existing: List[Winner]) -> set:
        """Keep-set rebuilt from stored rows, for days whose scores are already gone."""
        legacy = legacy_winner_id(date)
        prefix = f"winner_{date}_"
        qualified = [w for w in existing if w.id.startswith(prefix)]
        keep = {legacy} if any(w.id == legacy for w in existing) else set()
        if qualified:
            best = max(w.score for w in qualified)
            keep.update(w.id for w in qualified if w.score == best)
        return keep

    def _prune_stale_winners(self, date: str, keep: Optional[set]) -> List[str]:
        try:
            existing = [Winner.from_dict(r) for r in self.store.list('daily_winners', date=date)]
        except StoreError as exc:
            logger.warning(f"[winner-prune-failed] date={date}: {exc}")
            return []
        if keep is None:
            keep = self._winner_keep_set(date, existing)
        removed = []
        for w in existing:
            if not w.id or w.id in keep:
                continue
            try:
                self.store.delete('daily_winners', w.id)
                removed.append(w.id)
            except StoreError as exc:
                logger.warning(f"[winner-prune-failed] id={w.id}: {exc}")
        return removed

    def _clear_scores(self, date: str, entries: List[PlayerScore], result: FinalizeResult) -> None:
        for entry in entries:
            if not entry.id:
                continue
            try:
                self.store.delete('players', entry.id)
                result.deleted_score_ids.append(entry.id)
            except StoreError as exc:
                logger.warning(f"[rollover-clear-failed] id={entry.id} date={date}: {exc}")
                result.failed_score_ids.append(entry.id)

    def finalize_day(self, date_key: str, now: Optional[datetime] = None) -> Optional[FinalizeResult]:
        """Write winner rows for ``date_key`` and purge its scores.

        Returns None when the attempt was aborted (score read or winner write
        failed); nothing partial is derived from an incomplete score set.
        """
        if not date_key:
            return None
        try:
            entries = rank(self.store.list('players', date=date_key))
        except StoreError as exc:
            logger.warning(f"[rollover-abort] date={date_key} score read failed: {exc}")
            return None

        result = FinalizeResult(date=date_key)
        if not entries:
            result.removed_winner_ids = self._prune_stale_winners(date_key, keep=None)
            self.last_reset_key = date_key
            logger.info(f"[rollover-empty] date={date_key} removed={len(result.removed_winner_ids)}")
            return result

        top = winner_set(entries)
        top_score = top[0].score
        try:
            result.daily_pot = pot_for_day(self.store, date_key, self.pot_fraction)
        except StoreError as exc:
            logger.warning(f"[rollover-pot-failed] date={date_key}, pot defaults to 0: {exc}")
            result.daily_pot = 0.0

        finalized_at = _ms(now or _utcnow())
        result.winners = [
            Winner(
                id=winner_id(date_key, e.wallet),
                wallet=e.wallet,
                score=top_score,
                date=date_key,
                timestamp=finalized_at,
                daily_pot=result.daily_pot,
                x_username=e.x_username,
            )
            for e in top
        ]
        first = result.winners[0]
        legacy = Winner(
            id=legacy_winner_id(date_key),
            wallet=first.wallet,
            score=first.score,
            date=date_key,
            timestamp=finalized_at,
            daily_pot=result.daily_pot,
            x_username=first.x_username,
        )
        try:
            for row in result.winners + [legacy]:
                self.store.put('daily_winners', row.id, row.to_dict())
        except StoreError as exc:
            logger.warning(f"[rollover-abort] date={date_key} winner write failed: {exc}")
            return None

        keep = {w.id for w in result.winners} | {legacy.id}
        result.removed_winner_ids = self._prune_stale_winners(date_key, keep)
        self._clear_scores(date_key, entries, result)
        self.last_reset_key = date_key
        logger.info(
            f"[rollover-finalize] date={date_key} top_score={top_score} "
            f"winners={[w.wallet for w in result.winners]} pot={result.daily_pot:.3f} "
            f"cleared={len(result.deleted_score_ids)} failed={len(result.failed_score_ids)}"
        )
        return result

    def ensure_previous_day_winner(self, now: Optional[datetime] = None) -> Optional[FinalizeResult]:
        """Finalize yesterday if its legacy winner row is missing."""
        key = self.clock.current_period(now).yesterday_key
        try:
            existing = self.store.get('daily_winners', legacy_winner_id(key))
        except StoreError as exc:
            logger.warning(f"[rollover-ensure-failed] date={key}: {exc}")
            return None
        if existing:
            self.last_reset_key = key
            return None
        return self.finalize_day(key, now)

    def handle_daily_reset(self, now: Optional[datetime] = None) -> Optional[FinalizeResult]:
        key = self.clock.current_period(now).yesterday_key
        if self.last_reset_key == key:
            return None
        return self.finalize_day(key, now)

    def tick(self, now: Optional[datetime] = None) -> TickResult:
        period = self.clock.current_period(now)
        if self.last_reset_key is None:
            finalized = self.ensure_previous_day_winner(period.now)
        elif self.last_reset_key != period.yesterday_key:
            finalized = self.handle_daily_reset(period.now)
        else:
            finalized = None
        return TickResult(period=period, finalized=finalized)
