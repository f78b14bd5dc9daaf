"""
price_feed.py - USD price feeds for collateral assets

Provides the price collaborators the engine reads through the PriceFeed
protocol (core.py), plus the staleness check every read goes through.

Classes:
- StaticPriceFeed: answers set explicitly, one round per update (mock aggregator)
- TimeSeriesPriceFeed: historical price paths, answers the latest observation
  at or before the clock

Functions:
- stale_checked_round: fetch a round and reject it if it cannot be trusted

Answers are integers in USD scaled by 10**decimals (8 by default). Both
feeds take a clock callable, normally `lambda: ledger.current_time`, so
rounds are stamped in ledger time.
"""

from datetime import datetime, timedelta
from bisect import bisect_right
from typing import Callable, Dict, List, Optional, Tuple

from .core import (
    PriceFeed, PriceRound, OracleUnavailable,
    FEED_DECIMALS, ORACLE_TIMEOUT,
)


Clock = Callable[[], datetime]


class StaticPriceFeed:
    """
    Price feed whose answers change only through update_answer().

    Every update opens a new round stamped with the clock's current time.
    """

    def __init__(self, answers: Dict[str, int], clock: Clock, decimals: int = FEED_DECIMALS):
        """
        Args:
            answers: feed id -> initial answer (USD * 10**decimals)
            clock: Returns the current time used to stamp rounds
            decimals: Decimal precision of every answer
        """
        self.decimals = decimals
        self.clock = clock
        self.rounds: Dict[str, PriceRound] = {}
        for feed_id, answer in answers.items():
            self.update_answer(feed_id, answer)

    def update_answer(self, feed_id: str, answer: int, updated_at: Optional[datetime] = None) -> PriceRound:
        """Open a new round for feed_id with answer."""
        now = updated_at or self.clock()
        previous = self.rounds.get(feed_id)
        round_id = previous.round_id + 1 if previous else 1
        price_round = PriceRound(
            round_id=round_id,
            answer=answer,
            decimals=self.decimals,
            started_at=now,
            updated_at=now,
            answered_in_round=round_id,
        )
        self.rounds[feed_id] = price_round
        return price_round

    def latest_round_data(self, feed_id: str) -> PriceRound:
        if feed_id not in self.rounds:
            raise OracleUnavailable(f"Unknown price feed {feed_id}")
        return self.rounds[feed_id]

    def __repr__(self):
        return f"StaticPriceFeed({len(self.rounds)} feeds, decimals={self.decimals})"


class TimeSeriesPriceFeed:
    """
    Price feed backed by historical observations.

    Answers the most recent observation at or before clock(). The round id
    of an observation is its 1-based position in the feed's history.

    Supports two initialization patterns:
    - Empty initialization for incremental addition via add_price()
    - Batch initialization with complete price paths for simulations
    """

    def __init__(
        self,
        clock: Clock,
        price_paths: Optional[Dict[str, List[Tuple[datetime, int]]]] = None,
        decimals: int = FEED_DECIMALS,
    ):
        """
        Args:
            clock: Returns the time to answer at
            price_paths: Optional feed id -> [(timestamp, answer), ...]
            decimals: Decimal precision of every answer

        Example:
            feed = TimeSeriesPriceFeed(lambda: ledger.current_time, {
                'ETH_USD': [(t0, 2000_00000000), (t1, 1800_00000000)],
            })
        """
        self.clock = clock
        self.decimals = decimals
        self.price_history: Dict[str, List[Tuple[datetime, int]]] = {}

        if price_paths:
            for feed_id, path in price_paths.items():
                if not path:
                    continue
                self.price_history[feed_id] = sorted(path, key=lambda x: x[0])

    def add_price(self, feed_id: str, timestamp: datetime, answer: int):
        """Add an observation, keeping the history sorted by timestamp."""
        self.price_history.setdefault(feed_id, []).append((timestamp, answer))
        self.price_history[feed_id].sort(key=lambda x: x[0])

    def add_prices(self, answers: Dict[str, int], timestamp: datetime):
        """Add observations for several feeds at the same timestamp."""
        for feed_id, answer in answers.items():
            self.add_price(feed_id, timestamp, answer)

    def latest_round_data(self, feed_id: str) -> PriceRound:
        """
        Round for the latest observation at or before clock().

        Raises:
            OracleUnavailable: If the feed is unknown or has no observation yet
        """
        history = self.price_history.get(feed_id)
        if not history:
            raise OracleUnavailable(f"Unknown price feed {feed_id}")

        timestamps = [ts for ts, _ in history]
        idx = bisect_right(timestamps, self.clock())
        if idx == 0:
            raise OracleUnavailable(f"No {feed_id} observation at or before {self.clock()}")

        updated_at, answer = history[idx - 1]
        return PriceRound(
            round_id=idx,
            answer=answer,
            decimals=self.decimals,
            started_at=updated_at,
            updated_at=updated_at,
            answered_in_round=idx,
        )

    def get_all_timestamps(self, feed_id: Optional[str] = None) -> List[datetime]:
        """Sorted observation timestamps for one feed, or the union over all feeds."""
        if feed_id:
            return [ts for ts, _ in self.price_history.get(feed_id, [])]
        all_times = set()
        for path in self.price_history.values():
            all_times.update(ts for ts, _ in path)
        return sorted(all_times)

    def __repr__(self):
        total_observations = sum(len(history) for history in self.price_history.values())
        return f"TimeSeriesPriceFeed({len(self.price_history)} feeds, {total_observations} observations)"


def stale_checked_round(
    feed: PriceFeed,
    feed_id: str,
    now: datetime,
    timeout: timedelta = ORACLE_TIMEOUT,
) -> PriceRound:
    """
    Fetch the latest round and reject it unless it is usable.

    Raises:
        OracleUnavailable: If the answer is not positive, the round is
            incomplete (answered in an earlier round) or older than timeout
    """
    price_round = feed.latest_round_data(feed_id)
    if price_round.answer <= 0:
        raise OracleUnavailable(f"{feed_id} answered non-positive price {price_round.answer}")
    if price_round.answered_in_round < price_round.round_id:
        raise OracleUnavailable(
            f"{feed_id} round {price_round.round_id} answered in earlier round {price_round.answered_in_round}"
        )
    if now - price_round.updated_at > timeout:
        raise OracleUnavailable(f"{feed_id} price last updated {price_round.updated_at}, stale at {now}")
    return price_round
