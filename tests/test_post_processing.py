"""Testing the event log and its dataframe conversions"""
from __future__ import annotations  # types are strings by default in 3.11

import unittest

from fixedpointmath import FixedPoint

from lendpy.events import Event, EventLog, EventType
from lendpy.utils import post_processing

import utils_for_tests as test_utils  # pylint: disable=import-error


class TestEventLog(unittest.TestCase):
    """Bounded event storage"""

    def test_maxlen_drops_oldest(self):
        """a bounded log keeps only the newest events"""
        event_log = EventLog(maxlen=3)
        for timestamp in range(5):
            event_log.add(Event(timestamp=FixedPoint(timestamp), event_type=EventType.DEPOSIT))
        self.assertEqual(len(event_log), 3)
        self.assertEqual([event.timestamp for event in event_log.tail()], [FixedPoint(2), FixedPoint(3), FixedPoint(4)])
        self.assertEqual([event.timestamp for event in event_log.tail(2)], [FixedPoint(3), FixedPoint(4)])
        self.assertEqual(event_log.tail(0), [])

    def test_filter(self):
        """events are selected by type"""
        event_log = EventLog()
        event_log.add(Event(timestamp=FixedPoint(0), event_type=EventType.DEPOSIT))
        event_log.add(Event(timestamp=FixedPoint(1), event_type=EventType.BORROW))
        event_log.add(Event(timestamp=FixedPoint(2), event_type=EventType.DEPOSIT))
        self.assertEqual(len(event_log.filter(EventType.DEPOSIT)), 2)
        self.assertEqual(event_log.filter(EventType.REPAY), [])

    def test_market_emits_events(self):
        """every committed entry point emits one event on the shared log"""
        market = test_utils.get_borrowing_market()
        event_types = [event.event_type for event in market.event_log.events]
        self.assertEqual(
            event_types,
            [
                EventType.COLLATERAL_ADDED,
                EventType.LTV_SET,
                EventType.DEPOSIT,
                EventType.COLLATERAL_DEPOSITED,
                EventType.BORROW,
            ],
        )
        self.assertIs(market.event_log, market.vault.event_log)


class TestPostProcessing(unittest.TestCase):
    """Dataframes for analysis"""

    def test_events_df(self):
        """events become rows and their metadata becomes columns"""
        market = test_utils.get_borrowing_market()
        events_df = post_processing.get_events_df(market.event_log)
        self.assertEqual(len(events_df), len(market.event_log))
        for column in post_processing.EVENT_COLUMNS + ["ltv", "shares", "principal", "rate"]:
            self.assertIn(column, events_df.columns)
        borrow_row = events_df[events_df.event_type == "borrow"].iloc[0]
        self.assertEqual(borrow_row.actor, test_utils.BORROWER)
        self.assertAlmostEqual(borrow_row.amount, 500.0)
        self.assertAlmostEqual(borrow_row.rate, 0.12)

    def test_empty_events_df(self):
        """an empty log still has the base columns"""
        events_df = post_processing.get_events_df(EventLog())
        self.assertEqual(len(events_df), 0)
        self.assertEqual(list(events_df.columns), post_processing.EVENT_COLUMNS)

    def test_snapshots_df(self):
        """snapshots become rows with derived percentage and return columns"""
        market = test_utils.get_borrowing_market()
        snapshots = [market.snapshot()]
        market.block_time.tick(FixedPoint(365 * 24 * 60 * 60))
        snapshots.append(market.snapshot())
        snapshots_df = post_processing.get_snapshots_df(snapshots)
        self.assertEqual(len(snapshots_df), 2)
        self.assertAlmostEqual(snapshots_df.utilization_percent.iloc[0], 50.0)
        self.assertAlmostEqual(snapshots_df.borrow_rate_percent.iloc[0], 12.0)
        self.assertAlmostEqual(snapshots_df.share_price_total_return.iloc[0], 0.0)
        self.assertAlmostEqual(snapshots_df.borrowed_plus_interest.iloc[1], 560.0)
        self.assertAlmostEqual(snapshots_df.share_price_total_return.iloc[1], 0.06)
        self.assertEqual(snapshots_df.asset.iloc[0], test_utils.BORROW_ASSET)
        self.assertTrue(post_processing.get_snapshots_df([]).empty)


if __name__ == "__main__":
    unittest.main()
