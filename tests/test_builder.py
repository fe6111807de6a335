"""
Tests for the enhanced setlist builder: concurrency, degradation,
gap fetching and caching.
"""

import os
import sys
import time
import unittest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tourstats.builder import EnhancedSetlistBuilder
from tourstats.cache import AggregationCache, CacheKeys
from tourstats.errors import SetlistUnavailableError
from tourstats.models import MatchKind, SongGap

from fakes import FakeAudioSource, FakeSetlistSource, d, make_entries, make_show, make_tracks


EARLY_SUMMER = "2025 Early Summer Tour"


def scenario_sources(audio_error=False, delay=0.0):
    """Three-show tour: two nights at Venue A then one at Venue B."""
    source = FakeSetlistSource(delay=delay)
    source.add_setlist(make_show("2025-06-20", venue="Venue A", tour=EARLY_SUMMER),
                       make_entries("Tweezer", "Ghost", "Tweezer Reprise", gaps={"Ghost": 4}))
    source.add_setlist(make_show("2025-06-21", venue="Venue A", tour=EARLY_SUMMER),
                       make_entries("Sand", "Harry Hood"))
    source.add_setlist(make_show("2025-06-24", venue="Venue B", tour=EARLY_SUMMER),
                       make_entries("Fuego"))
    source.gaps[("Tweezer", d("2025-06-20"))] = SongGap(
        song_name="Tweezer", gap=12, show_date=d("2025-06-20"),
        last_played=d("2024-12-31"), historical_venue="Madison Square Garden",
    )

    audio = FakeAudioSource(
        durations={d("2025-06-20"): make_tracks(("Tweezer", 1420), ("Ghost", 780), ("Tweezer Reprise", 260))},
        raise_error=audio_error,
        delay=delay,
    )
    return source, audio


def make_builder(source, audio, **kwargs):
    kwargs.setdefault("gap_delay", 0)
    return EnhancedSetlistBuilder(source, audio, AggregationCache(), **kwargs)


class TestScenario(unittest.TestCase):

    def setUp(self):
        source, audio = scenario_sources()
        self.builder = make_builder(source, audio)

    def test_venue_runs_and_positions(self):
        first = self.builder.build(d("2025-06-20"))
        second = self.builder.build(d("2025-06-21"))
        third = self.builder.build(d("2025-06-24"))

        self.assertEqual((first.venue_run.night_number, first.venue_run.total_nights), (1, 2))
        self.assertEqual((second.venue_run.night_number, second.venue_run.total_nights), (2, 2))
        self.assertIsNone(third.venue_run)

        for number, setlist in enumerate([first, second, third], start=1):
            self.assertEqual(setlist.tour_position.show_number, number)
            self.assertEqual(setlist.tour_position.total_shows, 3)
            self.assertEqual(setlist.tour_name, EARLY_SUMMER)

    def test_durations_are_reconciled(self):
        setlist = self.builder.build(d("2025-06-20"))
        self.assertEqual([m.kind for m in setlist.matches], [MatchKind.POSITION] * 3)
        self.assertEqual(setlist.matches[2].duration.duration_seconds, 260)
        self.assertEqual(len(setlist.recordings), 1)

    def test_gap_records_and_fallback(self):
        setlist = self.builder.build(d("2025-06-20"))
        gaps = {g.song_name: g for g in setlist.song_gaps}

        self.assertEqual(gaps["Tweezer"].gap, 12)
        self.assertEqual(gaps["Tweezer"].historical_venue, "Madison Square Garden")
        # no upstream record, falls back to the setlist's own gap
        self.assertEqual(gaps["Ghost"].gap, 4)
        self.assertNotIn("Tweezer Reprise", gaps)

    def test_to_dict_is_json_safe(self):
        data = self.builder.build(d("2025-06-20")).to_dict()
        self.assertEqual(data["show"]["show_date"], "2025-06-20")
        self.assertEqual(data["matches"][0]["kind"], "position")
        self.assertEqual(data["venue_run"]["show_dates"], ["2025-06-20", "2025-06-21"])


class TestCaching(unittest.TestCase):

    def test_warm_cache_returns_identical_result(self):
        source, audio = scenario_sources()
        builder = make_builder(source, audio)

        first = builder.build(d("2025-06-20"))
        second = builder.build(d("2025-06-20"))

        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), second.to_dict())
        self.assertEqual(source.calls["fetch_setlist"], 1)
        self.assertEqual(audio.calls["fetch_track_durations"], 1)

    def test_year_show_list_fetched_once_per_build(self):
        source, audio = scenario_sources()
        builder = make_builder(source, audio)
        builder.build(d("2025-06-20"))
        builder.build(d("2025-06-21"))
        self.assertEqual(source.calls["fetch_shows_for_year"], 1)

    def test_result_stored_under_enhanced_setlist_key(self):
        source, audio = scenario_sources()
        builder = make_builder(source, audio)
        setlist = builder.build(d("2025-06-21"))
        self.assertIs(builder.cache.get(CacheKeys.enhanced_setlist(d("2025-06-21"))), setlist)


class TestDegradation(unittest.TestCase):

    def test_audio_failure_still_builds(self):
        source, audio = scenario_sources(audio_error=True)
        setlist = make_builder(source, audio).build(d("2025-06-20"))

        self.assertEqual(setlist.durations, ())
        self.assertEqual(setlist.recordings, ())
        self.assertTrue(all(m.kind is MatchKind.UNMATCHED for m in setlist.matches))
        self.assertEqual(len(setlist.entries), 3)
        self.assertEqual(setlist.venue_run.total_nights, 2)
        self.assertEqual(setlist.tour_position.show_number, 1)
        self.assertTrue(setlist.song_gaps)

    def test_gap_failure_falls_back_to_entry_gap(self):
        source, audio = scenario_sources()
        source.failing_gaps.add("Tweezer")
        setlist = make_builder(source, audio).build(d("2025-06-20"))
        gaps = {g.song_name: g.gap for g in setlist.song_gaps}
        self.assertNotIn("Tweezer", gaps)
        self.assertEqual(gaps["Ghost"], 4)

    def test_setlist_failure_is_the_one_hard_error(self):
        source, audio = scenario_sources()
        source.failing_setlists.add(d("2025-06-20"))
        builder = make_builder(source, audio)

        with self.assertRaises(SetlistUnavailableError) as ctx:
            builder.build(d("2025-06-20"))
        self.assertEqual(ctx.exception.show_date, d("2025-06-20"))

        source.failing_setlists.clear()
        self.assertEqual(len(builder.build(d("2025-06-20")).entries), 3)

    def test_no_show_on_date(self):
        source, audio = scenario_sources()
        with self.assertRaises(SetlistUnavailableError):
            make_builder(source, audio).build(d("2025-06-22"))

    def test_slow_audio_times_out_independently(self):
        source, audio = scenario_sources()
        audio.delay = 1.0
        builder = make_builder(source, audio, subfetch_timeout=0.3)

        started = time.monotonic()
        setlist = builder.build(d("2025-06-20"))

        self.assertLess(time.monotonic() - started, 0.9)
        self.assertEqual(setlist.durations, ())
        self.assertEqual(len(setlist.entries), 3)


class TestConcurrency(unittest.TestCase):

    def test_sub_fetches_run_concurrently(self):
        source, audio = scenario_sources(delay=0.2)
        builder = make_builder(source, audio)

        started = time.monotonic()
        builder.build(d("2025-06-20"))
        elapsed = time.monotonic() - started

        # setlist, durations, recordings and the year list each take 0.2s
        self.assertLess(elapsed, 0.7)


class TestGapLoop(unittest.TestCase):

    def test_delay_between_gap_calls(self):
        source, audio = scenario_sources()
        sleep = MagicMock()
        builder = make_builder(source, audio, gap_delay=0.1, sleep=sleep)

        builder.build(d("2025-06-20"))

        self.assertEqual(source.calls["fetch_song_gap"], 3)
        self.assertEqual(sleep.call_count, 2)
        sleep.assert_called_with(0.1)

    def test_repeated_song_fetched_once(self):
        source = FakeSetlistSource()
        source.add_setlist(make_show("2025-06-20"), make_entries("Tweezer", "Ghost", "tweezer"))
        builder = make_builder(source, FakeAudioSource())

        builder.build(d("2025-06-20"))

        self.assertEqual([c[0] for c in source.gap_calls], ["Tweezer", "Ghost"])

    def test_gap_calls_are_sequential(self):
        source, audio = scenario_sources()
        builder = make_builder(source, audio, gap_delay=0.05)
        builder.build(d("2025-06-20"))

        times = [c[2] for c in source.gap_calls]
        gaps_between = [b - a for a, b in zip(times, times[1:])]
        self.assertTrue(all(g >= 0.045 for g in gaps_between))


if __name__ == "__main__":
    unittest.main()
