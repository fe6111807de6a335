"""
Tests for the Phish.net and Phish.in clients with a mocked requests session.
"""

import os
import sys
import unittest
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tourstats.api import PhishNetAPI, song_slug
from tourstats.builder import EnhancedSetlistBuilder
from tourstats.cache import AggregationCache
from tourstats.errors import ConfigurationError, DecodeError, UpstreamError
from tourstats.phishin_api import PhishInAPI

from fakes import FakeSetlistSource, d, make_entries, make_show


def mock_session(payload=None, exc=None, json_error=False):
    session = MagicMock()
    response = MagicMock()
    if json_error:
        response.json.side_effect = ValueError("bad json")
    else:
        response.json.return_value = payload
    session.get.return_value = response
    if exc is not None:
        session.get.side_effect = exc
    return session


SETLIST_ROWS = {
    "error": False,
    "error_message": "",
    "data": [
        {"showdate": "2025-06-20", "artistid": 1, "venue": "Venue A", "city": "Raleigh", "state": "NC",
         "tourname": "2025 Early Summer Tour", "showid": 99, "set": "1", "position": 2,
         "song": "Ghost", "trans_mark": " > ", "gap": "4", "songid": 7},
        {"showdate": "2025-06-20", "artistid": 1, "venue": "Venue A", "city": "Raleigh", "state": "NC",
         "tourname": "2025 Early Summer Tour", "showid": 99, "set": "1", "position": 1,
         "song": "Tweezer", "trans_mark": ",", "gap": "12", "songid": 3},
        {"showdate": "2025-06-20", "artistid": 2, "song": "Side Project Song", "position": 1},
    ],
}


class TestPhishNetAPI(unittest.TestCase):

    def test_requires_api_key(self):
        with patch("tourstats.config.PHISHNET_API_KEY", None):
            with self.assertRaises(ConfigurationError):
                PhishNetAPI()

    def test_fetch_setlist(self):
        session = mock_session(SETLIST_ROWS)
        api = PhishNetAPI(api_key="key", session=session)

        setlist = api.fetch_setlist(d("2025-06-20"))

        self.assertEqual(setlist.show.venue_name, "Venue A")
        self.assertEqual(setlist.show.tour_name, "2025 Early Summer Tour")
        self.assertEqual([e.song_name for e in setlist.entries], ["Tweezer", "Ghost"])
        self.assertEqual(setlist.entries[0].gap, 12)
        self.assertEqual(setlist.entries[1].transition_mark, ">")
        args, kwargs = session.get.call_args
        self.assertTrue(args[0].endswith("setlists/showdate/2025-06-20.json"))
        self.assertEqual(kwargs["params"]["apikey"], "key")
        self.assertIn("timeout", kwargs)

    def test_no_show_is_none(self):
        api = PhishNetAPI(api_key="key", session=mock_session({"error": False, "data": []}))
        self.assertIsNone(api.fetch_setlist(d("2025-06-22")))

    def test_network_error_is_upstream_error(self):
        api = PhishNetAPI(api_key="key", session=mock_session(exc=requests.ConnectionError("down")))
        with self.assertRaises(UpstreamError):
            api.fetch_setlist(d("2025-06-20"))

    def test_bad_json_is_decode_error(self):
        api = PhishNetAPI(api_key="key", session=mock_session(json_error=True))
        with self.assertRaises(DecodeError):
            api.fetch_shows_for_year(2025)

    def test_api_error_message(self):
        payload = {"error": True, "error_message": "Invalid API key"}
        api = PhishNetAPI(api_key="key", session=mock_session(payload))
        with self.assertRaises(UpstreamError):
            api.fetch_shows_for_year(2025)

    def test_malformed_rows_are_decode_error(self):
        payload = {"data": [{"showdate": "2025-06-20", "position": 1}]}
        api = PhishNetAPI(api_key="key", session=mock_session(payload))
        with self.assertRaises(DecodeError):
            api.fetch_setlist(d("2025-06-20"))

    def test_non_object_rows_are_decode_error(self):
        api = PhishNetAPI(api_key="key", session=mock_session({"data": ["2025-06-20", 7]}))
        with self.assertRaises(DecodeError):
            api.fetch_setlist(d("2025-06-20"))
        with self.assertRaises(DecodeError):
            api.fetch_song_gap("Fuego", d("2025-06-20"))

    def test_fetch_shows_for_year(self):
        payload = {"data": [
            {"showdate": "2025-06-21", "artistid": 1, "venue": "Venue A", "tour_name": "T"},
            {"showdate": "2025-06-20", "artistid": 1, "venue": "Venue A", "tour_name": "T"},
            {"showdate": "2025-06-20", "artistid": 1, "venue": "Venue A", "tour_name": "T"},
            {"showdate": "2025-06-22", "artistid": 5, "venue": "Elsewhere"},
        ]}
        api = PhishNetAPI(api_key="key", session=mock_session(payload))
        shows = api.fetch_shows_for_year(2025)
        self.assertEqual([s.show_date for s in shows], [d("2025-06-20"), d("2025-06-21")])

    def test_fetch_song_gap_uses_previous_performance(self):
        payload = {"data": [
            {"showdate": "2025-06-20", "artistid": 1, "song": "Fuego", "gap": "85", "venue": "Venue A"},
            {"showdate": "2023-12-31", "artistid": 1, "song": "Fuego", "gap": "3",
             "venue": "Madison Square Garden", "city": "New York", "state": "NY"},
            {"showdate": "2019-07-04", "artistid": 1, "song": "Fuego", "gap": "20", "venue": "Alpine"},
        ]}
        session = mock_session(payload)
        api = PhishNetAPI(api_key="key", session=session)

        gap = api.fetch_song_gap("Fuego", d("2025-06-20"))

        self.assertEqual(gap.gap, 85)
        self.assertEqual(gap.last_played, d("2023-12-31"))
        self.assertEqual(gap.historical_venue, "Madison Square Garden")
        self.assertEqual(gap.times_played, 3)
        self.assertTrue(session.get.call_args[0][0].endswith("setlists/slug/fuego.json"))

        self.assertIsNone(api.fetch_song_gap("Fuego", d("2025-06-21")))

    def test_fetch_latest_show_falls_back_to_previous_year(self):
        api = PhishNetAPI(api_key="key", session=MagicMock())
        with patch.object(api, "fetch_shows_for_year") as fetch:
            fetch.side_effect = lambda year: [] if year == 2026 else [
                MagicMock(show_date=d("2025-12-30")), MagicMock(show_date=d("2025-12-31")),
            ]
            latest = api.fetch_latest_show(today=d("2026-01-15"))
        self.assertEqual(latest.show_date, d("2025-12-31"))

    def test_song_slug(self):
        self.assertEqual(song_slug("Mike's Song"), "mikes-song")
        self.assertEqual(song_slug("Also Sprach Zarathustra"), "also-sprach-zarathustra")


PHISHIN_SHOW = {
    "id": 1234,
    "date": "2025-06-20",
    "sbd": True,
    "missing": False,
    "venue": {"name": "Venue A"},
    "tracks": [
        {"id": 1, "title": "Tweezer", "set_name": "Set 1", "position": 1, "duration": 1420400,
         "mp3": "https://phish.in/audio/1.mp3", "songs": [{"id": 3}]},
        {"id": 2, "title": "Banter", "set_name": "Set 1", "position": 2, "duration": 0},
        {"id": 3, "title": "Ghost", "set_name": "Set 2", "position": 1, "duration": 779600},
    ],
}


class TestPhishInAPI(unittest.TestCase):

    def test_fetch_track_durations(self):
        api = PhishInAPI(session=mock_session(PHISHIN_SHOW))
        durations = api.fetch_track_durations(d("2025-06-20"))

        self.assertEqual([t.song_name for t in durations], ["Tweezer", "Ghost"])
        self.assertEqual(durations[0].duration_seconds, 1420)
        self.assertEqual(durations[1].duration_seconds, 780)
        self.assertEqual(durations[1].set_label, "Set 2")
        self.assertEqual(durations[0].song_id, 3)

    def test_fetch_recordings(self):
        api = PhishInAPI(session=mock_session(PHISHIN_SHOW))
        recording = api.fetch_recordings(d("2025-06-20"))[0]
        self.assertEqual(recording.recording_type, "soundboard")
        self.assertEqual(recording.venue_name, "Venue A")
        self.assertEqual(recording.url, "https://phish.in/audio/1.mp3")
        self.assertTrue(recording.is_available)

    def test_http_error_is_upstream_error(self):
        session = mock_session({})
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("404")
        with self.assertRaises(UpstreamError):
            PhishInAPI(session=session).fetch_track_durations(d("2025-06-20"))

    def test_bad_tracks_is_decode_error(self):
        api = PhishInAPI(session=mock_session({"tracks": "nope"}))
        with self.assertRaises(DecodeError):
            api.fetch_track_durations(d("2025-06-20"))

    def test_songs_not_a_list_is_decode_error(self):
        show = dict(PHISHIN_SHOW, tracks=[
            {"id": 1, "title": "Tweezer", "set_name": "Set 1", "position": 1, "duration": 1420400,
             "songs": {"id": 5}},
        ])
        api = PhishInAPI(session=mock_session(show))
        with self.assertRaises(DecodeError):
            api.fetch_track_durations(d("2025-06-20"))

    def test_recordings_with_bad_tracks_is_decode_error(self):
        api = PhishInAPI(session=mock_session(dict(PHISHIN_SHOW, tracks={"id": 1})))
        with self.assertRaises(DecodeError):
            api.fetch_recordings(d("2025-06-20"))

    def test_show_fetched_once_for_durations_and_recordings(self):
        session = mock_session(PHISHIN_SHOW)
        api = PhishInAPI(session=session)

        api.fetch_track_durations(d("2025-06-20"))
        api.fetch_recordings(d("2025-06-20"))

        self.assertEqual(session.get.call_count, 1)

    def test_longest_track_helpers(self):
        api = PhishInAPI(session=mock_session(PHISHIN_SHOW))
        durations = api.fetch_track_durations(d("2025-06-20"))
        longest = PhishInAPI.get_longest_track(durations)
        self.assertEqual(longest.song_name, "Tweezer")
        self.assertAlmostEqual(PhishInAPI.get_track_duration_minutes(longest), 1420 / 60)
        self.assertIsNone(PhishInAPI.get_longest_track([]))


class TestPhishInWithBuilder(unittest.TestCase):

    def setUp(self):
        self.source = FakeSetlistSource()
        self.source.add_setlist(make_show("2025-06-20", venue="Venue A"), make_entries("Tweezer", "Ghost"))

    def make_builder(self, session):
        cache = AggregationCache()
        return EnhancedSetlistBuilder(self.source, PhishInAPI(session=session, cache=cache), cache, gap_delay=0)

    def test_malformed_audio_payload_leaves_durations_empty(self):
        show = dict(PHISHIN_SHOW, tracks=[
            {"id": 1, "title": "Tweezer", "set_name": "Set 1", "position": 1, "duration": 1420400,
             "songs": {"id": 5}},
        ])
        setlist = self.make_builder(mock_session(show)).build(d("2025-06-20"))

        self.assertEqual(setlist.durations, ())
        self.assertEqual([e.song_name for e in setlist.entries], ["Tweezer", "Ghost"])
        self.assertFalse(any(m.is_matched for m in setlist.matches))

    def test_one_phishin_request_per_build(self):
        session = mock_session(PHISHIN_SHOW)
        setlist = self.make_builder(session).build(d("2025-06-20"))

        self.assertEqual(session.get.call_count, 1)
        self.assertEqual(len(setlist.durations), 2)
        self.assertEqual(len(setlist.recordings), 1)


if __name__ == "__main__":
    unittest.main()
