#!/usr/bin/env python3
"""
Tour Stats - Entry Point

Usage:
    python run.py --date 2025-06-20      # Enhanced setlist for one show
    python run.py --dashboard            # Current tour leaderboards
    python run.py --dashboard --csv out.csv
"""

import argparse
import logging
import sys

from tourstats import config
from tourstats.engine import create_engine
from tourstats.errors import ConfigurationError, SetlistUnavailableError, UpstreamError
from tourstats.export import leaderboards_to_dataframe, setlist_to_dataframe
from tourstats.phishin_api import PhishInAPI


def print_header(title):
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)


def show_setlist(engine, show_date):
    setlist = engine.get_enhanced_setlist(show_date)
    show = setlist.show

    print_header(f"{show.show_date}  {show.venue_name}, {show.city}, {show.state}")
    if setlist.tour_position:
        pos = setlist.tour_position
        print(f"{pos.tour_name}: show {pos.show_number} of {pos.total_shows}")
    if setlist.venue_run:
        run = setlist.venue_run
        print(f"Night {run.night_number} of {run.total_nights} at {run.venue}")

    print("\n" + setlist_to_dataframe(setlist).to_string(index=False))

    longest = PhishInAPI.get_longest_track(list(setlist.durations))
    if longest:
        print(f"\nLongest track: {longest.song_name} "
              f"({PhishInAPI.get_track_duration_minutes(longest):.1f} min)")
    if setlist.recordings:
        rec = setlist.recordings[0]
        print(f"Recording: {rec.recording_type}{'' if rec.is_available else ' (missing)'}")


def show_dashboard(engine, csv_path=None):
    boards = engine.get_current_tour_leaderboards()
    print_header(f"{boards.tour_name or 'No current tour'} "
                 f"({boards.shows_folded} shows through {boards.latest_show_date})")

    df = leaderboards_to_dataframe(boards)
    for board, title in (('longest', 'LONGEST'), ('rarest', 'RAREST'), ('most_played', 'MOST PLAYED')):
        rows = df[df['board'] == board]
        print(f"\n{title}")
        if rows.empty:
            print("  (none yet)")
            continue
        print(rows[['rank', 'song', 'display', 'date', 'venue']].to_string(index=False))

    if csv_path:
        df.to_csv(csv_path, index=False)
        print(f"\nSaved: {csv_path}")


def main():
    parser = argparse.ArgumentParser(description='Tour Statistics')
    parser.add_argument('--date', type=str, default=None,
                        help='Show date (YYYY-MM-DD) for an enhanced setlist')
    parser.add_argument('--dashboard', action='store_true',
                        help='Current tour leaderboards')
    parser.add_argument('--csv', type=str, default=None,
                        help='Write dashboard rows to a CSV file')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')

    args = parser.parse_args()
    if not args.date and not args.dashboard:
        parser.error("use --date YYYY-MM-DD and/or --dashboard")

    config.setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        engine = create_engine(progress=True)
    except ConfigurationError as e:
        print(e)
        return 1

    try:
        if args.date:
            show_setlist(engine, args.date)
        if args.dashboard:
            show_dashboard(engine, args.csv)
    except SetlistUnavailableError as e:
        print(f"\n{e}")
        return 1
    except UpstreamError as e:
        print(f"\nUpstream error: {e}")
        return 1
    except ValueError as e:
        print(f"\nInvalid date: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
