"""
Tabular views of engine results for the CLI and CSV export.
"""

from typing import List

import pandas as pd

from .models import EnhancedSetlist, TourLeaderboards
from .reconcile import format_duration

BOARDS = ('longest', 'rarest', 'most_played')


def leaderboards_to_dataframe(boards: TourLeaderboards) -> pd.DataFrame:
    """One row per leaderboard entry, tagged with its board and rank."""
    data = []
    for board in BOARDS:
        for rank, e in enumerate(getattr(boards, board), start=1):
            data.append({
                'board': board,
                'rank': rank,
                'song': e.song_name,
                'value': e.value,
                'display': format_duration(e.value) if board == 'longest' else str(e.value),
                'date': e.show_date.isoformat(),
                'venue': e.venue,
                'city': e.city,
                'state': e.state,
                'show_number': e.tour_position.show_number if e.tour_position else None,
                'last_played': e.last_played.isoformat() if e.last_played else None,
            })
    return pd.DataFrame(data, columns=[
        'board', 'rank', 'song', 'value', 'display', 'date', 'venue',
        'city', 'state', 'show_number', 'last_played',
    ])


def setlist_to_dataframe(setlist: EnhancedSetlist) -> pd.DataFrame:
    """One row per setlist entry with its matched duration and gap."""
    gaps = {g.song_name.strip().casefold(): g.gap for g in setlist.song_gaps}
    data: List[dict] = []
    for m in setlist.matches:
        e = m.entry
        data.append({
            'set': e.set_label,
            'position': e.position,
            'song': e.song_name,
            'transition': e.transition_mark or '',
            'duration': format_duration(m.duration.duration_seconds) if m.duration else '',
            'match': m.kind.value,
            'gap': gaps.get(e.song_name.strip().casefold(), e.gap),
        })
    return pd.DataFrame(data, columns=['set', 'position', 'song', 'transition', 'duration', 'match', 'gap'])
