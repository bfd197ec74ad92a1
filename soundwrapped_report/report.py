"""Year-in-review report assembly"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence

from soundwrapped_report import aggregation
from soundwrapped_report.config import Settings
from soundwrapped_report.genres import analyze_genres
from soundwrapped_report.models.db import ActivityType
from soundwrapped_report.models.report import (
    ApiStats,
    Doppelganger,
    ListeningPatterns,
    MostPlayedTrack,
    ProfileSection,
    RankedArtist,
    RankedPlaylist,
    RankedTrack,
    Report,
    RepostedTrack,
    TrackedStats,
)
from soundwrapped_report.models.upstream import ExternalPlaylist, ExternalTrack, ExternalUser
from soundwrapped_report.results import SourceResult, fetch_source
from soundwrapped_report.services.soundcloud import SoundCloudAPI
from soundwrapped_report.services.storage import ActivityStore
from soundwrapped_report.similarity import SimilarityMatcher

logger = logging.getLogger(__name__)

TOP_LIMIT = 5
MOST_PLAYED_LIMIT = 10


class ReportAssembler:
    """
    Builds a Report from the upstream API and the tracked activity log.

    Each source is fetched on its own; a failing source leaves its sections at their
    zero/empty defaults and adds a note. Only a missing or unrefreshable credential
    (AuthenticationRequired) aborts the report.
    """

    def __init__(self, api: SoundCloudAPI, store: ActivityStore, settings: Settings,
                 matcher: Optional[SimilarityMatcher] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Optional[Callable[[], datetime]] = None):
        self.api = api
        self.store = store
        self.settings = settings
        self.matcher = matcher or SimilarityMatcher()
        self.sleep = sleep
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _pause(self) -> None:
        """Space out top-level calls to make rate-limit rejections less likely"""
        if self.settings.SYNC_DELAY_SECONDS > 0:
            self.sleep(self.settings.SYNC_DELAY_SECONDS)

    def generate(self) -> Report:
        """Fetch every source, aggregate, and assemble the report"""
        now = self.clock()
        window_start = now - timedelta(days=self.settings.REPORT_WINDOW_DAYS)

        # --- Stage 1: Fetch upstream sources, one at a time ---
        logger.info("Fetching upstream sources...")
        profile_result = fetch_source("profile", self.api.get_profile, None)
        self._pause()
        likes_result = fetch_source("likes", self.api.get_likes, [])
        self._pause()
        tracks_result = fetch_source("tracks", self.api.get_tracks, [])
        self._pause()
        playlists_result = fetch_source("playlists", self.api.get_playlists, [])
        self._pause()
        followers_result = fetch_source("followers", self.api.get_followers, [])
        self._pause()
        followings_result = fetch_source("followed users", self.api.get_followings, [])

        profile: Optional[ExternalUser] = profile_result.value
        likes: List[ExternalTrack] = likes_result.value
        tracks: List[ExternalTrack] = tracks_result.value
        playlists: List[ExternalPlaylist] = playlists_result.value
        followers: List[ExternalUser] = followers_result.value
        followings: List[ExternalUser] = followings_result.value
        notes = [result.note for result in (profile_result, likes_result, tracks_result, playlists_result,
                                            followers_result, followings_result) if not result.ok]

        # --- Stage 2: Read tracked in-app activity ---
        tracked_stats = TrackedStats(window_start=window_start, window_end=now)
        plays: list = []
        if profile is not None:
            titles = {track.id: track.title for track in likes + tracks}
            tracked_result = fetch_source(
                "tracked activity",
                lambda: self._tracked_stats(profile.id, window_start, now, titles),
                tracked_stats
            )
            plays_result = fetch_source(
                "listening history",
                lambda: self.store.play_activities_in_range(profile.id, window_start, now),
                []
            )
            tracked_stats, plays = tracked_result.value, plays_result.value
            notes.extend(result.note for result in (tracked_result, plays_result) if not result.ok)
        else:
            notes.append("tracked activity unavailable: the profile (and so the user id) could not be fetched")

        # --- Stage 3: Aggregate ---
        logger.info("Aggregating report sections...")
        top_tracks = self._top_tracks(tracks)
        top_artists = self._top_artists(likes)
        listening_patterns = aggregation.analyze_listening_patterns(plays)
        report = Report(
            profile=self._profile_section(profile, now),
            api_stats=self._api_stats(profile, likes, tracks, playlists, followers, followings),
            tracked_stats=tracked_stats,
            genre_analysis=analyze_genres(tracks),
            listening_patterns=listening_patterns,
            doppelganger=self._doppelganger(tracks, followings_result),
            top_tracks=top_tracks,
            top_artists=top_artists,
            notes=notes,
            generated_at=now
        )
        report.stories = self._stories(report)

        if notes:
            logger.warning(f"Report generated with {len(notes)} degraded sources")
        else:
            logger.info("Report generated successfully")
        return report

    def _tracked_stats(self, user_id: str, start: datetime, end: datetime,
                       titles: Dict[str, str]) -> TrackedStats:
        counts = self.store.counts_by_type_in_range(user_id, start, end)
        listening_hours = aggregation.ms_to_hours(self.store.sum_duration_in_range(user_id, start, end))
        most_played = self.store.most_played_track_ids_in_range(user_id, start, end, limit=MOST_PLAYED_LIMIT)
        return TrackedStats(
            in_app_plays=counts[ActivityType.PLAY],
            in_app_likes=counts[ActivityType.LIKE],
            in_app_reposts=counts[ActivityType.REPOST],
            in_app_shares=counts[ActivityType.SHARE],
            in_app_listening_hours=listening_hours,
            books_equivalent=aggregation.books_equivalent(listening_hours),
            most_played_tracks=[
                MostPlayedTrack(track_id=track_id, title=titles.get(track_id), play_count=count)
                for track_id, count in most_played
            ],
            window_start=start,
            window_end=end
        )

    def _profile_section(self, profile: Optional[ExternalUser], now: datetime) -> ProfileSection:
        if profile is None:
            return ProfileSection()
        return ProfileSection(
            user_id=profile.id,
            username=profile.username,
            full_name=profile.full_name,
            followers=profile.followers_count,
            following=profile.following_count,
            tracks_uploaded=profile.track_count,
            playlists_created=profile.playlist_count,
            account_age_years=aggregation.account_age_years(profile.created_at, now)
        )

    def _api_stats(self, profile: Optional[ExternalUser], likes: List[ExternalTrack],
                   tracks: List[ExternalTrack], playlists: List[ExternalPlaylist],
                   followers: List[ExternalUser], followings: List[ExternalUser]) -> ApiStats:
        follower_count = profile.followers_count if profile else 0
        following_count = profile.following_count if profile else 0

        like_years = aggregation.count_years(track.created_at for track in likes)
        peak_year = aggregation.peak_key(like_years)

        listening_ms = aggregation.artist_listening_ms(tracks)
        listening_hours = {artist: aggregation.ms_to_hours(ms) for artist, ms in listening_ms.items()}

        newest = aggregation.newest_follower(followers)

        return ApiStats(
            total_tracks_available=profile.track_count if profile else 0,
            tracks_fetched=len(tracks),
            total_likes_on_profile=profile.public_favorites_count if profile else 0,
            likes_fetched=len(likes),
            playlists_fetched=len(playlists),
            followers_fetched=len(followers),
            following_fetched=len(followings),
            total_listening_hours=aggregation.total_listening_hours(track.duration_ms for track in tracks),
            peak_year=peak_year,
            peak_year_likes=like_years.get(peak_year, 0) if peak_year is not None else 0,
            top_playlists=[
                RankedPlaylist(rank=rank, title=playlist.title, likes_count=playlist.likes_count)
                for rank, playlist in enumerate(
                    aggregation.top_n(playlists, lambda p: p.likes_count, TOP_LIMIT), start=1)
            ],
            top_reposted_tracks=[
                RepostedTrack(title=track.title, reposts=track.reposts_count)
                for track in aggregation.top_n(tracks, lambda t: t.reposts_count, TOP_LIMIT)
            ],
            top_artists_by_hours=aggregation.top_keys(listening_hours, TOP_LIMIT),
            artist_listening_hours=listening_hours,
            fun_fact=aggregation.fun_fact(follower_count),
            follow_ratio_fact=aggregation.follow_ratio_fact(follower_count, following_count),
            newest_follower=f"Your newest follower is @{newest.username}!" if newest else None
        )

    def _top_tracks(self, tracks: List[ExternalTrack]) -> List[RankedTrack]:
        return [
            RankedTrack(
                rank=rank,
                track_id=track.id,
                title=track.title,
                artist=track.artist_name or "Unknown Artist",
                play_count=track.playback_count
            )
            for rank, track in enumerate(aggregation.top_n(tracks, lambda t: t.playback_count, TOP_LIMIT), start=1)
        ]

    def _top_artists(self, likes: List[ExternalTrack]) -> List[RankedArtist]:
        counts = aggregation.count_artists(likes)
        return [
            RankedArtist(rank=rank, artist=artist, track_count=counts[artist])
            for rank, artist in enumerate(aggregation.top_keys(counts, TOP_LIMIT), start=1)
        ]

    def _candidate_tracks(self, user_id: str) -> Sequence[ExternalTrack]:
        if self.settings.CANDIDATE_DELAY_SECONDS > 0:
            self.sleep(self.settings.CANDIDATE_DELAY_SECONDS)
        return self.api.get_user_tracks(user_id)

    def _doppelganger(self, tracks: List[ExternalTrack],
                      followings_result: SourceResult[List[ExternalUser]]) -> Doppelganger:
        if not followings_result.ok:
            return Doppelganger(found=False, message="Could not fetch the users you follow")
        return self.matcher.find_best_match(tracks, followings_result.value, self._candidate_tracks)

    def _stories(self, report: Report) -> List[str]:
        stories: List[str] = []
        if report.top_tracks:
            track = report.top_tracks[0]
            stories.append(f"Your #1 track this year was \"{track.title}\" by {track.artist}. "
                           f"You just couldn't get enough of it!")
        if report.top_artists:
            stories.append(f"You vibed most with {report.top_artists[0].artist}, "
                           f"clearly your top artist of the year.")

        hours = report.tracked_stats.in_app_listening_hours or report.api_stats.total_listening_hours
        if hours > 0:
            stories.append(f"You spent {hours:.1f} hours listening, enough to binge whole seasons "
                           f"of your favorite shows!")
        if report.tracked_stats.books_equivalent >= 1:
            stories.append(f"That's time enough to read {int(report.tracked_stats.books_equivalent)} books.")

        patterns: ListeningPatterns = report.listening_patterns
        if patterns.has_data and patterns.listening_persona:
            stories.append(f"Your listening persona: {patterns.listening_persona}. "
                           f"Most of your plays land around {patterns.peak_hour_label}.")

        if report.doppelganger.found and report.doppelganger.match:
            match = report.doppelganger.match
            stories.append(f"Your music doppelganger is @{match.username}, "
                           f"with {match.similarity_percentage}% taste overlap.")

        if report.api_stats.fun_fact:
            stories.append(f"Fun fact: {report.api_stats.fun_fact}")
        return stories
