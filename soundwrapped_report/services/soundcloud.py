"""SoundCloud resource fetches for the report"""
import logging
from typing import List

from soundwrapped_report.exceptions import MalformedResponse, UpstreamRequestFailed
from soundwrapped_report.models.upstream import (
    ExternalPlaylist,
    ExternalTrack,
    ExternalUser,
    decode_playlist,
    decode_track,
    decode_user,
)
from soundwrapped_report.services.api_client import ResilientApiClient

logger = logging.getLogger(__name__)


class SoundCloudAPI:
    """Handles all SoundCloud resource lookups, returning decoded records"""

    def __init__(self, client: ResilientApiClient):
        self.client = client

    def get_profile(self) -> ExternalUser:
        """Get the authenticated user's profile"""
        logger.info("Fetching user profile...")
        profile = decode_user(self.client.fetch_one('me'))
        if profile is None:
            raise MalformedResponse("Profile response has no user id", url='me')
        logger.info(f"Profile fetched for user ID: {profile.id}")
        return profile

    def get_uploads(self) -> List[ExternalTrack]:
        logger.info("Fetching uploaded tracks...")
        return self.client.fetch_paginated('me/tracks', decode=decode_track)

    def get_likes(self) -> List[ExternalTrack]:
        logger.info("Fetching liked tracks...")
        return self.client.fetch_paginated('me/favorites', decode=decode_track)

    def get_tracks(self) -> List[ExternalTrack]:
        """
        The user's tracks: their uploads, or their liked tracks when they have no
        uploads or the uploads cannot be fetched.
        """
        try:
            uploads = self.get_uploads()
            if uploads:
                return uploads
            logger.info("No uploaded tracks found, falling back to liked tracks")
        except UpstreamRequestFailed as e:
            logger.warning(f"Fetching uploaded tracks failed, falling back to liked tracks: {e}")
        return self.get_likes()

    def get_playlists(self) -> List[ExternalPlaylist]:
        logger.info("Fetching playlists...")
        return self.client.fetch_paginated('me/playlists', decode=decode_playlist)

    def get_followers(self) -> List[ExternalUser]:
        logger.info("Fetching followers...")
        return self.client.fetch_paginated('me/followers', decode=decode_user)

    def get_followings(self) -> List[ExternalUser]:
        logger.info("Fetching followed users...")
        return self.client.fetch_paginated('me/followings', decode=decode_user)

    def get_user_tracks(self, user_id: str) -> List[ExternalTrack]:
        """
        One page of another user's uploads, else one page of their favorites.
        Empty when both are inaccessible (private accounts, API restrictions).
        """
        params = {'linked_partitioning': 'true', 'limit': self.client.page_size}
        for resource in ('tracks', 'favorites'):
            path = f'users/{user_id}/{resource}'
            try:
                page = self.client.fetch_one(path, params=params)
            except UpstreamRequestFailed as e:
                logger.info(f"Could not fetch {resource} for user {user_id}: {e}")
                continue
            collection = page.get('collection')
            if not isinstance(collection, list):
                continue
            tracks = [track for track in (decode_track(item) for item in collection) if track is not None]
            if tracks:
                return tracks
        return []
