"""Voice room tokens for mic stage audio."""

import logging

from livekit import api

from airchat.core.config import settings
from airchat.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

VOICE_ROOM_PREFIX = "stage-"


def stage_voice_room(stage_key: str) -> str:
    return f"{VOICE_ROOM_PREFIX}{stage_key}"


class LiveKitService:
    """Mints LiveKit tokens; audio itself never passes through this server."""

    def __init__(self):
        if not (settings.LIVEKIT_API_KEY and settings.LIVEKIT_API_SECRET):
            logger.warning("Voice token requested but LiveKit credentials are not set")
            raise ExternalServiceError("Voice is not configured on this server.")
        self.url = settings.LIVEKIT_URL
        self._credentials = (settings.LIVEKIT_API_KEY, settings.LIVEKIT_API_SECRET)

    def create_access_token(
        self,
        room_name: str,
        participant_name: str,
        participant_identity: str,
        can_publish: bool = False,
        can_subscribe: bool = True,
    ) -> str:
        """Token for joining ``room_name``.

        Everyone may listen; ``can_publish`` is only granted to a seated,
        unmuted speaker.
        """
        grants = api.VideoGrants(
            room_join=True,
            room=room_name,
            can_publish=can_publish,
            can_publish_data=False,
            can_subscribe=can_subscribe,
        )
        return (
            api.AccessToken(*self._credentials)
            .with_identity(participant_identity)
            .with_name(participant_name)
            .with_grants(grants)
            .to_jwt()
        )
