"""Video Service - Whereby room provisioning for paid sessions."""

import logging
from datetime import timedelta

import httpx

from src.core.config import get_settings
from src.core.exceptions import VideoRoomError
from src.models.session import CounselingSession

logger = logging.getLogger(__name__)

ROOM_WINDOW = timedelta(hours=2)


class VideoService:
    """Creates a meeting room covering a session's scheduled window."""

    def __init__(self, api_key: str | None = None, base_url: str | None = None) -> None:
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.whereby_api_key
        self.base_url = (base_url or settings.whereby_base_url).rstrip("/")
        self.timeout = settings.http_timeout_seconds

    async def create_room(self, session: CounselingSession) -> str:
        """Create a room from the session start to two hours later.

        Returns:
            Room URL

        Raises:
            VideoRoomError: Not configured, unreachable, or rejected
        """
        if not self.api_key:
            raise VideoRoomError("Video provider is not configured")

        start = session.date
        payload = {
            "startDate": f"{start.isoformat()}Z",
            "endDate": f"{(start + ROOM_WINDOW).isoformat()}Z",
            "roomMode": "group",
            "roomNamePrefix": f"session-{str(session.id)[-6:]}",
            "roomNamePattern": "uuid",
            "fields": ["roomUrl"],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/meetings", json=payload, headers=headers
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise VideoRoomError(
                f"Video room rejected: HTTP {e.response.status_code}",
                {"status_code": e.response.status_code},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise VideoRoomError(f"Video room request failed: {e}") from e

        room_url = data.get("roomUrl")
        if not room_url:
            raise VideoRoomError("Video room response missing roomUrl")

        logger.info(f"Video room created for session {session.id}")
        return room_url
