"""
Zoom REST API client (server-to-server OAuth).

Obtains an account-credentials access token, caches it until shortly
before it expires, and proxies the meeting and recording endpoints the
booking flow needs. A 401 from the API clears the cached token and the
call is retried exactly once with a fresh one.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx

from utils.errors import AuthConfigError, ProviderApiError, ValidationError

logger = logging.getLogger(__name__)

AUTO_RECORDING_MODES = ("local", "cloud", "none")


class AccessTokenCache:
    """Single bearer token plus the instant it stops being usable.

    Check-then-use without locking: two callers may both refresh after
    expiry, the later write simply wins.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def get(self) -> Optional[str]:
        if self._token and self._clock() < self._expires_at:
            return self._token
        return None

    def set(self, token: str, expires_in: int, safety_margin: int = 60) -> None:
        self._token = token
        self._expires_at = self._clock() + max(int(expires_in) - safety_margin, 0)

    def clear(self) -> None:
        self._token = None
        self._expires_at = 0.0


@dataclass
class ZoomMeeting:
    id: str
    join_url: str
    start_url: Optional[str] = None
    raw: dict = field(default_factory=dict)


def format_start_time(value: datetime) -> str:
    """Zoom expects UTC ISO 8601 with a trailing Z; naive datetimes are taken as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0).isoformat() + "Z"


def _upstream_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:300]
    if isinstance(data, dict):
        return data.get("message") or data.get("error_description") or data.get("reason") or str(data)
    return str(data)


class ZoomClient:
    """Authenticated proxy for the Zoom meetings API."""

    def __init__(
        self,
        account_id: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
        base_url: str = "https://api.zoom.us/v2",
        token_url: str = "https://zoom.us/oauth/token",
        timeout: float = 15.0,
        safety_margin: int = 60,
        token_cache: Optional[AccessTokenCache] = None,
        http: Optional[httpx.Client] = None,
    ) -> None:
        self.account_id = account_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.safety_margin = safety_margin
        self.token_cache = token_cache or AccessTokenCache()
        self.http = http or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_config(cls, config, **kwargs) -> "ZoomClient":
        client = cls(
            account_id=config.get("ZOOM_ACCOUNT_ID"),
            client_id=config.get("ZOOM_CLIENT_ID"),
            client_secret=config.get("ZOOM_CLIENT_SECRET"),
            base_url=config.get("ZOOM_API_BASE_URL", "https://api.zoom.us/v2"),
            token_url=config.get("ZOOM_TOKEN_URL", "https://zoom.us/oauth/token"),
            timeout=config.get("ZOOM_HTTP_TIMEOUT_SECONDS", 15.0),
            safety_margin=config.get("ZOOM_TOKEN_SAFETY_MARGIN_SECONDS", 60),
            **kwargs,
        )
        missing = client.missing_credentials()
        if missing:
            logger.warning("Zoom credentials missing: %s. Zoom integration will not work.", ", ".join(missing))
        return client

    def close(self) -> None:
        self.http.close()

    def missing_credentials(self) -> list:
        missing = []
        if not self.account_id:
            missing.append("ZOOM_ACCOUNT_ID")
        if not self.client_id:
            missing.append("ZOOM_CLIENT_ID")
        if not self.client_secret:
            missing.append("ZOOM_CLIENT_SECRET")
        return missing

    # ---------- auth ----------

    def get_access_token(self) -> str:
        cached = self.token_cache.get()
        if cached:
            return cached

        missing = self.missing_credentials()
        if missing:
            raise AuthConfigError(f"Zoom credentials are missing: {', '.join(missing)}")

        try:
            response = self.http.post(
                self.token_url,
                params={"grant_type": "account_credentials", "account_id": self.account_id},
                auth=(self.client_id, self.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as exc:
            raise ProviderApiError(f"Failed to authenticate with Zoom: {exc}") from exc

        if response.status_code >= 400:
            message = _upstream_message(response)
            logger.error("Zoom token exchange failed: %s %s", response.status_code, message)
            raise ProviderApiError(
                f"Failed to authenticate with Zoom: {message}",
                status=response.status_code,
                upstream_message=message,
            )

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise ProviderApiError("Failed to obtain Zoom access token", status=response.status_code)

        self.token_cache.set(token, int(data.get("expires_in", 3600)), self.safety_margin)
        return token

    # ---------- transport ----------

    def _send(self, method: str, path: str, body: Optional[dict], token: str) -> httpx.Response:
        try:
            return self.http.request(
                method,
                path,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as exc:
            raise ProviderApiError(f"Zoom API timeout ({method} {path})") from exc
        except httpx.HTTPError as exc:
            raise ProviderApiError(f"Zoom API connection error ({method} {path}): {exc}") from exc

    def request(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        response = self._send(method, path, body, self.get_access_token())

        if response.status_code == 401:
            logger.info("Zoom token rejected, refreshing and retrying %s %s", method, path)
            self.token_cache.clear()
            response = self._send(method, path, body, self.get_access_token())

        if response.status_code >= 400:
            message = _upstream_message(response)
            logger.error("Zoom API error (%s %s): %s %s", method, path, response.status_code, message)
            raise ProviderApiError(
                f"Zoom API error: {message}",
                status=response.status_code,
                upstream_message=message,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ---------- meetings ----------

    def create_meeting(
        self,
        topic: str,
        start_time: datetime,
        duration_minutes: int,
        timezone_name: str = "UTC",
        password: Optional[str] = None,
        agenda: Optional[str] = None,
        host_video: bool = True,
        participant_video: bool = True,
        join_before_host: bool = False,
        mute_upon_entry: bool = False,
        waiting_room: bool = False,
        auto_recording: str = "none",
    ) -> ZoomMeeting:
        if duration_minutes < 1:
            raise ValidationError("Meeting duration must be at least 1 minute")
        if auto_recording not in AUTO_RECORDING_MODES:
            raise ValidationError(f"auto_recording must be one of: {', '.join(AUTO_RECORDING_MODES)}")

        payload = {
            "topic": topic,
            "type": 2,  # scheduled meeting
            "start_time": format_start_time(start_time),
            "duration": duration_minutes,
            "timezone": timezone_name,
            "settings": {
                "host_video": host_video,
                "participant_video": participant_video,
                "join_before_host": join_before_host,
                "mute_upon_entry": mute_upon_entry,
                "waiting_room": waiting_room,
                "approval_type": 0,  # automatically approve
                "audio": "both",
                "auto_recording": auto_recording,
                "use_pmi": False,
                "watermark": False,
            },
        }
        if password:
            payload["password"] = password
        if agenda:
            payload["agenda"] = agenda

        data = self.request("POST", "/users/me/meetings", payload)
        return ZoomMeeting(
            id=str(data["id"]),
            join_url=data["join_url"],
            start_url=data.get("start_url"),
            raw=data,
        )

    def update_meeting(self, meeting_id: str, fields: dict) -> None:
        self.request("PATCH", f"/meetings/{quote(str(meeting_id), safe='')}", fields)

    def delete_meeting(self, meeting_id: str) -> bool:
        """False when Zoom no longer knows the meeting; other failures raise."""
        try:
            self.request("DELETE", f"/meetings/{quote(str(meeting_id), safe='')}")
        except ProviderApiError as exc:
            if exc.is_not_found:
                logger.info("Zoom meeting %s already gone", meeting_id)
                return False
            raise
        return True

    def get_meeting(self, meeting_id: str) -> dict:
        return self.request("GET", f"/meetings/{quote(str(meeting_id), safe='')}")

    def get_meeting_recordings(self, meeting_id: str) -> list:
        data = self.request("GET", f"/meetings/{quote(str(meeting_id), safe='')}/recordings") or {}
        return data.get("recording_files") or []
