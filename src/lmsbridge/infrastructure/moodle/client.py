"""Moodle web-service gateway."""

import json
import logging
from typing import Any

import httpx

from lmsbridge.config import MoodleConfig
from lmsbridge.domain.entities import Course, EnrolledUser, Group, LmsUser
from lmsbridge.domain.exceptions import LmsServiceError

logger = logging.getLogger(__name__)

REST_PATH = "/webservice/rest/server.php"


def flatten_params(params: dict[str, Any], prefix: str = "") -> dict[str, str]:
    """Flatten nested parameters into Moodle's form encoding.

    {"groupids": [3]} becomes {"groupids[0]": "3"} and
    {"options": [{"name": "onlyactive"}]} becomes {"options[0][name]": "onlyactive"}.
    """
    flat: dict[str, str] = {}
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_params(value, name))
        elif isinstance(value, (list, tuple)):
            flat.update(flatten_params(dict(enumerate(value)), name))
        elif isinstance(value, bool):
            flat[name] = "1" if value else "0"
        else:
            flat[name] = str(value)
    return flat


def _to_user(data: dict[str, Any]) -> LmsUser:
    return LmsUser(
        id=int(data["id"]),
        email=data.get("email") or "",
        username=data.get("username") or "",
        first_name=data.get("firstname") or "",
        last_name=data.get("lastname") or "",
        suspended=bool(data.get("suspended", False)),
        deleted=bool(data.get("deleted", False)),
    )


def _to_group(data: dict[str, Any]) -> Group:
    return Group(
        id=int(data["id"]),
        course_id=int(data["courseid"]),
        name=data.get("name") or "",
    )


class MoodleGateway:
    """LmsGateway over the Moodle REST web services.

    Uses a web-service token with the core_enrol, core_group, core_user
    and core_course functions enabled.
    """

    def __init__(
        self,
        config: MoodleConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._url = f"{config.base_url.rstrip('/')}{REST_PATH}"
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()

    async def call(self, function: str, **params: Any) -> Any:
        """Call a web-service function.

        Args:
            function: wsfunction name.
            **params: Function arguments.

        Returns:
            Decoded JSON result.

        Raises:
            LmsServiceError: On transport failure, non-2xx status or a Moodle
                exception in the response body.
        """
        data = {
            "wstoken": self._config.token,
            "wsfunction": function,
            "moodlewsrestformat": "json",
            **flatten_params(params),
        }
        try:
            response = await self._http.post(
                self._url, data=data, timeout=self._config.timeout_seconds
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            logger.debug("Moodle %s failed: %s", function, e)
            raise LmsServiceError(f"{function} failed: {e}") from e
        except json.JSONDecodeError as e:
            raise LmsServiceError(f"{function} returned invalid JSON") from e

        if isinstance(result, dict) and "exception" in result:
            logger.debug(
                "Moodle %s raised %s: %s",
                function,
                result.get("errorcode"),
                result.get("message"),
            )
            raise LmsServiceError(
                result.get("message") or result["exception"],
                result.get("errorcode") or "",
            )
        return result

    async def get_user(self, user_id: int) -> LmsUser | None:
        result = await self.call(
            "core_user_get_users_by_field", field="id", values=[user_id]
        )
        if not result:
            return None
        return _to_user(result[0])

    async def get_course(self, course_id: int) -> Course | None:
        result = await self.call(
            "core_course_get_courses_by_field", field="id", value=course_id
        )
        courses = (result or {}).get("courses") or []
        if not courses:
            return None
        course = courses[0]
        return Course(
            id=int(course["id"]),
            shortname=course.get("shortname") or "",
            fullname=course.get("fullname") or "",
        )

    async def get_group(self, group_id: int) -> Group | None:
        try:
            result = await self.call("core_group_get_groups", groupids=[group_id])
        except LmsServiceError as e:
            # Moodle raises instead of returning an empty list for unknown ids
            if e.error_code == "invalidrecord":
                return None
            raise
        if not result:
            return None
        return _to_group(result[0])

    async def list_course_groups(self, course_id: int) -> list[Group]:
        result = await self.call("core_group_get_course_groups", courseid=course_id)
        return [_to_group(item) for item in result or []]

    async def list_enrolled_users(self, course_id: int) -> list[EnrolledUser]:
        result = await self.call(
            "core_enrol_get_enrolled_users",
            courseid=course_id,
            options=[{"name": "onlyactive", "value": 1}],
        )
        enrolled: list[EnrolledUser] = []
        for item in result or []:
            role_ids = frozenset(int(role["roleid"]) for role in item.get("roles") or [])
            enrolled.append(EnrolledUser(user=_to_user(item), role_ids=role_ids))
        return enrolled

    async def list_group_member_ids(self, group_id: int) -> set[int]:
        result = await self.call("core_group_get_group_members", groupids=[group_id])
        member_ids: set[int] = set()
        for item in result or []:
            member_ids.update(int(user_id) for user_id in item.get("userids") or [])
        return member_ids

    async def list_user_course_ids(self, user_id: int) -> list[int]:
        result = await self.call("core_enrol_get_users_courses", userid=user_id)
        return [int(item["id"]) for item in result or []]
