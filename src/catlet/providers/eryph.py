"""HTTP client for the eryph compute API."""

import logging
import ssl
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from catlet.errors import ApiError, ComputeConnectionError
from catlet.models.catlet import CatletSpec
from catlet.models.config import ApiConfig
from catlet.models.operation import Operation
from catlet.models.status import CatletStatus, Project, ValidationResult
from catlet.providers.base import ComputeAPI, StopMode


logger = logging.getLogger(__name__)


API_PREFIX = "/compute/v1"

STOP_MODES = {
    StopMode.GRACEFUL: "Shutdown",
    StopMode.HARD: "Hard",
    StopMode.KILL: "Kill",
}


def _api_error(response: httpx.Response, method: str, path: str) -> ApiError:
    """Build an ApiError, preferring RFC 7807 problem details."""
    message = f"HTTP error {response.status_code} on {method} {path}"
    problem_type = None
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        problem_type = data.get("type")
        detail = data.get("detail") or data.get("title")
        if detail:
            message = f"{message}: {detail}"
    elif response.text:
        message = f"{message}: {response.text}"
    return ApiError(message, status_code=response.status_code, problem_type=problem_type)


class EryphComputeClient(ComputeAPI):
    """ComputeAPI implementation over the eryph REST API."""

    def __init__(self, config: ApiConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize client."""
        self.config = config

        headers = {"Accept": "application/json"}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"

        if config.ssl_ca_file:
            verify: Any = ssl.create_default_context(cafile=config.ssl_ca_file)
        else:
            verify = config.ssl_verify

        self._client = httpx.AsyncClient(
            base_url=config.endpoint.rstrip("/") + API_PREFIX,
            headers=headers,
            verify=verify,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def close(self):
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "EryphComputeClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        allow_missing: bool = False,
    ) -> Any:
        """Send a request and decode the JSON answer."""
        logger.debug(f"{method} {path}")
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            raise ComputeConnectionError(f"Connection error on {method} {path}: {e}") from e

        if allow_missing and response.status_code == 404:
            return None
        if response.status_code in (401, 403):
            raise ComputeConnectionError(
                f"Authentication failed ({response.status_code}) on {method} {path}"
            )
        if response.is_error:
            raise _api_error(response, method, path)

        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _operation_id(data: Any, action: str) -> str:
        operation_id = data.get("id") if isinstance(data, dict) else None
        if not operation_id:
            raise ApiError(f"Failed to {action}: no operation returned")
        return str(operation_id)

    async def submit_create(self, spec: CatletSpec) -> str:
        payload = {
            "correlationId": str(uuid.uuid4()),
            "configuration": spec.to_request(),
        }
        data = await self._request("POST", "/catlets", json=payload)
        return self._operation_id(data, f"create catlet {spec.name}")

    async def submit_start(self, catlet_id: str) -> str:
        data = await self._request("PUT", f"/catlets/{catlet_id}/start")
        return self._operation_id(data, f"start catlet {catlet_id}")

    async def submit_stop(self, catlet_id: str, mode: StopMode = StopMode.GRACEFUL) -> str:
        data = await self._request(
            "PUT", f"/catlets/{catlet_id}/stop", json={"mode": STOP_MODES[StopMode(mode)]}
        )
        return self._operation_id(data, f"stop catlet {catlet_id}")

    async def submit_destroy(self, catlet_id: str) -> str:
        data = await self._request("DELETE", f"/catlets/{catlet_id}")
        return self._operation_id(data, f"destroy catlet {catlet_id}")

    async def get_resource(self, catlet_id: str) -> Optional[CatletStatus]:
        data = await self._request("GET", f"/catlets/{catlet_id}", allow_missing=True)
        if not data:
            return None
        return CatletStatus.model_validate(data)

    async def list_resources(self) -> List[CatletStatus]:
        data = await self._request("GET", "/catlets")
        items = data.get("value", []) if isinstance(data, dict) else data
        return [CatletStatus.model_validate(item) for item in items or []]

    async def get_operation(self, operation_id: str, log_since: Optional[datetime] = None) -> Operation:
        params = {"expand": "logs,tasks,resources"}
        if log_since:
            params["logTimeStamp"] = log_since.isoformat()
        data = await self._request("GET", f"/operations/{operation_id}", params=params)
        return Operation.model_validate(data)

    async def validate_spec(self, spec: CatletSpec) -> ValidationResult:
        data = await self._request(
            "POST", "/catlets/config/validate", json={"configuration": spec.to_request()}
        )
        errors = []
        for error in data.get("errors") or []:
            if isinstance(error, dict):
                member = error.get("member")
                message = error.get("message", "")
                errors.append(f"{member}: {message}" if member else message)
            else:
                errors.append(str(error))
        return ValidationResult(valid=bool(data.get("isValid", not errors)), errors=errors)

    async def list_projects(self) -> List[Project]:
        data = await self._request("GET", "/projects")
        items = data.get("value", []) if isinstance(data, dict) else data
        return [Project.model_validate(item) for item in items or []]

    async def get_project(self, name: str) -> Optional[Project]:
        for project in await self.list_projects():
            if project.name == name:
                return project
        return None

    async def submit_create_project(self, name: str) -> str:
        payload = {"correlationId": str(uuid.uuid4()), "name": name}
        data = await self._request("POST", "/projects", json=payload)
        return self._operation_id(data, f"create project {name}")

    async def submit_remove_project(self, project_id: str) -> str:
        data = await self._request("DELETE", f"/projects/{project_id}")
        return self._operation_id(data, f"remove project {project_id}")

    async def get_network_config(self, project_id: str) -> Dict[str, Any]:
        data = await self._request("GET", f"/vnetworks/{project_id}/config")
        if isinstance(data, dict) and "configuration" in data:
            return data["configuration"] or {}
        return data or {}

    async def submit_set_network_config(self, project_id: str, configuration: Dict[str, Any]) -> str:
        payload = {"correlationId": str(uuid.uuid4()), "configuration": configuration}
        data = await self._request("PUT", f"/vnetworks/{project_id}/config", json=payload)
        return self._operation_id(data, f"set network configuration of project {project_id}")
