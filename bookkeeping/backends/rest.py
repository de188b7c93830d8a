"""REST implementation of the bookkeeping services, built on requests."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, Union
from urllib.parse import quote

import requests
from pydantic import BaseModel, ValidationError

from bookkeeping.context import ContextFactory
from bookkeeping.errors import BookkeepingError
from bookkeeping.models import Flp, Log, Run, RunQuality, RunType
from bookkeeping.utils import Timestamp, to_milliseconds


logger = logging.getLogger(__name__)

USER_AGENT = "BookkeepingPythonApi"


def _error_message(response: requests.Response) -> str:
    """Extract the server error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"{response.status_code} {response.reason}"

    if isinstance(body, dict):
        errors = body.get("errors")
        if errors:
            error = errors[0]
            return error.get("detail") or error.get("title") or str(error)
        if body.get("message"):
            return body["message"]
    return response.text


class RestService:
    """Base of the REST service clients.

    All clients share one requests.Session.
    """

    def __init__(
        self,
        session: requests.Session,
        base_url: str,
        context_factory: ContextFactory,
    ):
        """Initialize the service client.

        Args:
            session: HTTP session shared by the service clients.
            base_url: API root, e.g. http://localhost:4000/api
            context_factory: Callable producing a fresh CallContext per call.
        """
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._context_factory = context_factory

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        model: Optional[Type[BaseModel]] = None,
    ) -> Any:
        """Send a request and return the "data" member of the response body.

        Args:
            method: HTTP method.
            path: Endpoint path relative to the API root.
            json: Request body.
            params: Query parameters.
            model: Record type to decode the data into. A list of records is
                returned when the data is a list.

        Raises:
            BookkeepingError: On connection failure, non-2xx response, or a
                response body that cannot be decoded.
        """
        context = self._context_factory()
        url = f"{self._base_url}/{path}"
        logger.debug("%s %s (request id %s)", method, url, context.get("x-request-id"))

        try:
            response = self._session.request(
                method,
                url,
                json=json,
                params=params,
                headers=dict(context.metadata),
                timeout=context.timeout,
            )
        except requests.RequestException as error:
            logger.warning("%s %s failed: %s", method, url, error)
            raise BookkeepingError(str(error)) from error

        if not response.ok:
            message = _error_message(response)
            logger.warning("%s %s failed with %s: %s", method, url, response.status_code, message)
            raise BookkeepingError(message, code=response.status_code)

        if not response.content:
            return None
        try:
            body = response.json()
            data = body["data"] if isinstance(body, dict) and "data" in body else body
            if model is None or data is None:
                return data
            if isinstance(data, list):
                return [model.model_validate(item) for item in data]
            return model.model_validate(data)
        except (ValueError, ValidationError) as error:
            # The server has already applied the request at this point
            logger.warning("%s %s returned an unexpected body: %s", method, url, error)
            raise BookkeepingError(
                f"Unexpected response from {method} {url}: {error}",
                code=response.status_code,
            ) from error


def _page(limit: Optional[int], offset: Optional[int]) -> Dict[str, int]:
    params = {}
    if limit is not None:
        params["page[limit]"] = limit
    if offset is not None:
        params["page[offset]"] = offset
    return params


class RestRunService(RestService):
    """Runs over the REST API."""

    def start(
        self,
        run_number: int,
        o2_start: Timestamp,
        trigger_start: Timestamp,
        activity_id: str,
        run_type: Union[RunType, str],
        n_detectors: int,
        n_flps: int,
        n_epns: int,
    ) -> Run:
        """Register a new run. Returns the created run."""
        body = {
            "runNumber": run_number,
            "timeO2Start": to_milliseconds(o2_start),
            "timeTrgStart": to_milliseconds(trigger_start),
            "environmentId": activity_id,
            "runType": RunType(run_type).value,
            "nDetectors": n_detectors,
            "nFlps": n_flps,
            "nEpns": n_epns,
        }
        return self._request("POST", "runs", json=body, model=Run)

    def end(
        self,
        run_number: int,
        o2_end: Timestamp,
        trigger_end: Timestamp,
        run_quality: Union[RunQuality, str],
    ) -> Run:
        """Set end times and quality of an existing run. Returns the updated run."""
        body = {
            "timeO2End": to_milliseconds(o2_end),
            "timeTrgEnd": to_milliseconds(trigger_end),
            "runQuality": RunQuality(run_quality).value,
        }
        return self._request(
            "PATCH", "runs", json=body, params={"runNumber": run_number}, model=Run
        )

    def set_raw_ctp_trigger_configuration(self, run_number: int, configuration: str) -> None:
        self._request(
            "PATCH",
            "runs",
            json={"rawCtpTriggerConfiguration": configuration},
            params={"runNumber": run_number},
        )

    def get(self, run_number: int) -> Run:
        runs = self.list(run_numbers=[run_number], limit=1)
        if not runs:
            raise BookkeepingError(f"Run with run number {run_number} not found", code=404)
        return runs[0]

    def list(
        self,
        run_numbers: Optional[Sequence[int]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Run]:
        """List runs, most recent first.

        Args:
            run_numbers: Only return these runs.
            limit: Maximum runs to return.
            offset: Skip this many runs (for pagination).

        Returns:
            List of Run records.
        """
        params: Dict[str, Any] = _page(limit, offset)
        if run_numbers:
            params["filter[runNumbers]"] = ",".join(str(number) for number in run_numbers)
        return self._request("GET", "runs", params=params, model=Run) or []


class RestFlpService(RestService):
    """FLPs over the REST API."""

    def add(self, name: str, hostname: str, run_number: Optional[int] = None) -> Flp:
        body: Dict[str, Any] = {"name": name, "hostname": hostname}
        if run_number is not None:
            body["runNumber"] = run_number
        return self._request("POST", "flps", json=body, model=Flp)

    def update_readout_counters(
        self,
        name: str,
        run_number: int,
        n_subtimeframes: int,
        n_equipment_bytes: int,
        n_recording_bytes: int,
        n_fair_mq_bytes: int,
    ) -> None:
        body = {
            "nSubtimeframes": n_subtimeframes,
            "bytesEquipmentReadOut": n_equipment_bytes,
            "bytesRecordingReadOut": n_recording_bytes,
            "bytesFairMQReadOut": n_fair_mq_bytes,
        }
        self._request("PATCH", f"flps/{quote(name, safe='')}/runs/{run_number}", json=body)


class RestLogService(RestService):
    """Logs over the REST API."""

    def create(
        self,
        text: str,
        title: str,
        run_numbers: Sequence[int] = (),
        parent_log_id: Optional[int] = -1,
    ) -> Log:
        body: Dict[str, Any] = {"title": title, "text": text}
        # The REST API takes run numbers as a comma separated string
        if run_numbers:
            body["runNumbers"] = ",".join(str(number) for number in run_numbers)
        if parent_log_id is not None and parent_log_id != -1:
            body["parentLogId"] = parent_log_id
        return self._request("POST", "logs", json=body, model=Log)

    def list(self, limit: Optional[int] = None, offset: Optional[int] = None) -> List[Log]:
        """List logs, most recent first."""
        return self._request("GET", "logs", params=_page(limit, offset), model=Log) or []
