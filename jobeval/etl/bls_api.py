"""
Resumable batch fetcher for the BLS Public API v2.

Pulls OEWS wage series for every occupation across the national and
state geographies. Progress is saved after each occupation so a run cut
short by the daily request limit picks up where it stopped.
"""

import time
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from ..logger import get_logger
from ..normalize import strip_onet_suffix
from ..retry import CircuitBreaker, CircuitOpenError, RetryError, exponential_backoff
from ..storage import load_json, save_json

logger = get_logger()

BLS_API_URL = "https://api.bls.gov/publicAPI/v2/timeseries/data/"
DAILY_REQUEST_LIMIT = 500
REQUEST_BUFFER = 10
MAX_SERIES_PER_REQUEST = 50
RETRY_DELAYS = (1, 2, 4)
START_YEAR = "2023"
END_YEAR = "2024"
REQUEST_PAUSE_SECONDS = 0.1

# Series data-type suffix -> output field
DATA_TYPES = {
    "03": "annualMean",
    "04": "annualMedian",
    "05": "percentile10",
    "06": "percentile25",
    "08": "percentile75",
    "09": "percentile90",
    "11": "hourlyMean",
    "12": "hourlyMedian",
    "01": "employment",
}

GEOGRAPHIES = {
    "National": "0000000",
    "CA": "0600000",
    "TX": "4800000",
    "NY": "3600000",
    "FL": "1200000",
    "PA": "4200000",
    "IL": "1700000",
    "OH": "3900000",
    "GA": "1300000",
    "NC": "3700000",
    "MI": "2600000",
    "NJ": "3400000",
    "VA": "5100000",
    "WA": "5300000",
    "MA": "2500000",
    "AZ": "0400000",
}


class BLSApiError(Exception):
    """The API answered but did not report REQUEST_SUCCEEDED."""
    pass


def build_series_ids(soc_code: str, area_code: str) -> List[str]:
    """OEUM + area + SOC digits + '0' + data type, one id per data type."""
    soc = soc_code.replace("-", "") + "0"
    return [f"OEUM{area_code}{soc}{data_type}" for data_type in DATA_TYPES]


def _today() -> str:
    return date.today().isoformat()


@dataclass
class FetchProgress:
    """Progress of a fetch run, persisted as JSON between runs."""

    version: str = "1.0"
    started: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    lastUpdated: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    completedOccupations: List[str] = field(default_factory=list)
    failedOccupations: List[str] = field(default_factory=list)
    currentGeography: str = "National"
    dailyRequestCount: int = 0
    lastRequestDate: str = field(default_factory=_today)
    totalRequests: int = 0

    @classmethod
    def load(cls, path: Path) -> "FetchProgress":
        data = load_json(path, default=None)
        if not isinstance(data, dict):
            return cls()
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def save(self, path: Path) -> None:
        self.lastUpdated = datetime.now(timezone.utc).isoformat()
        save_json(path, asdict(self))

    def remaining_today(self, today: Optional[str] = None) -> int:
        """Requests still allowed today; the counter resets on a new day."""
        today = today or _today()
        if self.lastRequestDate != today:
            self.dailyRequestCount = 0
            self.lastRequestDate = today
        return DAILY_REQUEST_LIMIT - REQUEST_BUFFER - self.dailyRequestCount

    def record_request(self) -> None:
        self.dailyRequestCount += 1
        self.totalRequests += 1


def parse_response(response: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pull the latest value of each series out of an API response.

    Returns {employment, wages, dataDate}. Missing or non-numeric values
    leave the field at 0; dataDate is set from the first annual (M13)
    data point as ``{year}-05``.
    """
    wages = {
        "hourlyMean": 0.0,
        "hourlyMedian": 0.0,
        "annualMean": 0.0,
        "annualMedian": 0.0,
        "percentile10": 0.0,
        "percentile25": 0.0,
        "percentile75": 0.0,
        "percentile90": 0.0,
    }
    employment = 0
    data_date = None

    series_list = (response.get("Results") or {}).get("series") or []
    for series in series_list:
        points = series.get("data") or []
        if not points:
            continue
        latest = points[0]
        try:
            value = float(latest.get("value"))
        except (TypeError, ValueError):
            continue

        key = DATA_TYPES.get(str(series.get("seriesID", ""))[-2:])
        if data_date is None and latest.get("period") == "M13" and latest.get("year"):
            data_date = f"{latest['year']}-05"

        if key == "employment":
            employment = int(round(value))
        elif key in wages:
            wages[key] = value

    return {"employment": employment, "wages": wages, "dataDate": data_date}


def load_occupation_codes(onet_occupations: Dict[str, Any]) -> List[Dict[str, str]]:
    """Unique 7-character SOC codes (``11-2021``) with their titles, first title wins."""
    codes: Dict[str, str] = {}
    for code, data in onet_occupations.items():
        soc = strip_onet_suffix(code)
        if soc not in codes:
            codes[soc] = data.get("title", "")
    return [{"code": code, "title": title} for code, title in codes.items()]


class BLSApiFetcher:
    """
    Fetches wage data for a list of occupations.

    Args:
        api_key: BLS registration key
        progress_path: Where progress is persisted between runs
        output_path: Output JSON document
        error_log_path: Plain-text log of per-request failures
        session: requests-compatible object with ``post`` (tests inject a fake)
        sleep: Pause between requests
    """

    def __init__(
        self,
        api_key: str,
        progress_path: Path,
        output_path: Path,
        error_log_path: Path,
        session=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not api_key:
            raise ValueError("BLS API key is required (set BLS_API_KEY)")
        self.api_key = api_key
        self.progress_path = progress_path
        self.output_path = output_path
        self.error_log_path = error_log_path
        self.session = session or requests.Session()
        self.sleep = sleep
        self.breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=300)

    @exponential_backoff(
        max_retries=len(RETRY_DELAYS),
        delays=RETRY_DELAYS,
        exceptions=(requests.exceptions.RequestException, BLSApiError),
    )
    def fetch_batch(self, series_ids: List[str]) -> Dict[str, Any]:
        if len(series_ids) > MAX_SERIES_PER_REQUEST:
            raise ValueError(f"At most {MAX_SERIES_PER_REQUEST} series per request")
        logger.record_api_call()
        resp = self.session.post(
            BLS_API_URL,
            json={
                "seriesid": series_ids,
                "registrationkey": self.api_key,
                "startyear": START_YEAR,
                "endyear": END_YEAR,
            },
            headers={"Content-Type": "application/json"},
            timeout=30,
        )
        resp.raise_for_status()
        data = resp.json()
        if data.get("status") != "REQUEST_SUCCEEDED":
            messages = data.get("message") or ["Unknown error"]
            raise BLSApiError(f"API error: {messages[0]}")
        return data

    def log_error(self, soc_code: str, geography: str, message: str) -> None:
        self.error_log_path.parent.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).isoformat()
        with self.error_log_path.open("a", encoding="utf-8") as f:
            f.write(f"[{timestamp}] {soc_code} ({geography}): {message}\n")

    def _new_output(self, progress: FetchProgress, total: int, geographies: Dict[str, str]) -> Dict[str, Any]:
        return {
            "version": "1.0",
            "dataDate": _today(),
            "source": "BLS OEWS API",
            "metadata": {
                "fetchStarted": progress.started,
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
                "totalOccupations": total,
                "completedOccupations": 0,
                "completedRequests": 0,
                "failedRequests": 0,
                "geographies": list(geographies),
            },
            "occupations": [],
        }

    def fetch_occupation(
        self,
        occupation: Dict[str, str],
        geographies: Dict[str, str],
        progress: FetchProgress,
        output: Dict[str, Any],
    ) -> bool:
        """
        Fetch one occupation across ``geographies``.

        Returns False when the daily limit stops the run before the
        occupation is complete; the occupation is then retried next run.
        """
        code = occupation["code"]
        record = {
            "code": code,
            "title": occupation["title"],
            "employment": 0,
            "wages": {},
            "geography": "National",
            "dataDate": None,
            "stateData": {},
        }
        failures = 0

        for geo_name, geo_code in geographies.items():
            if progress.remaining_today() <= 0:
                logger.warning("Daily BLS API limit reached; resume tomorrow",
                               requests_today=progress.dailyRequestCount)
                return False

            progress.currentGeography = geo_name
            try:
                response = self.breaker.call(self.fetch_batch, build_series_ids(code, geo_code))
            except CircuitOpenError as e:
                logger.error("BLS API circuit open, stopping run", error=str(e))
                return False
            except (RetryError, ValueError) as e:
                failures += 1
                progress.record_request()
                output["metadata"]["failedRequests"] += 1
                self.log_error(code, geo_name, str(e))
                logger.record_download_failure("bls_api", type(e).__name__)
                logger.warning("BLS API request failed", code=code, geography=geo_name, error=str(e))
                continue

            progress.record_request()
            parsed = parse_response(response)
            if geo_name == "National":
                record.update(parsed)
            else:
                record["stateData"][geo_name] = {
                    "employment": parsed["employment"],
                    "wages": parsed["wages"],
                }
            self.sleep(REQUEST_PAUSE_SECONDS)

        output["occupations"].append(record)
        if failures == len(geographies):
            progress.failedOccupations.append(code)
        progress.completedOccupations.append(code)
        progress.save(self.progress_path)
        logger.info("Fetched occupation", code=code, remaining_today=progress.remaining_today())
        return True

    def run(
        self,
        occupations: List[Dict[str, str]],
        geographies: Optional[Dict[str, str]] = None,
        limit: int = 0,
        reset: bool = False,
    ) -> Dict[str, Any]:
        """Fetch every occupation not yet completed; returns the output document."""
        geographies = geographies or GEOGRAPHIES
        if limit > 0:
            occupations = occupations[:limit]

        progress = FetchProgress() if reset else FetchProgress.load(self.progress_path)
        output = None if reset else load_json(self.output_path, default=None)
        if not isinstance(output, dict) or "occupations" not in output:
            output = self._new_output(progress, len(occupations), geographies)

        done = set(progress.completedOccupations)
        remaining = [occ for occ in occupations if occ["code"] not in done]
        logger.info(
            "Starting BLS API fetch",
            remaining=len(remaining),
            completed=len(done),
            requests_today=progress.dailyRequestCount,
        )

        for occupation in remaining:
            if not self.fetch_occupation(occupation, geographies, progress, output):
                break
            output["metadata"]["completedOccupations"] = len(progress.completedOccupations)
            output["metadata"]["completedRequests"] = progress.totalRequests
            output["metadata"]["lastUpdated"] = datetime.now(timezone.utc).isoformat()
            if len(progress.completedOccupations) % 10 == 0:
                save_json(self.output_path, output)

        progress.save(self.progress_path)
        save_json(self.output_path, output)

        complete = len(progress.completedOccupations) >= len(occupations)
        logger.info(
            "BLS API fetch finished" if complete else "BLS API fetch paused; run again to continue",
            completed=len(progress.completedOccupations),
            total=len(occupations),
            total_requests=progress.totalRequests,
        )
        return output

