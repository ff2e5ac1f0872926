"""TeamCity REST API client: project/build discovery and build normalization."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from .config import Config
from .credentials import resolve_user_info
from .errors import ApiError, DataValidationError, MalformedUrlError
from .extractors import (
    extract_changesets,
    extract_git_branches,
    json_array,
    map_build_status,
    parse_teamcity_date,
)
from .models import Build, BuildStub, FailureReason, FetchResult, Project
from .transport import HttpTransport
from .urls import console_log_url, ensure_absolute_url, join_url, rebuild_job_url

logger = logging.getLogger(__name__)


class TeamcityClient:
    """Sequential, typed client over the TeamCity ``app/rest`` API.

    Every remote read goes through :meth:`_fetch_json`, which returns a
    ``FetchResult`` instead of raising. Discovery turns transport failures
    into ``ApiError`` (a run cannot continue without the project list);
    build detail fetches turn every failure into a skipped build.
    """

    PROJECT_API_URL_SUFFIX = "app/rest/projects"
    BUILD_DETAILS_URL_SUFFIX = "app/rest/builds"
    _BUILD_PAGE_SIZE = 100

    def __init__(self, config: Config, transport: Optional[HttpTransport] = None) -> None:
        """Initialize the client.

        Args:
            config: Validated runtime configuration (page size, log capture,
                credentials).
            transport: Request executor; defaults to an ``HttpTransport``
                using ``config.timeout_seconds``.
        """
        self._config = config
        self._transport = transport or HttpTransport(timeout_seconds=config.timeout_seconds)

    def _make_rest_call(self, url: str, params: Optional[Mapping[str, Any]] = None) -> str:
        user_info = resolve_user_info(url, self._config.credentials)
        return self._transport.get(url, user_info=user_info, params=params)

    def _fetch_json(self, url: str, params: Optional[Mapping[str, Any]] = None) -> FetchResult:
        """GET ``url`` and decode a JSON object, tagging any failure."""
        try:
            ensure_absolute_url(url)
        except MalformedUrlError as exc:
            return FetchResult.failed(FailureReason.MALFORMED_URL, str(exc))

        try:
            body = self._make_rest_call(url, params=params)
        except ApiError as exc:
            return FetchResult.failed(FailureReason.TRANSPORT, str(exc))

        if not body or not body.strip():
            return FetchResult.failed(FailureReason.EMPTY, f"Empty response body: GET {url}")

        try:
            payload = json.loads(body)
            if not isinstance(payload, dict):
                raise DataValidationError(f"Expected a JSON object: GET {url}")
        except (ValueError, DataValidationError) as exc:
            return FetchResult.failed(FailureReason.PARSE, f"{exc} (GET {url})")

        return FetchResult.success(payload)

    def get_projects_count(self, instance_url: str) -> int:
        """Count the projects on an instance by fetching the unwindowed listing.

        Raises:
            ApiError: If the listing cannot be fetched at all.
        """
        url = join_url(instance_url, self.PROJECT_API_URL_SUFFIX)
        result = self._fetch_json(url)

        if result.failure is FailureReason.TRANSPORT:
            raise ApiError(result.detail)
        if not result.ok:
            logger.error(
                "Could not read projects on instance",
                extra={"instance_url": instance_url, "reason": result.failure, "detail": result.detail},
            )
            return 0

        return len(json_array(result.value, "project"))

    def get_instance_projects(self, instance_url: str) -> Dict[Project, List[BuildStub]]:
        """Discover every project on an instance and the build stubs of each.

        Projects are listed in windows of ``config.effective_page_size`` using
        TeamCity's ``{start,end}`` suffix until a window comes back empty or
        the offset reaches the project count.

        Raises:
            ApiError: On transport failures while listing projects or builds.
        """
        result: Dict[Project, List[BuildStub]] = {}

        projects_count = self.get_projects_count(instance_url)
        logger.debug("Number of projects", extra={"instance_url": instance_url, "count": projects_count})

        page_size = self._config.effective_page_size
        offset = 0
        while offset < projects_count:
            logger.info(
                "Fetching projects %s/%s (page size %s)", offset, projects_count, page_size
            )
            window = quote(f"{{{offset},{offset + page_size}}}", safe="")
            url = join_url(instance_url, self.PROJECT_API_URL_SUFFIX + window)
            page = self._fetch_json(url)

            if page.failure is FailureReason.TRANSPORT:
                logger.error("Client exception loading projects", extra={"url": url})
                raise ApiError(page.detail)
            if page.failure is FailureReason.MALFORMED_URL:
                logger.error("Wrong syntax url for loading projects: %s", page.detail)
                break
            if page.failure is FailureReason.EMPTY:
                break

            if page.ok:
                projects = json_array(page.value, "project")
                if not projects:
                    break
                for project_json in projects:
                    self._add_project(project_json, instance_url, result)
            else:
                logger.error(
                    "Parsing projects on instance failed",
                    extra={"instance_url": instance_url, "detail": page.detail},
                )

            offset += page_size

        return result

    def _add_project(
        self,
        project_json: Any,
        instance_url: str,
        result: Dict[Project, List[BuildStub]],
    ) -> None:
        if not isinstance(project_json, dict) or not project_json.get("name"):
            logger.debug("Skipping project entry without a name", extra={"entry": project_json})
            return

        name = str(project_json["name"])
        project = Project(
            instance_url=instance_url,
            name=name,
            display_name=name,
            url=f"{join_url(instance_url, self.PROJECT_API_URL_SUFFIX)}?locator=project:{name}",
        )
        logger.debug("Processing project", extra={"project": name, "project_url": project.url})

        try:
            result[project] = self.get_project_builds(name, instance_url)
        except MalformedUrlError as exc:
            logger.error("Skipping project with malformed url: %s", exc, extra={"project": name})

    def _get_project_builds_page(self, project_name: str, instance_url: str, page_num: int) -> FetchResult:
        all_builds_url = join_url(instance_url, self.BUILD_DETAILS_URL_SUFFIX)
        logger.info("Fetching builds for project %s, page %s", project_name, page_num)
        params = {
            "per_page": self._BUILD_PAGE_SIZE,
            "page": page_num,
            "locator": f"project:{project_name}",
        }
        page = self._fetch_json(all_builds_url, params=params)
        if not page.ok:
            return page

        stubs: List[BuildStub] = []
        for build_json in json_array(page.value, "build"):
            if not isinstance(build_json, dict) or build_json.get("id") is None:
                continue
            number = str(build_json["id"])
            stubs.append(BuildStub(number=number, url=f"{all_builds_url}?locator=id:{number}"))
        return FetchResult.success(stubs)

    def get_project_builds(self, project_name: str, instance_url: str) -> List[BuildStub]:
        """List every build stub of a project, one 100-item page at a time.

        Pagination ends on the first empty page. Stubs are unique by build
        number; the first occurrence wins.

        Raises:
            ApiError: On transport failures.
            MalformedUrlError: If the builds endpoint URL cannot be parsed.
        """
        builds: Dict[str, BuildStub] = {}
        page_num = 1
        while True:
            page = self._get_project_builds_page(project_name, instance_url, page_num)
            if page.failure is FailureReason.TRANSPORT:
                logger.error("Client exception loading builds", extra={"project": project_name})
                raise ApiError(page.detail)
            if page.failure is FailureReason.MALFORMED_URL:
                raise MalformedUrlError(page.detail)
            if page.failure is FailureReason.PARSE:
                logger.error(
                    "Parsing builds failed; treating page as empty",
                    extra={"project": project_name, "page": page_num, "detail": page.detail},
                )
            if not page.ok or not page.value:
                break

            for stub in page.value:
                builds.setdefault(stub.number, stub)
            page_num += 1

        return list(builds.values())

    def get_build_details(self, build_url: str, instance_url: str) -> Optional[Build]:
        """Fetch one build and normalize it.

        Returns ``None`` for builds still running and for any failure, which
        is logged with the offending URL; a missing build never aborts a run.
        """
        try:
            url = rebuild_job_url(build_url, instance_url)
        except MalformedUrlError as exc:
            logger.error("Malformed url for loading build details: %s. URL=%s", exc, build_url)
            return None

        result = self._fetch_json(url)
        if not result.ok:
            logger.error(
                "Error getting build details (%s): %s. URL=%s",
                result.failure.value if result.failure else "",
                result.detail,
                build_url,
            )
            return None

        try:
            return self._normalize_build(result.value, build_url)
        except (KeyError, TypeError, ValueError, AttributeError, OverflowError):
            logger.exception("Unknown error in getting build details. URL=%s", build_url)
            return None

    def _normalize_build(self, build_json: Dict[str, Any], build_url: str) -> Optional[Build]:
        if build_json.get("build") is True:
            logger.debug("Ignoring running build", extra={"build_url": build_url})
            return None

        start_time = parse_teamcity_date(build_json.get("startDate"))
        finish_time = parse_teamcity_date(build_json.get("finishDate"))
        duration = finish_time - start_time if start_time and finish_time else 0

        build = Build(
            number=str(build_json.get("id", "")),
            build_url=build_url,
            timestamp=int(time.time() * 1000),
            status=map_build_status(build_json.get("status")),
            start_time=start_time,
            duration=duration,
            end_time=start_time + duration,
        )
        if self._config.save_log:
            build.log = self.get_log(build_url)

        # Git branches come from the actions; other SCMs report theirs as changeSet revisions.
        build.code_repos.extend(extract_git_branches(build_json))

        change_set = build_json.get("changeSet")
        if isinstance(change_set, dict):
            extract_changesets(build, change_set, seen_commits=set(), seen_revisions=set())

        return build

    def get_log(self, build_url: str) -> str:
        """Download a build's console text; failures yield an empty string."""
        url = console_log_url(build_url)
        try:
            return self._make_rest_call(ensure_absolute_url(url))
        except (ApiError, MalformedUrlError) as exc:
            logger.error("Could not fetch build log: %s", exc, extra={"url": url})
            return ""
