# ec2_runner/github_client.py
import logging
import time

import requests

from ec2_runner.errors import GitHubAPIError, RunnerRegistrationTimeoutError

log = logging.getLogger("ec2_runner.github_client")

REGISTRATION_TIMEOUT_SECONDS = 5 * 60
REGISTRATION_POLL_INTERVAL = 10
REGISTRATION_QUIET_PERIOD = 30


class GitHubClient:
    """
    Minimal client for the self-hosted runner endpoints of a repository.
    Authenticates with a personal access token that has the 'repo' scope.
    """

    def __init__(
        self,
        token: str,
        repository: str,
        api_url: str = "https://api.github.com",
        session: requests.Session | None = None,
        timeout: int = 30,
    ):
        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"token {token}",
                "Accept": "application/vnd.github.v3+json",
            }
        )

    def _url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.repository}/actions/runners{path}"

    def get_registration_token(self) -> str:
        try:
            resp = self.session.post(self._url("/registration-token"), timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()["token"]
        except (requests.exceptions.RequestException, KeyError, ValueError) as e:
            log.error("GitHub Registration Token receiving error")
            raise GitHubAPIError(f"Failed to get registration token: {e}") from e

    def list_runners(self) -> list[dict]:
        runners = []
        url = self._url("")
        params = {"per_page": 100}
        try:
            while url:
                resp = self.session.get(url, params=params, timeout=self.timeout)
                resp.raise_for_status()
                runners.extend(resp.json().get("runners", []))
                # the next link already carries the query string
                url = resp.links.get("next", {}).get("url")
                params = None
        except (requests.exceptions.RequestException, ValueError) as e:
            raise GitHubAPIError(f"Failed to list runners: {e}") from e
        return runners

    def get_runner(self, label: str) -> dict | None:
        for runner in self.list_runners():
            names = [lbl.get("name") for lbl in runner.get("labels", [])]
            if label in names:
                return runner
        return None

    def remove_runner(self, label: str) -> bool:
        """Deregister the runner carrying label. Returns False if none was found."""
        runner = self.get_runner(label)
        if not runner:
            log.info("GitHub self-hosted runner with label %s is not found, so the removal is skipped", label)
            return False
        try:
            resp = self.session.delete(self._url(f"/{runner['id']}"), timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            log.error("GitHub self-hosted runner removal error")
            raise GitHubAPIError(f"Failed to remove runner {runner.get('name')} ({label}): {e}") from e
        log.info("GitHub self-hosted runner %s is removed", runner.get("name"))
        return True

    def wait_for_runner_registered(
        self,
        label: str,
        timeout: int = REGISTRATION_TIMEOUT_SECONDS,
        interval: int = REGISTRATION_POLL_INTERVAL,
        quiet_period: int = REGISTRATION_QUIET_PERIOD,
        sleep=time.sleep,
    ) -> dict:
        log.info(
            "Waiting %ss for the AWS EC2 instance to be registered in GitHub as a new self-hosted runner",
            quiet_period,
        )
        sleep(quiet_period)
        log.info("Checking every %ss if the GitHub self-hosted runner is registered", interval)

        waited = 0
        while True:
            try:
                runner = self.get_runner(label)
            except GitHubAPIError as e:
                log.warning("Runner lookup failed, will retry: %s", e)
                runner = None
            if runner and runner.get("status") == "online":
                log.info("GitHub self-hosted runner %s is registered and ready to use", runner.get("name"))
                return runner
            if waited >= timeout:
                log.error("GitHub self-hosted runner registration error")
                raise RunnerRegistrationTimeoutError(
                    f"A timeout of {timeout // 60} minutes is exceeded. Your AWS EC2 instance was not able "
                    f"to register itself in GitHub as a new self-hosted runner (label {label})."
                )
            log.info("Checking...")
            sleep(interval)
            waited += interval
