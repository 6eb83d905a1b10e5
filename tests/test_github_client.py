import unittest
from unittest.mock import MagicMock

import requests

from ec2_runner.errors import GitHubAPIError, RunnerRegistrationTimeoutError
from ec2_runner.github_client import GitHubClient


def response(json_data=None, status=200, links=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = json_data or {}
    resp.links = links or {}
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status} Error")
    return resp


def runner(runner_id, name, labels, status="online"):
    return {"id": runner_id, "name": name, "status": status, "labels": [{"name": l} for l in labels]}


class TestGitHubClient(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.session.headers = {}
        self.client = GitHubClient("ghp_abc", "acme/widgets", session=self.session)

    def test_auth_headers(self):
        self.assertEqual(self.session.headers["Authorization"], "token ghp_abc")

    def test_registration_token(self):
        self.session.post.return_value = response({"token": "AREG"})
        self.assertEqual(self.client.get_registration_token(), "AREG")
        url = self.session.post.call_args.args[0]
        self.assertEqual(url, "https://api.github.com/repos/acme/widgets/actions/runners/registration-token")

    def test_registration_token_error(self):
        self.session.post.return_value = response(status=401)
        with self.assertRaises(GitHubAPIError):
            self.client.get_registration_token()

    def test_list_runners_follows_pagination(self):
        next_url = "https://api.github.com/repos/acme/widgets/actions/runners?per_page=100&page=2"
        self.session.get.side_effect = [
            response({"runners": [runner(1, "a", ["x"])]}, links={"next": {"url": next_url}}),
            response({"runners": [runner(2, "b", ["y"])]}),
        ]
        runners = self.client.list_runners()
        self.assertEqual([r["id"] for r in runners], [1, 2])
        self.assertEqual(self.session.get.call_args_list[1].args[0], next_url)

    def test_get_runner_by_label(self):
        self.session.get.return_value = response(
            {"runners": [runner(1, "a", ["self-hosted", "zzzzz"]), runner(2, "b", ["self-hosted", "abc12"])]}
        )
        self.assertEqual(self.client.get_runner("abc12")["id"], 2)
        self.assertIsNone(self.client.get_runner("nope"))

    def test_remove_runner(self):
        self.session.get.return_value = response({"runners": [runner(7, "ec2", ["abc12"])]})
        self.session.delete.return_value = response(status=204)

        self.assertTrue(self.client.remove_runner("abc12"))
        self.session.delete.assert_called_once()
        self.assertTrue(self.session.delete.call_args.args[0].endswith("/actions/runners/7"))

    def test_remove_missing_runner_is_skipped(self):
        self.session.get.return_value = response({"runners": []})
        self.assertFalse(self.client.remove_runner("abc12"))
        self.session.delete.assert_not_called()

    def test_remove_runner_error(self):
        self.session.get.return_value = response({"runners": [runner(7, "ec2", ["abc12"])]})
        self.session.delete.return_value = response(status=500)
        with self.assertRaises(GitHubAPIError):
            self.client.remove_runner("abc12")

    def test_wait_for_runner_registered(self):
        self.session.get.side_effect = [
            response({"runners": []}),
            requests.exceptions.ConnectionError("reset"),
            response({"runners": [runner(7, "ec2", ["abc12"], status="offline")]}),
            response({"runners": [runner(7, "ec2", ["abc12"])]}),
        ]
        sleep = MagicMock()
        found = self.client.wait_for_runner_registered("abc12", sleep=sleep)
        self.assertEqual(found["id"], 7)
        self.assertEqual(sleep.call_args_list[0].args, (30,))
        self.assertEqual(sleep.call_count, 4)

    def test_wait_for_runner_registered_timeout(self):
        self.session.get.return_value = response({"runners": []})
        sleep = MagicMock()
        with self.assertRaises(RunnerRegistrationTimeoutError):
            self.client.wait_for_runner_registered("abc12", timeout=30, interval=10, sleep=sleep)
        # quiet period + three intervals
        self.assertEqual(sleep.call_count, 4)


if __name__ == "__main__":
    unittest.main()
