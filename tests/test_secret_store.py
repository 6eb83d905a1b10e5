import unittest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError, EndpointConnectionError

from ec2_runner.errors import SecretFetchError
from ec2_runner.secret_store import get_secret_value


class TestGetSecretValue(unittest.TestCase):
    def test_returns_secret_string(self):
        client = MagicMock()
        client.get_secret_value.return_value = {"SecretString": "ghp_abc"}

        self.assertEqual(get_secret_value(client, "gh-pat"), "ghp_abc")
        client.get_secret_value.assert_called_once_with(SecretId="gh-pat")

    def test_missing_secret(self):
        client = MagicMock()
        client.get_secret_value.side_effect = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "not found"}}, "GetSecretValue"
        )
        with self.assertRaises(SecretFetchError) as ctx:
            get_secret_value(client, "gh-pat")
        self.assertIn("gh-pat", str(ctx.exception))
        self.assertIn("ResourceNotFoundException", str(ctx.exception))
        client.get_secret_value.assert_called_once()

    def test_connection_error(self):
        client = MagicMock()
        client.get_secret_value.side_effect = EndpointConnectionError(endpoint_url="https://secretsmanager")
        with self.assertRaises(SecretFetchError):
            get_secret_value(client, "gh-pat")

    def test_binary_secret_rejected(self):
        client = MagicMock()
        client.get_secret_value.return_value = {"SecretBinary": b"\x00"}
        with self.assertRaises(SecretFetchError):
            get_secret_value(client, "gh-pat")


if __name__ == "__main__":
    unittest.main()
