"""Tests for core/retry.py -- fixed-delay retry of transient failures."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from wp_github_sync.core.errors import RemoteAPIError
from wp_github_sync.core.retry import is_transient_error, retry_call


class TestIsTransientError:
    @pytest.mark.parametrize(
        "exc, expected",
        [
            (RemoteAPIError(502, "u"), True),
            (RemoteAPIError(429, "u"), True),
            (RemoteAPIError(None, "u"), True),
            (RemoteAPIError(404, "u"), False),
            (RemoteAPIError(422, "u"), False),
            (requests.ConnectionError(), True),
            (requests.Timeout(), True),
            (ValueError(), False),
        ],
    )
    def test_classification(self, exc, expected):
        assert is_transient_error(exc) is expected


class TestRetryCall:
    """Tests for retry_call()."""

    @patch("wp_github_sync.core.retry.time.sleep")
    def test_success_first_try(self, mock_sleep):
        func = MagicMock(return_value="ok")
        assert retry_call(func, 1, key="v") == "ok"
        func.assert_called_once_with(1, key="v")
        mock_sleep.assert_not_called()

    @patch("wp_github_sync.core.retry.time.sleep")
    def test_transient_failures_retried_with_fixed_delay(self, mock_sleep):
        func = MagicMock(
            side_effect=[RemoteAPIError(503, "u"), requests.Timeout(), "ok"]
        )
        assert retry_call(func, retries=3, delay=2.0) == "ok"
        assert func.call_count == 3
        assert [c[0][0] for c in mock_sleep.call_args_list] == [2.0, 2.0]

    @patch("wp_github_sync.core.retry.time.sleep")
    def test_gives_up_after_retries(self, mock_sleep):
        func = MagicMock(side_effect=RemoteAPIError(500, "u"))
        with pytest.raises(RemoteAPIError):
            retry_call(func, retries=3, delay=0)
        assert func.call_count == 4

    @patch("wp_github_sync.core.retry.time.sleep")
    def test_client_error_not_retried(self, mock_sleep):
        func = MagicMock(side_effect=RemoteAPIError(403, "u"))
        with pytest.raises(RemoteAPIError):
            retry_call(func)
        assert func.call_count == 1
        mock_sleep.assert_not_called()


class TestRemoteAPIError:
    def test_message_includes_body_excerpt(self):
        err = RemoteAPIError(422, "https://api.github.com/x", "y" * 1000)
        assert str(err).startswith("HTTP 422 from https://api.github.com/x: ")
        assert len(err.body) == 1000
        assert len(str(err)) < 400
