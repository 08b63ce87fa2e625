"""
Errors, Configuration and Logging Tests.

============================================================
PURPOSE
============================================================
Tests for the ambient layers every client call goes through.

TEST CATEGORIES:
- Error tests: Response mapping, classification, retry eligibility
- Config tests: Validation and environment loading
- Logging tests: Credential masking
- Metrics tests: Counters and latency

============================================================
"""

import logging

import pytest

from asterdex.config import ClientConfig, RetryConfig
from asterdex.errors import (
    ApiResponseError,
    AuthError,
    ConfigError,
    ErrorCategory,
    NetworkError,
    RateLimitError,
    RetryEligibility,
    ValidationError,
    WebSocketError,
    classify_exchange_code,
    error_from_http_response,
    get_retry_delay_ms,
    is_retryable_error,
)
from asterdex.logging_utils import (
    RequestLogger,
    redact,
    redact_headers,
    redact_query,
    redact_url,
    scrub_text,
)
from asterdex.metrics import MetricType, TransportMetrics


ENV_VARS = [
    "ASTERDEX_API_KEY",
    "ASTERDEX_API_SECRET",
    "ASTERDEX_USER_ADDRESS",
    "ASTERDEX_SIGNER_ADDRESS",
    "ASTERDEX_PRIVATE_KEY",
    "ASTERDEX_ENVIRONMENT",
    "ASTERDEX_SPOT_URL",
    "ASTERDEX_FUTURES_URL",
    "ASTERDEX_WEBSOCKET_URL",
    "ASTERDEX_TIMEOUT",
    "ASTERDEX_RECV_WINDOW",
    "ASTERDEX_ENABLE_RATE_LIMITING",
    "ASTERDEX_MAX_RETRIES",
    "ASTERDEX_RETRY_DELAY",
    "ASTERDEX_BACKOFF_MULTIPLIER",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove ASTERDEX_* variables, including any a .env file loads during the test."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


# ============================================================
# ERROR TESTS
# ============================================================

class TestErrorFromResponse:
    """Tests for error_from_http_response."""

    def test_structured_body(self):
        """Test {code, msg} bodies produce "<msg> (Code: <code>)"."""
        error = error_from_http_response(400, '{"code": -1121, "msg": "Invalid symbol."}')

        assert isinstance(error, ApiResponseError)
        assert error.message == "Invalid symbol. (Code: -1121)"
        assert error.code == -1121
        assert error.body == {"code": -1121, "msg": "Invalid symbol."}
        assert error.is_client_error

    def test_unstructured_body(self):
        """Test non-JSON bodies fall back to the status line."""
        error = error_from_http_response(502, "<html>bad gateway</html>", status_text="Bad Gateway")

        assert error.message == "HTTP 502: Bad Gateway"
        assert error.body == "<html>bad gateway</html>"
        assert error.is_server_error
        assert error.category == ErrorCategory.EXCHANGE_ERROR

    def test_rate_limit_with_retry_after(self):
        """Test 429 produces RateLimitError with retry_after."""
        error = error_from_http_response(
            429, '{"code": -1003, "msg": "Too many requests"}', {"retry-after": "5"}
        )

        assert isinstance(error, RateLimitError)
        assert error.retry_after == 5.0
        assert error.category == ErrorCategory.RATE_LIMIT
        assert get_retry_delay_ms(error, 100) == 5000

    def test_non_numeric_retry_after_ignored(self):
        """Test unparseable Retry-After leaves retry_after unset."""
        error = error_from_http_response(429, "", {"Retry-After": "soon"})

        assert error.retry_after is None
        assert get_retry_delay_ms(error, 100) == 100


class TestErrorClassification:
    """Tests for classification and retry eligibility."""

    @pytest.mark.parametrize("code,status,category", [
        (-1022, 400, ErrorCategory.AUTHENTICATION),
        (-1003, 429, ErrorCategory.RATE_LIMIT),
        (None, 401, ErrorCategory.AUTHENTICATION),
        (None, 503, ErrorCategory.EXCHANGE_ERROR),
        (None, 404, ErrorCategory.INVALID_REQUEST),
        (None, None, ErrorCategory.UNKNOWN),
    ])
    def test_classify(self, code, status, category):
        """Test exchange code and status mapping."""
        assert classify_exchange_code(code, status) == category

    def test_retryable_errors(self):
        """Test retry eligibility per error type."""
        assert is_retryable_error(NetworkError("down"))
        assert is_retryable_error(ApiResponseError("oops", 500))
        assert is_retryable_error(RateLimitError("slow down"))
        assert is_retryable_error(WebSocketError("closed", 1006))

        assert not is_retryable_error(ApiResponseError("bad", 400))
        assert not is_retryable_error(AuthError("no key"))
        assert not is_retryable_error(ValidationError("bad", field="symbol"))
        assert not is_retryable_error(WebSocketError("policy", 1008))
        assert not is_retryable_error(ValueError("not ours"))

    def test_to_dict(self):
        """Test serialized error fields."""
        error = ValidationError("Missing required parameter: symbol", field="symbol")

        data = error.to_dict()

        assert data["error_type"] == "ValidationError"
        assert data["field"] == "symbol"
        assert data["retry_eligibility"] == RetryEligibility.NO_RETRY.value

    def test_network_error_cause(self):
        """Test NetworkError keeps its cause."""
        cause = OSError("reset")
        error = NetworkError("Network error: reset", cause=cause)

        assert error.cause is cause
        assert error.to_dict()["cause"] == repr(cause)


# ============================================================
# CONFIG TESTS
# ============================================================

class TestClientConfig:
    """Tests for ClientConfig."""

    def test_defaults(self):
        """Test default configuration is valid and credential-free."""
        config = ClientConfig()

        assert config.spot_url == "https://sapi.asterdex.com"
        assert config.futures_url == "https://fapi.asterdex.com"
        assert config.websocket_url == "wss://fstream.asterdex.com"
        assert config.timeout_ms == 60000
        assert config.recv_window == 5000
        assert not config.has_hmac_credentials
        assert not config.has_web3_credentials

    @pytest.mark.parametrize("changes", [
        {"environment": "devnet"},
        {"timeout_ms": 0},
        {"recv_window": 60001},
        {"recv_window": 0},
        {"spot_url": "ftp://sapi.asterdex.com"},
        {"websocket_url": "https://fstream.asterdex.com"},
        {"api_key": "key"},
        {"retry": RetryConfig(max_retries=-1)},
        {"retry": RetryConfig(backoff_multiplier=0.5)},
    ])
    def test_invalid_values(self, changes):
        """Test invalid values raise ConfigError."""
        with pytest.raises(ConfigError):
            ClientConfig(**changes)

    def test_with_updates_validates(self):
        """Test with_updates returns a validated copy."""
        config = ClientConfig()

        updated = config.with_updates(timeout_ms=5000)

        assert updated.timeout_ms == 5000
        assert config.timeout_ms == 60000
        with pytest.raises(ConfigError):
            config.with_updates(timeout_ms=-1)

    def test_to_dict_hides_secrets(self):
        """Test to_dict never includes credentials."""
        config = ClientConfig(api_key="key", api_secret="secret")

        data = config.to_dict()

        assert data["has_hmac_credentials"] is True
        assert "secret" not in data.values()
        assert "api_secret" not in data

    def test_from_env(self, clean_env):
        """Test configuration from environment variables."""
        clean_env.setenv("ASTERDEX_API_KEY", "env-key")
        clean_env.setenv("ASTERDEX_API_SECRET", "env-secret")
        clean_env.setenv("ASTERDEX_ENVIRONMENT", "testnet")
        clean_env.setenv("ASTERDEX_TIMEOUT", "15000")
        clean_env.setenv("ASTERDEX_ENABLE_RATE_LIMITING", "false")
        clean_env.setenv("ASTERDEX_MAX_RETRIES", "1")

        config = ClientConfig.from_env()

        assert config.api_key == "env-key"
        assert config.environment == "testnet"
        assert config.timeout_ms == 15000
        assert config.enable_rate_limiting is False
        assert config.retry.max_retries == 1

    def test_from_env_overrides(self, clean_env):
        """Test explicit overrides win over the environment."""
        clean_env.setenv("ASTERDEX_TIMEOUT", "15000")

        config = ClientConfig.from_env(timeout_ms=2000)

        assert config.timeout_ms == 2000

    def test_from_env_file(self, clean_env, tmp_path):
        """Test values loaded from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("ASTERDEX_RECV_WINDOW=7000\nASTERDEX_SPOT_URL=https://spot.test\n")

        config = ClientConfig.from_env(str(env_file))

        assert config.recv_window == 7000
        assert config.spot_url == "https://spot.test"

    def test_from_env_invalid_number(self, clean_env):
        """Test unparseable numbers raise ConfigError."""
        clean_env.setenv("ASTERDEX_TIMEOUT", "fast")

        with pytest.raises(ConfigError, match="ASTERDEX_TIMEOUT"):
            ClientConfig.from_env()

    def test_retry_delay_capped(self):
        """Test backoff delay growth and cap."""
        retry = RetryConfig(retry_delay_ms=1000, backoff_multiplier=2, max_delay_ms=3000)

        assert retry.delay_for(0) == 1000
        assert retry.delay_for(1) == 2000
        assert retry.delay_for(5) == 3000


# ============================================================
# LOGGING TESTS
# ============================================================

class TestRedaction:
    """Tests for credential redaction."""

    def test_redact(self):
        """Test long values keep a prefix and short ones are hidden."""
        assert redact("abcdefghij") == "abcd****"
        assert redact("abcdefgh") == "****"
        assert redact(None) == "****"

    def test_redact_headers(self):
        """Test the API key header is redacted."""
        redacted = redact_headers({"X-MBX-APIKEY": "KEYSECRETVALUE", "User-Agent": "ua"})

        assert redacted["X-MBX-APIKEY"] == "KEYS****"
        assert redacted["User-Agent"] == "ua"

    def test_redact_query(self):
        """Test secret fields are redacted and other pairs are untouched."""
        query = (
            "symbol=BTCUSDT&price=0.1%2B&listenKey=abc123"
            "&userSignature=0xdead&signature=f00dfeed"
        )

        assert redact_query(query) == (
            "symbol=BTCUSDT&price=0.1%2B&listenKey=****"
            "&userSignature=****&signature=****"
        )

    def test_redact_url(self):
        """Test signature in a URL query is redacted."""
        url = "https://x.test/api/v1/order?symbol=BTCUSDT&signature=abc123"

        assert redact_url(url) == "https://x.test/api/v1/order?symbol=BTCUSDT&signature=****"
        assert redact_url("https://x.test/api/v1/ping") == "https://x.test/api/v1/ping"

    def test_scrub_text(self):
        """Test signature- and key-shaped hex is scrubbed but addresses are kept."""
        address = "0x" + "1" * 40
        text = f"sig 0x{'a' * 130} key {'b' * 64} user {address}"

        assert scrub_text(text) == f"sig <sig> key <hex64> user {address}"

    def test_request_logger_never_logs_secrets(self, caplog):
        """Test request and response lines carry no credentials."""
        request_logger = RequestLogger("futures")
        private_key = "c" * 64

        with caplog.at_level(logging.DEBUG, logger="asterdex.transport.futures"):
            request_id = request_logger.log_request(
                "POST",
                "https://x.test/fapi/v3/order",
                headers={"X-MBX-APIKEY": "KEYSECRETVALUE"},
                body="symbol=BTCUSDT&nonce=1&signature=0x" + "e" * 130,
            )
            request_logger.log_response(
                request_id, 400, 12.5, error=ValueError(f"bad key {private_key}")
            )

        assert request_id == "futures-1"
        assert "KEYSECRETVALUE" not in caplog.text
        assert "e" * 130 not in caplog.text
        assert private_key not in caplog.text
        assert "symbol=BTCUSDT&nonce=1&signature=****" in caplog.text
        assert caplog.records[-1].levelno == logging.WARNING

    def test_retry_and_give_up_levels(self, caplog):
        """Test retries log at WARNING and give-ups at ERROR."""
        request_logger = RequestLogger("spot")
        url = "https://x.test/api/v1/account?signature=sig-secret-1"

        with caplog.at_level(logging.DEBUG, logger="asterdex.transport.spot"):
            request_logger.log_retry("GET", url, 1000, 1, 3, OSError("reset"))
            request_logger.log_give_up("GET", url, 3, OSError("reset"))

        assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.ERROR]
        assert "sig-secret-1" not in caplog.text


# ============================================================
# METRICS TESTS
# ============================================================

class TestTransportMetrics:
    """Tests for TransportMetrics."""

    def test_counts(self):
        """Test success, failure and error-type counters."""
        metrics = TransportMetrics("futures")

        metrics.record_request("/fapi/v1/ping", 10.0, True, status_code=200)
        metrics.record_request("/fapi/v1/ping", 30.0, False, status_code=429, error_type="RateLimitError")
        metrics.record_request("/fapi/v1/time", 5.0, False, error_type="RequestTimeoutError")
        metrics.record_retry()

        assert metrics.count(MetricType.REQUEST_SUCCESS) == 1
        assert metrics.count(MetricType.REQUEST_FAILURE) == 2
        assert metrics.count(MetricType.RATE_LIMIT_HIT) == 1
        assert metrics.count(MetricType.TIMEOUT) == 1
        assert metrics.count(MetricType.RETRY) == 1

    def test_latency_by_endpoint(self):
        """Test latency aggregation per endpoint."""
        metrics = TransportMetrics("futures")

        metrics.record_request("/a", 10.0, True)
        metrics.record_request("/a", 30.0, True)

        stats = metrics.get_latency_by_endpoint()["/a"]
        assert stats["count"] == 2
        assert stats["avg_ms"] == 20.0
        assert stats["min_ms"] == 10.0
        assert stats["max_ms"] == 30.0

    def test_reset(self):
        """Test reset clears everything."""
        metrics = TransportMetrics("spot")
        metrics.record_request("/a", 1.0, True)

        metrics.reset()

        summary = metrics.get_summary()
        assert summary["requests"]["total"] == 0
        assert summary["requests"]["success_rate"] == 1.0
        assert metrics.get_recent_requests() == []
