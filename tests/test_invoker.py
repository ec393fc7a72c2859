"""
Unit tests for the model invoker and its OpenAI backend.

Backends are stubs and sleeping is injected, so no test touches the network
or waits for a backoff delay.
"""

import pytest
from unittest.mock import MagicMock, Mock, patch

pytestmark = pytest.mark.unit


class TestInvoke:
    """Tests for ModelInvoker.invoke."""

    def test_returns_reply(self, make_backend, make_invoker):
        """Verify a successful reply is returned untouched."""
        backend = make_backend(reply='{"a": 1}')

        assert make_invoker(backend).invoke("prompt") == '{"a": 1}'
        assert backend.prompts == ["prompt"]

    def test_no_backend_raises_no_credentials(self, make_invoker):
        """Verify a missing backend fails immediately."""
        from contract_risk.exceptions import NoCredentialsError

        with pytest.raises(NoCredentialsError):
            make_invoker(None).invoke("prompt")

    @pytest.mark.parametrize("reply", ["", "   ", "\n\t"])
    def test_empty_reply_raises(self, make_backend, make_invoker, reply: str):
        """Verify an empty body is not treated as success."""
        from contract_risk.exceptions import EmptyResponseError

        with pytest.raises(EmptyResponseError):
            make_invoker(make_backend(reply=reply)).invoke("prompt")

    def test_transport_error_not_retried(self, make_backend, make_invoker, sleeps):
        """Verify non rate-limit failures surface after a single call."""
        from contract_risk.exceptions import TransportError

        backend = make_backend(error=ConnectionError("connection reset"))

        with pytest.raises(TransportError) as exc_info:
            make_invoker(backend).invoke("prompt")

        assert backend.calls == 1
        assert sleeps == []
        assert exc_info.value.details["error_type"] == "ConnectionError"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_rate_limit_exhausts_three_attempts(self, make_backend, make_invoker, rate_limit_error, sleeps):
        """Verify exactly 1 + 2 attempts before RateLimitedError."""
        from contract_risk.exceptions import RateLimitedError

        backend = make_backend(error=rate_limit_error)

        with pytest.raises(RateLimitedError) as exc_info:
            make_invoker(backend).invoke("prompt")

        assert backend.calls == 3
        assert exc_info.value.attempts == 3
        assert len(sleeps) == 2

    def test_backoff_doubles(self, make_backend, make_invoker, rate_limit_error, sleeps):
        """Verify delays double per retry when jitter is disabled."""
        from contract_risk.exceptions import RateLimitedError

        invoker = make_invoker(make_backend(error=rate_limit_error), base_delay=0.5)

        with pytest.raises(RateLimitedError):
            invoker.invoke("prompt")

        assert sleeps == [0.5, 1.0]

    def test_rate_limit_then_success(self, make_invoker, rate_limit_error, sleeps):
        """Verify a retry that succeeds returns the reply."""
        backend = Mock()
        backend.generate.side_effect = [rate_limit_error, "ok"]

        assert make_invoker(backend).invoke("prompt") == "ok"
        assert backend.generate.call_count == 2
        assert len(sleeps) == 1

    def test_internal_rate_limit_error_is_retried(self, make_backend, make_invoker):
        """Verify backends may signal rate limiting with RateLimitedError."""
        from contract_risk.exceptions import RateLimitedError

        backend = make_backend(error=RateLimitedError())

        with pytest.raises(RateLimitedError):
            make_invoker(backend).invoke("prompt")

        assert backend.calls == 3

    def test_zero_retries(self, make_backend, make_invoker, rate_limit_error, sleeps):
        """Verify max_retries=0 makes a single attempt."""
        from contract_risk.exceptions import RateLimitedError

        backend = make_backend(error=rate_limit_error)

        with pytest.raises(RateLimitedError):
            make_invoker(backend, max_retries=0).invoke("prompt")

        assert backend.calls == 1
        assert sleeps == []


class TestBackoffDelay:
    """Tests for the backoff computation."""

    def test_jitter_is_bounded(self):
        """Verify jitter stays within [0, max_jitter]."""
        from contract_risk.invoker import ModelInvoker

        invoker = ModelInvoker(None, base_delay=1.0, max_jitter=1.0)

        for retry in range(3):
            delay = invoker.backoff_delay(retry)
            assert 2 ** retry <= delay <= 2 ** retry + 1.0


class TestIsRateLimit:
    """Tests for rate-limit classification."""

    def test_status_code_429(self, rate_limit_error):
        """Verify exceptions with status_code 429 count as rate limits."""
        from contract_risk.invoker import is_rate_limit

        assert is_rate_limit(rate_limit_error)

    def test_other_errors(self):
        """Verify other exceptions are not rate limits."""
        from contract_risk.invoker import is_rate_limit

        error = RuntimeError("boom")
        error.status_code = 500

        assert not is_rate_limit(error)
        assert not is_rate_limit(ValueError("x"))


class TestFromSettings:
    """Tests for building an invoker from configuration."""

    def test_without_key_has_no_backend(self):
        """Verify a missing key yields an invoker that raises NoCredentials."""
        from config.settings import Settings
        from contract_risk.invoker import ModelInvoker
        from contract_risk.exceptions import NoCredentialsError

        config = Settings(OPENAI_API_KEY=None, RATE_LIMIT_MAX_RETRIES=1, _env_file=None)
        invoker = ModelInvoker.from_settings(config)

        assert invoker.backend is None
        assert invoker.max_retries == 1
        with pytest.raises(NoCredentialsError):
            invoker.invoke("prompt")

    def test_with_key_uses_openai_backend(self):
        """Verify a configured key wires the OpenAI backend."""
        from config.settings import Settings
        from contract_risk.invoker import ModelInvoker
        from contract_risk.backends import OpenAIBackend

        config = Settings(OPENAI_API_KEY="sk-test", MODEL_NAME="gpt-test", _env_file=None)

        with patch("contract_risk.backends.OpenAI") as mock_openai:
            invoker = ModelInvoker.from_settings(config)

        assert isinstance(invoker.backend, OpenAIBackend)
        assert invoker.backend.model == "gpt-test"
        mock_openai.assert_called_once_with(api_key="sk-test", timeout=120.0, max_retries=0)


class TestOpenAIBackend:
    """Tests for the OpenAI chat-completions backend."""

    def test_generate_sends_system_and_user_messages(self):
        """Verify the prompt is sent with the system prompt."""
        from contract_risk.backends import OpenAIBackend
        from contract_risk.prompts import SYSTEM_PROMPT

        client = MagicMock()
        client.chat.completions.create.return_value.choices = [
            Mock(message=Mock(content='{"ok": true}'))
        ]
        backend = OpenAIBackend("sk-test", "gpt-test", client=client)

        assert backend.generate("analyze this") == '{"ok": true}'

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert kwargs["messages"][1] == {"role": "user", "content": "analyze this"}

    def test_generate_without_choices_returns_empty(self):
        """Verify an empty choice list maps to an empty reply."""
        from contract_risk.backends import OpenAIBackend

        client = MagicMock()
        client.chat.completions.create.return_value.choices = []

        assert OpenAIBackend("sk-test", client=client).generate("p") == ""

    def test_generate_with_null_content_returns_empty(self):
        """Verify a null message content maps to an empty reply."""
        from contract_risk.backends import OpenAIBackend

        client = MagicMock()
        client.chat.completions.create.return_value.choices = [Mock(message=Mock(content=None))]

        assert OpenAIBackend("sk-test", client=client).generate("p") == ""

    def test_sdk_errors_propagate(self):
        """Verify SDK exceptions reach the invoker untouched."""
        from contract_risk.backends import OpenAIBackend

        client = MagicMock()
        client.chat.completions.create.side_effect = TimeoutError("slow")

        with pytest.raises(TimeoutError):
            OpenAIBackend("sk-test", client=client).generate("p")
