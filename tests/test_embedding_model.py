"""Unit tests for EmbeddingModel class."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
import numpy as np
from unittest.mock import Mock, patch, MagicMock, AsyncMock
import httpx
from services.embedding_model import EmbeddingModel
from services.errors import EmbeddingError


def _response(status_code, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = text
    return response


def _mock_client(mock_client_class, *responses):
    """Make httpx.AsyncClient(...) yield a client whose post returns/raises `responses` in order."""
    mock_client = MagicMock()
    mock_client.__aenter__.return_value.post = AsyncMock(side_effect=list(responses))
    mock_client_class.return_value = mock_client
    return mock_client.__aenter__.return_value.post


class TestEmbeddingModel:
    """Test suite for EmbeddingModel."""

    def test_initialization_with_api_key(self):
        model = EmbeddingModel(api_key="test_key", dimension=3)
        assert model.configured
        assert model.model_name == "sentence-transformers/all-mpnet-base-v2"
        assert model.max_retries == 5

    def test_initialization_without_api_key_is_degraded(self):
        """A missing key is a configuration state, not an error."""
        model = EmbeddingModel(api_key=None, dimension=4)
        assert not model.configured
        assert EmbeddingModel(api_key="", dimension=4).configured is False

    @pytest.mark.asyncio
    async def test_unconfigured_returns_zero_vector(self):
        model = EmbeddingModel(api_key=None, dimension=4)
        with patch('httpx.AsyncClient') as mock_client_class:
            vector = await model.embed("anything")
            mock_client_class.assert_not_called()

        assert vector.dtype == np.float32
        assert vector.tolist() == [0.0, 0.0, 0.0, 0.0]

    @pytest.mark.asyncio
    async def test_blank_text_is_not_sent(self):
        model = EmbeddingModel(api_key="test_key", dimension=2)
        with patch('httpx.AsyncClient') as mock_client_class:
            vector = await model.embed("   ")
            mock_client_class.assert_not_called()

        assert vector.tolist() == [0.0, 0.0]

    @pytest.mark.asyncio
    @patch('httpx.AsyncClient')
    async def test_embed_success(self, mock_client_class):
        post = _mock_client(mock_client_class, _response(200, [[0.1, 0.2, 0.3]]))

        model = EmbeddingModel(api_key="test_key", dimension=3)
        result = await model.embed("test text")

        np.testing.assert_allclose(result, [0.1, 0.2, 0.3], rtol=1e-6)
        assert post.call_args.kwargs["json"]["inputs"] == ["test text"]
        assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer test_key"

    @pytest.mark.asyncio
    @patch('httpx.AsyncClient')
    async def test_retry_on_503_then_success(self, mock_client_class):
        post = _mock_client(
            mock_client_class,
            _response(503, {"estimated_time": 10}, '{"estimated_time": 10}'),
            _response(200, [[0.5, 0.5]]),
        )

        model = EmbeddingModel(api_key="test_key", dimension=2, initial_delay=0)
        result = await model.embed("test text")

        assert result.tolist() == [0.5, 0.5]
        assert post.call_count == 2

    @pytest.mark.asyncio
    @patch('httpx.AsyncClient')
    async def test_retries_exhausted_raises(self, mock_client_class):
        _mock_client(mock_client_class, *[_response(503, {}, "") for _ in range(3)])

        model = EmbeddingModel(api_key="test_key", dimension=2, max_retries=3, initial_delay=0)
        with pytest.raises(EmbeddingError, match="after 3 attempts"):
            await model.embed("test text")

    @pytest.mark.asyncio
    @patch('httpx.AsyncClient')
    async def test_timeout_is_retried_then_raises(self, mock_client_class):
        post = _mock_client(
            mock_client_class,
            httpx.TimeoutException("timed out"),
            httpx.TimeoutException("timed out"),
        )

        model = EmbeddingModel(api_key="test_key", dimension=2, max_retries=2, initial_delay=0)
        with pytest.raises(EmbeddingError) as exc_info:
            await model.embed("test text")

        assert post.call_count == 2
        assert "timeout" in exc_info.value.details["last_error"].lower()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 429, 500])
    @patch('httpx.AsyncClient')
    async def test_non_retryable_status_fails_fast(self, mock_client_class, status_code):
        post = _mock_client(mock_client_class, _response(status_code, {}, "error body"))

        model = EmbeddingModel(api_key="test_key", dimension=2, initial_delay=0)
        with pytest.raises(EmbeddingError):
            await model.embed("test text")
        assert post.call_count == 1

    @pytest.mark.asyncio
    @patch('httpx.AsyncClient')
    async def test_dimension_mismatch_raises(self, mock_client_class):
        _mock_client(mock_client_class, _response(200, [[0.1, 0.2, 0.3]]))

        model = EmbeddingModel(api_key="test_key", dimension=768)
        with pytest.raises(EmbeddingError, match="dimension mismatch"):
            await model.embed("test text")

    @pytest.mark.asyncio
    @patch('httpx.AsyncClient')
    async def test_malformed_payload_raises(self, mock_client_class):
        _mock_client(mock_client_class, _response(200, {"error": "unexpected"}))

        model = EmbeddingModel(api_key="test_key", dimension=2)
        with pytest.raises(EmbeddingError, match="Malformed"):
            await model.embed("test text")

    @pytest.mark.asyncio
    async def test_warmup_reports_failure(self):
        model = EmbeddingModel(api_key="test_key", dimension=2)
        with patch.object(model, "embed", AsyncMock(side_effect=EmbeddingError("down"))):
            assert await model.warmup() is False

    @pytest.mark.asyncio
    async def test_warmup_unconfigured_is_noop(self):
        assert await EmbeddingModel(api_key=None).warmup() is True
