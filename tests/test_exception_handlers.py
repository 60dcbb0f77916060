# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
import json
from unittest.mock import Mock, patch
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient
from app.core.exceptions import global_exception_handler, setup_exception_handlers


class TestGlobalExceptionHandler:
    @pytest.fixture
    def mock_request(self):
        request = Mock(spec=Request)
        request.method = "GET"
        request.url.path = "/api/documents/recent"
        request.query_params = {}
        request.client = Mock()
        request.client.host = "127.0.0.1"
        return request

    @pytest.mark.asyncio
    async def test_logs_and_returns_500(self, mock_request):
        with patch("app.core.exceptions.logger") as mock_logger:
            response = await global_exception_handler(mock_request, ValueError("boom"))

            mock_logger.error.assert_called_once()
            assert mock_logger.error.call_args[1]["extra"]["error_type"] == "ValueError"

        assert isinstance(response, JSONResponse)
        assert response.status_code == 500
        body = json.loads(response.body.decode())
        assert body["detail"] == "Internal server error"
        assert body["error_type"] == "ValueError"
        assert body["error_id"]

    @pytest.mark.asyncio
    async def test_registered_on_app(self):
        app = FastAPI()
        setup_exception_handlers(app)

        @app.get("/explode")
        async def explode():
            raise RuntimeError("kaboom")

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://testserver") as c:
            res = await c.get("/explode")

        assert res.status_code == 500
        assert res.json()["error_type"] == "RuntimeError"
