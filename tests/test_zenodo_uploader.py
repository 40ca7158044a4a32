"""Tests for the Zenodo API client, with a mocked requests session."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from deposit_errors import ConfigurationError, TransportError, ZenodoAPIError
from models.zenodo import DepositMetadata
from zenodo_uploader import (
    PRODUCTION_API,
    SANDBOX_API,
    ZenodoClient,
    get_credentials_from_env,
)


def _response(status=200, payload=None, text=""):
    response = MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.content = json.dumps(payload).encode() if payload is not None else b""
    response.json.return_value = payload
    response.text = text or (json.dumps(payload) if payload is not None else "")
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return ZenodoClient("secret-token", session=session)


@pytest.fixture
def metadata():
    return DepositMetadata(upload_type="presentation", title="Example", description="<p>x</p>")


class TestCredentials:
    def test_missing_token_raises(self, monkeypatch):
        monkeypatch.delenv("ZENODO_TOKEN", raising=False)
        with pytest.raises(ConfigurationError):
            get_credentials_from_env()

    def test_sandbox_base_url(self, monkeypatch):
        monkeypatch.setenv("ZENODO_TOKEN", "abc")
        credentials = get_credentials_from_env(sandbox=True)
        assert credentials.token == "abc"
        assert credentials.base_url == SANDBOX_API

    def test_client_from_credentials(self, monkeypatch):
        monkeypatch.setenv("ZENODO_TOKEN", "abc")
        client = ZenodoClient.from_credentials(get_credentials_from_env(sandbox=True))
        assert client.sandbox is True
        assert client.base_url == SANDBOX_API


class TestZenodoClient:
    """Tests for ZenodoClient requests and error mapping."""

    def test_empty_token_raises(self):
        with pytest.raises(ConfigurationError):
            ZenodoClient("")

    def test_token_sent_as_query_parameter(self, client, session):
        assert session.params == {"access_token": "secret-token"}
        assert client.base_url == PRODUCTION_API

    def test_create_deposit(self, client, session, metadata):
        session.request.return_value = _response(201, {"id": 42, "links": {}})

        assert client.create_deposit(metadata) == {"id": 42, "links": {}}
        session.request.assert_called_once_with(
            "POST",
            f"{PRODUCTION_API}/deposit/depositions",
            json={"metadata": metadata.to_dict()},
        )

    def test_update_deposit(self, client, session, metadata):
        session.request.return_value = _response(200, {"id": 42})
        client.update_deposit(42, metadata)
        method, url = session.request.call_args.args
        assert method == "PUT"
        assert url == f"{PRODUCTION_API}/deposit/depositions/42"

    def test_publish_deposit(self, client, session):
        session.request.return_value = _response(202, {"id": 42, "submitted": True})
        assert client.publish_deposit(42)["submitted"] is True
        method, url = session.request.call_args.args
        assert method == "POST"
        assert url.endswith("/deposit/depositions/42/actions/publish")

    def test_list_files(self, client, session):
        session.request.return_value = _response(200, [{"filename": "slides.pdf"}])
        assert client.list_files(42) == [{"filename": "slides.pdf"}]
        method, url = session.request.call_args.args
        assert method == "GET"
        assert url == f"{PRODUCTION_API}/deposit/depositions/42/files"

    def test_api_error(self, client, session, metadata):
        session.request.return_value = _response(400, text='{"message": "Validation error"}')
        with pytest.raises(ZenodoAPIError) as exc_info:
            client.create_deposit(metadata)
        assert exc_info.value.status_code == 400
        assert str(exc_info.value) == 'API Error: 400 {"message": "Validation error"}'

    def test_transport_error(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError("connection refused")
        with pytest.raises(TransportError) as exc_info:
            client.get_deposit(1)
        assert str(exc_info.value) == "Error: connection refused"

    def test_empty_body_returns_none(self, client, session):
        session.request.return_value = _response(204)
        assert client.get_deposit(1) is None


class TestUploadFile:
    """Tests for bucket uploads."""

    def test_streams_file_to_bucket(self, client, session, tmp_path):
        file_path = tmp_path / "my slides.pdf"
        file_path.write_bytes(b"%PDF-1.4 data")
        bucket = "https://zenodo.org/api/files/bucket-uuid"
        session.request.side_effect = [
            _response(200, {"id": 42, "links": {"bucket": bucket}}),
            _response(201, {"key": "my slides.pdf"}),
        ]

        assert client.upload_file(42, str(file_path)) == {"key": "my slides.pdf"}

        put_call = session.request.call_args_list[1]
        assert put_call.args == ("PUT", f"{bucket}/my%20slides.pdf")
        assert put_call.kwargs["headers"] == {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(b"%PDF-1.4 data")),
        }

    def test_missing_file_raises_before_request(self, client, session, tmp_path):
        with pytest.raises(FileNotFoundError):
            client.upload_file(42, str(tmp_path / "missing.pdf"))
        session.request.assert_not_called()

    def test_missing_bucket_raises(self, client, session, tmp_path):
        file_path = tmp_path / "slides.pdf"
        file_path.write_bytes(b"data")
        session.request.return_value = _response(200, {"id": 42, "links": {}})
        with pytest.raises(ValueError):
            client.upload_file(42, str(file_path))
