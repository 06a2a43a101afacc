"""
Tests for cpcli export and import commands.
"""

from unittest.mock import patch

import pytest

from conftest import ADDRESS, reply
from cpcli.cli import app
from cpcli.core.models import StoredCookie

IMPORT_PAGE = '<input type="hidden" name="token" value="TOKEN123"/>'


@pytest.fixture
def cli(runner, mock_loader, session_factory, cppm_config, mock_transport):
    cppm_config.cookies = [StoredCookie(name="JSESSIONID", value="sess1", domain=ADDRESS),
                           StoredCookie(name="DWRSESSIONID", value="dwr1", domain=ADDRESS)]
    mock_transport.add("GET", "/tips/tipsContent.action", reply(text="<html>"))
    with patch("cpcli.cli.transfer.open_session", side_effect=session_factory):
        yield lambda *args, **kwargs: runner.invoke(app, list(args), **kwargs)


class TestExport:
    """Test the export command."""

    def test_writes_suggested_file(self, cli, mock_transport, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        mock_transport.add("POST", "/tips/tipsExport.action", reply(
            content=b"PK\x03\x04data",
            headers={"Content-Disposition": 'attachment; filename="Service.zip"'},
        ))

        result = cli("export", "Service", "--password", "s3cret")

        assert result.exit_code == 0
        assert (tmp_path / "Service.zip").read_bytes() == b"PK\x03\x04data"
        assert "exported to file Service.zip" in result.output
        export = mock_transport.calls("POST", "/tips/tipsExport.action")[0]
        assert b"type=Service" in export.content
        assert b"encyptionPassword=s3cret" in export.content

    def test_output_option(self, cli, mock_transport, tmp_path):
        target = tmp_path / "out.zip"
        mock_transport.add("POST", "/tips/tipsExport.action", reply(
            content=b"zip", headers={"Content-Disposition": "attachment; filename=x.zip"}))

        result = cli("export", "Devices", "-o", str(target))

        assert result.exit_code == 0
        assert target.read_bytes() == b"zip"

    def test_validates_session_first(self, cli, mock_transport, tmp_path):
        mock_transport.add("POST", "/tips/tipsExport.action", reply(
            content=b"zip", headers={"Content-Disposition": "attachment; filename=x.zip"}))

        cli("export", "Service", "-o", str(tmp_path / "x.zip"))

        assert [r.url.path for r in mock_transport.requests_made] == [
            "/tips/tipsContent.action", "/tips/tipsExport.action"]

    def test_expired_web_session(self, cli, mock_transport, tmp_path):
        mock_transport.routes[("GET", "/tips/tipsContent.action")] = [reply(302)]

        result = cli("export", "Service", "-o", str(tmp_path / "x.zip"))

        assert result.exit_code == 1
        assert "cpcli web-login" in result.output
        assert not (tmp_path / "x.zip").exists()

    def test_missing_filename(self, cli, mock_transport, tmp_path):
        mock_transport.add("POST", "/tips/tipsExport.action", reply(content=b"zip"))

        result = cli("export", "Service")

        assert result.exit_code == 1
        assert "Missing filename" in result.output

    def test_unwritable_target(self, cli, mock_transport, tmp_path):
        mock_transport.add("POST", "/tips/tipsExport.action", reply(
            content=b"zip", headers={"Content-Disposition": "attachment; filename=x.zip"}))

        result = cli("export", "Service", "-o", str(tmp_path / "missing" / "x.zip"))

        assert result.exit_code == 1
        assert "Could not write export" in result.output


class TestImport:
    """Test the import command."""

    def test_upload(self, cli, mock_transport, tmp_path):
        archive = tmp_path / "Service.zip"
        archive.write_bytes(b"PK\x03\x04data")
        mock_transport.add("GET", "/tips/tipsImport.action", reply(text=IMPORT_PAGE))
        mock_transport.add("POST", "/tips/tipsUploadImport.action", reply(text="done"))

        result = cli("import", str(archive), "Service", "--password", "s3cret")

        assert result.exit_code == 0
        assert "imported as Service" in result.output
        upload = mock_transport.calls("POST", "/tips/tipsUploadImport.action")[0]
        assert b"TOKEN123" in upload.content
        assert b"PK\x03\x04data" in upload.content
        assert b's3cret' in upload.content

    def test_missing_file(self, cli, mock_transport, tmp_path):
        result = cli("import", str(tmp_path / "nope.zip"), "Service")

        assert result.exit_code == 1
        assert "Failed to open import file" in result.output
        assert mock_transport.calls("GET", "/tips/tipsImport.action") == []

    def test_missing_token(self, cli, mock_transport, tmp_path):
        archive = tmp_path / "Service.zip"
        archive.write_bytes(b"zip")
        mock_transport.add("GET", "/tips/tipsImport.action", reply(text="<html/>"))

        result = cli("import", str(archive), "Service")

        assert result.exit_code == 1
        assert "Failed to find token" in result.output
        assert mock_transport.calls("POST", "/tips/tipsUploadImport.action") == []
