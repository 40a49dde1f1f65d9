"""
Test OAuth token storage and the local callback server.
"""

import json
import os
import stat
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp.test_utils import make_mocked_request
from mcp.shared.auth import OAuthToken

from mcporter.core.exceptions import MCPorterError
from mcporter.core.oauth import FileTokenStorage, OAuthCallbackServer, build_oauth_provider


class TestFileTokenStorage:
    """Test the file-backed token store."""
    
    @pytest.mark.asyncio
    async def test_missing_tokens(self, tmp_path):
        storage = FileTokenStorage(tmp_path / "cache")
        
        assert await storage.get_tokens() is None
        assert await storage.get_client_info() is None
        
    @pytest.mark.asyncio
    async def test_tokens_persist_with_private_permissions(self, tmp_path):
        storage = FileTokenStorage(tmp_path / "cache")
        
        await storage.set_tokens(OAuthToken(access_token="abc", token_type="Bearer", refresh_token="r1"))
        tokens = await FileTokenStorage(tmp_path / "cache").get_tokens()
        
        assert tokens.access_token == "abc"
        assert tokens.refresh_token == "r1"
        mode = stat.S_IMODE((tmp_path / "cache" / "tokens.json").stat().st_mode)
        assert mode == 0o600
        
    @pytest.mark.asyncio
    async def test_token_file_is_created_owner_only(self, tmp_path):
        storage = FileTokenStorage(tmp_path / "cache")
        
        with patch("mcporter.core.oauth.os.open", wraps=os.open) as opener:
            await storage.set_tokens(OAuthToken(access_token="abc", token_type="Bearer"))
            
        path, flags, mode = opener.call_args.args
        assert path == tmp_path / "cache" / "tokens.json"
        assert flags & os.O_CREAT
        assert mode == 0o600
        
    @pytest.mark.asyncio
    async def test_existing_token_file_is_tightened(self, tmp_path):
        cache = tmp_path / "cache"
        cache.mkdir()
        (cache / "tokens.json").write_text("{}")
        (cache / "tokens.json").chmod(0o644)
        
        await FileTokenStorage(cache).set_tokens(OAuthToken(access_token="abc", token_type="Bearer"))
        
        assert stat.S_IMODE((cache / "tokens.json").stat().st_mode) == 0o600
        assert json.loads((cache / "tokens.json").read_text())["access_token"] == "abc"
        
    @pytest.mark.asyncio
    async def test_unreadable_tokens_are_ignored(self, tmp_path):
        cache = tmp_path / "cache"
        cache.mkdir()
        (cache / "tokens.json").write_text("{not json")
        (cache / "client.json").write_text(json.dumps({"client_id": 5, "redirect_uris": "not-a-list"}))
        storage = FileTokenStorage(cache)
        
        assert await storage.get_tokens() is None
        assert await storage.get_client_info() is None


class TestOAuthCallbackServer:
    """Test redirect handling without binding a socket."""
    
    def setup_method(self):
        """Setup test fixtures."""
        self.server = OAuthCallbackServer(log=MagicMock(), port=8765, timeout=0.05)
        self.server.start = AsyncMock()
        self.server.stop = AsyncMock()
        
    def test_redirect_uri(self):
        assert self.server.redirect_uri == "http://127.0.0.1:8765/callback"
        
    @pytest.mark.asyncio
    async def test_successful_callback(self):
        response = await self.server.handle_callback(
            make_mocked_request("GET", "/callback?code=abc&state=xyz")
        )
        
        assert response.status == 200
        assert "Authorization Successful" in response.text
        assert await self.server.wait_for_callback() == ("abc", "xyz")
        self.server.stop.assert_awaited_once()
        
    @pytest.mark.asyncio
    async def test_error_callback(self):
        response = await self.server.handle_callback(
            make_mocked_request("GET", "/callback?error=access_denied&error_description=nope")
        )
        
        assert response.status == 400
        with pytest.raises(MCPorterError, match="access_denied: nope"):
            await self.server.wait_for_callback()
            
    @pytest.mark.asyncio
    async def test_missing_code(self):
        response = await self.server.handle_callback(make_mocked_request("GET", "/callback"))
        
        assert response.status == 400
        with pytest.raises(MCPorterError, match="No authorization code received"):
            await self.server.wait_for_callback()
            
    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(MCPorterError, match="Timed out"):
            await self.server.wait_for_callback()
        self.server.stop.assert_awaited_once()


class TestBuildOAuthProvider:
    """Test provider construction."""
    
    def test_requires_url(self, stdio_definition, log):
        with pytest.raises(MCPorterError, match="no URL"):
            build_oauth_provider(stdio_definition, log)
