"""Unit tests for credential providers."""

import pytest
from unittest.mock import Mock

from imagex.core.credentials import EnvCredentialProvider


class TestEnvCredentialProvider:
    """Tests for EnvCredentialProvider."""

    @pytest.mark.asyncio
    async def test_initial_credential(self, test_api_key):
        provider = EnvCredentialProvider(lambda: test_api_key)

        assert await provider.has_credential()
        assert provider.get_credential() == test_api_key

    @pytest.mark.asyncio
    async def test_empty_key_is_missing(self):
        provider = EnvCredentialProvider(lambda: "")

        assert not await provider.has_credential()
        assert provider.get_credential() is None

    @pytest.mark.asyncio
    async def test_selection_reloads(self, test_api_key):
        loader = Mock(side_effect=[None, test_api_key])
        provider = EnvCredentialProvider(loader)

        await provider.request_credential_selection()

        assert loader.call_count == 2
        assert provider.get_credential() == test_api_key

    @pytest.mark.asyncio
    async def test_selection_can_clear_key(self, test_api_key):
        provider = EnvCredentialProvider(Mock(side_effect=[test_api_key, ""]))

        await provider.request_credential_selection()

        assert not await provider.has_credential()
