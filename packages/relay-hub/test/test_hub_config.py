#!/usr/bin/env python3
"""Tests for the hub configuration module."""

import os
from unittest.mock import patch

import pytest

from relay_hub.config import HubConfig


class TestHubConfig:

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = HubConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 7000
        assert config.db_path == "./hub.sqlite"
        assert config.pending_limit == 50

    def test_from_env(self):
        env = {"HUB_HOST": "127.0.0.1", "HUB_PORT": "7100", "HUB_DB": "/tmp/x.sqlite", "HUB_PENDING_LIMIT": "20"}
        with patch.dict(os.environ, env, clear=True):
            config = HubConfig.from_env()

        assert config == HubConfig(host="127.0.0.1", port=7100, db_path="/tmp/x.sqlite", pending_limit=20)

    def test_non_numeric_port(self):
        with patch.dict(os.environ, {"HUB_PORT": "seven"}, clear=True):
            with pytest.raises(ValueError, match="must be integers"):
                HubConfig.from_env()

    @pytest.mark.parametrize("port", [0, 70000])
    def test_invalid_port(self, port):
        with pytest.raises(ValueError, match="Invalid hub port"):
            HubConfig(port=port)

    def test_empty_db_path(self):
        with pytest.raises(ValueError, match="database path is required"):
            HubConfig(db_path="")

    def test_pending_limit_bounds(self):
        with pytest.raises(ValueError, match="must be positive"):
            HubConfig(pending_limit=0)
        with pytest.raises(ValueError, match="too high"):
            HubConfig(pending_limit=HubConfig.MAX_PENDING_LIMIT + 1)
