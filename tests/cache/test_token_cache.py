import json
import os
import stat

import pytest

from coglet.domain.models import AuthResult
from coglet.infra.cache.token_cache import EXPIRY_SKEW_SECONDS, TokenCache, cacheKey, defaultStateDir


def make_auth(expires_in=3600):
    return AuthResult(access_token="at", id_token="it", refresh_token="rt", token_type="Bearer", expires_in=expires_in)


def test_save_and_load_round_trip(tmp_path):
    cache = TokenCache(str(tmp_path / "state"), clock=lambda: 1000)
    key = cacheKey("us-east-1_pool1", "alice")

    path = cache.save(key, make_auth())

    assert path.name == "us-east-1_pool1_alice.json"
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["expires_at"] == 1000 + 3600
    assert cache.load(key) == make_auth()


def test_path_sanitizes_separators(tmp_path):
    cache = TokenCache(str(tmp_path))
    assert cache.pathFor("pool:team/alice").name == "pool_team_alice.json"


def test_entry_expires_with_skew_and_is_deleted(tmp_path):
    now = {"t": 1000}
    cache = TokenCache(str(tmp_path), clock=lambda: now["t"])
    key = cacheKey("pool", "alice")
    path = cache.save(key, make_auth(expires_in=600))

    now["t"] = 1000 + 600 - EXPIRY_SKEW_SECONDS - 1
    assert cache.load(key) is not None

    now["t"] = 1000 + 600 - EXPIRY_SKEW_SECONDS
    assert cache.load(key) is None
    assert not path.exists()


def test_corrupt_entry_is_discarded(tmp_path):
    cache = TokenCache(str(tmp_path))
    key = cacheKey("pool", "alice")
    cache.pathFor(key).write_text("{not json", encoding="utf-8")

    assert cache.load(key) is None
    assert not cache.pathFor(key).exists()


def test_missing_entry_returns_none(tmp_path):
    assert TokenCache(str(tmp_path)).load("pool:nobody") is None


def test_cannot_cache_without_expiry(tmp_path):
    with pytest.raises(ValueError):
        TokenCache(str(tmp_path)).save("pool:alice", AuthResult(challenge_name="MFA"))


def test_default_state_dir_follows_xdg(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))
    assert defaultStateDir() == str(tmp_path / "coglet")
