import json

import pytest
import requests

from conftest import ALICE, BOB, CAROL, DEPLOYER, T0, build_participation_tree
from shares_timelock.cache import cache_key, clear_cache, get_cache_dir, get_cached, set_cached
from shares_timelock.cli import main
from shares_timelock.constants import CACHE_DIR_NAME, PARTICIPATION_INACTIVE, PARTICIPATION_YES, PROOF_BUNDLE_FORMAT
from shares_timelock.ipfs import build_gateway_url, configured_gateways, fetch_ipfs_json

DAY = 86400


@pytest.fixture(autouse=True)
def isolated_cache(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def bundle_file(tmp_path):
    entries = [(ALICE, PARTICIPATION_YES), (BOB, PARTICIPATION_INACTIVE)]
    root, proofs = build_participation_tree(entries)
    data = {
        "format": PROOF_BUNDLE_FORMAT,
        "root": root,
        "entries": [
            {"address": address, "participation": flag, "proof": proof}
            for (address, flag), proof in zip(entries, proofs)
        ],
    }
    path = tmp_path / "bundle.json"
    path.write_text(json.dumps(data))
    return path, data


def write_scenario(tmp_path, steps):
    path = tmp_path / "scenario.json"
    path.write_text(
        json.dumps(
            {
                "deployer": DEPLOYER,
                "config": {"min_lock_duration": 30 * DAY, "max_lock_duration": 90 * DAY},
                "balances": {ALICE: "10e18", BOB: "10e18"},
                "start_time": T0,
                "steps": steps,
            }
        )
    )
    return path


# -- replay -----------------------------------------------------------------------


def test_replay_prints_report(tmp_path, capsys) -> None:
    path = write_scenario(
        tmp_path,
        [
            {"op": "deposit", "account": ALICE, "amount": "5e18", "days": 30},
            {"op": "deposit", "account": BOB, "amount": "2e18", "days": 90},
            {"op": "advance", "days": 1},
            {"op": "withdraw", "account": ALICE, "lock_id": 0},
        ],
    )
    assert main(["replay", str(path), "--events"]) == 0
    out = capsys.readouterr().out
    assert "SHARES TIME-LOCK REPORT" in out
    assert "4 steps, 0 reverted" in out
    assert "#0  withdrawn" in out
    assert "Pending fees:" in out
    assert "Deposited(" in out


def test_replay_json(tmp_path, capsys) -> None:
    path = write_scenario(
        tmp_path,
        [
            {"op": "deposit", "account": ALICE, "amount": "5e18", "days": 30},
            {"op": "withdraw", "account": BOB, "lock_id": 0},
        ],
    )
    assert main(["replay", str(path), "--json"]) == 1
    out = json.loads(capsys.readouterr().out)
    assert out["timestamp"] == T0
    assert out["steps"] == [
        {"index": 0, "op": "deposit", "ok": True, "error": None},
        {"index": 1, "op": "withdraw", "ok": False, "error": "NOT_LOCK_OWNER"},
    ]
    assert out["aggregates"]["locks_active"] == 1
    assert out["aggregates"]["total_locked"] == 5 * 10**18
    assert "Deposited" in [e["event"] for e in out["events"]]


def test_replay_invalid_scenario_exits_2(tmp_path, capsys) -> None:
    path = write_scenario(tmp_path, [{"op": "warp"}])
    assert main(["replay", str(path)]) == 2
    assert "unknown op 'warp'" in capsys.readouterr().err


def test_replay_missing_file_exits_2(tmp_path, capsys) -> None:
    assert main(["replay", str(tmp_path / "nope.json")]) == 2
    assert capsys.readouterr().err.startswith("Error:")


# -- verify-proof -------------------------------------------------------------------


def test_verify_proof_from_bundle(bundle_file, capsys) -> None:
    path, data = bundle_file
    assert main(["verify-proof", "--address", ALICE, "--bundle", str(path)]) == 0
    assert ": valid" in capsys.readouterr().out
    assert main(["verify-proof", "--address", BOB, "--flag", "0", "--bundle", str(path), "--root", data["root"]]) == 0


def test_verify_proof_wrong_flag(bundle_file, capsys) -> None:
    path, _ = bundle_file
    assert main(["verify-proof", "--address", BOB, "--bundle", str(path)]) == 1
    captured = capsys.readouterr()
    assert "records participation=0" in captured.err
    assert "invalid" in captured.out


def test_verify_proof_unknown_account(bundle_file, capsys) -> None:
    path, _ = bundle_file
    assert main(["verify-proof", "--address", CAROL, "--bundle", str(path)]) == 1
    assert "has no entry" in capsys.readouterr().err


def test_verify_proof_against_other_root(bundle_file, capsys) -> None:
    path, _ = bundle_file
    assert main(["verify-proof", "--address", ALICE, "--bundle", str(path), "--root", "0x" + "22" * 32]) == 1
    assert "does not match expected root" in capsys.readouterr().err


def test_verify_proof_from_ipfs(bundle_file, monkeypatch, capsys) -> None:
    _, data = bundle_file
    calls = []

    def fake_fetch(cid, gateways, *, timeout_s, use_cache):
        calls.append((cid, use_cache))
        return data

    monkeypatch.setattr("shares_timelock.cli.fetch_ipfs_json", fake_fetch)
    assert main(["verify-proof", "--address", ALICE, "--cid", "bafyproofs", "--no-cache"]) == 0
    assert calls == [("bafyproofs", False)]


# -- ipfs and cache -----------------------------------------------------------------


def test_build_gateway_url_variants() -> None:
    cid = "bafybeigdyrztw"
    assert build_gateway_url("https://ipfs.io/ipfs/", cid) == f"https://ipfs.io/ipfs/{cid}"
    assert build_gateway_url("https://ipfs.io/ipfs", cid) == f"https://ipfs.io/ipfs/{cid}"
    assert build_gateway_url("https://ipfs.io", cid) == f"https://ipfs.io/ipfs/{cid}"


def test_configured_gateways(monkeypatch) -> None:
    monkeypatch.setenv("IPFS_GATEWAYS", " https://a.example , ,https://b.example")
    assert configured_gateways() == ("https://a.example", "https://b.example")
    monkeypatch.delenv("IPFS_GATEWAYS")
    assert configured_gateways()


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self) -> None:
        pass

    def json(self):
        return self.payload


def test_fetch_ipfs_json_falls_back_and_caches(monkeypatch) -> None:
    urls = []

    def fake_get(url, timeout):
        urls.append(url)
        if url.startswith("https://down.example"):
            raise requests.ConnectionError("down")
        return FakeResponse({"root": "0x01"})

    monkeypatch.setattr(requests, "get", fake_get)
    gateways = ["https://down.example", "https://up.example/ipfs/"]
    assert fetch_ipfs_json("bafy1", gateways, timeout_s=1) == {"root": "0x01"}
    assert urls == ["https://down.example/ipfs/bafy1", "https://up.example/ipfs/bafy1"]

    # Served from the cache the second time.
    assert fetch_ipfs_json("bafy1", gateways, timeout_s=1) == {"root": "0x01"}
    assert len(urls) == 2


def test_fetch_ipfs_json_fails_when_no_gateway_serves_an_object(monkeypatch) -> None:
    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse([1, 2]))
    with pytest.raises(RuntimeError, match="bafy2"):
        fetch_ipfs_json("bafy2", ["https://a.example"], timeout_s=1, use_cache=False)


def test_cache_round_trip_and_clear(tmp_path, capsys) -> None:
    assert get_cache_dir() == tmp_path / "xdg" / CACHE_DIR_NAME
    key = cache_key("ipfs-json", "bafy")
    assert key == cache_key("ipfs-json", "bafy") != cache_key("ipfs-json", "bafz")
    assert get_cached(key) is None

    set_cached(key, {"a": [1, 2]})
    assert get_cached(key) == {"a": [1, 2]}

    (get_cache_dir() / f"{key}.json").write_text("{not json")
    assert get_cached(key) is None

    clear_cache()
    assert "Cache cleared" in capsys.readouterr().err
    clear_cache()
    assert "Cache is empty" in capsys.readouterr().err
