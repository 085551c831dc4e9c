"""Command line front end, with the ledger swapped for the in-memory fake."""

import json

import pytest
from solders.keypair import Keypair

from conftest import FakeLedger, new_address, token_account
from rent_reclaim import cli
from rent_reclaim.signer import load_keypair_any


class BroadcastLedger(FakeLedger):
    def __init__(self, accounts):
        super().__init__(accounts)
        self.sent = []

    def send_raw_transaction(self, raw, *, skip_preflight=False):
        self.sent.append(raw)
        return "5igConfirmedSignature"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.setattr(cli, "load_dotenv", lambda *a, **kw: False)
    for var in ("KEYPAIR_PATH", "SOLANA_NETWORK", "RPC_URL", "SOLANA_URL", "HELIUS_API_KEY", "DONATION_ADDRESS"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def fake_ledger(monkeypatch):
    ledger = BroadcastLedger([token_account(new_address(), new_address()) for _ in range(2)])
    monkeypatch.setattr(cli, "LedgerClient", lambda rpc_url: ledger)
    return ledger


@pytest.fixture
def keypair_file(tmp_path):
    kp = Keypair()
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(kp))), encoding="utf-8")
    return kp, path


def test_dry_run_reports_and_does_not_broadcast(fake_ledger, capsys):
    code = cli.main(["--owner", new_address(), "--network", "devnet", "--donation-percent", "10"])

    out = capsys.readouterr().out
    assert code == 0
    assert "DRY RUN" in out
    assert "Empty token accounts: 2" in out
    assert "Total recoverable:    0.00407856 SOL" in out
    assert fake_ledger.sent == []
    assert "get_latest_block_reference" not in fake_ledger.calls


def test_execute_closes_and_prints_explorer_link(fake_ledger, keypair_file, capsys):
    kp, path = keypair_file

    code = cli.main(["--keypair", str(path), "--network", "devnet", "--donation-percent", "0", "--execute"])

    out = capsys.readouterr().out
    assert code == 0
    assert len(fake_ledger.sent) == 1
    assert "Confirmed: 5igConfirmedSignature" in out
    assert "https://explorer.solana.com/tx/5igConfirmedSignature?cluster=devnet" in out


def test_execute_with_donation_but_no_destination(fake_ledger, keypair_file, capsys):
    _, path = keypair_file

    code = cli.main(["--keypair", str(path), "--donation-percent", "5", "--execute"])

    assert code == 1
    assert "donation destination not configured" in capsys.readouterr().out
    assert fake_ledger.sent == []


def test_select_subset(fake_ledger, capsys):
    chosen = fake_ledger.accounts[0]["pubkey"]
    code = cli.main(["--owner", new_address(), "--select", chosen])

    out = capsys.readouterr().out
    assert code == 0
    assert "Selected accounts:    1" in out


def test_select_unknown_account(fake_ledger, capsys):
    code = cli.main(["--owner", new_address(), "--select", new_address()])
    assert code == 1


def test_execute_requires_keypair(fake_ledger, capsys):
    assert cli.main(["--owner", new_address(), "--execute"]) == 2


def test_needs_owner_or_keypair(fake_ledger, capsys):
    assert cli.main([]) == 2


def test_bad_donation_percent(fake_ledger, capsys):
    assert cli.main(["--owner", new_address(), "--donation-percent", "120"]) == 2


def test_load_keypair_formats(tmp_path):
    kp = Keypair()
    as_array = tmp_path / "a.json"
    as_array.write_text(json.dumps(list(bytes(kp))), encoding="utf-8")
    as_b58 = tmp_path / "b.json"
    as_b58.write_text(json.dumps(str(kp)), encoding="utf-8")

    assert load_keypair_any(as_array).pubkey() == kp.pubkey()
    assert load_keypair_any(as_b58).pubkey() == kp.pubkey()


def test_load_keypair_rejects_short_array(tmp_path):
    path = tmp_path / "short.json"
    path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    with pytest.raises(ValueError):
        load_keypair_any(path)
