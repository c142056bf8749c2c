import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import scripts.dns_probe as dns_cli
import scripts.pooler_sweep as pooler_cli
import scripts.production_check as production_cli
import scripts.schema_probe as schema_cli


@pytest.mark.parametrize("module", [pooler_cli, schema_cli, dns_cli])
def test_missing_secrets_exit_with_config_error(module, capsys):
    assert module.main([]) == 2
    assert "error:" in capsys.readouterr().err


def test_pooler_sweep_reports_winner(monkeypatch, capsys):
    monkeypatch.setenv("SUPABASE_PROJECT_REF", "abcdef")
    monkeypatch.setenv("SUPABASE_DB_PASSWORD", "pw")
    attempted = []

    async def fake_connect(candidate, *, password, database, timeout_ms):
        attempted.append(candidate.region)
        if candidate.region != "us-east-1":
            raise OSError("Tenant or user not found")

    monkeypatch.setattr(pooler_cli, "connect_candidate", fake_connect)

    code = pooler_cli.main(["--region", "eu-central-1", "--region", "us-east-1", "--port", "6543", "--user-format", "postgres.{project_ref}"])

    assert code == 0
    assert attempted == ["eu-central-1", "us-east-1"]
    out = capsys.readouterr().out
    assert "[wrong region/tenant]" in out
    assert "Host: aws-0-us-east-1.pooler.supabase.com" in out
    assert "User: postgres.abcdef" in out
    assert "pw" not in out


def test_pooler_sweep_all_failed(monkeypatch, capsys):
    monkeypatch.setenv("SUPABASE_PROJECT_REF", "abcdef")
    monkeypatch.setenv("SUPABASE_DB_PASSWORD", "pw")

    async def fake_connect(candidate, **kwargs):
        raise OSError("timeout expired")

    monkeypatch.setattr(pooler_cli, "connect_candidate", fake_connect)

    assert pooler_cli.main(["--extended", "--region", "sa-east-1"]) == 1
    assert "All combinations failed." in capsys.readouterr().out


def test_dns_probe_cli_prints_diagnosis(monkeypatch, capsys):
    async def fake_probe(hostnames, *, record_types):
        from evu_diag.dns_probe import DnsResult

        return [
            DnsResult(h, "A", error_code="EAI_NONAME", error_message="not known")
            if h.startswith("db.")
            else DnsResult(h, "A", addresses=["1.1.1.1"])
            for h in hostnames
        ]

    monkeypatch.setattr(dns_cli, "probe_hostnames", fake_probe)

    code = dns_cli.main(["--project-ref", "abcdef", "--no-pooler"])

    out = capsys.readouterr().out
    assert code == 1
    assert "FAIL A    db.abcdef.supabase.co: EAI_NONAME not known" in out
    assert "Diagnosis (db.abcdef.supabase.co): Hostname does not resolve" in out
    assert "2/3 lookups resolved." in out


def test_production_audit_log_needs_backend_credentials(capsys):
    assert production_cli.main(["--audit-log"]) == 2
    assert "SUPABASE_URL" in capsys.readouterr().err
