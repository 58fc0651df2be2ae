"""CLI tests for the one-shot resolution command."""

import pytest

from tokenmeta.cli.resolve_tokens import async_main, parse_args


def test_parse_args():
    args = parse_args(["--limit", "25", "--dry-run", "-v"])

    assert args.limit == 25
    assert args.dry_run is True
    assert args.verbose is True


@pytest.mark.asyncio
async def test_async_main_with_nothing_pending(session_factory, tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'tokenmeta.db'}")

    exit_code = await async_main(["--dry-run"])

    assert exit_code == 0
    output = capsys.readouterr().out
    assert "Tokens fetched: 0" in output
    assert "[DRY RUN]" in output
