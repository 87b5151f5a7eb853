import asyncio
import json

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from conftest import at, make_match, make_player
from league_engine import cli, db


def test_parser_accepts_rebuild_options() -> None:
    args = cli.build_parser().parse_args(["rebuild", "--dry-run", "--player-id", "p1"])
    assert args.command == "rebuild"
    assert args.dry_run is True
    assert args.player_id == "p1"


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_exit_code_reflects_errors(monkeypatch, capsys) -> None:
    async def fake_run(args):
        return {"processed": 2, "errored": 1}

    monkeypatch.setattr(cli, "_run", fake_run)
    assert cli.main(["rebuild"]) == 1
    assert json.loads(capsys.readouterr().out)["errored"] == 1


@pytest.mark.preserve_schema
def test_rebuild_against_file_database(tmp_path, monkeypatch, capsys) -> None:
    url = f"sqlite+aiosqlite:///{tmp_path / 'league.db'}"

    async def prepare():
        engine = create_async_engine(url)
        async with engine.begin() as conn:
            await conn.run_sync(db.Base.metadata.create_all)
        Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with Session() as session:
            session.add_all(make_player("a") + make_player("b"))
            await session.flush()
            session.add(make_match("m1", "a", "b", winner="a", sets=[(6, 1), (6, 1)], played=at(3)))
            await session.commit()
        await engine.dispose()

    asyncio.run(prepare())
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setattr(db, "engine", None)
    monkeypatch.setattr(db, "AsyncSessionLocal", None)

    assert cli.main(["ratings"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["matchesProcessed"] == 1

    assert cli.main(["rebuild"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["updated"] == 2
    assert report["errored"] == 0
