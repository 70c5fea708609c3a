from typer.testing import CliRunner

from scoutwatch.config import settings
from scoutwatch.data.persistence import FormPersister
from scoutwatch.data.storage import Database
from scoutwatch.domain.models import Form, FormType, Record
from scoutwatch.main import cli

runner = CliRunner()


def test_review_commands(tmp_path, monkeypatch):
    db_path = tmp_path / "scouting.db"
    monkeypatch.setattr(settings.paths, "db_path", db_path)
    items = tmp_path / "items.yaml"
    items.write_text(
        "items:\n"
        "  - {id: 1, name: auto_points, datatype: numeric}\n"
        "  - {id: 8, name: comments, datatype: text}\n"
    )

    result = runner.invoke(cli, ["init-db", "--items", str(items)])
    assert result.exit_code == 0, result.output
    assert "2 items" in result.output

    FormPersister(Database(db_path), backoff_seconds=0).store(
        Form(
            form_type=FormType.MATCH,
            tablet_num=12,
            scout_name="Alice",
            team_num=118,
            match_num=4,
            records=[Record(item_id=1, value="6"), Record(item_id=8, value="fast cycles")],
        )
    )

    result = runner.invoke(cli, ["reconstruct", "--form-type", "1"], input="118\n")
    assert result.exit_code == 0, result.output
    assert "1|12|Alice|118|4|1,6|8,fast cycles" in result.output

    result = runner.invoke(cli, ["summarize", "--team", "118"])
    assert result.output.strip() == "1,6,0,1##"

    result = runner.invoke(cli, ["comments", "--team", "118"])
    assert result.output.strip() == "fast cycles"

    result = runner.invoke(cli, ["reconstruct", "--team", "999"])
    assert result.exit_code == 1
