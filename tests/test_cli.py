"""Tests for the interpolant CLI."""

from typer.testing import CliRunner

from interpolant._version import __version__
from interpolant.cli import app

runner = CliRunner()

PARTIALS = """
partials:
  - identity: footer
    source: "-- footer: ${text}"
    schema:
      text: string
  - identity: sql_header
    source: "-- header for ${title}"
    inject: "**/*.sql"
  - identity: report_header
    source: "-- report ${title}"
    inject: reports/*.sql
"""


def write(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(content)
    return path


def test_version():
    """--version prints the package version."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_render_with_context_and_partials(tmp_path):
    """Context keys are available as locals and under ctx."""
    template = write(tmp_path, "t.txt", '${ctx.app}/${user} ${partial("footer", {"text": user})}')
    context = write(tmp_path, "ctx.yaml", "app: Spry\nuser: Zoya\n")
    partials = write(tmp_path, "partials.yaml", PARTIALS)

    result = runner.invoke(
        app, ["render", str(template), "-c", str(context), "-p", str(partials)]
    )
    assert result.exit_code == 0, result.output
    assert "Spry/Zoya -- footer: Zoya" in result.output


def test_context_keys_that_are_not_identifiers(tmp_path):
    """Dashed keys and a key named like the context stay reachable under ctx only."""
    template = write(tmp_path, "t.txt", 'app=${ctx.name} id=${ctx["build-id"]} ${name}')
    context = write(tmp_path, "ctx.yaml", "name: spry\nbuild-id: 7\nctx: shadow\n")

    result = runner.invoke(app, ["render", str(template), "-c", str(context)])
    assert result.exit_code == 0, result.output
    assert result.output == "app=spry id=7 spry"


def test_render_with_injection(tmp_path):
    """--path wraps the template with the most specific injectable."""
    template = write(tmp_path, "q.sql", "select 1")
    context = write(tmp_path, "ctx.yaml", "title: Daily\n")
    partials = write(tmp_path, "partials.yaml", PARTIALS)
    out = tmp_path / "build" / "q.sql"

    result = runner.invoke(
        app,
        [
            "render", str(template),
            "-c", str(context),
            "-p", str(partials),
            "--path", "reports/q.sql",
            "-o", str(out),
        ],
    )
    assert result.exit_code == 0, result.output
    assert out.read_text() == "-- report Daily\nselect 1"


def test_render_failure_exits_nonzero(tmp_path):
    """Render errors exit with code 1."""
    template = write(tmp_path, "t.txt", "${undefined_name}")
    result = runner.invoke(app, ["render", str(template)])
    assert result.exit_code == 1
    assert "undefined_name" in result.output


def test_restricted_rejects_expressions(tmp_path):
    """--restricted refuses arithmetic."""
    template = write(tmp_path, "t.txt", "${1 + 2}")
    result = runner.invoke(app, ["render", str(template), "--restricted"])
    assert result.exit_code == 1


def test_config_file_renames_context(tmp_path):
    """--config applies engine settings."""
    template = write(tmp_path, "t.txt", "${globals.app}")
    context = write(tmp_path, "ctx.yaml", "app: Spry\n")
    config = write(tmp_path, "cfg.yaml", "ctx_name: globals\n")
    result = runner.invoke(
        app, ["render", str(template), "-c", str(context), "--config", str(config)]
    )
    assert result.exit_code == 0, result.output
    assert result.output == "Spry"


def test_missing_template(tmp_path):
    """A missing template file is an error."""
    result = runner.invoke(app, ["render", str(tmp_path / "absent.txt")])
    assert result.exit_code == 1


def test_partials_listing(tmp_path):
    """partials lists declarations and the chosen injectable."""
    partials = write(tmp_path, "partials.yaml", PARTIALS)
    result = runner.invoke(app, ["partials", str(partials), "--path", "reports/q.sql"])
    assert result.exit_code == 0, result.output
    assert "footer" in result.output
    assert "sql_header" in result.output
    assert "report_header" in result.output
