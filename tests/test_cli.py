import json

import pytest
from typer.testing import CliRunner

from proppath.cli import app
from proppath.engine.loader import load_document

runner = CliRunner()

DOC = """\
server:
  host: a
  ports:
    - 80
    - 443
  labels:
    env: prod
"""


@pytest.fixture
def doc_file(tmp_path):
    fp = tmp_path / "doc.yaml"
    fp.write_text(DOC, encoding="utf-8")
    return fp

@pytest.fixture
def settings_file(tmp_path):
    fp = tmp_path / "settings.json"
    fp.write_text("{}", encoding="utf-8")
    return fp


def test_get_prints_json(doc_file, settings_file):
    result = runner.invoke(app, ["--settings", str(settings_file), "get", str(doc_file), "server.ports[1]"])
    assert result.exit_code == 0
    assert result.output.strip() == "443"
    result = runner.invoke(app, ["--settings", str(settings_file), "get", str(doc_file), "server.labels"])
    assert json.loads(result.output) == {"env": "prod"}

def test_get_string(doc_file, settings_file):
    result = runner.invoke(app, ["--settings", str(settings_file), "get", str(doc_file), "server.ports", "--string"])
    assert result.exit_code == 0
    assert result.output.strip() == "80"

def test_set_prints_updated_document(doc_file, settings_file):
    result = runner.invoke(app, ["--settings", str(settings_file), "set", str(doc_file),
                                 "server.ports[0]", "8080", "--type", "int"])
    assert result.exit_code == 0
    assert "- 8080" in result.output
    assert load_document(doc_file)["server"]["ports"][0] == 80

def test_set_in_place(doc_file, settings_file):
    result = runner.invoke(app, ["--settings", str(settings_file), "set", str(doc_file),
                                 "server.labels(tier)", "web", "--in-place"])
    assert result.exit_code == 0
    assert load_document(doc_file)["server"]["labels"] == {"env": "prod", "tier": "web"}

def test_set_json_document(tmp_path, settings_file):
    fp = tmp_path / "doc.json"
    fp.write_text('{"flags": {"debug": false}}', encoding="utf-8")
    result = runner.invoke(app, ["--settings", str(settings_file), "set", str(fp),
                                 "flags.debug", "yes", "--type", "bool", "--in-place"])
    assert result.exit_code == 0
    assert json.loads(fp.read_text(encoding="utf-8")) == {"flags": {"debug": True}}

def test_describe(doc_file, settings_file):
    result = runner.invoke(app, ["--settings", str(settings_file), "describe", str(doc_file), "server"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert "host: a" in lines
    assert "ports: 80" in lines

@pytest.mark.parametrize("args", [
    ["get", "{doc}", "server.missing.x"],
    ["get", "{doc}", "server..host"],
    ["get", "{doc}", "server.ports[9]"],
    ["set", "{doc}", "server.ports[0]", "abc", "--type", "int"],
    ["get", "{missing}", "a"],
])
def test_errors_exit_with_code_1(doc_file, settings_file, tmp_path, args):
    args = [a.format(doc=doc_file, missing=tmp_path / "nope.yaml") for a in args]
    result = runner.invoke(app, ["--settings", str(settings_file)] + args)
    assert result.exit_code == 1
    assert "[ERROR]" in result.output
