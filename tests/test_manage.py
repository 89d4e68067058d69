"""
Tests for the management CLI.
"""

import json

import pytest

from hellomap import manage

ENV_VARS = (
    "HELLOMAP_DATA_PATH", "HELLOMAP_README_TEMPLATE", "HELLOMAP_README_PATH",
    "HELLOMAP_MAP_PATH", "HELLOMAP_GEOJSON_PATH", "HELLOMAP_WHO_LIMIT",
    "HELLOMAP_STORE_DRIVER", "ACTOR", "TITLE", "ISSUE_BODY", "EVENT_AT",
    "ISSUE_TITLE", "ISSUE_AUTHOR",
)


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(manage, "setup_logging", lambda: None)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def read_ledger(workspace):
    return json.loads((workspace / "data" / "visitors.json").read_text(encoding="utf-8"))


class TestEnsureData:

    def test_creates_files(self, workspace, capsys):
        assert manage.main(["ensure-data"]) == 0
        assert (workspace / "assets").is_dir()
        assert read_ledger(workspace)["schemaVersion"] == 3
        assert "[OK] All data directories" in capsys.readouterr().out


class TestClaim:

    @pytest.fixture
    def template(self, workspace):
        path = workspace / "README.tpl.md"
        path.write_text("{{TOTAL_HELLOS}} hellos\n{{WHO_SAID_HELLO}}\n", encoding="utf-8")
        return path

    def test_claim_from_environment(self, workspace, template, monkeypatch, capsys):
        monkeypatch.setenv("ACTOR", "octocat")
        monkeypatch.setenv("TITLE", "hello|us")
        monkeypatch.setenv("ISSUE_BODY", "Hi!\nCity: Denver\n")
        monkeypatch.setenv("EVENT_AT", "2024-01-01T00:00:00Z")
        flag = workspace / "changed.flag"

        assert manage.main(["claim", "--flag-path", str(flag)]) == 0

        ledger = read_ledger(workspace)
        assert ledger["users"]["octocat"]["current"] == {
            "iso": "US",
            "city": "Denver",
            "helloAt": "2024-01-01T00:00:00Z",
        }
        assert flag.read_text() == "1"
        readme = (workspace / "README.md").read_text(encoding="utf-8")
        assert readme.startswith("1 hellos\n")
        assert "[@octocat](https://github.com/octocat)" in readme
        assert "Outcome: applied (changed=true)" in capsys.readouterr().out

    def test_repeat_claim_is_noop(self, workspace, template):
        flag = workspace / "changed.flag"
        args = ["claim", "--user", "octocat", "--title", "hello|FR", "--flag-path", str(flag)]
        assert manage.main(args) == 0
        before = read_ledger(workspace)

        assert manage.main(args) == 0
        assert flag.read_text() == ""
        assert read_ledger(workspace) == before

    def test_invalid_title_changes_nothing(self, workspace, template, capsys):
        flag = workspace / "changed.flag"
        code = manage.main(["claim", "--user", "octocat", "--title", "hi there", "--flag-path", str(flag)])

        assert code == 0
        assert flag.read_text() == ""
        assert not (workspace / "data" / "visitors.json").exists()
        assert "Outcome: invalid_input" in capsys.readouterr().out

    def test_quota(self, workspace):
        for iso in ("US", "FR", "DE", "JP"):
            manage.main(["claim", "--user", "octocat", "--title", f"hello|{iso}", "--skip-readme"])

        user = read_ledger(workspace)["users"]["octocat"]
        assert user["current"]["iso"] == "DE"
        assert user["changesUsed"] == 3

    def test_skip_readme(self, workspace, template):
        manage.main(["claim", "--user", "octocat", "--title", "hello|US", "--skip-readme"])
        assert not (workspace / "README.md").exists()


class TestMigrate:

    def test_legacy_file_upgraded_once(self, workspace, capsys):
        (workspace / "data").mkdir()
        (workspace / "data" / "visitors.json").write_text(json.dumps({
            "countries": {"US": 1},
            "byUser": {"bob": {"last": "us", "count": 2}},
            "updatedAt": "2023-05-01T00:00:00.000Z",
        }))

        assert manage.main(["migrate"]) == 0
        ledger = read_ledger(workspace)
        assert ledger["schemaVersion"] == 3
        assert ledger["users"]["bob"] == {
            "current": {"iso": "US", "city": None, "helloAt": None},
            "changesUsed": 2,
        }
        assert "Migrated" in capsys.readouterr().out

        assert manage.main(["migrate"]) == 0
        assert "already at schema version 3" in capsys.readouterr().out

    @pytest.mark.parametrize("content", ["{not json", '{"visitors": ["alice"]}', "[1, 2]"])
    def test_unusable_file_left_alone(self, workspace, content, capsys):
        (workspace / "data").mkdir()
        path = workspace / "data" / "visitors.json"
        path.write_text(content)

        assert manage.main(["migrate"]) == 1
        assert path.read_text() == content
        assert "[FAIL]" in capsys.readouterr().out

    def test_null_fields_keep_their_users(self, workspace):
        (workspace / "data").mkdir()
        (workspace / "data" / "visitors.json").write_text(json.dumps({
            "schemaVersion": 3,
            "updatedAt": None,
            "maxChangesPerUser": 10,
            "countries": {"US": {"users": {"alice": True}}},
            "users": {"alice": {"current": {"iso": "US"}, "changesUsed": 1}},
        }))

        assert manage.main(["migrate"]) == 0
        ledger = read_ledger(workspace)
        assert ledger["updatedAt"] == ""
        assert ledger["maxChangesPerUser"] == 3
        assert ledger["users"]["alice"]["current"]["iso"] == "US"


class TestStats:

    def test_json(self, workspace, capsys):
        manage.main(["claim", "--user", "a", "--title", "hello|US", "--skip-readme"])
        manage.main(["claim", "--user", "b", "--title", "hello|US", "--skip-readme"])
        capsys.readouterr()

        assert manage.main(["stats", "--json"]) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats["totalHellos"] == 2
        assert stats["countries"] == [["US", 2]]

    def test_empty(self, workspace, capsys):
        assert manage.main(["stats"]) == 0
        assert "Total hellos: 0" in capsys.readouterr().out


class TestRenderMap:

    def test_without_boundaries(self, workspace):
        assert manage.main(["render-map"]) == 0
        svg = (workspace / "assets" / "world.svg").read_text(encoding="utf-8")
        assert svg.lstrip().startswith("<svg")

    def test_custom_output(self, workspace):
        assert manage.main(["render-map", "-o", "out/map.svg"]) == 0
        assert (workspace / "out" / "map.svg").exists()


class TestFormatTitle:

    def test_match(self, capsys):
        assert manage.main(["format-title", "--title", "hello|fr", "--author", "octocat"]) == 0
        assert capsys.readouterr().out.strip() == "\U0001F1EB\U0001F1F7 hello|FR - @octocat says hello 👋"

    def test_no_match(self, monkeypatch, capsys):
        monkeypatch.setenv("ISSUE_TITLE", "hi")
        monkeypatch.setenv("ISSUE_AUTHOR", "octocat")
        assert manage.main(["format-title"]) == 1
        assert capsys.readouterr().out == ""


def test_no_command_prints_help(capsys):
    assert manage.main([]) == 1
    assert "hellomap Management CLI" in capsys.readouterr().out
