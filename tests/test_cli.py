"""CLI tests."""

from __future__ import annotations

import yaml

from csp_manager.__main__ import main


def _run(options_path, *argv):
    return main(["--options-file", str(options_path), *argv])


class TestInit:
    def test_seeds_defaults(self, options_path, capsys):
        assert _run(options_path, "init") == 0
        assert "Seeded:" in capsys.readouterr().out
        assert set(yaml.safe_load(options_path.read_text())) == {
            "csp_manager_admin", "csp_manager_loggedin", "csp_manager_frontend",
        }

    def test_second_run_reports_nothing_to_do(self, options_path, capsys):
        _run(options_path, "init")
        capsys.readouterr()
        assert _run(options_path, "init") == 0
        assert "already configured" in capsys.readouterr().out


class TestRender:
    def test_admin_default(self, options_path, capsys):
        _run(options_path, "init")
        capsys.readouterr()
        assert _run(options_path, "render", "admin") == 0
        assert capsys.readouterr().out.strip() == "Content-Security-Policy-Report-Only: default-src 'self'"

    def test_disabled_context_prints_nothing(self, options_path, capsys):
        _run(options_path, "init")
        capsys.readouterr()
        assert _run(options_path, "render", "frontend") == 0
        assert capsys.readouterr().out == ""

    def test_missing_record_noted_on_stderr(self, options_path, capsys):
        assert _run(options_path, "render", "logged-in") == 0
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "no stored policy" in captured.err


class TestValidate:
    def test_defaults_ok(self, options_path, capsys):
        _run(options_path, "init")
        capsys.readouterr()
        assert _run(options_path, "validate") == 0
        out = capsys.readouterr().out
        assert "[admin] ok (report)" in out
        assert "[frontend] ok (disabled)" in out

    def test_errors_fail(self, options_path, capsys):
        options_path.write_text(yaml.safe_dump({
            "csp_manager_admin": {"mode": "enforce", "enable_script-src": 1, "script-src": "javascript://evil"},
        }))
        assert _run(options_path, "validate", "admin") == 1
        assert "[admin] script-src error:" in capsys.readouterr().out

    def test_warnings_pass(self, options_path, capsys):
        options_path.write_text(yaml.safe_dump({
            "csp_manager_admin": {"mode": "enforce", "enable_script-src": 1, "script-src": ""},
        }))
        assert _run(options_path, "validate", "admin") == 0
        assert "warning" in capsys.readouterr().out

    def test_missing_context(self, options_path, capsys):
        assert _run(options_path, "validate", "frontend") == 0
        assert "[frontend] no stored policy" in capsys.readouterr().out


class TestErrors:
    def test_no_command(self, options_path, capsys):
        assert main([]) == 1

    def test_unreadable_store(self, options_path, capsys):
        options_path.write_text("key: [unclosed\n")
        assert _run(options_path, "validate") == 1
        assert "Error:" in capsys.readouterr().err
