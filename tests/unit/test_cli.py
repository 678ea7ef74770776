"""
命令行接口单元测试

使用 typer 的 CliRunner 调用各子命令，只检查退出码、生成的文件和关键输出。
"""

import json
import shlex
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from kapsul import __version__
from kapsul.cli.main import app
from kapsul.config.defaults import OVERRIDE_CONFIG_FILE


runner = CliRunner()

PYTHON = shlex.quote(sys.executable)


def py(code: str) -> str:
    return f"{PYTHON} -c {shlex.quote(code)}"


def write_json(path: Path, data) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def no_global_binaries():
    with patch("kapsul.project.package_manager.is_command_available", return_value=False), \
            patch("kapsul.config.resolver.is_command_available", return_value=False):
        yield


@pytest.fixture
def express_project(tmp_path):
    write_json(tmp_path / "package.json", {
        "name": "api",
        "version": "1.2.3",
        "main": "index.js",
        "dependencies": {"express": "^4.18.0"},
        "scripts": {"build": "echo build"},
    })
    (tmp_path / "index.js").write_text("require('express')")
    return tmp_path


class TestGlobalOptions:
    """全局选项"""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_directory(self, tmp_path):
        for command in ("build", "package", "init", "validate", "check", "info"):
            result = runner.invoke(app, [command, str(tmp_path / "missing")])
            assert result.exit_code == 1, command


class TestInitCommand:
    """init 命令"""

    def test_creates_override(self, express_project):
        result = runner.invoke(app, ["init", str(express_project)])

        assert result.exit_code == 0
        data = json.loads((express_project / OVERRIDE_CONFIG_FILE).read_text(encoding="utf-8"))
        assert data["buildCommand"] == "npm run build"
        assert data["compressionFormat"] == "tar.gz"

    def test_explicit_type(self, tmp_path):
        result = runner.invoke(app, ["init", str(tmp_path), "--type", "next"])

        assert result.exit_code == 0
        data = json.loads((tmp_path / OVERRIDE_CONFIG_FILE).read_text(encoding="utf-8"))
        assert data["compressionFormat"] == "zip"

    def test_unknown_type(self, tmp_path):
        result = runner.invoke(app, ["init", str(tmp_path), "--type", "django"])
        assert result.exit_code == 1
        assert not (tmp_path / OVERRIDE_CONFIG_FILE).exists()

    def test_keeps_existing_when_declined(self, express_project):
        config_path = express_project / OVERRIDE_CONFIG_FILE
        config_path.write_text('{"buildCommand": "make"}', encoding="utf-8")

        result = runner.invoke(app, ["init", str(express_project)], input="n\n")

        assert result.exit_code == 0
        assert json.loads(config_path.read_text(encoding="utf-8")) == {"buildCommand": "make"}

    def test_force_overwrites(self, express_project):
        config_path = express_project / OVERRIDE_CONFIG_FILE
        config_path.write_text('{"buildCommand": "make"}', encoding="utf-8")

        result = runner.invoke(app, ["init", str(express_project), "--force"])

        assert result.exit_code == 0
        assert json.loads(config_path.read_text(encoding="utf-8"))["buildCommand"] == "npm run build"


class TestValidateCommand:
    """validate 命令"""

    def test_valid_defaults(self, express_project):
        result = runner.invoke(app, ["validate", str(express_project)])
        assert result.exit_code == 0

    def test_invalid_compression_format(self, express_project):
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"compressionFormat": "tarball"})

        result = runner.invoke(app, ["validate", str(express_project), "--json"])

        assert result.exit_code == 1
        assert "tarball" in result.output

    def test_missing_declared_output_dir(self, express_project):
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"outputDir": "build-output"})

        result = runner.invoke(app, ["validate", str(express_project)])
        assert result.exit_code == 1

    def test_malformed_override(self, express_project):
        (express_project / OVERRIDE_CONFIG_FILE).write_text("{not json", encoding="utf-8")

        result = runner.invoke(app, ["validate", str(express_project)])
        assert result.exit_code == 1


class TestCheckCommand:
    """check 命令"""

    def test_ready_project(self, express_project):
        result = runner.invoke(app, ["check", str(express_project)])
        assert result.exit_code == 0
        assert "express" in result.output

    def test_missing_manifest(self, tmp_path):
        """没有 package.json 时依赖检查失败"""
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {"buildCommand": "make"})

        result = runner.invoke(app, ["check", str(tmp_path)])
        assert result.exit_code == 1

    def test_missing_build_step(self, tmp_path):
        write_json(tmp_path / "package.json", {"dependencies": {"express": "4"}})

        result = runner.invoke(app, ["check", str(tmp_path)])
        assert result.exit_code == 1


class TestInfoCommand:
    """info 命令"""

    def test_info(self, express_project):
        result = runner.invoke(app, ["info", str(express_project)])
        assert result.exit_code == 0
        assert "1.2.3" in result.output
        assert "express" in result.output


class TestBuildCommand:
    """build 命令"""

    def test_build_success(self, express_project):
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"buildCommand": py("print('compiled')")})

        result = runner.invoke(app, ["build", str(express_project), "--verbose"])

        assert result.exit_code == 0
        assert "compiled" in result.output
        assert not (express_project / "build.tar.gz").exists()

    def test_build_failure(self, express_project):
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"buildCommand": py("import sys; sys.exit(2)")})

        result = runner.invoke(app, ["build", str(express_project)], input="n\n")
        assert result.exit_code == 1

    def test_no_build_step_declined(self, tmp_path):
        write_json(tmp_path / "package.json", {"dependencies": {"express": "4"}})

        result = runner.invoke(app, ["build", str(tmp_path)], input="n\n")
        assert result.exit_code == 1

    def test_no_build_step_accepted(self, tmp_path):
        write_json(tmp_path / "package.json", {"dependencies": {"express": "4"}})

        result = runner.invoke(app, ["build", str(tmp_path), "--yes"])
        assert result.exit_code == 0


class TestPackageCommand:
    """package 命令"""

    def test_package(self, express_project):
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"buildCommand": py("pass")})

        result = runner.invoke(app, ["package", str(express_project)])

        assert result.exit_code == 0
        assert (express_project / "build.tar.gz").is_file()

    def test_custom_output(self, express_project, tmp_path_factory):
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"buildCommand": py("pass")})
        output = tmp_path_factory.mktemp("dist") / "release.tar.gz"

        result = runner.invoke(app, ["package", str(express_project), "-o", str(output)])

        assert result.exit_code == 0
        assert output.is_file()

    def test_existing_output_requires_force(self, express_project, tmp_path_factory):
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"buildCommand": py("pass")})
        output = tmp_path_factory.mktemp("dist") / "release.tar.gz"
        output.write_bytes(b"old")

        result = runner.invoke(app, ["package", str(express_project), "-o", str(output)])
        assert result.exit_code == 1
        assert output.read_bytes() == b"old"

        result = runner.invoke(app, ["package", str(express_project), "-o", str(output), "--force"])
        assert result.exit_code == 0
        assert output.read_bytes() != b"old"

    def test_relative_output_checked_in_project(self, express_project):
        """相对输出路径按项目目录检查是否已存在"""
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"buildCommand": py("pass")})
        existing = express_project / "out.tar.gz"
        existing.write_bytes(b"old")

        result = runner.invoke(app, ["package", str(express_project), "-o", "out.tar.gz"])

        assert result.exit_code == 1
        assert existing.read_bytes() == b"old"

    def test_existing_default_output_requires_force(self, express_project):
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"buildCommand": py("pass")})
        existing = express_project / "build.tar.gz"
        existing.write_bytes(b"old")

        result = runner.invoke(app, ["package", str(express_project)])
        assert result.exit_code == 1
        assert existing.read_bytes() == b"old"

        result = runner.invoke(app, ["package", str(express_project), "--force"])
        assert result.exit_code == 0
        assert existing.read_bytes() != b"old"

    def test_build_failure_declined(self, express_project):
        write_json(express_project / OVERRIDE_CONFIG_FILE, {"buildCommand": py("import sys; sys.exit(1)")})

        result = runner.invoke(app, ["package", str(express_project)], input="n\n")

        assert result.exit_code == 1
        assert not (express_project / "build.tar.gz").exists()
