"""
打包流水线单元测试

覆盖端到端场景、决策点和上传协作者。
"""

import json
import os
import shlex
import sys
import tarfile
import zipfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from kapsul.build.build_context import (
    BuildPhase,
    BuildProgressEvent,
    BuildResult,
    PipelineState,
)
from kapsul.build.executor import BuildExecutor
from kapsul.build.pipeline import PackagingPipeline, PipelineDecisions, upload
from kapsul.collaborators import TransportError, UploadResult
from kapsul.config.defaults import OVERRIDE_CONFIG_FILE
from kapsul.config.schema import PackageManagerKind, ProjectType


PYTHON = shlex.quote(sys.executable)


def py(code: str) -> str:
    return f"{PYTHON} -c {shlex.quote(code)}"


def write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def fake_executor(success: bool = True, output: str = "done\n") -> MagicMock:
    executor = MagicMock(spec=BuildExecutor)

    def execute(config, on_progress=None):
        return BuildResult(
            success=success,
            exit_code=0 if success else 1,
            combined_output=output,
            command_used=config.build_command,
            failed_phase=None if success else BuildPhase.BUILD,
        )

    executor.execute.side_effect = execute
    return executor


@pytest.fixture(autouse=True)
def no_global_binaries():
    """隔离宿主机上安装的 pnpm/yarn/bun/next/tsc"""
    with patch("kapsul.project.package_manager.is_command_available", return_value=False), \
            patch("kapsul.config.resolver.is_command_available", return_value=False):
        yield


class TestScenarios:
    """端到端场景"""

    def test_build_script_resolution_and_success(self, tmp_path):
        """场景 A：build 脚本 => 包管理器的 build 脚本调用，构建成功"""
        write_json(tmp_path / "package.json", {"scripts": {"build": "echo ok"}})
        executor = fake_executor()

        result = PackagingPipeline(tmp_path, executor=executor).run(archive=False)

        config = executor.execute.call_args[0][0]
        assert config.build_command == "npm run build"
        assert result.success
        assert result.state == PipelineState.DONE
        assert result.build_result.success
        assert result.project_type == ProjectType.NODE
        assert result.package_manager == PackageManagerKind.NPM

    def test_build_executes_for_real(self, tmp_path):
        write_json(tmp_path / "package.json", {"scripts": {"build": "echo ok"}})
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {"buildCommand": py("print('ok')")})

        result = PackagingPipeline(tmp_path).run(archive=False)

        assert result.success
        assert result.build_result.exit_code == 0
        assert "ok" in result.build_result.combined_output

    def test_next_without_build_script(self, tmp_path):
        """场景 B：next 依赖且没有 build 脚本 => npx next build"""
        write_json(tmp_path / "package.json", {"dependencies": {"next": "14.0.0"}})
        (tmp_path / "node_modules" / ".bin").mkdir(parents=True)
        (tmp_path / "node_modules" / ".bin" / "next").write_text("")
        executor = fake_executor()

        result = PackagingPipeline(tmp_path, executor=executor).run(archive=False)

        assert result.project_type == ProjectType.NEXT
        assert executor.execute.call_args[0][0].build_command == "npx next build"

    def test_invalid_compression_format_halts(self, tmp_path):
        """场景 C：非法压缩格式，构建前停止"""
        write_json(tmp_path / "package.json", {"scripts": {"build": "x"}})
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {"compressionFormat": "tarball"})
        executor = fake_executor()

        result = PackagingPipeline(tmp_path, executor=executor).run()

        assert not result.success
        assert result.state == PipelineState.FAILED
        assert any("tarball" in message for message in result.messages)
        executor.execute.assert_not_called()
        assert result.artifact_path is None

    def test_tar_gz_archive_leaves_no_temp_file(self, tmp_path):
        """场景 D：tar.gz 归档完成后不留下临时 tar"""
        write_json(tmp_path / "package.json", {"name": "api", "dependencies": {"express": "4"}})
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {
            "buildCommand": py("import os; os.makedirs('dist', exist_ok=True); open('dist/index.js', 'w').write('x')"),
            "exclude": ["node_modules", ".git"],
        })
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "big.js").write_text("x" * 100)

        events = []
        result = PackagingPipeline(tmp_path).run(on_progress=events.append)

        assert result.success, result.messages
        assert result.state == PipelineState.DONE
        assert result.artifact_path.name == "build.tar.gz"
        with tarfile.open(result.artifact_path, "r:gz") as tf:
            names = tf.getnames()
        assert "dist/index.js" in names
        assert "package.json" in names
        assert not any(name.startswith("node_modules") for name in names)
        assert [p.name for p in tmp_path.iterdir() if p.name.startswith(".kapsul-")] == []
        assert not (tmp_path / "build.tar.gz.partial").exists()
        assert any(isinstance(e, BuildProgressEvent) for e in events)

    def test_zip_with_epoch_timestamps(self, tmp_path):
        """修改时间早于 1980 年的文件不会让流水线抛出异常"""
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {"buildCommand": py("pass"), "compressionFormat": "zip"})
        index = tmp_path / "index.js"
        index.write_text("")
        os.utime(index, (0, 0))

        result = PackagingPipeline(tmp_path).run()

        assert result.success, result.messages
        with zipfile.ZipFile(result.artifact_path) as zf:
            assert "index.js" in zf.namelist()

    def test_custom_output_path(self, tmp_path):
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {"buildCommand": py("pass"), "compressionFormat": "zip"})
        (tmp_path / "index.js").write_text("")

        result = PackagingPipeline(tmp_path).run(output_path=tmp_path / "out" / "release.zip")

        assert result.success
        assert result.artifact_path == (tmp_path / "out" / "release.zip")
        assert result.artifact_path.exists()


class TestResolveOutputPath:
    """归档输出路径"""

    def test_default_and_relative(self, tmp_path):
        write_json(tmp_path / "package.json", {"dependencies": {"express": "4"}})
        pipeline = PackagingPipeline(tmp_path)

        assert pipeline.resolve_output_path() == tmp_path.resolve() / "build.tar.gz"
        assert pipeline.resolve_output_path("out/app.zip") == tmp_path.resolve() / "out" / "app.zip"

    def test_invalid_format(self, tmp_path):
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {"compressionFormat": "tarball"})
        assert PackagingPipeline(tmp_path).resolve_output_path() is None


class TestNoBuildStep:
    """没有构建步骤"""

    def test_halts_by_default(self, tmp_path):
        write_json(tmp_path / "package.json", {"scripts": {"start": "node index.js"}})
        executor = fake_executor()

        result = PackagingPipeline(tmp_path, executor=executor).run()

        assert not result.success
        assert result.no_build_step
        assert result.state == PipelineState.FAILED
        executor.execute.assert_not_called()

    def test_continue_without_build(self, tmp_path):
        write_json(tmp_path / "package.json", {"scripts": {"start": "node index.js"}})
        (tmp_path / "index.js").write_text("console.log(1)")
        executor = fake_executor()

        result = PackagingPipeline(
            tmp_path,
            decisions=PipelineDecisions(continue_without_build=True),
            executor=executor,
        ).run()

        assert result.success
        assert result.no_build_step
        assert result.build_skipped
        assert result.build_result is None
        assert result.artifact_path.exists()
        executor.execute.assert_not_called()


class TestBuildFailure:
    """构建失败"""

    def test_failure_is_reported(self, tmp_path):
        write_json(tmp_path / "package.json", {"scripts": {"build": "x"}})
        executor = fake_executor(success=False, output="Error: cannot find module 'foo'\n")

        result = PackagingPipeline(tmp_path, executor=executor).run()

        assert not result.success
        assert result.state == PipelineState.FAILED
        assert result.build_result is not None
        assert not result.build_result.success
        assert result.failed_phase == BuildPhase.BUILD
        assert "Error: cannot find module 'foo'" in result.validation_messages
        assert result.artifact_path is None

    def test_continue_after_failure(self, tmp_path):
        write_json(tmp_path / "package.json", {"scripts": {"build": "x"}})
        decisions = PipelineDecisions(continue_on_build_failure=True)
        executor = fake_executor(success=False, output="failed\n")

        result = PackagingPipeline(tmp_path, decisions=decisions, executor=executor).run()

        assert result.success
        assert not result.build_result.success
        assert result.artifact_path is not None and result.artifact_path.exists()
        assert result.warnings

    def test_decision_receives_result_and_messages(self, tmp_path):
        write_json(tmp_path / "package.json", {"scripts": {"build": "x"}})
        decisions = PipelineDecisions()
        decisions.continue_after_build_failure = MagicMock(return_value=False)

        PackagingPipeline(tmp_path, decisions=decisions, executor=fake_executor(False, "ERROR x\n")).run()

        result, messages = decisions.continue_after_build_failure.call_args[0]
        assert not result.success
        assert messages == ["ERROR x"]

    def test_pre_build_failure(self, tmp_path):
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {
            "buildCommand": py("pass"),
            "preBuildCommands": [py("import sys; sys.exit(5)")],
        })

        result = PackagingPipeline(tmp_path).run()

        assert not result.success
        assert result.failed_phase == BuildPhase.PRE_BUILD
        assert result.state == PipelineState.FAILED


class TestOutputDirectory:
    """构建后输出目录检查"""

    def test_missing_output_dir_continues_by_default(self, tmp_path):
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {"buildCommand": py("pass"), "outputDir": "out"})
        (tmp_path / "index.js").write_text("")

        result = PackagingPipeline(tmp_path).run()

        assert result.success
        assert any("out" in warning for warning in result.warnings)

    def test_missing_output_dir_abort(self, tmp_path):
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {"buildCommand": py("pass"), "outputDir": "out"})
        decisions = PipelineDecisions(continue_on_missing_output=False)

        result = PackagingPipeline(tmp_path, decisions=decisions).run()

        assert not result.success
        assert result.state == PipelineState.FAILED
        assert result.artifact_path is None

    def test_output_dir_created_by_build(self, tmp_path):
        """输出目录由构建生成时不报错"""
        write_json(tmp_path / OVERRIDE_CONFIG_FILE, {
            "buildCommand": py("import os; os.makedirs('out')"),
            "outputDir": "out",
        })
        decisions = PipelineDecisions(continue_on_missing_output=False)

        result = PackagingPipeline(tmp_path, decisions=decisions).run(archive=False)

        assert result.success


class TestOverrideSource:
    """覆盖配置位置协作者"""

    def test_external_override(self, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        external = tmp_path / "settings" / "build.json"
        write_json(external, {"buildCommand": py("print('external')")})

        source = MagicMock()
        source.get_build_override_path.return_value = external

        result = PackagingPipeline(project, override_source=source).run(archive=False)

        assert result.success
        assert "external" in result.build_result.combined_output


class TestUpload:
    """上传协作者"""

    def test_upload(self, tmp_path):
        artifact = tmp_path / "build.zip"
        artifact.write_bytes(b"data")
        uploader = MagicMock()
        uploader.upload_artifact.return_value = UploadResult(success=True, url="https://example.invalid/a")

        result = upload(artifact, uploader)

        assert result.success
        uploader.upload_artifact.assert_called_once_with(artifact)

    def test_missing_artifact(self, tmp_path):
        with pytest.raises(TransportError):
            upload(tmp_path / "missing.zip", MagicMock())

    def test_transport_failure_is_wrapped(self, tmp_path):
        artifact = tmp_path / "build.zip"
        artifact.write_bytes(b"data")
        uploader = MagicMock()
        uploader.upload_artifact.side_effect = ConnectionError("reset")

        with pytest.raises(TransportError) as exc_info:
            upload(artifact, uploader)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_transport_error_passes_through(self, tmp_path):
        artifact = tmp_path / "build.zip"
        artifact.write_bytes(b"data")
        uploader = MagicMock()
        uploader.upload_artifact.side_effect = TransportError("unauthorized")

        with pytest.raises(TransportError, match="unauthorized"):
            upload(artifact, uploader)
