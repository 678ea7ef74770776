"""
构建输出校验单元测试
"""

from kapsul.build.output_validator import BuildOutputValidator
from kapsul.config.schema import BuildConfig, ProjectType


class TestValidate:
    """输出文本扫描测试"""

    def test_clean_output(self):
        result = BuildOutputValidator().validate(ProjectType.NODE, "compiled 12 files\ndone in 2s\n")
        assert result.success
        assert result.messages == []

    def test_generic_pattern_case_insensitive(self):
        result = BuildOutputValidator().validate(ProjectType.UNKNOWN, "step 1\nERROR: boom\n")
        assert not result.success
        assert result.messages == ["ERROR: boom"]

    def test_first_match_per_pattern(self):
        output = "Error one\nerror two\n"
        result = BuildOutputValidator().validate(ProjectType.UNKNOWN, output)
        assert result.messages == ["Error one"]

    def test_line_not_repeated(self):
        """同一行匹配多个模式时只记录一次"""
        output = "Build failed with error\n"
        result = BuildOutputValidator().validate(ProjectType.UNKNOWN, output)
        assert result.messages == ["Build failed with error"]

    def test_next_patterns(self):
        output = "info  - Creating an optimized build\nFailed to compile.\n"
        result = BuildOutputValidator().validate(ProjectType.NEXT, output)
        assert "Failed to compile." in result.messages

    def test_typescript_pattern(self):
        output = "src/a.ts(3,1): TS2304 cannot resolve\nsrc/b.ts: error TS2322: mismatch\n"
        result = BuildOutputValidator().validate(ProjectType.EXPRESS, output)
        assert "src/b.ts: error TS2322: mismatch" in result.messages

    def test_type_specific_patterns_not_applied_elsewhere(self):
        validator = BuildOutputValidator()
        assert len(validator.get_patterns(ProjectType.UNKNOWN)) == 5
        assert len(validator.get_patterns(ProjectType.NEXT)) == 7


class TestFilesystemChecks:
    """成功标志文件与输出目录检查"""

    def test_success_indicators_any(self, tmp_path):
        config = BuildConfig(success_indicators=["dist/index.js", "dist/server.js"])
        validator = BuildOutputValidator(tmp_path)
        assert not validator.check_success_indicators(config)

        (tmp_path / "dist").mkdir()
        (tmp_path / "dist" / "server.js").write_text("")
        assert validator.check_success_indicators(config)

    def test_no_indicators(self, tmp_path):
        assert BuildOutputValidator(tmp_path).check_success_indicators(BuildConfig())

    def test_output_dir(self, tmp_path):
        validator = BuildOutputValidator(tmp_path)
        assert not validator.check_output_dir(BuildConfig(output_dir="dist"))
        (tmp_path / "dist").mkdir()
        assert validator.check_output_dir(BuildConfig(output_dir="dist"))
        assert validator.check_output_dir(BuildConfig())
