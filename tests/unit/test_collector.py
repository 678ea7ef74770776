"""
文件收集器单元测试

测试模式匹配、排除/包含规则和目录遍历。
"""

from pathlib import Path

import pytest

from kapsul.build.collector import FileCollector, FileInfo, get_file_size_info, match_pattern


def make_tree(root: Path, files) -> None:
    for name in files:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(name)


def collected_names(files):
    return [f.archive_name for f in files]


class TestMatchPattern:
    """模式匹配测试"""

    @pytest.mark.parametrize("path, pattern, expected", [
        ("node_modules/x/index.js", "node_modules", True),
        ("src/node_modules_backup.js", "node_modules", True),
        ("src/index.js", "node_modules", False),
        ("logs/app.log", "*.log", True),
        ("src/catalog.js", "*.log", False),
        ("dist/a.js", "dist/*", True),
        ("src/a.js", "dist/*", False),
        ("a1.txt", "a?.txt", True),
        ("ab1.txt", "a?.txt", False),
    ])
    def test_patterns(self, path, pattern, expected):
        assert match_pattern(path, pattern) is expected

    def test_dot_is_literal(self):
        """通配符以外的字符按字面匹配"""
        assert not match_pattern("src/applog", "*.log")

    def test_windows_separators_in_pattern(self):
        assert match_pattern("dist/a.js", "dist\\*")


class TestFileInfo:
    """FileInfo 测试"""

    def test_archive_name_uses_forward_slashes(self):
        info = FileInfo(path=Path("/p/src/a.js"), relative_path=Path("src") / "a.js", size=3, mtime=1.0)
        assert info.archive_name == "src/a.js"
        assert info.to_dict() == {"path": "src/a.js", "size": 3, "mtime": 1.0}


class TestFileCollector:
    """FileCollector 测试"""

    def test_collects_sorted_relative_paths(self, tmp_path):
        make_tree(tmp_path, ["b.js", "a.js", "src/c.js"])
        files = FileCollector(tmp_path).collect_files()
        assert collected_names(files) == ["a.js", "b.js", "src/c.js"]

    def test_exclude_prunes_directories(self, tmp_path):
        make_tree(tmp_path, ["index.js", "node_modules/lib/a.js", ".git/HEAD", "debug.log"])
        files = FileCollector(tmp_path).collect_files(exclude=["node_modules", ".git", "*.log"])
        assert collected_names(files) == ["index.js"]

    def test_include_restricts(self, tmp_path):
        """包含列表非空时，文件必须匹配包含模式"""
        make_tree(tmp_path, ["dist/index.js", "dist/index.js.map", "src/index.ts", "package.json"])
        files = FileCollector(tmp_path).collect_files(
            exclude=["*.map"],
            include=["dist/*", "package.json"],
        )
        assert collected_names(files) == ["dist/index.js", "package.json"]

    def test_exclude_wins_over_include(self, tmp_path):
        make_tree(tmp_path, ["dist/a.js", "dist/secret.js"])
        files = FileCollector(tmp_path).collect_files(exclude=["secret"], include=["dist"])
        assert collected_names(files) == ["dist/a.js"]

    def test_skip_paths(self, tmp_path):
        make_tree(tmp_path, ["a.js", "build.zip"])
        files = FileCollector(tmp_path).collect_files(skip_paths=[tmp_path / "build.zip"])
        assert collected_names(files) == ["a.js"]

    def test_statistics(self, tmp_path):
        make_tree(tmp_path, ["a.js", "b.js"])
        collector = FileCollector(tmp_path)
        collector.collect_files()
        stats = collector.get_statistics()
        assert stats["total_files"] == 2
        assert stats["total_size"] == len("a.js") + len("b.js")


class TestFileSizeInfo:
    """大小统计测试"""

    def test_skips_node_modules_by_default(self, tmp_path):
        make_tree(tmp_path, ["a.js", "node_modules/big.js"])
        assert get_file_size_info(tmp_path)["file_count"] == 1
        assert get_file_size_info(tmp_path, include_node_modules=True)["file_count"] == 2

    def test_single_file(self, tmp_path):
        make_tree(tmp_path, ["a.js"])
        info = get_file_size_info(tmp_path / "a.js")
        assert info["file_count"] == 1
        assert info["total_size"] == 4
        assert info["formatted_size"] == "4 B"
