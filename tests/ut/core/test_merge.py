"""版本冲突自动合并单元测试"""

from __future__ import annotations

import pytest
import yaml

from pkgforge.core.exceptions import MergeConflictError
from pkgforge.core.merge import resolve_conflict_text, resolve_merge_conflicts

CONFLICT = """\
name: libfoo
<<<<<<< HEAD
version: 1.0-2
=======
version: 1.0-10
>>>>>>> feature
data:
  get:
<<<<<<< HEAD
    $ref: aaaa
    $hash: h1
=======
    $ref: bbbb
    $hash: h2
>>>>>>> feature
  type: src
"""


class TestResolveText:
    def test_greater_version_wins(self) -> None:
        merged, version = resolve_conflict_text(CONFLICT)
        assert version == "1.0-10"
        data = yaml.safe_load(merged)
        assert data["version"] == "1.0-10"
        assert data["data"]["get"] == {"$ref": "bbbb", "$hash": "h2"}
        assert "aaaa" not in merged
        assert "<<<<<<<" not in merged

    def test_ours_wins_with_epoch(self) -> None:
        text = CONFLICT.replace("version: 1.0-2", "version: 1:0.1")
        merged, version = resolve_conflict_text(text)
        assert version == "1:0.1"
        assert "aaaa" in merged and "bbbb" not in merged

    def test_diff3_base_section_dropped(self) -> None:
        text = (
            "<<<<<<< ours\nversion: 2.0\n||||||| base\nversion: 1.0\n"
            "=======\nversion: 1.5\n>>>>>>> theirs\n"
        )
        merged, version = resolve_conflict_text(text)
        assert merged == "version: 2.0\n"
        assert version == "2.0"

    def test_equal_versions_conflict(self) -> None:
        text = "<<<<<<< a\nversion: 1.0\n=======\nversion: 1.0\n>>>>>>> b\n"
        with pytest.raises(MergeConflictError, match="版本相同"):
            resolve_conflict_text(text)

    def test_other_field_conflict(self) -> None:
        text = CONFLICT.replace("    $hash: h1", "    uri: http://x")
        with pytest.raises(MergeConflictError, match="uri"):
            resolve_conflict_text(text)

    def test_no_version_hunk(self) -> None:
        text = "<<<<<<< a\n$ref: x\n=======\n$ref: y\n>>>>>>> b\n"
        with pytest.raises(MergeConflictError, match="version"):
            resolve_conflict_text(text)

    def test_unclosed_hunk(self) -> None:
        with pytest.raises(MergeConflictError, match="未闭合"):
            resolve_conflict_text("<<<<<<< a\nversion: 1\n")


class TestResolveFile:
    def test_rewrites_in_place(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(CONFLICT, encoding="utf-8")
        assert resolve_merge_conflicts(path) == "1.0-10"
        assert "=======" not in path.read_text(encoding="utf-8")

    def test_failure_leaves_file_untouched(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        text = "<<<<<<< a\nversion: 1.0\n=======\nversion: 1.0\n>>>>>>> b\n"
        path.write_text(text, encoding="utf-8")
        with pytest.raises(MergeConflictError):
            resolve_merge_conflicts(path)
        assert path.read_text(encoding="utf-8") == text
