"""依赖闭包展开单元测试"""

from __future__ import annotations

import pytest

from pkgforge.core.closure import ClosureExtractor, split_refs
from pkgforge.core.definition import DefinitionLoader


@pytest.fixture()
def extractor(config):
    return ClosureExtractor(config, DefinitionLoader(config))


def _dep(*names, **spec):
    return {n: [dict(spec)] if spec else [] for n in names}


class TestSplitRefs:
    def test_collapse_commas(self) -> None:
        assert split_refs(",a,,b,") == ["a", "b"]
        assert split_refs(["a,b", "c"]) == ["a", "b", "c"]
        assert split_refs("") == []


class TestExtract:
    def test_empty_means_all(self, extractor, write_product, make_def) -> None:
        write_product("b", make_def("b"))
        write_product("a", make_def("a"))
        result = extractor.extract("")
        assert result.all is True
        assert result.list == ["a", "b"]

    def test_dedup_first_seen_order(self, extractor, write_product, make_def) -> None:
        write_product("pkgA", make_def("pkgA"))
        write_product("pkgB", make_def("pkgB"))
        result = extractor.extract("pkgA,pkgA,pkgB")
        assert result.list == ["pkgA", "pkgB"]
        assert result.all is False

    def test_deps_token_expands_transitively(self, extractor, write_product, make_def) -> None:
        write_product("a", make_def("a", deps={"install": _dep("b"), "build": _dep("c")}))
        write_product("b", make_def("b", deps={"install": _dep("d")}))
        write_product("c", make_def("c"))
        write_product("d", make_def("d"))
        assert extractor.extract("a,@deps").list == ["a", "b", "d", "c"]

    def test_leading_deps_token_is_noop(self, extractor, write_product, make_def) -> None:
        write_product("a", make_def("a", deps={"install": _dep("b")}))
        write_product("b", make_def("b"))
        assert extractor.extract("@deps,a").list == ["a"]

    def test_malformed_dependency_is_skipped(self, extractor, write_product, make_def, config) -> None:
        write_product("a", make_def("a", deps={"install": _dep("bad", "b")}))
        write_product("b", make_def("b"))
        bad = config.definition_file("bad")
        bad.parent.mkdir(parents=True)
        bad.write_text("name: bad\nversion: [1.0\n", encoding="utf-8")
        assert extractor.extract("a,@deps").list == ["a", "bad", "b"]

    def test_cycle_terminates(self, extractor, write_product, make_def) -> None:
        write_product("a", make_def("a", deps={"install": _dep("b")}))
        write_product("b", make_def("b", deps={"install": _dep("a")}))
        assert extractor.extract("a,@deps").list == ["a", "b"]

    def test_diamond(self, extractor, write_product, make_def) -> None:
        write_product("a", make_def("a", deps={"install": _dep("b", "c")}))
        write_product("b", make_def("b", deps={"install": _dep("d")}))
        write_product("c", make_def("c", deps={"install": _dep("d")}))
        write_product("d", make_def("d"))
        assert extractor.extract("a,@deps").list == ["a", "b", "d", "c"]

    def test_idempotent(self, extractor, write_product, make_def) -> None:
        write_product("a", make_def("a", deps={"install": _dep("b"), "make": _dep("c")}))
        write_product("b", make_def("b", deps={"build": _dep("c")}))
        write_product("c", make_def("c"))
        first = extractor.extract("a,@deps").list
        assert extractor.extract(first).list == first

    def test_external_and_arch_filters(self, extractor, write_product, make_def) -> None:
        write_product("a", make_def("a", deps={
            "install": {
                "ext": [{"external": True}],
                "win": [{"architecture": ["mswindows-amd64"]}],
                "lin": [{"architecture": ["linux-amd64"]}],
            },
        }))
        write_product("lin", make_def("lin"))
        assert extractor.extract("a,@deps").list == ["a", "lin"]

    def test_without_make_deps(self, extractor, write_product, make_def) -> None:
        write_product("a", make_def("a", deps={"install": _dep("b"), "make": _dep("c")}))
        write_product("b", make_def("b"))
        write_product("c", make_def("c"))
        assert extractor.extract("a,@deps", with_make=False).list == ["a", "b"]

    def test_missing_definition_dropped(self, extractor, write_product, make_def) -> None:
        write_product("a", make_def("a", deps={"install": _dep("ghost", "b")}))
        write_product("b", make_def("b"))
        assert extractor.extract("a,@deps").list == ["a", "ghost", "b"]

    def test_distribution_adopted_from_first_ref(self, extractor, write_product, make_def) -> None:
        write_product("a", make_def("a", distribution="yellow/"))
        assert extractor.extract("a").distribution == "yellow/"
        assert extractor.extract("a", "green/").distribution == "green/"
