"""Debian 风格版本排序

版本格式: [epoch:]upstream[-release]

比较规则:
  1. epoch（整数，缺省 0）先比较
  2. upstream 按「非数字段 / 数字段」交替比较：
     非数字段逐字符比较，'~' 低于任何字符（包括字符串结束），字母低于其他符号；
     数字段按数值比较
  3. release（最后一个 '-' 之后的部分）最后比较，规则同 upstream
"""

from __future__ import annotations

from functools import cmp_to_key


def _order(c: str) -> int:
    if c == "~":
        return -1
    if c.isdigit():
        return 0
    if c.isalpha():
        return ord(c)
    return ord(c) + 256


def _compare_fragment(a: str, b: str) -> int:
    i, j = 0, 0
    la, lb = len(a), len(b)
    while i < la or j < lb:
        # 非数字段
        while (i < la and not a[i].isdigit()) or (j < lb and not b[j].isdigit()):
            ac = _order(a[i]) if i < la else 0
            bc = _order(b[j]) if j < lb else 0
            if ac != bc:
                return -1 if ac < bc else 1
            i += 1
            j += 1
        # 数字段：跳过前导零后先比长度再比字典序
        while i < la and a[i] == "0":
            i += 1
        while j < lb and b[j] == "0":
            j += 1
        si, sj = i, j
        while i < la and a[i].isdigit():
            i += 1
        while j < lb and b[j].isdigit():
            j += 1
        da, db = a[si:i], b[sj:j]
        if len(da) != len(db):
            return -1 if len(da) < len(db) else 1
        if da != db:
            return -1 if da < db else 1
    return 0


def split_version(version: str) -> tuple[int, str, str]:
    """拆分为 (epoch, upstream, release)"""
    epoch = 0
    head, sep, rest = version.partition(":")
    if sep and head.isdigit():
        epoch = int(head)
        version = rest
    upstream, sep, release = version.rpartition("-")
    if not sep:
        return epoch, version, ""
    return epoch, upstream, release


def compare(a: str, b: str) -> int:
    """比较两个版本字符串，返回 -1 / 0 / 1"""
    if a == b:
        return 0
    ea, ua, ra = split_version(a)
    eb, ub, rb = split_version(b)
    if ea != eb:
        return -1 if ea < eb else 1
    result = _compare_fragment(ua, ub)
    if result:
        return result
    return _compare_fragment(ra, rb)


version_key = cmp_to_key(compare)


def strip_version(version: str) -> str:
    """去掉 epoch 与 release，'~' 转为 '-'，得到上游获取用的版本号"""
    epoch, sep, rest = version.partition(":")
    if sep and epoch.isdigit():
        version = rest
    upstream, sep, _release = version.rpartition("-")
    if sep:
        version = upstream
    return version.replace("~", "-")


def bump_release(version: str) -> str:
    """release 段加一：1.0-2 -> 1.0-3，无 release 时追加 -1"""
    head, sep, release = version.rpartition("-")
    if sep and release.isdigit():
        return f"{head}-{int(release) + 1}"
    return f"{version}-1"
