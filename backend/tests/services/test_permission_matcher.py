import pytest

from app.services.authz.matcher import (
    expand_permission_patterns,
    is_wildcard,
    permission_matches,
)


@pytest.mark.parametrize(
    ("requested", "granted", "expected"),
    [
        ("categories.view", {"categories.view"}, True),
        ("categories.view", {"categories.edit"}, False),
        ("categories.view", set(), False),
        # 区分大小写，不做规范化
        ("Categories.view", {"categories.view"}, False),
        ("categories.*", {"categories.view"}, True),
        ("categories.*", {"categories.items.edit"}, True),
        # 前缀必须以 "." 为界
        ("categories.*", {"categories"}, False),
        ("categories.*", {"categoriesx.view"}, False),
        ("categories.*", {"other.view"}, False),
        ("categories.*", set(), False),
        # 授予的通配名本身不会放大请求
        ("categories.view", {"categories.*"}, False),
    ],
)
def test_permission_matches(requested, granted, expected):
    assert permission_matches(requested, granted) is expected


def test_matching_accepts_any_iterable():
    assert permission_matches("a.b.view", ["a.b.edit", "a.b.view"])
    assert permission_matches("a.*", (name for name in ["a.b.view"]))


def test_regex_metacharacters_are_literal():
    assert permission_matches("a+b.*", {"a+b.view"})
    assert not permission_matches("a+b.*", {"aab.view"})


def test_is_wildcard():
    assert is_wildcard("core.*")
    assert not is_wildcard("core.users.view")
    assert not is_wildcard("core*")


def test_expand_permission_patterns():
    catalog = ["core.users.view", "core.users.edit", "core.roles.view", "groups.group.view"]

    expanded = expand_permission_patterns(
        ["core.users.*", "groups.group.view", "missing.perm.view"],
        catalog,
    )

    assert expanded == {"core.users.view", "core.users.edit", "groups.group.view"}
