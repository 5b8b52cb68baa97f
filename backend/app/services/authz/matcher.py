"""
权限名匹配

- 不带 ".*" 后缀：精确匹配
- 以 ".*" 结尾：去掉 ".*" 得到前缀，已授予的权限名必须以 "前缀." 开头
  "categories.*" 命中 "categories.view"，不命中 "categories" 与 "categoriesx.view"
- 区分大小写，不做任何规范化，不用正则
"""
from collections.abc import Iterable

WILDCARD_SUFFIX = ".*"


def is_wildcard(pattern: str) -> bool:
    return pattern.endswith(WILDCARD_SUFFIX)


def permission_matches(requested: str, granted: Iterable[str]) -> bool:
    if not is_wildcard(requested):
        if isinstance(granted, (set, frozenset)):
            return requested in granted
        return any(name == requested for name in granted)

    prefix = requested[: -len(WILDCARD_SUFFIX)] + "."
    return any(name.startswith(prefix) for name in granted)


def expand_permission_patterns(patterns: Iterable[str], catalog: Iterable[str]) -> set[str]:
    """把默认授权中的通配展开为目录中实际存在的权限名；目录中没有的精确名被忽略"""
    catalog = set(catalog)
    expanded: set[str] = set()
    for pattern in patterns:
        if is_wildcard(pattern):
            expanded.update(name for name in catalog if permission_matches(pattern, (name,)))
        elif pattern in catalog:
            expanded.add(pattern)
    return expanded
