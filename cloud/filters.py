# cloud/filters.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class ImageFilter:
    """Which platform image names are offered for cluster nodes.

    The default keeps Oracle Linux 8 images and drops the ARM builds.
    """

    prefix: str = "Oracle-Linux-8"
    excluded: Tuple[str, ...] = ("aarch64",)

    def matches(self, name: str) -> bool:
        return name.startswith(self.prefix) and not any(x in name for x in self.excluded)

    def apply(self, names: Iterable[str]) -> List[str]:
        return [n for n in names if isinstance(n, str) and self.matches(n)]


DEFAULT_IMAGE_FILTER = ImageFilter()
