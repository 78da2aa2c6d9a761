# toybox/domain/whitelist.py
"""
Ordered allow/deny table deciding which content paths may be embedded in a
binary addon archive.

Rules are tried in declaration order and the first full match wins; a path no
rule matches is denied. Patterns are compiled once, when the table is built,
and are written against normalised (lower-case, forward-slash) paths.
"""
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from loguru import logger


@dataclass(frozen=True)
class Rule:
    pattern: str
    allow: bool = True
    category: str = ""
    compiled: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "compiled", re.compile(self.pattern))

    def matches(self, path: str) -> bool:
        return self.compiled.fullmatch(path) is not None


def normalize_path(path: str) -> str:
    return path.replace("\\", "/").lower()


def _is_unsafe(path: str) -> bool:
    if not path or path.startswith("/"):
        return True
    return any(part in ("", ".", "..") for part in path.split("/"))


class Whitelist:
    def __init__(self, rules: Iterable[Rule]):
        self._rules: Tuple[Rule, ...] = tuple(rules)

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    def match(self, path: str) -> Optional[Rule]:
        """Return the rule deciding ``path``, or None when nothing matches."""
        norm = normalize_path(path)
        if _is_unsafe(norm):
            return None
        for rule in self._rules:
            if rule.matches(norm):
                return rule
        return None

    def is_allowed(self, path: str) -> bool:
        rule = self.match(path)
        allowed = rule is not None and rule.allow
        logger.debug(
            "whitelist {} -> {} ({})",
            path, "allow" if allowed else "deny", rule.category if rule else "no rule",
        )
        return allowed


# ---------------------------------------------------------
# Default table
# ---------------------------------------------------------

# (category, pattern, allow) relative to a content root
_CONTENT_RULES: Sequence[Tuple[str, str, bool]] = (
    # scripting
    ("scripts", r"lua/.+\.lua", True),
    ("scripts", r"scenes/.+\.vcd", True),
    # compiled maps and auxiliary data
    ("maps", r"maps/[^/]+\.bsp", True),
    ("maps", r"maps/[^/]+\.lmp", True),
    ("maps", r"maps/thumb/[^/]+\.png", True),
    # navigation / AI
    ("navigation", r"maps/[^/]+\.nav", True),
    ("navigation", r"maps/(graphs/)?[^/]+\.ain", True),
    # effects, fonts, vehicles, localization
    ("particles", r"particles/.+\.pcf", True),
    ("fonts", r"resource/fonts/[^/]+\.ttf", True),
    ("vehicles", r"scripts/vehicles/.+\.txt", True),
    ("localization", r"resource/localization/[^/]+/[^/]+\.properties", True),
    # sounds
    ("sound", r"sound/.+\.wav", True),
    ("sound", r"sound/.+\.mp3", True),
    ("sound", r"sound/.+\.ogg", True),
    # materials and textures
    ("materials", r"materials/.+\.vmt", True),
    ("materials", r"materials/.+\.vtf", True),
    ("materials", r"materials/.+\.png", True),
    ("materials", r"materials/.+\.jpe?g", True),
    ("materials", r"materials/colorcorrection/[^/]+\.raw", True),
    # compiled models; platform variants of .vtx must precede the general rule
    ("models", r"models/.+\.sw\.vtx", False),
    ("models", r"models/.+\.360\.vtx", False),
    ("models", r"models/.+\.xbox\.vtx", False),
    ("models", r"models/.+\.mdl", True),
    ("models", r"models/.+\.vtx", True),
    ("models", r"models/.+\.phy", True),
    ("models", r"models/.+\.ani", True),
    ("models", r"models/.+\.vvd", True),
)

_GAMEMODE = r"gamemodes/[^/]+/"

_GAMEMODE_RULES: Sequence[Tuple[str, str, bool]] = (
    ("gamemode", _GAMEMODE + r"[^/]+\.txt", True),
    ("gamemode", _GAMEMODE + r"[^/]+\.fgd", True),
    ("gamemode", _GAMEMODE + r"logo\.png", True),
    ("gamemode", _GAMEMODE + r"icon24\.png", True),
    ("gamemode", _GAMEMODE + r"gamemode/.+\.lua", True),
    ("gamemode", _GAMEMODE + r"entities/(effects|weapons|entities)/.+\.lua", True),
    ("gamemode", _GAMEMODE + r"backgrounds/[^/]+\.(png|jpe?g)", True),
)

_STATIC_DATA_RULES: Sequence[Tuple[str, str, bool]] = (
    ("static data", r"data_static/.+\.(txt|dat|json|xml|csv)", True),
)


def build_default_rules() -> List[Rule]:
    rules = [Rule(p, allow, category) for category, p, allow in _CONTENT_RULES]
    rules += [Rule(p, allow, category) for category, p, allow in _GAMEMODE_RULES]
    rules += [
        Rule(_GAMEMODE + "content/" + p, allow, f"gamemode {category}")
        for category, p, allow in _CONTENT_RULES
    ]
    rules += [Rule(p, allow, category) for category, p, allow in _STATIC_DATA_RULES]
    return rules


DEFAULT_WHITELIST = Whitelist(build_default_rules())


def is_whitelisted(path: str) -> bool:
    return DEFAULT_WHITELIST.is_allowed(path)
