"""Promotion of repeated markup fragments into shared partial templates."""

from __future__ import annotations

import hashlib
import re
from collections import Counter
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Literal, Set, Tuple

from ..logging import get_logger
from ..models import LayoutEntry
from ..paths import write_text

HOIST_THRESHOLD = 2

MatchKind = Literal["exact", "structural"]

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


@dataclass(frozen=True)
class HoistCandidate:
    """A fragment that recurs often enough to become a partial."""

    signature: str
    html: str
    partial_name: str
    occurrences: int
    origin: str = ""

    @property
    def include_path(self) -> str:
        return f"partials/{self.partial_name}"

    @property
    def include_tag(self) -> str:
        return f'{{% include "{self.include_path}" %}}'


@dataclass(frozen=True)
class FragmentMatch:
    """Outcome of substituting one candidate into one page."""

    signature: str
    kind: MatchKind
    count: int


@dataclass(frozen=True)
class HoistMiss:
    """A page whose inventory lists a candidate that could not be substituted."""

    page: str
    signature: str


@dataclass
class HoistPlan:
    """Global hoisting decisions derived from the component inventory."""

    candidates: List[HoistCandidate] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    without_markup: List[str] = field(default_factory=list)
    page_signatures: Dict[str, Set[str]] = field(default_factory=dict)

    def candidate(self, signature: str) -> HoistCandidate | None:
        for candidate in self.candidates:
            if candidate.signature == signature:
                return candidate
        return None


def partial_name_for(signature: str, html: str = "") -> str:
    """Return the deterministic partial file name for a signature."""
    base = signature or f"component-{hashlib.md5(html.encode('utf-8')).hexdigest()[:8]}"
    return _UNSAFE_CHARS.sub("_", base) + ".twig"


class PartialHoister:
    """Detects shared fragments across pages and rewrites them to includes.

    Matching is byte-exact by default. With ``structural=True`` a fragment
    that does not occur verbatim is retried with whitespace runs treated as
    equivalent; each substitution reports which strategy matched.
    """

    def __init__(self, *, structural: bool = False) -> None:
        self.structural = structural
        self.logger = get_logger("adapter.partials")

    def plan(self, layout_map: Iterable[LayoutEntry]) -> HoistPlan:
        counts: Counter[str] = Counter()
        markup: Dict[str, str] = {}
        origins: Dict[str, str] = {}
        page_signatures: Dict[str, Set[str]] = {}
        for entry in layout_map:
            for component in entry.components:
                counts[component.signature] += 1
                page_signatures.setdefault(entry.page, set()).add(component.signature)
                if component.signature not in markup and component.html and component.html.strip():
                    markup[component.signature] = component.html
                    origins[component.signature] = entry.page

        plan = HoistPlan(counts=dict(counts), page_signatures=page_signatures)
        taken: Set[str] = set()
        for signature in sorted(sig for sig, total in counts.items() if total >= HOIST_THRESHOLD):
            html = markup.get(signature)
            if html is None:
                plan.without_markup.append(signature)
                continue
            name = partial_name_for(signature, html)
            if name in taken:
                digest = hashlib.md5(signature.encode("utf-8")).hexdigest()[:6]
                name = f"{name[:-len('.twig')]}-{digest}.twig"
            taken.add(name)
            plan.candidates.append(
                HoistCandidate(
                    signature=signature,
                    html=html,
                    partial_name=name,
                    occurrences=counts[signature],
                    origin=origins[signature],
                )
            )
        _order_candidates(plan)
        self.logger.debug(
            "Hoist plan: %d candidates from %d signatures", len(plan.candidates), len(counts)
        )
        return plan

    def rewrite(self, plan: HoistPlan, transform: Callable[[HoistCandidate], str]) -> HoistPlan:
        """Replace each candidate's markup with ``transform(candidate)`` and re-sort."""
        plan.candidates = [replace(candidate, html=transform(candidate)) for candidate in plan.candidates]
        _order_candidates(plan)
        return plan

    def apply(self, html: str, plan: HoistPlan) -> Tuple[str, List[FragmentMatch]]:
        """Replace every occurrence of each candidate fragment in ``html``."""
        matches: List[FragmentMatch] = []
        out = html
        for candidate in plan.candidates:
            out, match = self._substitute(out, candidate)
            if match is not None:
                matches.append(match)
        return out, matches

    def misses(self, page: str, matches: Iterable[FragmentMatch], plan: HoistPlan) -> List[HoistMiss]:
        """Return inventoried candidates that were not substituted on ``page``."""
        matched = {match.signature for match in matches}
        expected = plan.page_signatures.get(page, set())
        return [
            HoistMiss(page=page, signature=candidate.signature)
            for candidate in plan.candidates
            if candidate.signature in expected and candidate.signature not in matched
        ]

    def write_partials(self, plan: HoistPlan, output_root: Path, partials_dir: str = "partials") -> List[str]:
        written: List[str] = []
        for candidate in sorted(plan.candidates, key=lambda item: item.partial_name):
            write_text(output_root, Path(partials_dir) / candidate.partial_name, candidate.html)
            written.append(f"{partials_dir}/{candidate.partial_name}")
        return written

    def _substitute(self, html: str, candidate: HoistCandidate) -> Tuple[str, FragmentMatch | None]:
        count = html.count(candidate.html)
        if count:
            replaced = html.replace(candidate.html, candidate.include_tag)
            return replaced, FragmentMatch(signature=candidate.signature, kind="exact", count=count)
        if not self.structural:
            return html, None
        pattern = _structural_pattern(candidate.html)
        if pattern is None:
            return html, None
        replaced, count = pattern.subn(lambda _: candidate.include_tag, html)
        if not count:
            return html, None
        return replaced, FragmentMatch(signature=candidate.signature, kind="structural", count=count)


def _order_candidates(plan: HoistPlan) -> None:
    # Longest fragments first so an enclosing fragment is not broken up by a nested one.
    plan.candidates.sort(key=lambda item: (-len(item.html), item.signature))


def _structural_pattern(fragment: str) -> re.Pattern[str] | None:
    # Tags are split apart so whitespace between them is optional as well as collapsible.
    spaced = re.sub(r">\s*<", "> <", fragment.strip())
    tokens = spaced.split()
    if not tokens:
        return None
    parts: List[str] = []
    for index, token in enumerate(tokens):
        if index:
            previous = tokens[index - 1]
            parts.append(r"\s*" if previous.endswith(">") and token.startswith("<") else r"\s+")
        parts.append(re.escape(token))
    return re.compile("".join(parts))


__all__ = [
    "FragmentMatch",
    "HOIST_THRESHOLD",
    "HoistCandidate",
    "HoistMiss",
    "HoistPlan",
    "PartialHoister",
    "partial_name_for",
]
