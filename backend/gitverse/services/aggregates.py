"""
Derived aggregates computed over a whole analysis run.

Contributor and language rows are replaced on every analysis because a single
new commit or file can shift every share.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Tuple

from gitverse.services.git.constants import NON_CODE_LANGUAGES
from gitverse.services.git.models import ContributorStats, LanguageStats

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def contributor_shares(
    contributors: Iterable[ContributorStats],
) -> List[Tuple[ContributorStats, float]]:
    """
    Pair each contributor with its share of all commits, in percent.

    Shares are not rounded or corrected, so they need not sum to exactly 100.
    """
    contributors = list(contributors)
    total = sum(c.commits for c in contributors)
    return [
        (contributor, (contributor.commits / total * 100) if total else 0.0)
        for contributor in contributors
    ]


def round_percentages(weights: List[int]) -> List[Decimal]:
    """
    Turn weights into two-decimal percentages that sum to exactly 100.

    Each share is rounded half-up; any residual left by rounding is added to
    the largest rounded share (the first one on ties). All-zero weights give
    all-zero shares.
    """
    total = sum(weights)
    if total <= 0:
        return [Decimal("0.00") for _ in weights]

    rounded = [
        (Decimal(weight) * HUNDRED / Decimal(total)).quantize(CENT, rounding=ROUND_HALF_UP)
        for weight in weights
    ]
    residual = HUNDRED - sum(rounded)
    if residual:
        largest = rounded.index(max(rounded))
        rounded[largest] += residual
    return rounded


def normalize_languages(
    languages: Iterable[LanguageStats],
    excluded: frozenset = NON_CODE_LANGUAGES,
) -> List[LanguageStats]:
    """
    Drop non-code languages and recompute shares over what is left.

    The returned percentages are two-decimal values summing to exactly 100
    whenever the remaining languages hold any bytes. Sorted by share, largest
    first.
    """
    kept = [lang for lang in languages if lang.name not in excluded]
    shares = round_percentages([lang.bytes for lang in kept])
    normalized = [
        LanguageStats(
            name=lang.name,
            bytes=lang.bytes,
            lines=lang.lines,
            percentage=share,
        )
        for lang, share in zip(kept, shares)
    ]
    return sorted(normalized, key=lambda lang: lang.percentage, reverse=True)
