"""
Categorization Resolver

Maps a free-text transaction title to a category.

Precedence, first match wins:
1. An explicit category that is not the default sentinel is kept
2. User AI rules, in insertion order
3. The built-in heuristic table, in its fixed order
4. The default category

There is no scoring: when several keywords match, the first one in
iteration order decides.
"""

from typing import Iterable, Optional, Sequence

from fluxcash.models.ledger import AIRule


DEFAULT_CATEGORY = "Geral"

# (keyword, category), checked top to bottom
DEFAULT_HEURISTICS: tuple[tuple[str, str], ...] = (
    ("uber", "Transporte"),
    ("99", "Transporte"),
    ("posto", "Transporte"),
    ("ifood", "Alimentação"),
    ("restaurante", "Alimentação"),
    ("burger", "Alimentação"),
    ("mcdonald", "Alimentação"),
    ("mercado", "Mercado"),
    ("carrefour", "Mercado"),
    ("pão", "Mercado"),
    ("cinema", "Lazer"),
    ("netflix", "Lazer"),
    ("spotify", "Lazer"),
    ("freela", "Receita"),
    ("salário", "Receita"),
    ("pix recebido", "Receita"),
    ("farmácia", "Saúde"),
    ("drogaria", "Saúde"),
)


def _first_match(title: str, pairs: Iterable[tuple[str, str]]) -> Optional[str]:
    lowered = title.lower()
    for keyword, category in pairs:
        if keyword and keyword.lower() in lowered:
            return category
    return None


class CategoryResolver:
    """
    Resolves transaction categories from user rules and heuristics.

    The resolver holds no copy of the rules: callers pass the current
    rule list on every call, so a rule added a moment ago is honoured
    immediately.
    """

    def __init__(
        self,
        default_category: str = DEFAULT_CATEGORY,
        heuristics: Sequence[tuple[str, str]] = DEFAULT_HEURISTICS,
    ):
        self.default_category = default_category
        self._heuristics = tuple(heuristics)

    def is_default(self, category: Optional[str]) -> bool:
        return not category or category == self.default_category

    def match_rule(self, title: str, rules: Sequence[AIRule]) -> Optional[str]:
        return _first_match(title, ((r.keyword, r.category) for r in rules))

    def match_heuristic(self, title: str) -> Optional[str]:
        return _first_match(title, self._heuristics)

    def resolve(
        self,
        title: str,
        existing_category: Optional[str] = None,
        rules: Sequence[AIRule] = (),
    ) -> str:
        """Pick the category for a title."""
        if not self.is_default(existing_category):
            return existing_category

        return (
            self.match_rule(title, rules)
            or self.match_heuristic(title)
            or self.default_category
        )
