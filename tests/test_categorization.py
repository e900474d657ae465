"""Tests for the categorization resolver."""

import pytest

from fluxcash.categorization import DEFAULT_CATEGORY, CategoryResolver
from fluxcash.models.ledger import AIRule


def rule(keyword, category, rule_id="r-1"):
    return AIRule(id=rule_id, keyword=keyword, category=category)


class TestCategoryResolver:
    """Tests for CategoryResolver precedence."""

    def setup_method(self):
        self.resolver = CategoryResolver()

    def test_user_rule_beats_heuristic(self):
        """Test that a user rule wins over the built-in table."""
        rules = [rule("uber", "Travel")]
        assert self.resolver.resolve("Uber to airport", None, rules) == "Travel"

    def test_heuristic_used_without_rules(self):
        """Test the heuristic fallback."""
        assert self.resolver.resolve("Uber to airport") == "Transporte"

    def test_explicit_category_is_kept(self):
        """Test that a non-default category is never overridden."""
        rules = [rule("uber", "Travel")]
        assert self.resolver.resolve("Uber to airport", "Trabalho", rules) == "Trabalho"

    def test_default_category_is_resolved(self):
        """Test that the default sentinel triggers resolution."""
        assert self.resolver.resolve("iFood pedido", DEFAULT_CATEGORY) == "Alimentação"

    def test_match_is_case_insensitive(self):
        """Test case-insensitive substring matching for rules."""
        rules = [rule("NETFLIX", "Assinaturas")]
        assert self.resolver.resolve("netflix.com", None, rules) == "Assinaturas"

    def test_first_rule_in_insertion_order_wins(self):
        """Test that the first matching rule decides."""
        rules = [rule("posto", "Carro", "r-1"), rule("posto shell", "Combustível", "r-2")]
        assert self.resolver.resolve("Posto Shell", None, rules) == "Carro"

    def test_heuristic_table_order(self):
        """Test that heuristics are checked in their fixed order."""
        # "uber" comes before "burger"
        assert self.resolver.resolve("Uber Burger") == "Transporte"

    def test_falls_back_to_default(self):
        """Test the default category when nothing matches."""
        assert self.resolver.resolve("Presente de aniversário") == DEFAULT_CATEGORY

    @pytest.mark.parametrize("title,expected", [
        ("Salário janeiro", "Receita"),
        ("Farmácia São João", "Saúde"),
        ("Carrefour", "Mercado"),
        ("Spotify", "Lazer"),
    ])
    def test_heuristic_samples(self, title, expected):
        """Test a sample of the heuristic table."""
        assert self.resolver.resolve(title) == expected

    def test_custom_default_category(self):
        """Test a resolver configured with another sentinel."""
        resolver = CategoryResolver(default_category="Outros")
        assert resolver.resolve("Presente") == "Outros"
        assert resolver.resolve("Uber", "Outros") == "Transporte"
