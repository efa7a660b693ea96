"""Category exclusion and normalization rules shared by every analyzer."""

from .config import EngineConfig


class CategoryPolicy:
    """Closed category sets plus pure string-mapping helpers."""

    def __init__(self, config: EngineConfig):
        self.config = config
        self._excluded = frozenset(config.excluded_categories)
        self._income = frozenset(config.income_categories)

    @property
    def excluded(self) -> frozenset[str]:
        return self._excluded

    def is_excluded(self, category: str | None) -> bool:
        return (category or "") in self._excluded

    def is_income(self, category: str | None) -> bool:
        """Income bucket used for net-income math (Income, Gift Money)."""
        return (category or "") in self._income

    def is_expense(self, category: str | None) -> bool:
        return not self.is_excluded(category)

    def normalize_category(self, category: str | None) -> str:
        """Map account category variants to canonical labels.

        "Alternative Investment", "alt inv" and other "alt..." spellings
        collapse to "Alt Inv"; other labels match the canonical list
        case-insensitively; anything else is returned trimmed.
        """
        normalized = (category or "").strip()
        if not normalized:
            return "Unknown"

        lowered = normalized.lower()
        if "alternative" in lowered or "alt inv" in lowered or lowered.startswith("alt"):
            return "Alt Inv"

        for canonical in self.config.account_categories:
            if canonical.lower() == lowered:
                return canonical
        return normalized

    def is_trust(self, category: str | None) -> bool:
        return "trust" in (category or "").lower()

    def is_cash(self, category: str | None) -> bool:
        return self.normalize_category(category) in self.config.cash_categories

    @staticmethod
    def counterparty_key(counterparty: str | None, length: int) -> str:
        """Coalescing key for near-duplicate merchant names.

        First ``length`` characters, trimmed and upper-cased, so that
        "OURARING" and "Ouraring Inc" share a key.
        """
        name = counterparty or "Unknown"
        return name[:length].strip().upper()
