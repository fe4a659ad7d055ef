"""
Quick-input parser.

Turns one line such as "đi chơi 90k, cà phê 15k" into
transaction drafts. The parse is best-effort: fragments that
do not end in an amount are skipped, and only a line with no
usable fragment at all is an error.
"""

import logging
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from pocket_ledger.exceptions import ParseError
from pocket_ledger.models.category import Category
from pocket_ledger.models.enums import TransactionKind
from pocket_ledger.schemas.ledger import TransactionDraft

log = logging.getLogger(__name__)

MULTIPLIERS = {
    "": 1,
    "k": 1_000,
    "m": 1_000_000,
    "tr": 1_000_000,
}

# Trailing "<number><suffix>", whitespace allowed between the two.
# The number may follow a word directly: "cafe20k" is "cafe", 20000.
AMOUNT_PATTERN = re.compile(
    r"(?P<number>\d+(?:\.\d+)?)\s*(?P<suffix>tr|k|m)?\s*$",
    re.IGNORECASE,
)

# Words that point a description at a category, keyed by the
# lower-cased category name. Category names always match themselves.
CATEGORY_KEYWORDS = {
    "food & drinks": (
        "ăn", "uống", "cà phê", "cafe", "coffee", "trà", "food",
        "lunch", "dinner", "breakfast", "eat", "drink",
    ),
    "entertainment": (
        "chơi", "giải trí", "phim", "movie", "game", "party",
    ),
    "transport": (
        "xe", "xăng", "di chuyển", "grab", "taxi", "bus", "fuel", "parking",
    ),
    "shopping": ("mua", "shop", "quần áo", "clothes"),
    "bills": ("điện", "nước", "internet", "bill", "rent", "thuê nhà"),
}


def parse_amount(number: str, suffix: Optional[str]) -> int:
    """Scale a matched number by its suffix and round to an integer."""
    multiplier = MULTIPLIERS[(suffix or "").lower()]
    value = Decimal(number) * multiplier
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_fragment(fragment: str) -> Optional[TransactionDraft]:
    """Parse one comma-separated fragment, or return None to skip it."""
    match = AMOUNT_PATTERN.search(fragment)
    if not match:
        return None

    amount = parse_amount(match.group("number"), match.group("suffix"))
    description = fragment[: match.start()].strip()
    if not description or amount <= 0:
        return None

    return TransactionDraft(description=description, amount=amount)


class ParserService:
    """Parses quick-input text into transaction drafts."""

    def parse(self, raw_text: str) -> list[TransactionDraft]:
        """
        Split on commas and parse each fragment in order.

        Raises ParseError when no fragment yields a draft.
        """
        drafts = []
        for fragment in (raw_text or "").split(","):
            draft = parse_fragment(fragment.strip())
            if draft is None:
                if fragment.strip():
                    log.debug(f"Skipping unparsable fragment {fragment!r}")
                continue
            drafts.append(draft)

        if not drafts:
            raise ParseError(
                "No transactions found in quick input",
                details={"text": raw_text},
            )
        return drafts

    def suggest_category(
        self, description: str, categories: Iterable[Category]
    ) -> Optional[Category]:
        """
        Pick the expense category whose name or keywords occur in
        the description; fall back to the first expense category.
        """
        text = description.lower()
        expense = [c for c in categories if c.kind == TransactionKind.EXPENSE]

        for category in expense:
            name = category.name.lower()
            keywords = (name,) + CATEGORY_KEYWORDS.get(name, ())
            if any(keyword in text for keyword in keywords):
                return category

        return expense[0] if expense else None

    def parse_with_categories(
        self, raw_text: str, categories: Iterable[Category]
    ) -> list[TransactionDraft]:
        """Parse, then pre-fill each draft's category suggestion."""
        categories = list(categories)
        drafts = self.parse(raw_text)
        for draft in drafts:
            category = self.suggest_category(draft.description, categories)
            if category is not None:
                draft.category_id = category.id
        return drafts
