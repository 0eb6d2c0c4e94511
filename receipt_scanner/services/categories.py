"""
Keyword-based category guessing for scanned receipts.

The guess is advisory; the review UI always lets the user pick another
category before the expense is saved.
"""

from typing import Dict, List, Optional

from receipt_scanner.models.scan import Category

FALLBACK_CATEGORY = "other"

CATEGORIES: List[Category] = [
    Category(id="food", name="Food & Dining", emoji="🍔"),
    Category(id="transport", name="Transport", emoji="🚗"),
    Category(id="shopping", name="Shopping", emoji="🛍️"),
    Category(id="entertainment", name="Entertainment", emoji="🎬"),
    Category(id="bills", name="Bills & Utilities", emoji="💡"),
    Category(id="health", name="Health", emoji="💊"),
    Category(id="travel", name="Travel", emoji="✈️"),
    Category(id="groceries", name="Groceries", emoji="🛒"),
    Category(id="subscription", name="Subscriptions", emoji="📺"),
    Category(id="education", name="Education", emoji="📚"),
    Category(id="personal", name="Personal Care", emoji="💅"),
    Category(id=FALLBACK_CATEGORY, name="Other", emoji="📦"),
]

# Checked in insertion order; the first category with a matching keyword wins.
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "food": ["restaurant", "cafe", "coffee", "starbucks", "mcdonalds", "pizza", "food", "eat", "dine"],
    "transport": ["uber", "ola", "taxi", "metro", "bus", "fuel", "petrol", "parking"],
    "shopping": ["amazon", "flipkart", "mall", "store", "shop", "market"],
    "entertainment": ["movie", "cinema", "netflix", "spotify", "game"],
    "bills": ["electricity", "water", "gas", "internet", "phone", "mobile", "bill"],
    "health": ["pharmacy", "hospital", "doctor", "medicine", "medical", "gym"],
    "groceries": ["grocery", "vegetables", "fruits", "supermarket", "bigbasket"],
}


def get_category_by_id(category_id: str) -> Category:
    """Look up a category, falling back to "other" for unknown ids."""
    for category in CATEGORIES:
        if category.id == category_id:
            return category
    return CATEGORIES[-1]


def guess_category(title: str, keywords: Optional[Dict[str, List[str]]] = None) -> str:
    """
    Guess a category id from a merchant name or expense title.

    Args:
        title: Merchant/title text, matched case-insensitively
        keywords: Ordered mapping of category id to keyword substrings

    Returns:
        Category id, or "other" when nothing matches

    Examples:
        >>> guess_category("Starbucks Coffee")
        'food'
        >>> guess_category("xyz unknown vendor")
        'other'
    """
    title = (title or "").lower()
    table = CATEGORY_KEYWORDS if keywords is None else keywords

    for category_id, words in table.items():
        if any(word in title for word in words):
            return category_id

    return FALLBACK_CATEGORY
