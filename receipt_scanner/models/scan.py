"""
Pydantic models for receipt scan results.
"""

from pydantic import BaseModel, Field
from typing import Dict, Optional
from decimal import Decimal


class ExtractedField(BaseModel):
    """A single extracted value with the parser's own confidence (0-100)."""
    value: str = ""
    confidence: int = Field(default=0, ge=0, le=100)


class ScanConfidence(BaseModel):
    """Per-field confidence scores."""
    title: int = Field(default=0, ge=0, le=100)
    amount: int = Field(default=0, ge=0, le=100)
    date: int = Field(default=0, ge=0, le=100)


class ScanResult(BaseModel):
    """
    Outcome of one receipt scan, handed to the review UI.

    amount is a decimal string with two places ("" when nothing plausible
    was found) and date is always YYYY-MM-DD.
    """
    title: str
    amount: str
    date: str
    raw_text: str
    category: str = "other"
    confidence: ScanConfidence

    @classmethod
    def from_fields(
        cls,
        title: ExtractedField,
        amount: ExtractedField,
        date: ExtractedField,
        raw_text: str,
        category: str
    ) -> "ScanResult":
        return cls(
            title=title.value,
            amount=amount.value,
            date=date.value,
            raw_text=raw_text,
            category=category,
            confidence=ScanConfidence(
                title=title.confidence,
                amount=amount.confidence,
                date=date.confidence,
            ),
        )

    def extracted_fields(self) -> Dict[str, ExtractedField]:
        """Return the three extracted fields keyed by name."""
        return {
            "title": ExtractedField(value=self.title, confidence=self.confidence.title),
            "amount": ExtractedField(value=self.amount, confidence=self.confidence.amount),
            "date": ExtractedField(value=self.date, confidence=self.confidence.date),
        }

    def to_expense_draft(self) -> "ExpenseDraft":
        """
        Build the candidate expense record for human confirmation.

        An empty amount becomes 0 so the reviewer is forced to fill it in.
        """
        return ExpenseDraft(
            title=self.title,
            amount=Decimal(self.amount) if self.amount else Decimal("0"),
            category=self.category,
            date=self.date,
        )


class ExpenseDraft(BaseModel):
    """Candidate record passed to the expense-creation collaborator."""
    title: str
    amount: Decimal
    category: str
    date: str
    receipt_url: Optional[str] = None
    is_verified: bool = False


class Category(BaseModel):
    """Spending category shown in the review UI."""
    id: str
    name: str
    emoji: str
