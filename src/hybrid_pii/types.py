"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum


class EntityType(str, Enum):
    """Closed set of entity types.  The value doubles as placeholder text."""
    PERSON = "Person"
    EMAIL = "Email"
    PHONE = "Phone"
    ADDRESS = "Address"
    SSN = "SSN"
    CREDIT_CARD = "CreditCard"
    DATE = "Date"
    NONE = "None"

    # Credentials, produced only by the pattern detector
    AWS_KEY = "AWSKey"
    API_KEY = "APIKey"
    GITHUB_TOKEN = "GitHubToken"
    STRIPE_KEY = "StripeKey"
    SECRET = "Secret"

    @property
    def is_credential(self) -> bool:
        return self in _CREDENTIALS

    def __str__(self) -> str:
        return self.value

    @classmethod
    def _missing_(cls, value):
        # EntityType("email") -> EntityType.EMAIL
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


_CREDENTIALS = frozenset({
    EntityType.AWS_KEY,
    EntityType.API_KEY,
    EntityType.GITHUB_TOKEN,
    EntityType.STRIPE_KEY,
    EntityType.SECRET,
})


class BioLabel(str, Enum):
    """Tagger label table.  Declaration order is the model's label-id order."""
    OUTSIDE = "O"
    B_PERSON = "B-PER"
    I_PERSON = "I-PER"
    B_EMAIL = "B-EMAIL"
    B_PHONE = "B-PHONE"
    I_PHONE = "I-PHONE"
    B_ADDRESS = "B-ADDR"
    I_ADDRESS = "I-ADDR"
    B_SSN = "B-SSN"
    I_SSN = "I-SSN"
    B_CREDIT_CARD = "B-CC"
    B_DATE = "B-DATE"
    I_DATE = "I-DATE"

    @classmethod
    def from_id(cls, label_id: int) -> BioLabel | None:
        """Map a model label id to a label; None for ids outside the table."""
        if 0 <= label_id < len(_LABELS):
            return _LABELS[label_id]
        return None

    @property
    def is_begin(self) -> bool:
        return self.value.startswith("B-")

    @property
    def is_inside(self) -> bool:
        return self.value.startswith("I-")

    @property
    def entity_type(self) -> EntityType:
        return _LABEL_TYPES[self.value.partition("-")[2]]


_LABELS: list[BioLabel] = list(BioLabel)

_LABEL_TYPES: dict[str, EntityType] = {
    "": EntityType.NONE,
    "PER": EntityType.PERSON,
    "EMAIL": EntityType.EMAIL,
    "PHONE": EntityType.PHONE,
    "ADDR": EntityType.ADDRESS,
    "SSN": EntityType.SSN,
    "CC": EntityType.CREDIT_CARD,
    "DATE": EntityType.DATE,
}


@dataclass(frozen=True, slots=True)
class Entity:
    """A single detected PII span over the original text."""
    text: str              # original[start:end], whitespace-trimmed
    label: EntityType
    start: int
    end: int
    source: str = "model"  # "pattern" | "model"

    def overlaps(self, other: Entity) -> bool:
        return self.start < other.end and other.start < self.end

    def in_bounds(self, text: str) -> bool:
        return 0 <= self.start < self.end <= len(text)


@dataclass(frozen=True, slots=True)
class TokenOffset:
    """Source span of one tokenizer output; (-1, -1) when it has none."""
    token: str
    start: int = -1
    end: int = -1

    @property
    def resolvable(self) -> bool:
        return self.start >= 0 and self.end > self.start


# (matched text, "[Type]")
ReplacementPair = tuple[str, str]


@dataclass(slots=True)
class RedactionResult:
    """Result of redacting a text."""
    text: str                                   # text with placeholders
    entities: list[Entity] = field(default_factory=list)
    replacements: list[ReplacementPair] = field(default_factory=list)
