"""Award catalog shipped with the package."""

from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, Field

from quickfix.utils.bundle import load_bundled


class AwardCriterion(str, Enum):
    """Counts an award can be earned against."""

    ISSUES = "issues"
    CLOSED = "closed"
    TAGS = "tags"


class Award(BaseModel):
    """A static achievement unlocked when a store count reaches ``value``.

    ``criterion`` stays a plain string: an unknown criterion in the catalog
    loads fine and simply never counts as earned.
    """

    name: str = Field(..., description="Award name, unique within the catalog")
    description: str = Field(..., description="What the user did to earn it")
    color: str = Field(..., description="Display color name")
    image: str = Field(..., description="Icon name")
    criterion: str = Field(..., description="Count the award is evaluated against")
    value: int = Field(..., ge=0, description="Threshold the count must reach")

    @property
    def id(self) -> str:
        return self.name

    @classmethod
    def all_awards(cls) -> list["Award"]:
        """The bundled catalog, in file order."""
        return list(_load_catalog())

    @classmethod
    def example(cls) -> "Award":
        """Placeholder award used before the user picks one."""
        return cls.all_awards()[0]


@lru_cache
def _load_catalog() -> tuple[Award, ...]:
    return tuple(load_bundled("awards.json", list[Award]))
