"""Table of contents schemas."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TocSource(str, Enum):
    NCX = "ncx"
    NAV = "nav"


class TocItem(BaseModel):
    """One flattened navigation entry.

    ``level`` is the zero-based nesting depth at extraction time.
    """

    label: str
    href: str
    level: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class Toc(BaseModel):
    """A navigation structure flattened in pre-order.

    ``type`` is the nav ``epub:type`` (``toc``, ``landmarks``, ``page-list``)
    for Nav sources, and ``navMap`` or ``pageList`` for NCX sources.
    """

    title: str | None = None
    items: list[TocItem] = Field(default_factory=list)
    source: TocSource
    type: str | None = None
