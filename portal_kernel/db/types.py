"""
Module: portal_kernel.db.types
Responsibility: Annotated type aliases shared by the portal models so that
    every column of the same kind has the same width.
Architecture position: Kernel > DB.  MUST NOT import from models/, domain/,
    services/, or selectors/.

Usage:
    title: Mapped[Title] = mapped_column(nullable=False)
"""

from typing import Annotated

from sqlalchemy import String
from sqlalchemy.orm import mapped_column

TITLE_MAX_LENGTH = 255

# Lifecycle status / enum values
StatusCode = Annotated[str, mapped_column(String(20))]

# Catalog names (e.g. "prod", "gke")
ShortCode = Annotated[str, mapped_column(String(100))]

# Titles and display names
Title = Annotated[str, mapped_column(String(TITLE_MAX_LENGTH))]

# Client metadata captured from the identity context
IpAddress = Annotated[str, mapped_column(String(45))]
UserAgent = Annotated[str, mapped_column(String(500))]
