"""Column types shared across models."""

from sqlalchemy import Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

JSONB_TYPE = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")
