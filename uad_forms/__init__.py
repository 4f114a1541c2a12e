"""Form schema, structural editor and conditional rule engine for appraisal forms."""

from .editor import StructuralEditor  # noqa: F401
from .errors import (  # noqa: F401
    CyclicRuleGraph,
    FormSchemaError,
    InvalidRule,
    InvalidType,
    InvalidValue,
    InvalidWidth,
    NotFound,
    OrphanRuleReference,
    SchemaValidationError,
)
from .rule_engine import EffectiveState, evaluate  # noqa: F401
from .schema import Field, Form, Page, Section  # noqa: F401
from .session import EditingSession  # noqa: F401
