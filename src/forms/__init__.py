"""Form submission parsing, normalization and caching."""

from src.forms.cache import (
    FormDataCache,
    InMemoryFormDataCache,
    RateLimiter,
    RedisFormDataCache,
)
from src.forms.normalizer import (
    NormalizedForm,
    derive_installments,
    fallback_form,
    normalize_form,
    parse_payload,
)
from src.forms.rules import parse_bool, parse_currency, parse_int

__all__ = [
    "FormDataCache",
    "InMemoryFormDataCache",
    "NormalizedForm",
    "RateLimiter",
    "RedisFormDataCache",
    "derive_installments",
    "fallback_form",
    "normalize_form",
    "parse_bool",
    "parse_currency",
    "parse_int",
    "parse_payload",
]
