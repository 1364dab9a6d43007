"""Engine subpackage - core price resolution logic."""
from .pricing_engine import PricingEngine
from .models import PricingContext, ResolvedPrice
from .errors import (
    PricingError,
    NotFound,
    InvalidMargin,
    InvalidPriceResult,
    UpstreamUnavailable,
    RecordValidationError,
)

__all__ = [
    'PricingEngine', 'PricingContext', 'ResolvedPrice',
    'PricingError', 'NotFound', 'InvalidMargin', 'InvalidPriceResult',
    'UpstreamUnavailable', 'RecordValidationError',
]
