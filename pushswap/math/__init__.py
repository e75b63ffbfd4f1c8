from .price import (
    TokenDescriptor,
    PriceRequest,
    EncodedPrice,
    sort_tokens,
    encode,
    encode_request,
    encode_sqrt_price_x96,
    sqrt_price_x96_to_price,
)
from .ticks import (
    FeeTier,
    TickWindow,
    get_tick_spacing,
    align_tick_to_spacing,
    plan,
    full_range,
)
