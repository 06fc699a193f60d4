"""Reply checks run before text is streamed back or persisted."""

from nurse_call.verification.output_validator import (
    contains_sentinel,
    scrub_sentinels,
    validate_reply,
)

__all__ = ["contains_sentinel", "scrub_sentinels", "validate_reply"]
