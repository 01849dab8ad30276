"""
Error taxonomy for wager placement, resolution and the batch resolver.

Each error carries the HTTP status it maps to so the API layer can render it
without a lookup table.
"""


class WagerError(Exception):
    status_code = 400
    code = "wager_error"
    detail = "wager request rejected"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class ValidationError(WagerError):
    status_code = 422
    code = "validation_error"
    detail = "invalid wager request"


class AmountOutOfRange(ValidationError):
    code = "amount_out_of_range"
    detail = "stake amount outside allowed range"


class ConflictError(WagerError):
    status_code = 409
    code = "conflict"
    detail = "conflicting wager state"


class ActiveWagerExists(ConflictError):
    code = "active_wager_exists"
    detail = "You already have an active wager"


class DuplicateMatch(ConflictError):
    code = "duplicate_match"
    detail = "match already settled a wager for this player"


class WagerNotPending(ConflictError):
    code = "wager_not_pending"
    detail = "wager is no longer pending"


class PlayerAlreadyLinked(ConflictError):
    code = "player_already_linked"
    detail = "This game account is already linked to another account"


class NotFoundError(WagerError):
    status_code = 404
    code = "not_found"
    detail = "not found"


class UserNotFound(NotFoundError):
    code = "user_not_found"
    detail = "User not found"


class NoActiveWager(NotFoundError):
    code = "no_active_wager"
    detail = "No active wager found"


class InsufficientFundsError(WagerError):
    status_code = 400
    code = "insufficient_funds"
    detail = "Insufficient balance"


class UpstreamError(WagerError):
    status_code = 502
    code = "upstream_error"
    detail = "match provider request failed"


class RateLimitedError(UpstreamError):
    status_code = 429
    code = "rate_limited"
    detail = "match provider rate limit hit, retry later"


class ProviderNotFoundError(UpstreamError):
    status_code = 404
    code = "provider_not_found"
    detail = "match provider has no record for this player"


class StaleResultError(WagerError):
    status_code = 409
    code = "stale_result"
    detail = "match ended before the wager was placed"


class UnauthorizedError(WagerError):
    status_code = 401
    code = "unauthorized"
    detail = "Unauthorized"


class ForbiddenError(WagerError):
    status_code = 403
    code = "forbidden"
    detail = "Forbidden"
