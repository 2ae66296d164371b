"""Define Python user-defined exceptions"""


class LendingError(Exception):
    """Base class for every error raised by the lending engine."""


# validation errors are raised before any state mutation


class ValidationError(LendingError):
    """The caller supplied an input that can never succeed; retry with corrected input."""


class ZeroAmount(ValidationError):
    """An amount of zero was passed to an operation that moves funds."""


class ZeroShares(ValidationError):
    """A deposit was too small to mint a single unit of vault shares."""


class AssetNotSupported(ValidationError):
    """The asset is not registered for the requested role (collateral, vault, or price feed)."""


class AssetAlreadyRegistered(ValidationError):
    """The asset has already been registered; registrations are unique."""


class InvalidLTV(ValidationError):
    """The loan-to-value ratio must be a whole percentage between 1 and 100, inclusive."""


class CollateralInUse(ValidationError):
    """A collateral asset cannot be removed while any user still holds a balance of it."""


class StrandedAssets(ValidationError):
    """A withdrawal would burn every outstanding share while leaving assets in the vault; redeem the shares instead."""


class UnauthorizedCaller(LendingError):
    """A privileged operation was called by an address other than the one allowed to call it."""


# insufficient-resource errors are rejected atomically


class InsufficientResources(LendingError):
    """The operation is well formed, but some balance or limit is too low to settle it."""


class InsufficientBalance(InsufficientResources):
    """The account does not hold enough tokens."""


class InsufficientAllowance(InsufficientResources):
    """The spender has not been approved for enough tokens or shares."""


class InsufficientShares(InsufficientResources):
    """The owner's shares convert to fewer assets than were requested."""


class InsufficientLiquidity(InsufficientResources):
    """The vault does not physically hold enough assets to settle immediately."""


class InsufficientCollateral(InsufficientResources):
    """The collateral withdrawal would leave the remaining borrowing power below the outstanding debt."""


class BorrowLimitExceeded(InsufficientResources):
    """The borrow amount exceeds the borrowing power left after outstanding debt."""


class RepayAmountTooSmall(InsufficientResources):
    """A repayment must at least cover the interest accrued since the last checkpoint."""


class RepayExceedsDebt(InsufficientResources):
    """A repayment cannot be larger than principal plus accrued interest."""


class NoOutstandingDebt(InsufficientResources):
    """The user has no open debt position to repay."""


class TransferFailed(InsufficientResources):
    """The token transfer layer reported a failed transfer."""


# upstream errors halt valuation-dependent operations


class PriceSourceError(LendingError):
    """The price source could not provide a usable price; there is no fallback pricing."""


class PriceFeedNotSet(PriceSourceError):
    """No price feed is registered for the asset."""


class NonPositivePrice(PriceSourceError):
    """The price feed reported a zero or negative price."""


class StalePrice(PriceSourceError):
    """The latest price is older than the configured staleness tolerance."""


# invariant violations are defects, never handled at runtime


class InvariantViolation(LendingError):
    """Internal bookkeeping diverged; this signals a bug upstream and must not be caught."""


class UtilizationAboveMaximum(InvariantViolation):
    """Utilization was computed above 100%, so borrowed assets exceed supplied assets."""
