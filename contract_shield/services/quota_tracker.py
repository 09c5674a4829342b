"""
Quota tracker - subscription tier, monthly review count and user profile.

Month rollover is lazy: once the clock reaches `month_reset_date` the stored
count is treated as zero on read, and the next `increment_reviews()` call
physically resets it.
"""
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from contract_shield.models import Subscription, Tier, UserProfile
from contract_shield.utils.credentials import has_credential, mask_credential
from contract_shield.utils.dates import first_instant_of_next_month, parse_iso, to_iso, utcnow

logger = logging.getLogger(__name__)

STORAGE_KEY = 'contract-shield-user'
FREE_REVIEWS_PER_MONTH = 3
UNLIMITED = -1

Listener = Callable[['QuotaTracker'], None]


class QuotaTracker:
    """
    Owns the single persisted UserProfile and gates new analyses by tier.
    """

    def __init__(
        self,
        storage: Any = None,
        clock: Callable[[], datetime] = utcnow,
        free_quota: int = FREE_REVIEWS_PER_MONTH,
        default_credential: Optional[str] = None
    ):
        """
        Args:
            storage: Key-value store with get/set. None keeps state in memory.
            clock: Returns the current aware UTC datetime.
            free_quota: Reviews allowed per month on the free tier.
            default_credential: Seeded into a freshly created profile only.
        """
        self._storage = storage
        self._clock = clock
        self.free_quota = free_quota
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

        self.profile = self._load() or self._new_profile(default_credential)

    # -- persistence ---------------------------------------------------------

    def _new_profile(self, credential: Optional[str]) -> UserProfile:
        now = self._clock()
        profile = UserProfile(
            joined_at=to_iso(now),
            subscription=Subscription(
                tier=Tier.FREE,
                reviews_used_this_month=0,
                month_reset_date=to_iso(first_instant_of_next_month(now)),
            ),
            credential=credential or '',
        )
        logger.info("Created new user profile on free tier")
        if self._storage is not None:
            self._storage.set(STORAGE_KEY, profile.to_dict())
        return profile

    def _load(self) -> Optional[UserProfile]:
        if self._storage is None:
            return None
        snapshot = self._storage.get(STORAGE_KEY)
        if not snapshot:
            return None
        try:
            profile = UserProfile.from_dict(snapshot)
            if profile.subscription is None:
                raise ValueError("profile has no subscription")
            parse_iso(profile.subscription.month_reset_date)
            return profile
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Stored user profile is invalid, creating a new one: {e}")
            return None

    def to_snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return self.profile.to_dict()

    # -- observers -----------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, mutate: Callable[[UserProfile], None]) -> UserProfile:
        """
        Apply `mutate` to a copy of the profile, persist the copy, then adopt it.

        If the write fails the in-memory profile is left untouched.
        """
        with self._lock:
            candidate = UserProfile.from_dict(self.profile.to_dict())
            mutate(candidate)
            if self._storage is not None:
                self._storage.set(STORAGE_KEY, candidate.to_dict())
            self.profile = candidate
        for listener in list(self._listeners):
            listener(self)
        return candidate

    # -- queries -------------------------------------------------------------

    @property
    def subscription(self) -> Subscription:
        return self.profile.subscription

    @property
    def credential(self) -> str:
        return self.profile.credential

    def has_credential(self) -> bool:
        return has_credential(self.profile.credential)

    def _month_rolled_over(self) -> bool:
        return self._clock() >= parse_iso(self.subscription.month_reset_date)

    def effective_used(self) -> int:
        """Reviews used in the current month, treating a passed reset date as zero."""
        with self._lock:
            if self._month_rolled_over():
                return 0
            return self.subscription.reviews_used_this_month

    def can_review(self) -> bool:
        """
        Check whether a new analysis is permitted.

        Pro: always. Free: a credential is present and the effective monthly
        count is below the free quota.
        """
        with self._lock:
            if self.subscription.tier == Tier.PRO:
                return True
            if not self.has_credential():
                return False
            return self.effective_used() < self.free_quota

    def remaining(self) -> int:
        """Reviews left this month, or UNLIMITED (-1) on the pro tier."""
        with self._lock:
            if self.subscription.tier == Tier.PRO:
                return UNLIMITED
            return max(0, self.free_quota - self.effective_used())

    def status(self) -> Dict[str, Any]:
        with self._lock:
            sub = self.subscription
            return {
                'tier': sub.tier.value,
                'reviewsUsedThisMonth': self.effective_used(),
                'remaining': self.remaining(),
                'limit': UNLIMITED if sub.tier == Tier.PRO else self.free_quota,
                'monthResetDate': sub.month_reset_date,
                'subscribedAt': sub.subscribed_at,
                'canReview': self.can_review(),
                'hasCredential': self.has_credential(),
                'credential': mask_credential(self.profile.credential),
                'totalReviews': self.profile.total_reviews,
            }

    # -- mutations -----------------------------------------------------------

    def increment_reviews(self) -> None:
        """
        Count one completed review.

        If the reset date has passed, this call performs the reset: the count
        becomes 1 and the reset date moves to the first instant of the month
        after now.
        """
        now = self._clock()

        def count(profile: UserProfile) -> None:
            sub = profile.subscription
            profile.total_reviews += 1
            if now >= parse_iso(sub.month_reset_date):
                sub.reviews_used_this_month = 1
                sub.month_reset_date = to_iso(first_instant_of_next_month(now))
                logger.info(f"Monthly review count reset; next reset at {sub.month_reset_date}")
            else:
                sub.reviews_used_this_month += 1

        profile = self._commit(count)
        logger.info(
            f"Review counted: used_this_month={profile.subscription.reviews_used_this_month}, "
            f"total={profile.total_reviews}, tier={profile.subscription.tier.value}"
        )

    def reset_monthly_count(self) -> None:
        now = self._clock()

        def reset(profile: UserProfile) -> None:
            profile.subscription.reviews_used_this_month = 0
            profile.subscription.month_reset_date = to_iso(first_instant_of_next_month(now))

        self._commit(reset)
        logger.info("Monthly review count reset explicitly")

    def upgrade_to_pro(self) -> None:
        """
        Move the subscription to the pro tier. One-way; repeated calls are no-ops.
        """
        with self._lock:
            if self.subscription.tier == Tier.PRO:
                return
            subscribed_at = to_iso(self._clock())

            def upgrade(profile: UserProfile) -> None:
                profile.subscription.tier = Tier.PRO
                profile.subscription.subscribed_at = subscribed_at

            self._commit(upgrade)
        logger.info(f"Subscription upgraded to pro at {subscribed_at}")

    def set_profile(self, name: str, email: str) -> None:
        def update(profile: UserProfile) -> None:
            profile.name = name
            profile.email = email

        self._commit(update)

    def set_credential(self, credential: str) -> None:
        """Store the model credential verbatim. An empty string clears it."""
        def update(profile: UserProfile) -> None:
            profile.credential = credential or ''

        profile = self._commit(update)
        logger.info(f"Credential updated: {mask_credential(profile.credential)}")
