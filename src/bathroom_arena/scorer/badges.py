"""Achievement badges derived from a user's reviews.

Badges are computed on read from review data only; nothing is stored.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from ..models import Badge, CostBucket, Location, Review

NIGHT_OWL_BEFORE_HOUR = 5
TRAVELER_MIN_CITIES = 3
FRUGAL_MIN_FREE_VISITS = 3
CRITIC_MAX_OVERALL = 2

MILESTONES: list[tuple[int, Badge]] = [
    (1, Badge(id="first_flush", emoji="🚽", name="First Flush", description="Submitted your first review")),
    (5, Badge(id="regular", emoji="🧻", name="Regular", description="Reviewed 5 bathrooms")),
    (10, Badge(id="plunger", emoji="🪠", name="Plunger", description="Reviewed 10 bathrooms")),
    (25, Badge(id="stall_whisperer", emoji="🚿", name="Stall Whisperer", description="Reviewed 25 bathrooms")),
    (50, Badge(id="legend", emoji="👑", name="Arena Legend", description="Reviewed 50 bathrooms")),
]

NIGHT_OWL = Badge(
    id="night_owl", emoji="🦉", name="Night Owl", description="Reviewed a bathroom between midnight and 5am"
)
TRAVELER = Badge(id="traveler", emoji="🌍", name="World Traveler", description="Reviewed bathrooms in 3+ cities")
FRUGAL = Badge(id="frugal", emoji="💸", name="Frugal Flusher", description="Found 3+ free bathrooms")
PRISTINE = Badge(id="pristine", emoji="✨", name="Pristine Finder", description="Found a perfectly clean bathroom")
PRIVATE_EYE = Badge(
    id="private_eye", emoji="🕵️", name="Private Eye", description="Found a perfectly private bathroom"
)
NOSE_KNOWS = Badge(
    id="nose_knows", emoji="🌸", name="Nose Knows", description="Found a bathroom that actually smells good"
)
OG = Badge(id="og", emoji="🥇", name="OG", description="First to review a bathroom")
CRITIC = Badge(id="critic", emoji="💩", name="Harsh Critic", description="Gave a brutal 2/10 or lower review")


def parse_city(address: str) -> str | None:
    """City from a "street, city, region" address, or None when it has fewer parts."""
    parts = address.split(", ")
    return parts[1] if len(parts) >= 3 else None


class BadgeAwarder:
    """Awards badges from one user's review history.

    Example:
        ```python
        badges = BadgeAwarder.award(
            "user_1",
            store.reviews_by_user("user_1"),
            locations={loc.id: loc for loc in store.list_locations()},
            first_authors={"loc_1": "user_1"},
        )
        print([badge.id for badge in badges])
        ```
    """

    @staticmethod
    def cities(reviews: Sequence[Review], locations: Mapping[str, Location]) -> set[str]:
        """Distinct cities visited, preferring the stored city over the address."""
        found: set[str] = set()
        for review in reviews:
            location = locations.get(review.location_id)
            if location is None:
                continue
            city = location.city or parse_city(location.address)
            if city:
                found.add(city)
        return found

    @staticmethod
    def award(
        user_id: str,
        reviews: Sequence[Review],
        locations: Mapping[str, Location],
        first_authors: Mapping[str, str],
    ) -> list[Badge]:
        """Compute every badge the user has earned.

        Args:
            user_id: The user being awarded.
            reviews: The user's reviews, oldest first.
            locations: Locations by id, used for the city of each visit.
            first_authors: Author of the first review of each location the
                user reviewed.

        Returns:
            Earned badges: milestones first, then the time, travel, cost,
            quality, first-reviewer and critic badges.
        """
        earned = [badge for threshold, badge in MILESTONES if len(reviews) >= threshold]

        if any(r.visited_at.hour < NIGHT_OWL_BEFORE_HOUR for r in reviews):
            earned.append(NIGHT_OWL)

        if len(BadgeAwarder.cities(reviews, locations)) >= TRAVELER_MIN_CITIES:
            earned.append(TRAVELER)

        if sum(1 for r in reviews if r.cost == CostBucket.FREE) >= FRUGAL_MIN_FREE_VISITS:
            earned.append(FRUGAL)

        if any(r.cleanliness == 5 for r in reviews):
            earned.append(PRISTINE)
        if any(r.privacy == 5 for r in reviews):
            earned.append(PRIVATE_EYE)
        if any(r.smell == 5 for r in reviews):
            earned.append(NOSE_KNOWS)

        if any(first_authors.get(r.location_id) == user_id for r in reviews):
            earned.append(OG)

        if any(r.overall <= CRITIC_MAX_OVERALL for r in reviews):
            earned.append(CRITIC)

        return earned
