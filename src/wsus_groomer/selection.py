"""Selection filter: is an update still covered by the server subscription?"""

from __future__ import annotations

from collections.abc import Collection

from wsus_groomer.models import UpdateRecord


def is_selected(
    update: UpdateRecord,
    subscribed_classifications: Collection[str],
    subscribed_categories: Collection[str],
) -> bool:
    """Return True if the update's classification or any product is subscribed.

    Membership is exact title equality. Updates that fail this test no
    longer belong in the catalog and are deleted, not declined.
    """
    if update.classification_title in subscribed_classifications:
        return True
    return any(product in subscribed_categories for product in update.product_titles)
