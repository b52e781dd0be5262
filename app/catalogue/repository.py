import logging
from functools import lru_cache

from pydantic import ValidationError as PydanticValidationError

from app.catalogue.schemas import Category, CatalogueItem, Profile, empty_catalogue
from app.core.exceptions import CatalogueStoreError
from app.core.redis_client import RedisClient, get_redis_client

logger = logging.getLogger(__name__)


class CatalogueRepository:
    def __init__(
        self: "CatalogueRepository", redis_client: RedisClient | None = None
    ) -> None:
        self._redis = redis_client

    def _client(self: "CatalogueRepository") -> RedisClient:
        return self._redis or get_redis_client()

    def load(
        self: "CatalogueRepository", profile: Profile
    ) -> dict[Category, list[CatalogueItem]]:
        catalogue = empty_catalogue()
        raw = self._client().get_catalogue(profile.value)
        if not raw:
            return catalogue

        try:
            for category_name, items in raw.items():
                category = Category(category_name)
                catalogue[category] = [CatalogueItem.model_validate(i) for i in items]
        except (ValueError, PydanticValidationError) as e:
            logger.error("Stored catalogue for %s is corrupt: %s", profile.value, e)
            raise CatalogueStoreError(f"Invalid catalogue data for {profile.value}") from e

        return catalogue

    def save(
        self: "CatalogueRepository",
        profile: Profile,
        catalogue: dict[Category, list[CatalogueItem]],
    ) -> None:
        payload = {
            category.value: [item.model_dump(mode="json") for item in items]
            for category, items in catalogue.items()
        }
        self._client().set_catalogue(profile.value, payload)

    def add_item(
        self: "CatalogueRepository", profile: Profile, category: Category, item: CatalogueItem
    ) -> None:
        catalogue = self.load(profile)
        catalogue[category].append(item)
        self.save(profile, catalogue)
        logger.info(
            "Catalogue item added: profile=%s, category=%s, id=%s",
            profile.value,
            category.value,
            item.id,
        )

    def find_items(
        self: "CatalogueRepository", profile: Profile, category: Category, item_ids: list[str]
    ) -> list[CatalogueItem]:
        """Resolve ids in the given order; unknown ids are skipped."""
        by_id = {item.id: item for item in self.load(profile)[category]}
        return [by_id[item_id] for item_id in item_ids if item_id in by_id]

    def reset(self: "CatalogueRepository") -> None:
        deleted = self._client().clear_catalogues()
        logger.info("All catalogues cleared (%d keys)", deleted)


@lru_cache
def get_catalogue_repository() -> CatalogueRepository:
    return CatalogueRepository()
