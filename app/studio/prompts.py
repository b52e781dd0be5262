from app.catalogue.schemas import Category, Profile
from app.studio.schemas import TryOnItem

CLASSIFICATION_PROMPT = (
    "Analyze the provided image of a clothing item. Your task is to determine its "
    "category. The category must be one of the following exact string values: "
    + ", ".join(f'"{c.value}"' for c in Category)
    + '. An "outfit" is a single item that covers both the top and bottom of the '
    "body, like a dress or a suit."
)

TRY_ON_PROMPT = """Your mission is to perform a hyper-realistic virtual try-on. You will create a new, high-fidelity photorealistic image where the person from the first image (the user, a {gender}) is wearing the provided clothing item(s). The original user image and the clothing items are provided as subsequent images:
{item_descriptions}

**CRITICAL INSTRUCTIONS**
1. Preserve the person's face, hair, body shape, pose and skin tone exactly.
2. Replace only the clothing covered by the provided items; keep everything else unchanged.
3. Reproduce each item's color, pattern, texture and fit faithfully.
4. Keep the original background and lighting, and blend the garments naturally.
5. Return a single photorealistic image only."""


def build_try_on_prompt(items: list[TryOnItem], gender: Profile) -> str:
    item_descriptions = "\n".join(
        f"- A '{i.category.value}' item named '{i.item.name}'" for i in items
    )
    return TRY_ON_PROMPT.format(gender=gender.value, item_descriptions=item_descriptions)
