from itertools import product

from app.catalogue.schemas import Category
from app.studio.schemas import OutfitCombination, SelectedItemSet, TryOnItem

ACCESSORY_CATEGORIES = (Category.FOOTWEAR, Category.HEADWEAR, Category.ACCESSORIES)


def _tagged(selection: SelectedItemSet, category: Category) -> list[TryOnItem]:
    return [
        TryOnItem(category=category, item=item)
        for item in selection.for_category(category)
    ]


def _base_layers(selection: SelectedItemSet) -> list[OutfitCombination]:
    # outfits가 있으면 tops/bottoms는 베이스 레이어에서 무시
    outfits = _tagged(selection, Category.OUTFITS)
    if outfits:
        return [[outfit] for outfit in outfits]

    tops = _tagged(selection, Category.TOPS)
    bottoms = _tagged(selection, Category.BOTTOMS)
    return [[top, bottom] for top, bottom in product(tops, bottoms)]


def _accessory_layers(selection: SelectedItemSet) -> list[OutfitCombination]:
    groups = [_tagged(selection, c) for c in ACCESSORY_CATEGORIES]
    non_empty = [group for group in groups if group]
    # 빈 카테고리는 제약이 없음; 전부 비면 빈 조합 하나
    return [list(combo) for combo in product(*non_empty)]


def generate_outfit_combinations(selection: SelectedItemSet) -> list[OutfitCombination]:
    """
    카테고리별 선택을 렌더링할 조합 목록으로 변환

    베이스 레이어(outfit 또는 top x bottom)를 바깥 루프로,
    액세서리 조합(footwear x headwear x accessories)을 안쪽 루프로 곱합니다.
    순서는 선택 순서로만 결정됩니다.
    """
    bases = _base_layers(selection)
    accessories = _accessory_layers(selection)

    if not bases:
        return [combo for combo in accessories if combo]

    return [base + accessory for base in bases for accessory in accessories]
