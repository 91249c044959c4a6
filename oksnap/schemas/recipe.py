from typing import Any, Dict, List

from pydantic import BaseModel


class RecipesStoreRequest(BaseModel):
    # Entries are checked one by one in RecipeIndex.store_recipes so a bad slug can be named in the error
    recipes: List[Dict[str, Any]] | None = None
