from recipe_harvester.app.services import recipe_pipeline
from recipe_harvester.app.services.recipe_pipeline import RecipePipeline


def get_pipeline() -> RecipePipeline:
    return recipe_pipeline.get_recipe_pipeline()
