"""Amazon SageMaker resources."""

from plugins.resources.sagemaker.servicecatalog_portfolio_status import (
    ServicecatalogPortfolioStatusPlugin,
)

__all__ = ["ServicecatalogPortfolioStatusPlugin"]
