"""
Manual specification submission.

Specifications are entered by hand against the templates of the product's
category. A submission replaces the product's full specification set: every
field is validated on its own, rejected fields are reported with a reason,
and the accepted fields become the new set.
"""
from collections.abc import Iterable

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from catalog_sync.core.exceptions import SpecificationValidationError
from catalog_sync.models.domain import ProductSpecificationRecord, SpecificationSubmission
from catalog_sync.repositories.base import RepositoryError
from catalog_sync.repositories.product_repository import ProductRepository
from catalog_sync.repositories.specification_repository import SpecificationRepository
from catalog_sync.services.specification_validator import validate_specification_value

logger = structlog.get_logger(__name__)


class RejectedSpecification(BaseModel):
    name: str
    value: str = ""
    reason: str


class SubmissionResult(BaseModel):
    """Outcome of one specification submission"""

    product_id: int
    accepted: list[ProductSpecificationRecord] = Field(default_factory=list)
    rejected: list[RejectedSpecification] = Field(default_factory=list)

    @property
    def has_rejections(self) -> bool:
        return bool(self.rejected)


class SpecificationService:
    """Validates and stores manually entered product specifications"""

    def __init__(self, session: Session) -> None:
        self.products = ProductRepository(session)
        self.specifications = SpecificationRepository(session)
        self.logger = logger.bind(component="specification_service")

    def submit(
        self, product_id: int, submissions: Iterable[SpecificationSubmission]
    ) -> SubmissionResult:
        """
        Replace a product's specifications with the valid submitted fields.

        Args:
            product_id: Product to update
            submissions: Entered values, matched to templates by name

        Returns:
            Accepted and rejected fields

        Raises:
            RepositoryError: If the product does not exist or has no category
        """
        product = self.products.get_by_id(product_id)
        if product is None:
            raise RepositoryError(f"Product {product_id} not found")
        if product.category_id is None:
            raise RepositoryError(f"Product {product_id} has no category")

        submissions = list(submissions)
        templates = {t.name: t for t in self.specifications.list_templates(product.category_id)}
        result = SubmissionResult(product_id=product_id)
        accepted = []

        for submission in submissions:
            template = templates.get(submission.name.strip())
            if template is None:
                result.rejected.append(
                    RejectedSpecification(
                        name=submission.name,
                        value=submission.value or "",
                        reason="unknown specification for this category",
                    )
                )
                continue

            try:
                # Checked without surrounding whitespace, stored as entered
                checked = submission.value.strip() if submission.value is not None else None
                validate_specification_value(checked, template)
            except SpecificationValidationError as e:
                result.rejected.append(
                    RejectedSpecification(
                        name=submission.name, value=submission.value or "", reason=e.reason
                    )
                )
                continue

            accepted.append(
                ProductSpecificationRecord(
                    product_id=product_id,
                    template_id=template.id,
                    value=submission.value,
                    secondary_value=submission.secondary_value or None,
                    sort_order=template.sort_order,
                )
            )

        answered = {s.name.strip() for s in submissions}
        for template in templates.values():
            if template.required and template.name not in answered:
                result.rejected.append(
                    RejectedSpecification(name=template.name, reason="value required")
                )

        result.accepted = self.specifications.replace_product_specifications(product_id, accepted)

        self.logger.info(
            "Specifications submitted",
            product_id=product_id,
            accepted=len(result.accepted),
            rejected=len(result.rejected),
        )
        return result


__all__ = ["SpecificationService", "SubmissionResult", "RejectedSpecification"]
