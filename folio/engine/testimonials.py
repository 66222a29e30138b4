"""
Testimonials - client quotes with a 1-5 rating, shown by order_index.
"""

from typing import Any, Dict

from folio.engine.repository import EntitySchema, SoftDeletableRepository
from folio.errors import ValidationError
from folio.models import Testimonial

TESTIMONIAL_SCHEMA = EntitySchema(
    table='testimonials',
    model=Testimonial,
    columns=frozenset({
        'name', 'company', 'role_tr', 'role_en', 'quote_tr', 'quote_en',
        'rating', 'order_index', 'published', 'featured',
    }),
    required=('name', 'quote_tr', 'quote_en'),
    order_by="order_index ASC, created_at DESC",
)


class TestimonialRepository(SoftDeletableRepository):

    def validate(self, fields: Dict[str, Any], creating: bool) -> None:
        super().validate(fields, creating)
        if 'rating' in fields:
            rating = fields['rating']
            if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
                raise ValidationError(f"testimonials.rating must be 1-5, got {rating!r}", field='rating')


repository = TestimonialRepository(TESTIMONIAL_SCHEMA)
