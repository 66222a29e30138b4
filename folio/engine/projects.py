"""
Projects - portfolio entries shown in explicit order_index order.
"""

from typing import Any, Dict

from folio.engine.repository import EntitySchema, SoftDeletableRepository, SLUG_RE
from folio.errors import ValidationError
from folio.logging_config import log_call
from folio.models import Project

PROJECT_SCHEMA = EntitySchema(
    table='projects',
    model=Project,
    columns=frozenset({
        'slug', 'title_tr', 'title_en', 'description_tr', 'description_en',
        'category', 'tech', 'link', 'image_url', 'order_index', 'published', 'featured',
    }),
    required=('slug', 'title_tr', 'title_en'),
    unique=('slug',),
    order_by="order_index ASC, created_at DESC",
    slug_column='slug',
    patterns=(('slug', SLUG_RE),),
)


class ProjectRepository(SoftDeletableRepository):

    def validate(self, fields: Dict[str, Any], creating: bool) -> None:
        super().validate(fields, creating)
        tech = fields.get('tech')
        if tech is not None and not (isinstance(tech, list) and all(isinstance(t, str) for t in tech)):
            raise ValidationError("projects.tech must be a list of strings", field='tech')
        order_index = fields.get('order_index')
        if order_index is not None and (isinstance(order_index, bool) or not isinstance(order_index, int)):
            raise ValidationError("projects.order_index must be an integer", field='order_index')

    @log_call
    def update_order(self, row_id, order_index: int) -> Project:
        return self.update(row_id, {'order_index': order_index})


repository = ProjectRepository(PROJECT_SCHEMA)
