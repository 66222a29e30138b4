"""
Blogs - bilingual posts addressed by slug.
"""

import re
import unicodedata
from typing import Any, Dict

from folio.engine.repository import EntitySchema, SoftDeletableRepository, SLUG_RE
from folio.models import Blog

# Turkish letters that NFKD does not reduce to ASCII
_TR_ASCII = str.maketrans({'ı': 'i', 'İ': 'i', 'ş': 's', 'Ş': 's', 'ğ': 'g', 'Ğ': 'g',
                           'ç': 'c', 'Ç': 'c', 'ö': 'o', 'Ö': 'o', 'ü': 'u', 'Ü': 'u'})


def slugify(text: str) -> str:
    """'Yapay Zekâ ile Çalışmak' -> 'yapay-zeka-ile-calismak'"""
    text = (text or '').translate(_TR_ASCII)
    text = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')
    return re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')


BLOG_SCHEMA = EntitySchema(
    table='blogs',
    model=Blog,
    columns=frozenset({
        'slug', 'title_tr', 'title_en', 'excerpt_tr', 'excerpt_en',
        'content_tr', 'content_en', 'category', 'emoji', 'published',
    }),
    required=('slug', 'title_tr', 'title_en'),
    unique=('slug',),
    order_by="created_at DESC",
    slug_column='slug',
    patterns=(('slug', SLUG_RE),),
)


class BlogRepository(SoftDeletableRepository):

    def create(self, fields: Dict[str, Any]) -> Blog:
        """Insert a post. A missing or blank slug is derived from the title, Turkish first."""
        fields = dict(fields)
        if not (fields.get('slug') or '').strip():
            fields['slug'] = slugify(fields.get('title_tr')) or slugify(fields.get('title_en'))
        return super().create(fields)


repository = BlogRepository(BLOG_SCHEMA)
