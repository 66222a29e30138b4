"""
Settings - site-wide key/value pairs with Turkish and English values.
"""

import json
import logging
from typing import Any, Dict, Iterable, Mapping

from folio.engine.repository import EntitySchema, SoftDeletableRepository
from folio.errors import NotFoundError, ValidationError
from folio.logging_config import log_call
from folio.models import Setting, SETTING_TYPES

logger = logging.getLogger(__name__)

SETTING_SCHEMA = EntitySchema(
    table='settings',
    model=Setting,
    columns=frozenset({'key', 'value_tr', 'value_en', 'type', 'description'}),
    required=('key',),
    unique=('key',),
    order_by="key ASC",
)


class SettingsRepository(SoftDeletableRepository):

    def validate(self, fields: Dict[str, Any], creating: bool) -> None:
        super().validate(fields, creating)
        if 'type' in fields and fields['type'] not in SETTING_TYPES:
            raise ValidationError(f"Invalid settings type: {fields['type']!r}", field='type')

    def get_by_key(self, key: str):
        return self.find_one('key', key)

    @log_call
    def update_by_key(self, key: str, updates: Dict[str, Any]) -> Setting:
        setting = self.get_by_key(key)
        if setting is None:
            raise NotFoundError(f"settings key {key!r} not found")
        return self.update(setting.id, updates)

    def update_many(self, items: Iterable[Mapping[str, Any]]) -> int:
        """Apply [{'key', 'value_tr', 'value_en'}, ...]; stops at the first failure."""
        count = 0
        for item in items:
            updates = {k: item[k] for k in ('value_tr', 'value_en') if k in item}
            self.update_by_key(item['key'], updates)
            count += 1
        return count

    def settings_map(self, lang: str = 'tr') -> Dict[str, Any]:
        """key -> value in one language; json settings are decoded when valid."""
        values: Dict[str, Any] = {}
        for setting in self.list():
            value = setting.value_tr if lang == 'tr' else setting.value_en
            if value is None:
                continue
            if setting.type == 'json':
                try:
                    value = json.loads(value)
                except ValueError:
                    logger.warning(f"Setting {setting.key} holds invalid JSON; returning raw text")
            values[setting.key] = value
        return values


repository = SettingsRepository(SETTING_SCHEMA)
