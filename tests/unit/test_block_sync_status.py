from types import SimpleNamespace

import pytest

from backoffice.models.enums import SyncStatus
from backoffice.services.template_sync import get_block_sync_status


@pytest.mark.parametrize("formula, template_version, expected", [
    ({"template_source_id": None}, 3, SyncStatus.NO_TEMPLATE),
    ({"template_source_id": 900, "is_template": True}, 3, SyncStatus.NO_TEMPLATE),
    ({"template_source_id": 900, "template_source_version": 2}, None, SyncStatus.NO_TEMPLATE),
    ({"template_source_id": 900, "template_source_version": 3}, 3, SyncStatus.UP_TO_DATE),
    ({"template_source_id": 900, "template_source_version": 4}, 3, SyncStatus.UP_TO_DATE),
    ({"template_source_id": 900, "template_source_version": 2}, 3, SyncStatus.TEMPLATE_UPDATED),
    ({"template_source_id": 900, "template_source_version": None}, 1, SyncStatus.TEMPLATE_UPDATED),
])
def test_block_sync_status(formula, template_version, expected):
    assert get_block_sync_status(formula, template_version) == expected


def test_reads_orm_like_objects():
    formula = SimpleNamespace(template_source_id=900, is_template=False, template_source_version=1)
    assert get_block_sync_status(formula, 2) == SyncStatus.TEMPLATE_UPDATED
