"""
DNS record synthesis for exercise containers.
"""

from dataclasses import replace
from typing import Iterable, List

from exlab.domain.exercises.entities import RecordConfig


def synthesize_records(templates: Iterable[RecordConfig], address: str) -> List[RecordConfig]:
    """
    Resolve record templates against a container address.
    
    Templates with an explicit target (aliases, static entries) pass
    through unchanged; empty targets become ``address``. Order follows
    the templates.
    """
    return [t if t.data else replace(t, data=address) for t in templates]
