# ==============================================
# Duplicate analysis
# ==============================================
#
# Key definitions checked (in this order):
#   1. Declared id field                         → KeyType ID
#   2. Partition key (metadata, "/a/b" → "a.b")  → KeyType PartitionKey
#   3. Business keys                             → KeyType BusinessKey
#        - options.business_key_fields (case-insensitive)
#        - name-hinted fields with selectivity >= business_key_min_selectivity
#        - options.composite_business_keys / metadata.business_keys
#
# Documents where any key component is missing or null are not grouped.
# total_duplicate_records counts redundant copies (occurrences - 1).
# duplicate_percentage = total_duplicate_records / sampled documents.
#
# Severity:
#   ID duplicates with any group           → Critical
#   otherwise >= duplicate_threshold_critical → Critical, else Warning
#   (partition keys included)
#
# ==============================================

import json
from typing import Any, Dict, List, Tuple

from docmigrate.sample import MISSING, resolve_path

from .base import CheckContext, run_per_field
from .models import CheckOutput, DuplicateAnalysisResult, DuplicateGroup, DuplicateKeyType, Severity

CHECK_NAME = "duplicate"


def _key_repr(values: List[Any]) -> str:
    return json.dumps(values, sort_keys=True, default=str)


def key_definitions(context: CheckContext) -> List[Tuple[List[str], DuplicateKeyType]]:
    """
    Work out which key combinations to group the sample by.

    Returns:
        List of (key_fields, key_type), without repeats
    """
    options = context.options
    profile = context.profile
    top_level = profile.top_level_fields()
    definitions: List[Tuple[List[str], DuplicateKeyType]] = []
    seen = set()

    def add(fields: List[str], key_type: DuplicateKeyType) -> None:
        marker = tuple(fields)
        if marker in seen:
            return
        seen.add(marker)
        definitions.append((list(fields), key_type))

    if options.id_field in top_level:
        add([options.id_field], DuplicateKeyType.ID)

    partition_field = context.metadata.partition_key_field
    if partition_field and profile.field_at(partition_field) is not None:
        add([partition_field], DuplicateKeyType.PARTITION_KEY)

    configured = {name.lower() for name in options.business_key_fields}
    hints = [hint.lower() for hint in options.business_key_hints]
    for name in top_level:
        lowered = name.lower()
        if lowered in configured:
            add([name], DuplicateKeyType.BUSINESS_KEY)
            continue
        info = profile.field_at(name)
        if (
            info is not None
            and not info.is_nested
            and any(hint in lowered for hint in hints)
            and info.selectivity >= options.business_key_min_selectivity
        ):
            add([name], DuplicateKeyType.BUSINESS_KEY)

    for combo in list(options.composite_business_keys) + list(context.metadata.business_keys):
        if combo and all(profile.field_at(part) is not None for part in combo):
            add(list(combo), DuplicateKeyType.BUSINESS_KEY)

    return definitions


def check_duplicates(context: CheckContext) -> CheckOutput:
    options = context.options
    sample = context.sample
    total = len(sample)
    definitions = {"+".join(fields): (fields, key_type) for fields, key_type in key_definitions(context)}

    def analyze(label: str) -> DuplicateAnalysisResult:
        fields, key_type = definitions[label]

        groups: Dict[str, List[int]] = {}
        considered = 0
        for index, document in enumerate(sample.documents):
            values = [resolve_path(document, f) for f in fields]
            if any(v is MISSING or v is None for v in values):
                continue
            considered += 1
            groups.setdefault(_key_repr(values), []).append(index)

        duplicated = [(key, indexes) for key, indexes in groups.items() if len(indexes) > 1]
        redundant = sum(len(indexes) - 1 for _, indexes in duplicated)
        duplicated.sort(key=lambda item: -len(item[1]))

        top_groups = []
        for _key, indexes in duplicated[: options.top_duplicate_groups]:
            first = sample.documents[indexes[0]]
            key_values = {f: resolve_path(first, f) for f in fields}
            top_groups.append(
                DuplicateGroup(
                    key_values=key_values,
                    occurrence_count=len(indexes),
                    document_ids=[sample.document_ids[i] for i in indexes[: options.max_sample_records]],
                    sample_data=_sample_data(first, options.max_sample_records),
                )
            )

        percentage = redundant / total if total else 0.0
        if not duplicated:
            severity = Severity.INFO
        elif key_type is DuplicateKeyType.ID:
            severity = Severity.CRITICAL
        elif percentage >= options.duplicate_threshold_critical:
            severity = Severity.CRITICAL
        else:
            severity = Severity.WARNING

        return DuplicateAnalysisResult(
            key_fields=fields,
            key_type=key_type,
            total_documents=total,
            documents_considered=considered,
            duplicate_group_count=len(duplicated),
            total_duplicate_records=redundant,
            severity=severity,
            top_groups=top_groups,
        )

    return run_per_field(context, CHECK_NAME, list(definitions), analyze)


def _sample_data(document: Dict[str, Any], limit: int) -> Dict[str, Any]:
    # First few scalar properties of the first duplicate, for the report
    data = {}
    for key, value in document.items():
        if isinstance(value, (dict, list)):
            continue
        data[key] = value if isinstance(value, (str, int, float, bool)) or value is None else str(value)
        if len(data) >= limit:
            break
    return data
