"""Per-field settings: keys, central defaults and the three-level merge.

Settings are resolved in one place, in this precedence order (lowest first):

1. central defaults (DEFAULT_FIELD_SETTINGS)
2. values auto-detected from sampled records
3. values persisted from a previous sync
4. explicit choices made by the user for this run
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from fieldsync.codes import DestinationType


class FieldSettingKey(str, Enum):
    """The fixed set of per-field setting keys (persisted under these names)."""

    TIME = "time"
    MULTIPLE_FIELDS = "multipleFields"
    NONE_OPTION = "noneOption"
    IMPORT_MARKDOWN_OR_HTML = "importMarkdownOrHTML"
    IMPORT_DEFAULT_MARKDOWN_OR_HTML = "importDefaultMarkdownOrHTML"


DEFAULT_FIELD_SETTINGS: Dict[FieldSettingKey, Any] = {
    FieldSettingKey.TIME: False,
    FieldSettingKey.MULTIPLE_FIELDS: True,
    FieldSettingKey.NONE_OPTION: "",
    FieldSettingKey.IMPORT_MARKDOWN_OR_HTML: "html",
    FieldSettingKey.IMPORT_DEFAULT_MARKDOWN_OR_HTML: "default",
}


class FieldSettings(BaseModel):
    """Typed per-field options bag.

    Field aliases are the persisted key names, so a settings dict saved by a
    previous sync validates straight into this model.
    """
    time: bool = Field(DEFAULT_FIELD_SETTINGS[FieldSettingKey.TIME], alias="time")
    multiple_fields: bool = Field(
        DEFAULT_FIELD_SETTINGS[FieldSettingKey.MULTIPLE_FIELDS], alias="multipleFields"
    )
    none_option: str = Field(DEFAULT_FIELD_SETTINGS[FieldSettingKey.NONE_OPTION], alias="noneOption")
    import_markdown_or_html: Literal["html", "markdown"] = Field(
        DEFAULT_FIELD_SETTINGS[FieldSettingKey.IMPORT_MARKDOWN_OR_HTML], alias="importMarkdownOrHTML"
    )
    import_default_markdown_or_html: Literal["default", "html", "markdown"] = Field(
        DEFAULT_FIELD_SETTINGS[FieldSettingKey.IMPORT_DEFAULT_MARKDOWN_OR_HTML],
        alias="importDefaultMarkdownOrHTML",
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    def with_single_value(self) -> "FieldSettings":
        """Copy with multiple-value import turned off (used for computed properties)."""
        return self.model_copy(update={"multiple_fields": False})

    def to_persisted(self) -> Dict[str, Any]:
        """Dict keyed by the persisted setting names."""
        return self.model_dump(by_alias=True)


def _normalize(values: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Keep only known setting keys with non-None values, keyed by persisted name."""
    if not values:
        return {}
    known = {key.value for key in FieldSettingKey}
    result: Dict[str, Any] = {}
    for key, value in values.items():
        name = key.value if isinstance(key, FieldSettingKey) else key
        if name in known and value is not None:
            result[name] = value
    return result


def merge_field_settings(
    auto_detected: Optional[Mapping[str, Any]] = None,
    persisted: Optional[Mapping[str, Any]] = None,
    explicit: Optional[Mapping[str, Any]] = None,
) -> FieldSettings:
    """
    Merge settings sources over the central defaults.

    Later sources win: auto-detected < persisted < explicit.

    Returns:
        A fully populated FieldSettings
    """
    merged: Dict[str, Any] = {key.value: value for key, value in DEFAULT_FIELD_SETTINGS.items()}
    merged.update(_normalize(auto_detected))
    merged.update(_normalize(persisted))
    merged.update(_normalize(explicit))
    return FieldSettings.model_validate(merged)


@dataclass(frozen=True)
class SettingRule:
    """Declares that a setting applies to a property kind (optionally only for one destination type)."""
    property_kind: str
    setting: FieldSettingKey
    field_type: Optional[DestinationType] = None


def applicable_settings(
    property_kinds: Iterable[str],
    field_type: Optional[DestinationType],
    rules: Iterable[SettingRule],
) -> List[FieldSettingKey]:
    """Settings that apply to a property (matched on its declared or effective kind) and destination type."""
    kinds = set(property_kinds)
    matched = set()
    for rule in rules:
        if rule.property_kind not in kinds:
            continue
        if rule.field_type is not None and rule.field_type != field_type:
            continue
        matched.add(rule.setting)
    # Stable order: the enum's declaration order
    return [key for key in FieldSettingKey if key in matched]
