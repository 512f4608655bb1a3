"""Pydantic models describing the normalised contribution tables."""

from __future__ import annotations

from bisect import bisect_right
from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self

from subscalc.backend.months import month_start


class ConfigurationError(ValueError):
    """Raised when configuration tables violate schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class Regime(str, Enum):
    """Legal rule set applicable to a month (Law 79/1975 or Law 148/2019)."""

    PRE = "pre"
    POST = "post"


class WorkerCategory(str, Enum):
    """Legal worker classification selecting tables and calculation mode."""

    GOV = "gov"
    PUBLIC = "public"
    PRIVATE = "private"
    CONSTRUCTION = "construction"
    TRANSPORT = "transport"
    ABROAD = "abroad"
    BUSINESS_OWNER = "business_owner"
    IRREGULAR = "irregular"

    @property
    def code(self) -> str:
        return CATEGORY_CODES[self]

    @property
    def is_standard(self) -> bool:
        return self in STANDARD_CATEGORIES

    @property
    def is_self_payer(self) -> bool:
        return self in SELF_PAYER_CATEGORIES

    @property
    def is_grouped(self) -> bool:
        return self in GROUPED_CATEGORIES

    @classmethod
    def from_code(cls, code: str) -> WorkerCategory:
        for category, category_code in CATEGORY_CODES.items():
            if category_code == code:
                return category
        raise KeyError(code)


CATEGORY_CODES: Mapping[WorkerCategory, str] = {
    WorkerCategory.GOV: "1",
    WorkerCategory.PUBLIC: "2",
    WorkerCategory.PRIVATE: "3",
    WorkerCategory.CONSTRUCTION: "4",
    WorkerCategory.TRANSPORT: "5",
    WorkerCategory.ABROAD: "7",
    WorkerCategory.BUSINESS_OWNER: "8",
    WorkerCategory.IRREGULAR: "9",
}

STANDARD_CATEGORIES = frozenset(
    {WorkerCategory.GOV, WorkerCategory.PUBLIC, WorkerCategory.PRIVATE}
)
SELF_PAYER_CATEGORIES = frozenset(
    {WorkerCategory.BUSINESS_OWNER, WorkerCategory.ABROAD}
)
GROUPED_CATEGORIES = frozenset(
    {WorkerCategory.CONSTRUCTION, WorkerCategory.TRANSPORT, WorkerCategory.IRREGULAR}
)

# Sector labels as they appear in the first column of the rate tables.
CATEGORY_LABELS: Mapping[str, WorkerCategory] = {
    "القطاع الحكومي": WorkerCategory.GOV,
    "القطاع العام": WorkerCategory.PUBLIC,
    "القطاع الخاص": WorkerCategory.PRIVATE,
    "أصحاب الأعمال": WorkerCategory.BUSINESS_OWNER,
    "العاملين بالخارج": WorkerCategory.ABROAD,
}


class WageKind(str, Enum):
    """Statutory wage concept represented by a wage sub-period."""

    BASIC = "basic"
    VARIABLE = "variable"
    UNIFIED = "unified"
    INCOME = "income"


WAGE_KIND_LABELS: Mapping[str, WageKind] = {
    "أساسي": WageKind.BASIC,
    "متغير": WageKind.VARIABLE,
    "موحد": WageKind.UNIFIED,
    "دخل": WageKind.INCOME,
}


class InsuranceType(str, Enum):
    """Insurance branches a period can subscribe to."""

    PENSION = "pension"
    BONUS = "bonus"
    ILLNESS = "illness"
    UNEMPLOYMENT = "unemployment"
    INJURY = "injury"


INSURANCE_LABELS: Mapping[str, InsuranceType] = {
    "الشيخوخة": InsuranceType.PENSION,
    "مكافأة": InsuranceType.BONUS,
    "المرض": InsuranceType.ILLNESS,
    "البطالة": InsuranceType.UNEMPLOYMENT,
    "إصابات العمل": InsuranceType.INJURY,
}


class ReductionKind(str, Enum):
    """Statutory discounts applicable to standard-employment categories."""

    ILLNESS_CARE = "illness_care"
    ILLNESS_COMP = "illness_comp"
    INJURY_CARE = "injury_care"
    INJURY_COMP = "injury_comp"


REDUCTION_LABELS: Mapping[str, ReductionKind] = {
    "رعاية طبية (مرض)": ReductionKind.ILLNESS_CARE,
    "تعويض (مرض)": ReductionKind.ILLNESS_COMP,
    "رعاية طبية (إصابة)": ReductionKind.INJURY_CARE,
    "تعويض (إصابة)": ReductionKind.INJURY_COMP,
}

TRANSPORT_GRADES: tuple[str, ...] = ("helper", "third", "second", "first")
CONSTRUCTION_GRADES: tuple[str, ...] = ("limited_skill", "medium_skill", "skilled")

GRADE_LABELS: Mapping[str, str] = {
    "التباع": "helper",
    "الدرجة الثالثة": "third",
    "الدرجة الثانية": "second",
    "الدرجة الأولي": "first",
    "عامل محدود المهارة": "limited_skill",
    "عامل متوسط المهارة": "medium_skill",
    "عامل ماهر": "skilled",
}


def _coerce_enum(enum_type: type[Enum], labels: Mapping[str, Any], value: Any) -> Any:
    if isinstance(value, enum_type):
        return value
    text = str(value or "").strip()
    if text in labels:
        return labels[text]
    try:
        return enum_type(text)
    except ValueError as exc:
        raise ConfigurationError(
            f"Unknown {enum_type.__name__} value '{text}'"
        ) from exc


def coerce_category(value: Any) -> WorkerCategory:
    """Resolve a category from its code, enum value or Arabic table label."""

    text = str(value or "").strip()
    if text in CATEGORY_CODES.values():
        return WorkerCategory.from_code(text)
    return _coerce_enum(WorkerCategory, CATEGORY_LABELS, value)


def coerce_wage_kind(value: Any) -> WageKind:
    return _coerce_enum(WageKind, WAGE_KIND_LABELS, value)


def coerce_insurance_type(value: Any) -> InsuranceType:
    return _coerce_enum(InsuranceType, INSURANCE_LABELS, value)


def coerce_reduction_kind(value: Any) -> ReductionKind:
    return _coerce_enum(ReductionKind, REDUCTION_LABELS, value)


def coerce_grade(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return GRADE_LABELS.get(text, text)


class InsuranceSelections(ImmutableModel):
    """Insurance branches enabled for a period, all enabled by default."""

    pension: bool = True
    bonus: bool = True
    illness: bool = True
    unemployment: bool = True
    injury: bool = True

    def enabled(self, insurance: InsuranceType) -> bool:
        return bool(getattr(self, insurance.value))


class ReductionSelections(ImmutableModel):
    """Reductions requested for a period, all disabled by default."""

    illness_care: bool = False
    illness_comp: bool = False
    injury_care: bool = False
    injury_comp: bool = False

    def enabled(self, reduction: ReductionKind) -> bool:
        return bool(getattr(self, reduction.value))

    @property
    def selected(self) -> tuple[ReductionKind, ...]:
        return tuple(kind for kind in ReductionKind if self.enabled(kind))


class WageLimitRange(ImmutableModel):
    """Inclusive date range carrying optional statutory wage bounds."""

    start: date
    end: date
    minimum: float | None = None
    maximum: float | None = None

    @model_validator(mode="after")
    def _validate_bounds(self) -> WageLimitRange:
        if self.end < self.start:
            raise ConfigurationError(
                f"Range ending {self.end.isoformat()} starts after it ends"
            )
        for bound in (self.minimum, self.maximum):
            if bound is not None and bound < 0:
                raise ConfigurationError("Wage bounds must be non-negative")
        if (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        ):
            raise ConfigurationError(
                f"Minimum wage {self.minimum} exceeds maximum {self.maximum}"
            )
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, start: date, end: date) -> bool:
        return self.start <= end and self.end >= start


class RangeTable(ImmutableModel):
    """Sorted, non-overlapping wage limit ranges loaded from one table."""

    key: str
    ranges: tuple[WageLimitRange, ...] = ()

    @model_validator(mode="after")
    def _validate_order(self) -> RangeTable:
        previous: WageLimitRange | None = None
        for entry in self.ranges:
            if previous is not None and entry.start <= previous.end:
                raise ConfigurationError(
                    f"Table '{self.key}' has overlapping ranges starting "
                    f"{previous.start.isoformat()} and {entry.start.isoformat()}"
                )
            previous = entry
        return self

    def find(self, day: date) -> WageLimitRange | None:
        index = bisect_right(self.ranges, day, key=lambda entry: entry.start) - 1
        if index < 0:
            return None
        candidate = self.ranges[index]
        return candidate if candidate.contains(day) else None

    def overlapping(self, start: date, end: date) -> tuple[WageLimitRange, ...]:
        upper = bisect_right(self.ranges, end, key=lambda entry: entry.start)
        return tuple(entry for entry in self.ranges[:upper] if entry.end >= start)


class InsuranceRates(ImmutableModel):
    """Employer and employee percentages for one insurance branch."""

    employer: float = 0.0
    employee: float = 0.0

    @model_validator(mode="after")
    def _validate_rates(self) -> InsuranceRates:
        if self.employer < 0 or self.employee < 0:
            raise ConfigurationError("Contribution rates must be non-negative")
        return self

    @property
    def is_zero(self) -> bool:
        return self.employer == 0 and self.employee == 0


class RateRow(ImmutableModel):
    """Contribution percentages for a category (and wage kind before 2020)."""

    category: WorkerCategory
    wage_kind: WageKind | None = None
    pension: InsuranceRates = Field(default_factory=InsuranceRates)
    bonus: InsuranceRates = Field(default_factory=InsuranceRates)
    illness: InsuranceRates = Field(default_factory=InsuranceRates)
    unemployment: InsuranceRates = Field(default_factory=InsuranceRates)
    injury: InsuranceRates = Field(default_factory=InsuranceRates)

    def rates_for(self, insurance: InsuranceType) -> InsuranceRates:
        return getattr(self, insurance.value)


class RateTable(ImmutableModel):
    """Regime-scoped contribution rate table."""

    regime: Regime
    rows: tuple[RateRow, ...] = ()

    @model_validator(mode="after")
    def _validate_rows(self) -> RateTable:
        seen: set[tuple[WorkerCategory, WageKind | None]] = set()
        for row in self.rows:
            if self.regime is Regime.PRE and row.wage_kind not in {
                WageKind.BASIC,
                WageKind.VARIABLE,
            }:
                raise ConfigurationError(
                    "Pre-2020 rate rows must target the basic or variable wage"
                )
            if self.regime is Regime.POST and row.wage_kind is not None:
                raise ConfigurationError("Post-2020 rate rows apply to every wage kind")
            key = (row.category, row.wage_kind)
            if key in seen:
                raise ConfigurationError(
                    f"Duplicate rate row for {row.category.value} ({row.wage_kind})"
                )
            seen.add(key)
        return self

    def has_category(self, category: WorkerCategory) -> bool:
        return any(row.category is category for row in self.rows)

    def row_for(
        self, category: WorkerCategory, wage_kind: WageKind | None = None
    ) -> RateRow | None:
        for row in self.rows:
            if row.category is not category:
                continue
            if self.regime is Regime.POST or row.wage_kind is wage_kind:
                return row
        return None


class ReductionRow(ImmutableModel):
    """Percentage discount for one reduction kind and insurance branch."""

    kind: ReductionKind
    insurance_type: InsuranceType
    percentage: float

    @model_validator(mode="after")
    def _validate_percentage(self) -> ReductionRow:
        if self.percentage < 0:
            raise ConfigurationError("Reduction percentages must be non-negative")
        return self


class ReductionTable(ImmutableModel):
    regime: Regime
    rows: tuple[ReductionRow, ...] = ()

    def applicable(
        self, insurance: InsuranceType, selected: Iterable[ReductionKind]
    ) -> tuple[ReductionRow, ...]:
        chosen = set(selected)
        return tuple(
            row
            for row in self.rows
            if row.kind in chosen and row.insurance_type is insurance
        )


class GradeRate(ImmutableModel):
    """Monthly wage and contribution published for a grade (or directly)."""

    wage: float
    contribution: float


class GroupedTableRow(ImmutableModel):
    """One published row of a transport, construction or irregular table."""

    start: date
    end: date
    minimum_wage: float | None = None
    rate: GradeRate | None = None
    grades: Mapping[str, GradeRate] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_row(self) -> GroupedTableRow:
        if self.end < self.start:
            raise ConfigurationError(
                f"Grouped row starting {self.start.isoformat()} ends before it starts"
            )
        if self.rate is None and not self.grades:
            raise ConfigurationError("Grouped rows need a direct rate or grade rates")
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def rate_for(self, grade: str | None) -> GradeRate | None:
        if self.grades:
            return self.grades.get(grade or "")
        return self.rate


class GroupedTable(ImmutableModel):
    key: str
    rows: tuple[GroupedTableRow, ...] = ()

    @model_validator(mode="after")
    def _validate_order(self) -> GroupedTable:
        previous: GroupedTableRow | None = None
        for row in self.rows:
            if previous is not None and row.start <= previous.end:
                raise ConfigurationError(
                    f"Table '{self.key}' has overlapping rows starting "
                    f"{previous.start.isoformat()} and {row.start.isoformat()}"
                )
            previous = row
        return self

    def find(self, month: date) -> GroupedTableRow | None:
        """Return the row whose date range contains the first day of ``month``."""

        day = month_start(month)
        index = bisect_right(self.rows, day, key=lambda row: row.start) - 1
        if index < 0:
            return None
        candidate = self.rows[index]
        return candidate if candidate.contains(day) else None


class EngineSettings(ImmutableModel):
    """Statutory constants and sector rules recognised by the engine."""

    cutover: date = date(2020, 1, 1)
    legal_floor: date = date(1984, 4, 1)
    restricted_sectors: tuple[str, ...] = ("1", "2", "3", "7", "8")
    pre_fallback_sectors: tuple[str, ...] = ("1", "2", "3")
    post_fallback_sectors: tuple[str, ...] = ("1", "2", "3", "7", "8")
    aggregation_order: tuple[str, ...] = ("1", "2", "3", "4", "5", "8", "7", "9")
    default_insurance: InsuranceSelections = Field(default_factory=InsuranceSelections)
    default_reductions: ReductionSelections = Field(default_factory=ReductionSelections)

    @field_validator(
        "restricted_sectors",
        "pre_fallback_sectors",
        "post_fallback_sectors",
        "aggregation_order",
        mode="before",
    )
    @classmethod
    def _coerce_codes(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, (str, bytes)):
            raise ConfigurationError("Sector lists must be sequences of codes")
        if isinstance(value, Iterable):
            return tuple(str(entry).strip() for entry in value)
        raise ConfigurationError("Sector lists must be sequences of codes")

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.cutover.day != 1 or self.legal_floor.day != 1:
            raise ConfigurationError("Statutory dates must fall on the first of a month")
        if self.legal_floor >= self.cutover:
            raise ConfigurationError("The 1984 legal floor must precede the cutover")
        return self

    def regime_for(self, month: date) -> Regime:
        return Regime.PRE if month < self.cutover else Regime.POST


class TableSet(ImmutableModel):
    """Every normalised table consumed by one calculation session."""

    rates_before: RateTable
    rates_after: RateTable
    reductions_before: ReductionTable
    reductions_after: ReductionTable
    min_basic_wage: RangeTable
    max_basic_wage: RangeTable
    max_variable_wage: RangeTable
    unified_limits: RangeTable
    transport_79: GroupedTable
    transport_148: GroupedTable
    construction_79: GroupedTable
    construction_148: GroupedTable
    irregular: GroupedTable

    def rates_for(self, regime: Regime) -> RateTable:
        return self.rates_before if regime is Regime.PRE else self.rates_after

    def reductions_for(self, regime: Regime) -> ReductionTable:
        return self.reductions_before if regime is Regime.PRE else self.reductions_after

    def limit_tables_for(self, kind: WageKind) -> tuple[RangeTable, ...]:
        if kind is WageKind.BASIC:
            return (self.min_basic_wage, self.max_basic_wage)
        if kind is WageKind.VARIABLE:
            return (self.max_variable_wage,)
        return (self.unified_limits,)

    def fallback_table_for(self, kind: WageKind) -> RangeTable:
        if kind is WageKind.BASIC:
            return self.min_basic_wage
        return self.unified_limits

    def grouped_table(self, category: WorkerCategory, regime: Regime) -> GroupedTable:
        if category is WorkerCategory.IRREGULAR:
            return self.irregular
        if category is WorkerCategory.TRANSPORT:
            return self.transport_79 if regime is Regime.PRE else self.transport_148
        if category is WorkerCategory.CONSTRUCTION:
            return self.construction_79 if regime is Regime.PRE else self.construction_148
        raise KeyError(category)


class TableManifestEntry(ImmutableModel):
    """Entry describing one raw table file in the manifest."""

    key: str
    filename: str | None = None
    description: str | None = None

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.key}.yaml"


class TableManifest(ImmutableModel):
    """Manifest describing the bundled table files and engine settings."""

    meta: Mapping[str, Any] = Field(default_factory=dict)
    settings: EngineSettings = Field(default_factory=EngineSettings)
    tables: Sequence[TableManifestEntry]

    @model_validator(mode="after")
    def _validate_tables(self) -> TableManifest:
        seen: set[str] = set()
        for entry in self.tables:
            if entry.key in seen:
                raise ConfigurationError(
                    f"Duplicate table '{entry.key}' declared in the manifest"
                )
            seen.add(entry.key)
        return self

    def get_entry(self, key: str) -> TableManifestEntry:
        for entry in self.tables:
            if entry.key == key:
                return entry
        raise KeyError(key)

    @computed_field
    @property
    def table_keys(self) -> tuple[str, ...]:
        return tuple(entry.key for entry in self.tables)


__all__ = [
    "CATEGORY_CODES",
    "GROUPED_CATEGORIES",
    "SELF_PAYER_CATEGORIES",
    "STANDARD_CATEGORIES",
    "CONSTRUCTION_GRADES",
    "ConfigurationError",
    "EngineSettings",
    "GRADE_LABELS",
    "GradeRate",
    "GroupedTable",
    "GroupedTableRow",
    "ImmutableModel",
    "InsuranceRates",
    "InsuranceSelections",
    "InsuranceType",
    "RangeTable",
    "RateRow",
    "RateTable",
    "ReductionKind",
    "ReductionRow",
    "ReductionSelections",
    "ReductionTable",
    "Regime",
    "TRANSPORT_GRADES",
    "TableManifest",
    "TableManifestEntry",
    "TableSet",
    "WageKind",
    "WageLimitRange",
    "WorkerCategory",
    "coerce_category",
    "coerce_grade",
    "coerce_insurance_type",
    "coerce_reduction_kind",
    "coerce_wage_kind",
]
